"""
Domain: Sales leaderboard aggregation (pure).

Rules implemented here:
- An order is attributed to its creator, else to its customer's creator,
  else to the "unattributed" bucket.
- new_orders / new_orders_value: orders created inside the window.
- paid_orders: distinct attributed orders with at least one payment inside the window.
- paid_revenue: sum of in-window payment amounts on attributed orders.
- conversion_rate = paid_orders / new_orders * 100 (0 when there are no new orders).
- weighted_score = paid_revenue * 0.6 + new_orders_value * 0.1 + conversion_rate * 0.3,
  using the unrounded rate; only the reported rate and the score are rounded.
- Entries sort by weighted_score descending; "unattributed" is always last.

The computation reads immutable history only and keeps no state between runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Set

from .activity import Activity
from .customer import Customer
from .money import ZERO, add_money, to_money
from .order import Order
from .payment import Payment
from .time import require_utc_timestamp

logger = logging.getLogger(__name__)

UNATTRIBUTED = "unattributed"
UNATTRIBUTED_NAME = "Unattributed Sales"

REVENUE_WEIGHT = Decimal("0.6")
NEW_ORDERS_WEIGHT = Decimal("0.1")
CONVERSION_WEIGHT = Decimal("0.3")


@dataclass(frozen=True, slots=True)
class LeaderboardWindow:
    """Inclusive date range over which staff performance is aggregated."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("start", self.start)
        require_utc_timestamp("end", self.end)
        if self.end < self.start:
            raise ValueError("window end must be >= window start")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: str
    user_name: str
    new_orders: int
    new_orders_value: Decimal
    paid_orders: int
    paid_revenue: Decimal
    total_orders: int
    total_revenue: Decimal
    conversion_rate: Decimal
    weighted_score: Decimal


@dataclass(slots=True)
class _Tally:
    user_id: str
    new_orders: int = 0
    new_orders_value: Decimal = ZERO
    paid_order_ids: Set[str] = field(default_factory=set)
    paid_revenue: Decimal = ZERO
    total_orders: int = 0
    total_revenue: Decimal = ZERO

    def to_entry(self, user_name: str) -> LeaderboardEntry:
        paid_orders = len(self.paid_order_ids)
        if self.new_orders > 0:
            raw_rate = Decimal(paid_orders) / Decimal(self.new_orders) * 100
        else:
            raw_rate = ZERO
        # Only the reported rate and the final score are rounded.
        score = to_money(
            self.paid_revenue * REVENUE_WEIGHT
            + self.new_orders_value * NEW_ORDERS_WEIGHT
            + raw_rate * CONVERSION_WEIGHT
        )
        conversion_rate = to_money(raw_rate)
        return LeaderboardEntry(
            user_id=self.user_id,
            user_name=user_name,
            new_orders=self.new_orders,
            new_orders_value=self.new_orders_value,
            paid_orders=paid_orders,
            paid_revenue=self.paid_revenue,
            total_orders=self.total_orders,
            total_revenue=self.total_revenue,
            conversion_rate=conversion_rate,
            weighted_score=score,
        )


def attribute_order(order: Order, customers: Mapping[str, Customer]) -> str:
    """Resolve the staff id credited with an order."""

    if order.created_by:
        return order.created_by
    customer = customers.get(order.customer_id)
    if customer is not None and customer.created_by:
        return customer.created_by
    return UNATTRIBUTED


def _user_names(activities: Iterable[Activity]) -> Dict[str, str]:
    """Most recent display name per user id, as recorded in the activity log."""

    names: Dict[str, str] = {}
    latest: Dict[str, datetime] = {}
    for activity in activities:
        seen = latest.get(activity.user_id)
        if seen is None or activity.created_at >= seen:
            latest[activity.user_id] = activity.created_at
            names[activity.user_id] = activity.user_name
    return names


def compute_leaderboard(
    window: LeaderboardWindow,
    orders: Iterable[Order],
    payments: Iterable[Payment],
    customers: Iterable[Customer],
    activities: Iterable[Activity] = (),
) -> List[LeaderboardEntry]:
    customers_by_id = {customer.customer_id: customer for customer in customers}
    names = _user_names(activities)

    tallies: Dict[str, _Tally] = {}
    unattributed = _Tally(user_id=UNATTRIBUTED)
    owner_by_order: Dict[str, str] = {}

    def tally_for(user_id: str) -> _Tally:
        if user_id == UNATTRIBUTED:
            return unattributed
        if user_id not in tallies:
            tallies[user_id] = _Tally(user_id=user_id)
        return tallies[user_id]

    for order in orders:
        owner = attribute_order(order, customers_by_id)
        owner_by_order[order.order_id] = owner
        tally = tally_for(owner)
        tally.total_orders += 1
        tally.total_revenue = add_money(tally.total_revenue, order.total_amount)
        if window.contains(order.created_at):
            tally.new_orders += 1
            tally.new_orders_value = add_money(tally.new_orders_value, order.total_amount)

    for payment in payments:
        payment_owner = owner_by_order.get(payment.order_id)
        if payment_owner is None:
            logger.warning(
                "Payment references missing order",
                extra={
                    "payment_id": payment.payment_id,
                    "order_id": payment.order_id,
                    "amount": str(payment.amount),
                },
            )
            continue
        if not window.contains(payment.date):
            continue
        tally = tally_for(payment_owner)
        tally.paid_order_ids.add(payment.order_id)
        tally.paid_revenue = add_money(tally.paid_revenue, payment.amount)

    ranked = sorted(
        (tally.to_entry(names.get(user_id, f"User {user_id[:8]}")) for user_id, tally in tallies.items()),
        key=lambda entry: (-entry.weighted_score, entry.user_id),
    )
    ranked.append(unattributed.to_entry(UNATTRIBUTED_NAME))
    return ranked


__all__ = [
    "UNATTRIBUTED",
    "LeaderboardWindow",
    "LeaderboardEntry",
    "attribute_order",
    "compute_leaderboard",
]
