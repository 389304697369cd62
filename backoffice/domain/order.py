"""
Domain: Order entity and operational status.

Rules implemented here:
- Operational statuses form a fixed manufacturing pipeline:
  quotation -> production -> quality_control -> dispatch -> installation -> completed.
- `paid` is an overlay checkpoint outside the pipeline; it may be entered from
  any status and may be reverted.
- total_amount always equals the sum of quantity x unit_price over the line items.
- Notes are append-only.
- Order ids are human readable and sort chronologically: <prefix><YYYYMMDDHHMMSS><NNNN>.

This module contains only pure domain entities: no I/O, no database.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Tuple

from .money import ZERO, add_money, to_money
from .time import require_utc_timestamp


class OrderStatus(str, Enum):
    QUOTATION = "quotation"
    PRODUCTION = "production"
    QUALITY_CONTROL = "quality_control"
    DISPATCH = "dispatch"
    INSTALLATION = "installation"
    COMPLETED = "completed"
    PAID = "paid"

    @property
    def is_checkpoint(self) -> bool:
        return self is OrderStatus.PAID


class DeliveryMethod(str, Enum):
    DELIVERY = "delivery"
    COLLECTION = "collection"
    SITE_VISIT = "site_visit"


class FulfilmentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class LineItem:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"quantity must be an integer for product {self.product_id}")
        if self.quantity <= 0:
            raise ValueError(f"quantity must be > 0 for product {self.product_id}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0 for product {self.product_id}")

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True, slots=True)
class OrderNote:
    note_id: str
    content: str
    created_by: str
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class DeliveryDetails:
    """Delivery, collection and site-visit scheduling for an order."""

    method: DeliveryMethod = DeliveryMethod.DELIVERY
    delivery_date: Optional[datetime] = None
    collection_date: Optional[datetime] = None
    site_visit_date: Optional[datetime] = None
    delivery_status: Optional[FulfilmentStatus] = None
    collection_status: Optional[FulfilmentStatus] = None
    site_visit_status: Optional[FulfilmentStatus] = None

    def __post_init__(self) -> None:
        for name in ("delivery_date", "collection_date", "site_visit_date"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)


def calculate_total(line_items: Iterable[LineItem]) -> Decimal:
    total = ZERO
    for item in line_items:
        total = add_money(total, item.line_total)
    return total


@dataclass(frozen=True, slots=True)
class Order:
    """
    Order aggregate as persisted.

    total_paid and last_payment_date mirror the payment ledger; the ledger is
    their only writer. total_amount is derived from line_items and validated here.
    """

    order_id: str
    customer_id: str
    line_items: Tuple[LineItem, ...]
    status: OrderStatus
    total_amount: Decimal
    created_by: str
    created_at: datetime
    updated_at: datetime
    customer_name: str = ""
    delivery: DeliveryDetails = field(default_factory=DeliveryDetails)
    total_paid: Decimal = ZERO
    last_payment_date: Optional[datetime] = None
    notes: Tuple[OrderNote, ...] = ()

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.last_payment_date is not None:
            require_utc_timestamp("last_payment_date", self.last_payment_date)
        if not self.line_items:
            raise ValueError("an order needs at least one line item")
        if to_money(self.total_amount) != calculate_total(self.line_items):
            raise ValueError(
                f"total_amount {self.total_amount} does not match line items "
                f"({calculate_total(self.line_items)})"
            )

    @property
    def balance(self) -> Decimal:
        return to_money(self.total_amount - self.total_paid)

    def with_status(self, status: OrderStatus, *, updated_at: datetime) -> "Order":
        return replace(self, status=status, updated_at=updated_at)

    def with_note(self, note: OrderNote, *, updated_at: datetime) -> "Order":
        return replace(self, notes=self.notes + (note,), updated_at=updated_at)


def generate_order_id(now: datetime, prefix: str = "RPC", rng: Optional[random.Random] = None) -> str:
    """Build a chronologically sortable id such as RPC202501151030450042."""

    require_utc_timestamp("now", now)
    sequence = (rng or random).randint(0, 9999)
    return f"{prefix}{now:%Y%m%d%H%M%S}{sequence:04d}"


__all__ = [
    "OrderStatus",
    "DeliveryMethod",
    "FulfilmentStatus",
    "LineItem",
    "OrderNote",
    "DeliveryDetails",
    "Order",
    "calculate_total",
    "generate_order_id",
]
