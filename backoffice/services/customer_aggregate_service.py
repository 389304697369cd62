"""
Customer aggregate updater.

The single writer of Customer.total_orders and Customer.total_revenue.

Aggregates are always recomputed from the customer's current order set, never
incremented, so running the update twice in a row yields the same values and
drift from an earlier bug cannot survive the next recomputation. It runs only
from mutation paths (order create, amount-affecting update, delete, payment),
never from reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable

from backoffice.domain.errors import NotFoundError
from backoffice.domain.money import sum_money
from backoffice.domain.time import utc_now
from backoffice.repositories.customer_repository import get_customer_by_id, write_customer_aggregates
from backoffice.repositories.order_repository import list_orders_by_customer
from backoffice.repositories.store import DocumentStore, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CustomerAggregates:
    customer_id: str
    total_orders: int
    total_revenue: Decimal


class CustomerAggregateUpdater:
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def refresh(self, tx: Transaction, customer_id: str) -> CustomerAggregates:
        """
        Recompute a customer's aggregates inside the caller's unit of work.

        Orders inserted or deleted earlier in the same unit of work are
        already reflected by the transaction's reads.
        """

        customer = get_customer_by_id(tx, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        orders = list_orders_by_customer(tx, customer_id)
        aggregates = CustomerAggregates(
            customer_id=customer_id,
            total_orders=len(orders),
            total_revenue=sum_money(order.total_amount for order in orders),
        )

        if (customer.total_orders, customer.total_revenue) == (aggregates.total_orders, aggregates.total_revenue):
            return aggregates

        write_customer_aggregates(
            tx,
            customer_id,
            total_orders=aggregates.total_orders,
            total_revenue=aggregates.total_revenue,
            updated_at=self._clock(),
        )
        logger.info(
            "Customer aggregates updated",
            extra={
                "customer_id": customer_id,
                "total_orders": aggregates.total_orders,
                "total_revenue": str(aggregates.total_revenue),
            },
        )
        return aggregates

    def refresh_now(self, store: DocumentStore, customer_id: str) -> CustomerAggregates:
        """Run a standalone recomputation as its own unit of work (repair tooling)."""

        with store.transaction() as tx:
            return self.refresh(tx, customer_id)


__all__ = ["CustomerAggregates", "CustomerAggregateUpdater"]
