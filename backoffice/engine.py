"""
BackOffice engine facade.

Builds one document store at process start and hands it to every service.
There are no module-level stores or clients: tests and the API each construct
their own BackOffice.

Example:
    >>> office = BackOffice(InMemoryDocumentStore())
    >>> customer_id = office.create_customer(NewCustomer("Tendai", "Moyo"), user)
    >>> order_id = office.create_order(NewOrder(customer_id, [{"product_id": "p1", ...}]), user)
    >>> office.add_payment(order_id, "50.00", "cash", user)
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Union

from backoffice.config import STORE_SUPABASE, Settings
from backoffice.domain.activity import Activity
from backoffice.domain.customer import Customer
from backoffice.domain.leaderboard import LeaderboardEntry, LeaderboardWindow
from backoffice.domain.order import Order, OrderStatus
from backoffice.domain.payment import Payment, PaymentRequest, PaymentStatus
from backoffice.domain.task import Task
from backoffice.domain.time import utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.memory_store import InMemoryDocumentStore
from backoffice.repositories.store import DocumentStore
from backoffice.services.activity_service import ActivityLog
from backoffice.services.customer_aggregate_service import CustomerAggregates, CustomerAggregateUpdater
from backoffice.services.customer_service import CustomerService, NewCustomer
from backoffice.services.follow_up_service import FollowUpTaskEngine
from backoffice.services.leaderboard_service import SalesLeaderboard
from backoffice.services.notifications import NotificationFeed, NotificationSink
from backoffice.services.order_service import NewOrder, OrderLifecycle
from backoffice.services.payment_service import PaymentLedger

logger = logging.getLogger(__name__)


class BackOffice:
    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[Settings] = None,
        notification_sink: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        settings = settings or Settings()
        self.settings = settings
        self.store = store

        # The bounded feed doubles as the default sink so the API can list it.
        self.notifications = NotificationFeed(max_items=settings.notification_feed_size)
        sink = notification_sink if notification_sink is not None else self.notifications

        self.activity_log = ActivityLog(sink=sink, clock=clock)
        self.follow_ups = FollowUpTaskEngine(self.activity_log, follow_up_days=settings.follow_up_days, clock=clock)
        self.aggregates = CustomerAggregateUpdater(clock=clock)
        self.customers = CustomerService(store, self.activity_log, clock=clock)
        self.ledger = PaymentLedger(store, self.activity_log, self.follow_ups, self.aggregates, clock=clock)
        self.orders = OrderLifecycle(
            store,
            self.ledger,
            self.follow_ups,
            self.aggregates,
            self.activity_log,
            order_id_prefix=settings.order_id_prefix,
            default_delivery_days=settings.default_delivery_days,
            clock=clock,
            rng=rng,
        )
        self.leaderboard = SalesLeaderboard(store)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackOffice":
        """Build the engine with the store backend selected by configuration."""

        if settings.store_backend == STORE_SUPABASE:
            from backoffice.repositories.client import create_supabase_client
            from backoffice.repositories.supabase_store import SupabaseDocumentStore

            client = create_supabase_client(
                settings.supabase_url,  # type: ignore[arg-type]
                settings.supabase_key,  # type: ignore[arg-type]
                timeout_seconds=settings.storage_timeout_seconds,
            )
            store: DocumentStore = SupabaseDocumentStore(client)
        else:
            store = InMemoryDocumentStore(timeout_seconds=settings.storage_timeout_seconds)

        logger.info("BackOffice engine initialized", extra={"store_backend": settings.store_backend})
        return cls(store, settings=settings)

    # Customers

    def create_customer(self, data: NewCustomer, actor: ActingUser) -> str:
        return self.customers.create_customer(data, actor)

    def update_customer(self, customer_id: str, fields: Mapping[str, Any], actor: ActingUser) -> Customer:
        return self.customers.update_customer(customer_id, fields, actor)

    def get_customer(self, customer_id: str) -> Customer:
        return self.customers.get_customer(customer_id)

    def refresh_customer_aggregates(self, customer_id: str) -> CustomerAggregates:
        return self.aggregates.refresh_now(self.store, customer_id)

    # Orders

    def create_order(self, data: NewOrder, actor: ActingUser) -> str:
        return self.orders.create_order(data, actor)

    def change_order_status(
        self,
        order_id: str,
        new_status: Union[OrderStatus, str],
        actor: ActingUser,
        payment: Optional[PaymentRequest] = None,
        acknowledge_warning: bool = False,
    ) -> Order:
        return self.orders.change_order_status(
            order_id, new_status, actor, payment=payment, acknowledge_warning=acknowledge_warning
        )

    def update_order(self, order_id: str, fields: Mapping[str, Any], actor: ActingUser) -> Order:
        return self.orders.update_order(order_id, fields, actor)

    def delete_order(self, order_id: str, actor: ActingUser) -> None:
        self.orders.delete_order(order_id, actor)

    def get_order_by_id(self, order_id: str) -> Order:
        return self.orders.get_order_by_id(order_id)

    def list_orders(
        self,
        customer_id: Optional[str] = None,
        status: Optional[Union[OrderStatus, str]] = None,
    ) -> List[Order]:
        return self.orders.list_orders(customer_id=customer_id, status=status)

    def get_follow_up_task(self, order_id: str) -> Optional[Task]:
        return self.follow_ups.get_follow_up_task(self.store, order_id)

    # Payments

    def add_payment(
        self,
        order_id: str,
        amount: Any,
        method: Any,
        actor: ActingUser,
        notes: Optional[str] = None,
        reference: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> str:
        return self.ledger.add_payment(order_id, amount, method, actor, notes=notes, reference=reference, date=date)

    def get_payments_by_order(self, order_id: str) -> List[Payment]:
        return self.ledger.get_payments_by_order(order_id)

    def get_total_paid_for_order(
        self,
        order_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Decimal:
        return self.ledger.get_total_paid(order_id, start, end)

    def get_payment_status(self, order_id: str) -> PaymentStatus:
        return self.ledger.get_payment_status(order_id)

    # Reporting

    def compute_leaderboard(self, window: LeaderboardWindow) -> List[LeaderboardEntry]:
        return self.leaderboard.compute(window)

    def list_activities(self, **filters: Any) -> List[Activity]:
        return self.activity_log.history(self.store, **filters)


__all__ = ["BackOffice", "NewCustomer", "NewOrder"]
