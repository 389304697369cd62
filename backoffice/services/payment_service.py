"""
Payment ledger service.

Handles:
- Appending immutable payments against an order
- Mirroring the re-summed total onto the order (total_paid, last_payment_date)
- Auto-advancing a quotation to production on its first payment
- Completing the order's follow-up task on its first payment
- Derived payment status

Every payment also writes its parent order document, so two concurrent
payments against the same order always conflict on commit instead of both
re-summing a stale ledger.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Optional
from uuid import uuid4

from backoffice.domain.activity import ActivityType
from backoffice.domain.errors import NotFoundError, ValidationError
from backoffice.domain.money import to_money
from backoffice.domain.order import Order, OrderStatus
from backoffice.domain.payment import Payment, PaymentMethod, PaymentStatus, derive_payment_status, total_paid
from backoffice.domain.permissions import can_transition
from backoffice.domain.time import require_utc_timestamp, utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.order_repository import get_order_by_id, save_order
from backoffice.repositories.payment_repository import insert_payment, list_payments_by_order
from backoffice.repositories.store import DocumentStore, Reader, Transaction

from .activity_service import ActivityLog
from .customer_aggregate_service import CustomerAggregateUpdater
from .follow_up_service import FollowUpTaskEngine

logger = logging.getLogger(__name__)


def parse_amount(amount: Any) -> Decimal:
    try:
        value = to_money(amount)
    except ValueError as e:
        raise ValidationError(f"Invalid payment amount: {amount!r}") from e
    if value <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    return value


def parse_method(method: Any) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError as e:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Invalid payment method: {method!r}. Expected one of: {allowed}") from e


class PaymentLedger:
    def __init__(
        self,
        store: DocumentStore,
        activity_log: ActivityLog,
        follow_ups: FollowUpTaskEngine,
        aggregates: CustomerAggregateUpdater,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._activity_log = activity_log
        self._follow_ups = follow_ups
        self._aggregates = aggregates
        self._clock = clock

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
        """
        Record a payment as its own unit of work.

        Returns:
            The new payment id.

        Raises:
            ValidationError: amount not positive or unknown method
            NotFoundError: order does not exist
            ConflictError: the order changed concurrently; reload and retry
        """

        with self._store.transaction() as tx:
            payment = self.record_payment(
                tx,
                order_id,
                amount,
                method,
                actor,
                notes=notes,
                reference=reference,
                date=date,
            )
        return payment.payment_id

    def record_payment(
        self,
        tx: Transaction,
        order_id: str,
        amount: Any,
        method: Any,
        actor: ActingUser,
        *,
        notes: Optional[str] = None,
        reference: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> Payment:
        """Append a payment inside the caller's unit of work."""

        value = parse_amount(amount)
        payment_method = parse_method(method)
        now = self._clock()
        if date is not None:
            try:
                require_utc_timestamp("date", date)
            except ValueError as e:
                raise ValidationError(str(e)) from e

        order = get_order_by_id(tx, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)

        is_first_payment = not list_payments_by_order(tx, order_id)

        payment = Payment(
            payment_id=uuid4().hex,
            order_id=order_id,
            amount=value,
            method=payment_method,
            date=date or now,
            created_by=actor.user_id,
            created_at=now,
            reference=reference,
            notes=notes,
        )
        insert_payment(tx, payment)

        ledger = list_payments_by_order(tx, order_id)
        updated = replace(
            order,
            total_paid=total_paid(ledger),
            last_payment_date=max(p.date for p in ledger),
            updated_at=now,
        )

        auto_advanced_to: Optional[OrderStatus] = None
        if (
            is_first_payment
            and order.status is OrderStatus.QUOTATION
            and can_transition(order.status, OrderStatus.PRODUCTION, actor.role)
        ):
            auto_advanced_to = OrderStatus.PRODUCTION
            updated = updated.with_status(OrderStatus.PRODUCTION, updated_at=now)

        save_order(tx, updated)

        if is_first_payment:
            self._follow_ups.complete_on_payment(tx, order_id, payment.payment_id, actor)

        self._aggregates.refresh(tx, order.customer_id)

        self._activity_log.record(
            tx,
            ActivityType.PAYMENT,
            actor,
            f"Payment of ${payment.amount} received for order {order_id}",
            entity_id=order_id,
            entity_type="order",
            metadata={
                "order_id": order_id,
                "payment_id": payment.payment_id,
                "amount": payment.amount,
                "method": payment.method,
                "reference": reference,
                "total_paid": updated.total_paid,
                "auto_advanced_to": auto_advanced_to,
            },
        )

        logger.info(
            "Payment recorded",
            extra={
                "order_id": order_id,
                "payment_id": payment.payment_id,
                "amount": str(payment.amount),
                "total_paid": str(updated.total_paid),
                "first_payment": is_first_payment,
            },
        )
        return payment

    def get_total_paid(
        self,
        order_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Decimal:
        self._require_order(self._store, order_id)
        return total_paid(list_payments_by_order(self._store, order_id), start, end)

    def get_payment_status(self, order_id: str) -> PaymentStatus:
        order = self._require_order(self._store, order_id)
        return derive_payment_status(
            total_paid(list_payments_by_order(self._store, order_id)), order.total_amount
        )

    def get_payments_by_order(self, order_id: str) -> List[Payment]:
        self._require_order(self._store, order_id)
        return list_payments_by_order(self._store, order_id)

    @staticmethod
    def _require_order(reader: Reader, order_id: str) -> Order:
        order = get_order_by_id(reader, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order


__all__ = ["PaymentLedger", "parse_amount", "parse_method"]
