"""
Order lifecycle service.

Handles:
- Order creation (with its follow-up task, customer aggregates and audit entry)
- Status transitions through the pipeline and the `paid` checkpoint
- Patching delivery metadata, line items, customer and notes
- Deletion

Each public operation is exactly one unit of work: either every write it
makes (order, payment, task, customer aggregates, activity) commits, or none
does. Rule checks (invariants, permissions, acknowledgement) all run before
the first write.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

from backoffice.domain.activity import ActivityType
from backoffice.domain.errors import (
    InvariantViolationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backoffice.domain.money import ZERO, to_money
from backoffice.domain.order import (
    DeliveryDetails,
    DeliveryMethod,
    FulfilmentStatus,
    LineItem,
    Order,
    OrderNote,
    OrderStatus,
    calculate_total,
    generate_order_id,
)
from backoffice.domain.payment import PaymentRequest, total_paid
from backoffice.domain.permissions import can_delete_orders, can_transition, requires_acknowledgement
from backoffice.domain.time import parse_optional_utc_datetime, utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.customer_repository import get_customer_by_id
from backoffice.repositories.order_repository import (
    delete_order as delete_order_row,
    get_order_by_id,
    insert_order,
    list_orders,
    order_to_row,
    save_order,
)
from backoffice.repositories.payment_repository import list_payments_by_order
from backoffice.repositories.store import ORDERS, DocumentStore, Transaction

from .activity_service import ActivityLog
from .customer_aggregate_service import CustomerAggregateUpdater
from .follow_up_service import FollowUpTaskEngine
from .payment_service import PaymentLedger

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5

DATE_FIELDS = ("delivery_date", "collection_date", "site_visit_date")
FULFILMENT_FIELDS = ("delivery_status", "collection_status", "site_visit_status")
DELIVERY_FIELDS = frozenset(("delivery_method",) + DATE_FIELDS + FULFILMENT_FIELDS)
PATCHABLE_FIELDS = DELIVERY_FIELDS | {"customer_id", "customer_name", "line_items", "note"}

# Written by the lifecycle and ledger paths only.
PROTECTED_FIELDS = frozenset(
    {
        "order_id",
        "id",
        "status",
        "total_amount",
        "total_paid",
        "last_payment_date",
        "created_by",
        "created_at",
        "updated_at",
        "notes",
    }
)

LineItemInput = Union[LineItem, Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class NewOrder:
    """Input for create_order."""

    customer_id: str
    line_items: Sequence[LineItemInput]
    customer_name: Optional[str] = None
    delivery_method: DeliveryMethod = DeliveryMethod.DELIVERY
    delivery_date: Optional[datetime] = None
    collection_date: Optional[datetime] = None
    site_visit_date: Optional[datetime] = None
    notes: Tuple[str, ...] = field(default_factory=tuple)


def parse_line_items(items: Iterable[LineItemInput]) -> Tuple[LineItem, ...]:
    """Build LineItems from mappings (product_id, name, quantity, unit_price) or pass them through."""

    parsed: List[LineItem] = []
    try:
        for item in items:
            if isinstance(item, LineItem):
                parsed.append(item)
                continue
            parsed.append(
                LineItem(
                    product_id=str(item["product_id"]),
                    name=str(item.get("name", "")),
                    quantity=item["quantity"],
                    unit_price=to_money(item["unit_price"]),
                )
            )
    except KeyError as e:
        raise ValidationError(f"Line item is missing field: {e.args[0]}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e)) from e

    if not parsed:
        raise ValidationError("An order needs at least one line item")
    return tuple(parsed)


def _parse_date(name: str, value: Any) -> Optional[datetime]:
    try:
        return parse_optional_utc_datetime(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e


def _parse_enum(enum_cls: Any, name: str, value: Any) -> Any:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e


class OrderLifecycle:
    def __init__(
        self,
        store: DocumentStore,
        ledger: PaymentLedger,
        follow_ups: FollowUpTaskEngine,
        aggregates: CustomerAggregateUpdater,
        activity_log: ActivityLog,
        order_id_prefix: str = "RPC",
        default_delivery_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._follow_ups = follow_ups
        self._aggregates = aggregates
        self._activity_log = activity_log
        self._order_id_prefix = order_id_prefix
        self._default_delivery_days = default_delivery_days
        self._clock = clock
        self._rng = rng

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(self, data: NewOrder, actor: ActingUser) -> str:
        """
        Create an order in `quotation` status.

        Args:
            data: Customer reference, line items and optional delivery details
            actor: The user creating the order (becomes created_by and task assignee)

        Returns:
            The new order id (e.g. "RPC202501151030450042")

        Raises:
            ValidationError: unknown customer, empty or malformed line items
        """

        line_items = parse_line_items(data.line_items)
        now = self._clock()

        delivery = DeliveryDetails(
            method=_parse_enum(DeliveryMethod, "delivery_method", data.delivery_method) or DeliveryMethod.DELIVERY,
            delivery_date=_parse_date("delivery_date", data.delivery_date)
            or now + timedelta(days=self._default_delivery_days),
            collection_date=_parse_date("collection_date", data.collection_date),
            site_visit_date=_parse_date("site_visit_date", data.site_visit_date),
            delivery_status=FulfilmentStatus.PENDING,
        )

        with self._store.transaction() as tx:
            customer = get_customer_by_id(tx, data.customer_id)
            if customer is None:
                raise ValidationError(f"Customer does not exist: {data.customer_id}")

            order = Order(
                order_id=self._new_order_id(tx, now),
                customer_id=customer.customer_id,
                customer_name=data.customer_name or customer.full_name,
                line_items=line_items,
                status=OrderStatus.QUOTATION,
                total_amount=calculate_total(line_items),
                delivery=delivery,
                notes=tuple(
                    OrderNote(note_id=uuid4().hex, content=text, created_by=actor.user_id, created_at=now)
                    for text in data.notes
                    if text.strip()
                ),
                created_by=actor.user_id,
                created_at=now,
                updated_at=now,
            )
            insert_order(tx, order)
            self._follow_ups.create_for_order(tx, order, actor)
            self._aggregates.refresh(tx, order.customer_id)
            self._activity_log.record(
                tx,
                ActivityType.ORDER_CREATED,
                actor,
                f"Created new order {order.order_id} for {order.customer_name}",
                entity_id=order.order_id,
                entity_type="order",
                metadata={
                    "order_id": order.order_id,
                    "customer_id": order.customer_id,
                    "total_amount": order.total_amount,
                },
            )

        logger.info(
            "Order created",
            extra={
                "order_id": order.order_id,
                "customer_id": order.customer_id,
                "total_amount": str(order.total_amount),
                "user_id": actor.user_id,
            },
        )
        return order.order_id

    def _new_order_id(self, tx: Transaction, now: datetime) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            order_id = generate_order_id(now, self._order_id_prefix, self._rng)
            if tx.get(ORDERS, order_id) is None:
                return order_id
        raise ValidationError("Could not allocate a unique order id; retry the request")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def change_order_status(
        self,
        order_id: str,
        new_status: Union[OrderStatus, str],
        actor: ActingUser,
        payment: Optional[PaymentRequest] = None,
        acknowledge_warning: bool = False,
    ) -> Order:
        """
        Move an order to a new status, optionally recording a payment with it.

        Checks run in this order, all before any write:
        same status, the quotation/payment invariant, the role gate, then the
        `paid` acknowledgement.

        Raises:
            NotFoundError: order does not exist
            ValidationError: same status, unknown status, missing acknowledgement
            InvariantViolationError: moving a paid order back to quotation
            PermissionDeniedError: role may not enter or leave `paid`
        """

        target = _parse_enum(OrderStatus, "status", new_status)
        if target is None:
            raise ValidationError("A target status is required")

        with self._store.transaction() as tx:
            order = get_order_by_id(tx, order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            current = order.status
            if current is target:
                raise ValidationError(f"Order {order_id} is already in status {target.value}")

            if target is OrderStatus.QUOTATION:
                paid = total_paid(list_payments_by_order(tx, order_id))
                if paid > ZERO:
                    raise InvariantViolationError(
                        f"Order {order_id} has received {paid} in payments and cannot return to quotation"
                    )
                if payment is not None:
                    raise InvariantViolationError("A payment cannot be recorded while moving an order to quotation")

            if not can_transition(current, target, actor.role):
                raise PermissionDeniedError(
                    f"Role {actor.role.value} may not change order status from {current.value} to {target.value}"
                )

            if requires_acknowledgement(current, target) and not acknowledge_warning:
                raise ValidationError(
                    f"Changing status from {current.value} to {target.value} must be acknowledged"
                )

            now = self._clock()
            save_order(tx, order.with_status(target, updated_at=now))

            recorded = None
            if payment is not None:
                recorded = self._ledger.record_payment(
                    tx,
                    order_id,
                    payment.amount,
                    payment.method,
                    actor,
                    notes=payment.notes,
                    reference=payment.reference,
                )

            self._activity_log.record(
                tx,
                ActivityType.STATUS_CHANGE,
                actor,
                f"Order {order_id} status changed from {current.value} to {target.value}",
                entity_id=order_id,
                entity_type="order",
                metadata={
                    "order_id": order_id,
                    "old_status": current,
                    "new_status": target,
                    "payment_id": recorded.payment_id if recorded else None,
                    "payment_amount": recorded.amount if recorded else None,
                    "payment_method": recorded.method if recorded else None,
                },
            )
            updated = get_order_by_id(tx, order_id)

        logger.info(
            "Order status changed",
            extra={
                "order_id": order_id,
                "old_status": current.value,
                "new_status": target.value,
                "user_id": actor.user_id,
                "with_payment": recorded is not None,
            },
        )
        return updated  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_order(self, order_id: str, fields: Mapping[str, Any], actor: ActingUser) -> Order:
        """
        Patch an order's delivery details, customer, line items, or append a note.

        Status and every ledger-derived field are rejected. When the total or
        the customer changes, the affected customers' aggregates are refreshed.
        """

        if not fields:
            raise ValidationError("No fields to update")
        protected = PROTECTED_FIELDS & set(fields)
        if protected:
            raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(protected))}")
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown order fields: {', '.join(sorted(unknown))}")

        with self._store.transaction() as tx:
            order = get_order_by_id(tx, order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            now = self._clock()
            updated, changed = self._apply_patch(tx, order, fields, actor, now)
            if not changed:
                return order

            updated = replace(updated, updated_at=now)
            save_order(tx, updated)

            if updated.customer_id != order.customer_id:
                self._aggregates.refresh(tx, order.customer_id)
                self._aggregates.refresh(tx, updated.customer_id)
            elif updated.total_amount != order.total_amount:
                self._aggregates.refresh(tx, updated.customer_id)

            self._activity_log.record(
                tx,
                ActivityType.ORDER_UPDATED,
                actor,
                f"Order {order_id} updated: {', '.join(changed)}",
                entity_id=order_id,
                entity_type="order",
                metadata={"order_id": order_id, "changes": changed},
            )

        logger.info("Order updated", extra={"order_id": order_id, "changes": changed, "user_id": actor.user_id})
        return updated

    def _apply_patch(
        self,
        tx: Transaction,
        order: Order,
        fields: Mapping[str, Any],
        actor: ActingUser,
        now: datetime,
    ) -> Tuple[Order, List[str]]:
        updated = order
        changed: List[str] = []

        delivery_changes: Dict[str, Any] = {}
        if "delivery_method" in fields:
            delivery_changes["method"] = _parse_enum(DeliveryMethod, "delivery_method", fields["delivery_method"])
        for name in DATE_FIELDS:
            if name in fields:
                delivery_changes[name] = _parse_date(name, fields[name])
        for name in FULFILMENT_FIELDS:
            if name in fields:
                delivery_changes[name] = _parse_enum(FulfilmentStatus, name, fields[name])
        for name, value in delivery_changes.items():
            if getattr(order.delivery, name) != value:
                changed.append("delivery_method" if name == "method" else name)
        if delivery_changes:
            updated = replace(updated, delivery=replace(order.delivery, **delivery_changes))

        if "customer_id" in fields and fields["customer_id"] != order.customer_id:
            customer = get_customer_by_id(tx, str(fields["customer_id"]))
            if customer is None:
                raise ValidationError(f"Customer does not exist: {fields['customer_id']}")
            updated = replace(updated, customer_id=customer.customer_id)
            changed.append("customer_id")
            if "customer_name" not in fields:
                updated = replace(updated, customer_name=customer.full_name)
                if customer.full_name != order.customer_name:
                    changed.append("customer_name")

        if "customer_name" in fields and fields["customer_name"] != order.customer_name:
            updated = replace(updated, customer_name=str(fields["customer_name"] or ""))
            changed.append("customer_name")

        if "line_items" in fields:
            line_items = parse_line_items(fields["line_items"])
            if line_items != order.line_items:
                updated = replace(updated, line_items=line_items, total_amount=calculate_total(line_items))
                changed.append("line_items")
                if updated.total_amount != order.total_amount:
                    changed.append("total_amount")

        note = fields.get("note")
        if note is not None and str(note).strip():
            updated = updated.with_note(
                OrderNote(note_id=uuid4().hex, content=str(note).strip(), created_by=actor.user_id, created_at=now),
                updated_at=now,
            )
            changed.append("note")

        return updated, changed

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_order(self, order_id: str, actor: ActingUser) -> None:
        """
        Delete an order. Its payments stay in the ledger.

        Raises:
            PermissionDeniedError: role is not admin or manager
            NotFoundError: order does not exist
        """

        if not can_delete_orders(actor.role):
            raise PermissionDeniedError(f"Role {actor.role.value} may not delete orders")

        with self._store.transaction() as tx:
            order = get_order_by_id(tx, order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            delete_order_row(tx, order_id)
            self._aggregates.refresh(tx, order.customer_id)
            self._activity_log.record(
                tx,
                ActivityType.ORDER_DELETED,
                actor,
                f"Deleted order {order_id}",
                entity_id=order_id,
                entity_type="order",
                metadata={"order_id": order_id, "order": order_to_row(order)},
            )

        logger.info("Order deleted", extra={"order_id": order_id, "user_id": actor.user_id})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order_by_id(self, order_id: str) -> Order:
        order = get_order_by_id(self._store, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(
        self,
        customer_id: Optional[str] = None,
        status: Optional[Union[OrderStatus, str]] = None,
    ) -> List[Order]:
        filters: Dict[str, Any] = {}
        if customer_id is not None:
            filters["customer_id"] = customer_id
        if status is not None:
            filters["status"] = _parse_enum(OrderStatus, "status", status).value
        return list_orders(self._store, **filters)


__all__ = ["NewOrder", "OrderLifecycle", "parse_line_items"]
