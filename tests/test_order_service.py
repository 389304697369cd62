"""
Tests for `services/order_service.py`.

Covers:
- Order creation and its side effects (task, aggregates, activity)
- Status transitions: permission gate, quotation invariant, acknowledgement
- Status change + payment as one unit of work
- Patching and deletion
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice.domain.activity import ActivityType
from backoffice.domain.errors import (
    InvariantViolationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backoffice.domain.order import DeliveryMethod, FulfilmentStatus, OrderStatus
from backoffice.domain.payment import PaymentMethod, PaymentRequest, PaymentStatus
from backoffice.domain.task import TaskStatus
from backoffice.repositories.payment_repository import list_payments_by_order
from backoffice.services.customer_service import NewCustomer
from backoffice.services.order_service import NewOrder


class TestCreateOrder:
    def test_create_order_computes_total_and_starts_in_quotation(self, office, customer_id, staff, clock):
        order_id = office.create_order(
            NewOrder(
                customer_id=customer_id,
                line_items=[
                    {"product_id": "p1", "name": "Panel", "quantity": 10, "unit_price": "5.00"},
                    {"product_id": "p2", "name": "Hinge", "quantity": 2, "unit_price": "25.00"},
                ],
            ),
            staff,
        )

        order = office.get_order_by_id(order_id)
        assert order.total_amount == Decimal("100.00")
        assert order.status is OrderStatus.QUOTATION
        assert order.customer_name == "Tendai Moyo"
        assert order.created_by == staff.user_id
        assert order.delivery.delivery_date == clock.now + timedelta(days=7)
        assert order_id.startswith("RPC20250115103000")

    def test_create_order_creates_follow_up_task(self, office, make_order, staff, clock):
        order_id = make_order()

        task = office.get_follow_up_task(order_id)
        assert task is not None
        assert task.status is TaskStatus.PENDING
        assert task.title == "Follow Up Client: Tendai Moyo"
        assert task.due_date == clock.now + timedelta(days=3)
        assert task.metadata.auto_created is True
        assert [a.user_id for a in task.assignees] == [staff.user_id]

    def test_create_order_updates_customer_aggregates(self, office, make_order, customer_id):
        make_order(quantity=1, unit_price="250.00")
        make_order(quantity=1, unit_price="50.00")

        customer = office.get_customer(customer_id)
        assert customer.total_orders == 2
        assert customer.total_revenue == Decimal("300.00")

    def test_create_order_logs_activity_and_notifies(self, office, make_order, sink):
        order_id = make_order()

        types = [a.type for a in office.list_activities(entity_id=order_id)]
        assert ActivityType.ORDER_CREATED in types
        assert [n["category"] for n in sink.sent] == ["order"]
        assert sink.sent[0]["link"] == f"/orders/{order_id}"

    def test_unknown_customer_is_a_validation_error(self, office, staff, store):
        with pytest.raises(ValidationError):
            office.create_order(
                NewOrder(customer_id="nope", line_items=[{"product_id": "p1", "quantity": 1, "unit_price": "1"}]),
                staff,
            )
        assert store.query("orders") == []
        assert store.query("tasks") == []

    @pytest.mark.parametrize(
        "line_items",
        [
            [],
            [{"product_id": "p1", "quantity": 0, "unit_price": "1.00"}],
            [{"product_id": "p1", "quantity": 1, "unit_price": "-1.00"}],
            [{"product_id": "p1", "unit_price": "1.00"}],
            [{"product_id": "p1", "quantity": 1, "unit_price": "abc"}],
        ],
    )
    def test_malformed_line_items_are_rejected(self, office, customer_id, staff, store, line_items):
        with pytest.raises(ValidationError):
            office.create_order(NewOrder(customer_id=customer_id, line_items=line_items), staff)
        assert store.query("orders") == []


class TestChangeOrderStatus:
    def test_pipeline_transition_allowed_for_staff(self, office, make_order, staff, sink):
        order_id = make_order()

        order = office.change_order_status(order_id, OrderStatus.PRODUCTION, staff)

        assert order.status is OrderStatus.PRODUCTION
        assert office.get_order_by_id(order_id).status is OrderStatus.PRODUCTION
        assert sink.sent[-1]["category"] == "status"

    def test_staff_cannot_mark_paid(self, office, make_order, staff):
        order_id = make_order()

        with pytest.raises(PermissionDeniedError):
            office.change_order_status(order_id, OrderStatus.PAID, staff, acknowledge_warning=True)
        assert office.get_order_by_id(order_id).status is OrderStatus.QUOTATION

    def test_paid_requires_acknowledgement(self, office, make_order, manager):
        order_id = make_order()

        with pytest.raises(ValidationError):
            office.change_order_status(order_id, OrderStatus.PAID, manager)

    def test_same_status_is_rejected(self, office, make_order, staff):
        order_id = make_order()

        with pytest.raises(ValidationError):
            office.change_order_status(order_id, OrderStatus.QUOTATION, staff)

    def test_unknown_status_is_rejected(self, office, make_order, staff):
        order_id = make_order()

        with pytest.raises(ValidationError):
            office.change_order_status(order_id, "shipped", staff)

    def test_missing_order(self, office, staff):
        with pytest.raises(NotFoundError):
            office.change_order_status("RPC-missing", OrderStatus.PRODUCTION, staff)

    @pytest.mark.parametrize("role_fixture", ["admin", "manager", "finance", "staff"])
    def test_revert_to_quotation_with_payments_violates_invariant(self, request, office, make_order, staff, role_fixture):
        """Holds for every role, including the privileged ones."""

        order_id = make_order()
        office.add_payment(order_id, "10.00", PaymentMethod.CASH, staff)
        actor = request.getfixturevalue(role_fixture)

        with pytest.raises(InvariantViolationError):
            office.change_order_status(order_id, OrderStatus.QUOTATION, actor, acknowledge_warning=True)

    def test_revert_to_quotation_without_payments_is_allowed(self, office, make_order, staff):
        order_id = make_order()
        office.change_order_status(order_id, OrderStatus.PRODUCTION, staff)

        order = office.change_order_status(order_id, OrderStatus.QUOTATION, staff)

        assert order.status is OrderStatus.QUOTATION

    def test_paid_checkpoint_can_be_reverted(self, office, make_order, manager):
        order_id = make_order()
        office.change_order_status(order_id, OrderStatus.PRODUCTION, manager)
        office.change_order_status(order_id, OrderStatus.PAID, manager, acknowledge_warning=True)

        order = office.change_order_status(order_id, OrderStatus.INSTALLATION, manager, acknowledge_warning=True)

        assert order.status is OrderStatus.INSTALLATION

    def test_scenario_b_manager_marks_paid_with_final_payment(self, office, make_order, staff, manager):
        order_id = make_order(quantity=1, unit_price="100.00")
        office.add_payment(order_id, "40.00", PaymentMethod.CASH, staff)

        with pytest.raises(PermissionDeniedError):
            office.change_order_status(
                order_id,
                OrderStatus.PAID,
                staff,
                payment=PaymentRequest(amount=Decimal("60.00"), method=PaymentMethod.CASH),
                acknowledge_warning=True,
            )
        assert office.get_total_paid_for_order(order_id) == Decimal("40.00")

        order = office.change_order_status(
            order_id,
            OrderStatus.PAID,
            manager,
            payment=PaymentRequest(amount=Decimal("60.00"), method=PaymentMethod.BANK_TRANSFER, reference="TRX-1"),
            acknowledge_warning=True,
        )

        assert order.status is OrderStatus.PAID
        assert order.total_paid == Decimal("100.00")
        assert office.get_payment_status(order_id) is PaymentStatus.PAID

    def test_status_and_payment_roll_back_together(self, office, make_order, manager, store):
        """An invalid payment aborts the status change too."""

        order_id = make_order()

        with pytest.raises(ValidationError):
            office.change_order_status(
                order_id,
                OrderStatus.PAID,
                manager,
                payment=PaymentRequest(amount=Decimal("-5.00"), method=PaymentMethod.CASH),
                acknowledge_warning=True,
            )

        assert office.get_order_by_id(order_id).status is OrderStatus.QUOTATION
        assert store.query("payments") == []
        assert office.list_activities(types=[ActivityType.STATUS_CHANGE]) == []

    def test_status_change_activity_records_old_and_new_status(self, office, make_order, finance):
        order_id = make_order()

        office.change_order_status(
            order_id,
            OrderStatus.PAID,
            finance,
            payment=PaymentRequest(amount=Decimal("200.00"), method=PaymentMethod.ECOCASH),
            acknowledge_warning=True,
        )

        (activity,) = office.list_activities(types=[ActivityType.STATUS_CHANGE])
        assert activity.metadata["old_status"] == "quotation"
        assert activity.metadata["new_status"] == "paid"
        assert activity.metadata["payment_amount"] == "200.00"
        assert activity.user_name == finance.name


class TestUpdateOrder:
    def test_update_delivery_fields_lists_only_changed_fields(self, office, make_order, staff, clock):
        order_id = make_order()
        new_date = clock.now + timedelta(days=10)

        order = office.update_order(
            order_id,
            {
                "delivery_date": new_date,
                "delivery_method": DeliveryMethod.DELIVERY,
                "site_visit_status": FulfilmentStatus.PENDING,
            },
            staff,
        )

        assert order.delivery.delivery_date == new_date
        (activity,) = office.list_activities(types=[ActivityType.ORDER_UPDATED])
        assert activity.metadata["changes"] == ["delivery_date", "site_visit_status"]

    def test_update_line_items_recomputes_total_and_aggregates(self, office, make_order, staff, customer_id):
        order_id = make_order()

        order = office.update_order(
            order_id,
            {"line_items": [{"product_id": "p9", "name": "Gate", "quantity": 3, "unit_price": "150.00"}]},
            staff,
        )

        assert order.total_amount == Decimal("450.00")
        assert office.get_customer(customer_id).total_revenue == Decimal("450.00")

    def test_moving_order_to_another_customer_refreshes_both(self, office, make_order, staff, customer_id):
        other = office.create_customer(NewCustomer(first_name="Chipo", last_name="Dube"), staff)
        order_id = make_order()

        order = office.update_order(order_id, {"customer_id": other}, staff)

        assert order.customer_name == "Chipo Dube"
        assert office.get_customer(customer_id).total_orders == 0
        assert office.get_customer(customer_id).total_revenue == Decimal("0.00")
        assert office.get_customer(other).total_orders == 1
        assert office.get_customer(other).total_revenue == Decimal("200.00")

    def test_append_note(self, office, make_order, staff):
        order_id = make_order()

        office.update_order(order_id, {"note": "Call before delivery"}, staff)
        order = office.update_order(order_id, {"note": "Gate code 1234"}, staff)

        assert [n.content for n in order.notes] == ["Call before delivery", "Gate code 1234"]

    @pytest.mark.parametrize("field", ["status", "total_amount", "total_paid", "last_payment_date"])
    def test_protected_fields_are_rejected(self, office, make_order, staff, field):
        order_id = make_order()

        with pytest.raises(ValidationError):
            office.update_order(order_id, {field: "x"}, staff)

    def test_unknown_field_is_rejected(self, office, make_order, staff):
        order_id = make_order()

        with pytest.raises(ValidationError):
            office.update_order(order_id, {"colour": "red"}, staff)

    def test_no_op_update_writes_nothing(self, office, make_order, staff):
        order_id = make_order()
        before = office.get_order_by_id(order_id)

        after = office.update_order(order_id, {"customer_name": before.customer_name}, staff)

        assert after == before
        assert office.list_activities(types=[ActivityType.ORDER_UPDATED]) == []


class TestDeleteOrder:
    def test_staff_and_finance_cannot_delete(self, office, make_order, staff, finance):
        order_id = make_order()

        for actor in (staff, finance):
            with pytest.raises(PermissionDeniedError):
                office.delete_order(order_id, actor)
        assert office.get_order_by_id(order_id) is not None

    def test_scenario_d_delete_recomputes_aggregates(self, office, make_order, customer_id, admin):
        make_order(quantity=1, unit_price="400.00")
        make_order(quantity=1, unit_price="250.00")
        doomed = make_order(quantity=1, unit_price="250.00")
        assert office.get_customer(customer_id).total_revenue == Decimal("900.00")

        office.delete_order(doomed, admin)

        customer = office.get_customer(customer_id)
        assert customer.total_orders == 2
        assert customer.total_revenue == Decimal("650.00")
        with pytest.raises(NotFoundError):
            office.get_order_by_id(doomed)

    def test_delete_keeps_payments_and_snapshots_order(self, office, make_order, staff, manager):
        order_id = make_order()
        office.add_payment(order_id, "20.00", PaymentMethod.CASH, staff)

        office.delete_order(order_id, manager)

        assert len(list_payments_by_order(office.store, order_id)) == 1
        with pytest.raises(NotFoundError):
            office.get_payments_by_order(order_id)
        (activity,) = office.list_activities(types=[ActivityType.ORDER_DELETED])
        assert activity.metadata["order"]["id"] == order_id
        assert activity.metadata["order"]["total_amount"] == "200.00"

    def test_delete_missing_order(self, office, admin):
        with pytest.raises(NotFoundError):
            office.delete_order("missing", admin)


def test_list_orders_filters_by_status(office, make_order, staff):
    first = make_order()
    second = make_order()
    office.change_order_status(second, OrderStatus.PRODUCTION, staff)

    assert [o.order_id for o in office.list_orders(status="quotation")] == [first]
    assert {o.order_id for o in office.list_orders()} == {first, second}
