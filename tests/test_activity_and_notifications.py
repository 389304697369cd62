"""
Tests for `services/activity_service.py` and `services/notifications.py`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from backoffice.domain.activity import ActivityType
from backoffice.domain.order import OrderStatus
from backoffice.engine import BackOffice
from backoffice.services.activity_service import ActivityLog, clean_metadata
from backoffice.services.customer_service import NewCustomer
from backoffice.services.notifications import NotificationFeed
from backoffice.services.order_service import NewOrder


def test_clean_metadata_drops_none_and_coerces_values():
    cleaned = clean_metadata(
        {
            "amount": Decimal("10.50"),
            "status": OrderStatus.PAID,
            "at": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "reference": None,
            "nested": {"a": 1, "b": None},
            "items": ("x", "y"),
        }
    )

    assert cleaned == {
        "amount": "10.50",
        "status": "paid",
        "at": "2025-01-01T00:00:00+00:00",
        "nested": {"a": 1},
        "items": ["x", "y"],
    }


def test_clean_metadata_drops_unserializable_values():
    assert clean_metadata({"ok": 1, "bad": object()}) == {"ok": 1}


def test_record_appends_activity_and_notifies_after_commit(store, staff, sink, clock):
    log = ActivityLog(sink=sink, clock=clock)

    with store.transaction() as tx:
        log.record(tx, ActivityType.PAYMENT, staff, "Payment of $10.00 received", entity_id="o1", entity_type="order")
        assert sink.sent == []

    (activity,) = log.history(store)
    assert activity.user_name == staff.name
    assert sink.sent == [{"message": "Payment of $10.00 received", "category": "payment", "link": "/orders/o1"}]


def test_non_notifying_types_are_not_dispatched(store, staff, sink, clock):
    log = ActivityLog(sink=sink, clock=clock)

    with store.transaction() as tx:
        log.record(tx, ActivityType.TASK_CREATED, staff, "Created follow-up task", entity_id="t1", entity_type="task")

    assert sink.sent == []


def test_rolled_back_activity_is_never_notified(store, staff, sink, clock):
    log = ActivityLog(sink=sink, clock=clock)

    try:
        with store.transaction() as tx:
            log.record(tx, ActivityType.ORDER_CREATED, staff, "Created new order", entity_id="o1", entity_type="order")
            raise RuntimeError("later step failed")
    except RuntimeError:
        pass

    assert sink.sent == []
    assert log.history(store) == []


def test_history_filters_by_type_and_user(office, make_order, staff, manager):
    order_id = make_order()
    office.change_order_status(order_id, OrderStatus.PRODUCTION, manager)

    assert [a.type for a in office.list_activities(user_id=manager.user_id)] == [ActivityType.STATUS_CHANGE]
    assert len(office.list_activities(types=[ActivityType.ORDER_CREATED])) == 1


def test_notification_feed_keeps_most_recent_items():
    feed = NotificationFeed(max_items=3)
    for i in range(5):
        feed.notify(f"message {i}", "order")

    assert [n.message for n in feed.recent()] == ["message 4", "message 3", "message 2"]
    assert feed.unread_count() == 3


def test_notification_feed_read_state():
    feed = NotificationFeed()
    feed.notify("one", "payment")
    feed.notify("two", "status")
    newest = feed.recent()[0]

    assert feed.mark_as_read(newest.notification_id) is True
    assert feed.unread_count() == 1
    assert feed.mark_as_read("missing") is False

    feed.mark_all_as_read()
    assert feed.unread_count() == 0

    feed.clear()
    assert feed.recent() == []


def test_engine_feed_is_the_default_sink(store, clock, staff):
    office = BackOffice(store, clock=clock)
    customer_id = office.create_customer(NewCustomer(first_name="Tendai", last_name="Moyo"), staff)
    office.create_order(
        NewOrder(customer_id=customer_id, line_items=[{"product_id": "p1", "quantity": 1, "unit_price": "5"}]),
        staff,
    )

    assert [n.category for n in office.notifications.recent()] == ["order"]
