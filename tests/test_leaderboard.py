"""
Tests for `domain/leaderboard.py` and the leaderboard service.

Covers contract rules:
- Attribution: order creator, then customer creator, then "unattributed".
- paid_orders counts distinct orders; paid_revenue sums in-window payments.
- weighted_score = paid_revenue*0.6 + new_orders_value*0.1 + conversion_rate*0.3,
  weighting the unrounded rate.
- "unattributed" is always last, whatever its score.
- Payments on deleted orders are skipped.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backoffice.domain.activity import Activity, ActivityType
from backoffice.domain.customer import Customer
from backoffice.domain.leaderboard import UNATTRIBUTED, LeaderboardWindow, compute_leaderboard
from backoffice.domain.order import LineItem, Order, OrderStatus
from backoffice.domain.payment import Payment, PaymentMethod

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
WINDOW = LeaderboardWindow(start=T0, end=T0 + timedelta(days=30))


def _order(order_id: str, amount: str, created_by: str, customer_id: str = "c1", created_at: datetime = T0) -> Order:
    return Order(
        order_id=order_id,
        customer_id=customer_id,
        line_items=(LineItem(product_id="p", name="Item", quantity=1, unit_price=Decimal(amount)),),
        status=OrderStatus.PRODUCTION,
        total_amount=Decimal(amount),
        created_by=created_by,
        created_at=created_at,
        updated_at=created_at,
    )


def _payment(payment_id: str, order_id: str, amount: str, date: datetime = T0 + timedelta(days=1)) -> Payment:
    return Payment(
        payment_id=payment_id,
        order_id=order_id,
        amount=Decimal(amount),
        method=PaymentMethod.CASH,
        date=date,
        created_by="anyone",
        created_at=date,
    )


def _customer(customer_id: str, created_by: str | None) -> Customer:
    return Customer(
        customer_id=customer_id,
        first_name="C",
        last_name=customer_id,
        created_at=T0,
        updated_at=T0,
        created_by=created_by,
    )


def _activity(user_id: str, user_name: str, at: datetime = T0) -> Activity:
    return Activity(
        activity_id=f"a-{user_id}-{at.isoformat()}",
        type=ActivityType.ORDER_CREATED,
        message="Created",
        user_id=user_id,
        user_name=user_name,
        created_at=at,
    )


@pytest.fixture
def entries():
    orders = [
        _order("o1", "100.00", "staff-a"),
        _order("o2", "200.00", "staff-a"),
        _order("o3", "1000.00", "", customer_id="c-owned-by-b"),
        _order("o4", "5000.00", "", customer_id="c-orphan"),
        _order("o5", "70.00", "staff-a", created_at=T0 - timedelta(days=90)),
    ]
    payments = [
        _payment("p1", "o1", "50.00"),
        _payment("p2", "o1", "50.00"),
        _payment("p3", "o3", "1000.00"),
        _payment("p4", "o4", "5000.00"),
        _payment("p5", "o2", "200.00", date=T0 + timedelta(days=60)),
        _payment("p6", "deleted-order", "999.00"),
    ]
    customers = [_customer("c-owned-by-b", "staff-bbbbbbbbbb"), _customer("c-orphan", None)]
    activities = [_activity("staff-a", "Old Name"), _activity("staff-a", "Rudo", T0 + timedelta(days=2))]
    return compute_leaderboard(WINDOW, orders, payments, customers, activities)


def test_ranking_and_unattributed_last(entries):
    assert [e.user_id for e in entries] == ["staff-bbbbbbbbbb", "staff-a", UNATTRIBUTED]


def test_creator_metrics(entries):
    a = next(e for e in entries if e.user_id == "staff-a")

    assert a.user_name == "Rudo"
    assert a.new_orders == 2
    assert a.new_orders_value == Decimal("300.00")
    assert a.paid_orders == 1
    assert a.paid_revenue == Decimal("100.00")
    assert a.total_orders == 3
    assert a.total_revenue == Decimal("370.00")
    assert a.conversion_rate == Decimal("50.00")
    assert a.weighted_score == Decimal("105.00")


def test_customer_creator_fallback_and_name_fallback(entries):
    b = entries[0]

    assert b.user_name == "User staff-bb"
    assert b.new_orders == 1
    assert b.paid_revenue == Decimal("1000.00")
    assert b.conversion_rate == Decimal("100.00")
    assert b.weighted_score == Decimal("730.00")


def test_unattributed_bucket(entries):
    bucket = entries[-1]

    assert bucket.new_orders == 1
    assert bucket.paid_revenue == Decimal("5000.00")
    assert bucket.weighted_score > entries[0].weighted_score


def test_no_new_orders_means_zero_conversion():
    orders = [_order("o1", "100.00", "staff-a", created_at=T0 - timedelta(days=90))]
    payments = [_payment("p1", "o1", "100.00")]

    (entry, _) = compute_leaderboard(WINDOW, orders, payments, [])

    assert entry.new_orders == 0
    assert entry.paid_orders == 1
    assert entry.conversion_rate == Decimal("0.00")
    assert entry.weighted_score == Decimal("60.00")


def test_score_weights_the_unrounded_conversion_rate():
    orders = [_order(order_id, "10.00", "staff-a") for order_id in ("o1", "o2", "o3")]
    payments = [_payment("p1", "o1", "5.04"), _payment("p2", "o2", "5.00")]

    (entry, _) = compute_leaderboard(WINDOW, orders, payments, [])

    assert entry.conversion_rate == Decimal("66.67")
    # 10.04 * 0.6 + 30.00 * 0.1 + (200 / 3) * 0.3 = 29.024
    assert entry.weighted_score == Decimal("29.02")


def test_empty_history_only_has_unattributed():
    (entry,) = compute_leaderboard(WINDOW, [], [], [])

    assert entry.user_id == UNATTRIBUTED
    assert entry.weighted_score == Decimal("0.00")


def test_window_rejects_inverted_range():
    with pytest.raises(ValueError):
        LeaderboardWindow(start=T0, end=T0 - timedelta(seconds=1))


def test_leaderboard_service_reads_the_store(office, make_order, staff, clock):
    order_id = make_order(quantity=1, unit_price="100.00")
    office.add_payment(order_id, "100.00", PaymentMethod.CASH, staff)

    window = LeaderboardWindow(start=clock.now - timedelta(days=1), end=clock.now + timedelta(days=1))
    first = office.compute_leaderboard(window)
    second = office.compute_leaderboard(window)

    assert first == second
    top = first[0]
    assert top.user_id == staff.user_id
    assert top.user_name == staff.name
    assert top.paid_revenue == Decimal("100.00")
    assert top.weighted_score == Decimal("100.00")
