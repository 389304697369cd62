"""
Tests for `domain/order.py`.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backoffice.domain.order import (
    LineItem,
    Order,
    OrderStatus,
    calculate_total,
    generate_order_id,
)

NOW = datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc)


def _items() -> tuple:
    return (
        LineItem(product_id="p1", name="Door", quantity=2, unit_price=Decimal("100.00")),
        LineItem(product_id="p2", name="Frame", quantity=3, unit_price=Decimal("0.10")),
    )


def test_calculate_total() -> None:
    assert calculate_total(_items()) == Decimal("200.30")


def test_order_rejects_mismatched_total() -> None:
    with pytest.raises(ValueError):
        Order(
            order_id="o1",
            customer_id="c1",
            line_items=_items(),
            status=OrderStatus.QUOTATION,
            total_amount=Decimal("999.00"),
            created_by="u1",
            created_at=NOW,
            updated_at=NOW,
        )


def test_order_requires_line_items() -> None:
    with pytest.raises(ValueError):
        Order(
            order_id="o1",
            customer_id="c1",
            line_items=(),
            status=OrderStatus.QUOTATION,
            total_amount=Decimal("0.00"),
            created_by="u1",
            created_at=NOW,
            updated_at=NOW,
        )


@pytest.mark.parametrize("quantity", [0, -1, True])
def test_line_item_rejects_bad_quantity(quantity: object) -> None:
    with pytest.raises(ValueError):
        LineItem(product_id="p1", name="Door", quantity=quantity, unit_price=Decimal("1.00"))  # type: ignore[arg-type]


def test_line_item_rejects_negative_price() -> None:
    with pytest.raises(ValueError):
        LineItem(product_id="p1", name="Door", quantity=1, unit_price=Decimal("-0.01"))


def test_line_item_allows_free_items() -> None:
    assert LineItem(product_id="p1", name="Sample", quantity=1, unit_price=Decimal("0")).line_total == Decimal("0.00")


def test_balance() -> None:
    order = Order(
        order_id="o1",
        customer_id="c1",
        line_items=_items(),
        status=OrderStatus.PRODUCTION,
        total_amount=Decimal("200.30"),
        total_paid=Decimal("50.00"),
        created_by="u1",
        created_at=NOW,
        updated_at=NOW,
    )
    assert order.balance == Decimal("150.30")


def test_only_paid_is_a_checkpoint() -> None:
    assert [status for status in OrderStatus if status.is_checkpoint] == [OrderStatus.PAID]


def test_generate_order_id_format() -> None:
    order_id = generate_order_id(NOW, "RPC", random.Random(1))

    assert order_id.startswith("RPC20250115103045")
    assert len(order_id) == len("RPC") + 14 + 4
    assert order_id[-4:].isdigit()


def test_generate_order_id_requires_utc() -> None:
    with pytest.raises(ValueError):
        generate_order_id(datetime(2025, 1, 15), "RPC")
