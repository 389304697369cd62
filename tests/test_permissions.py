"""
Tests for `domain/permissions.py`.

Covers contract rules:
- Transitions from or to `paid` require admin, manager or finance.
- Every other transition is allowed for every role.
- Entering or leaving `paid` needs an acknowledgement.
- Only admin and manager may delete orders.
"""

from __future__ import annotations

import itertools

import pytest

from backoffice.domain.order import OrderStatus
from backoffice.domain.permissions import can_delete_orders, can_transition, requires_acknowledgement
from backoffice.domain.user import UserRole

PRIVILEGED = {UserRole.ADMIN, UserRole.MANAGER, UserRole.FINANCE}


@pytest.mark.parametrize(
    "current, new, role",
    list(itertools.product(OrderStatus, OrderStatus, UserRole)),
)
def test_can_transition_full_cross_product(current: OrderStatus, new: OrderStatus, role: UserRole) -> None:
    """Verify the gate for every (current, new, role) combination."""

    touches_paid = OrderStatus.PAID in (current, new)
    expected = role in PRIVILEGED if touches_paid else True

    assert can_transition(current, new, role) is expected


def test_staff_cannot_mark_paid_or_revert_paid() -> None:
    assert can_transition(OrderStatus.PRODUCTION, OrderStatus.PAID, UserRole.STAFF) is False
    assert can_transition(OrderStatus.PAID, OrderStatus.COMPLETED, UserRole.STAFF) is False


def test_finance_can_enter_paid_from_any_status() -> None:
    for status in OrderStatus:
        if status is OrderStatus.PAID:
            continue
        assert can_transition(status, OrderStatus.PAID, UserRole.FINANCE) is True


def test_requires_acknowledgement_only_around_paid() -> None:
    assert requires_acknowledgement(OrderStatus.DISPATCH, OrderStatus.PAID) is True
    assert requires_acknowledgement(OrderStatus.PAID, OrderStatus.INSTALLATION) is True
    assert requires_acknowledgement(OrderStatus.PRODUCTION, OrderStatus.QUALITY_CONTROL) is False


@pytest.mark.parametrize(
    "role, expected",
    [
        (UserRole.ADMIN, True),
        (UserRole.MANAGER, True),
        (UserRole.FINANCE, False),
        (UserRole.STAFF, False),
    ],
)
def test_can_delete_orders(role: UserRole, expected: bool) -> None:
    assert can_delete_orders(role) is expected
