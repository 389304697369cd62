"""
Domain: Permission gate for order status transitions.

Rules implemented here:
- Any transition that originates from or targets the `paid` checkpoint
  requires role admin, manager or finance.
- Every other transition is allowed for any authenticated role.
- Moving into or out of `paid` additionally needs an explicit warning
  acknowledgement from the caller.
- Deleting orders is reserved for admin and manager.

Pure functions only: no state, no I/O.
"""

from __future__ import annotations

from .order import OrderStatus
from .user import UserRole

PAYMENT_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.MANAGER, UserRole.FINANCE})
DELETE_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.MANAGER})


def _touches_paid(current_status: OrderStatus, new_status: OrderStatus) -> bool:
    return current_status.is_checkpoint or new_status.is_checkpoint


def can_transition(current_status: OrderStatus, new_status: OrderStatus, role: UserRole) -> bool:
    """Decide whether `role` may move an order from `current_status` to `new_status`."""

    if _touches_paid(current_status, new_status):
        return role in PAYMENT_ROLES
    return True


def requires_acknowledgement(current_status: OrderStatus, new_status: OrderStatus) -> bool:
    """Entering or leaving `paid` must be confirmed by the caller."""

    return _touches_paid(current_status, new_status)


def can_delete_orders(role: UserRole) -> bool:
    return role in DELETE_ROLES


__all__ = [
    "PAYMENT_ROLES",
    "DELETE_ROLES",
    "can_transition",
    "requires_acknowledgement",
    "can_delete_orders",
]
