"""
Domain: Acting users.

The identity provider authenticates users; the engine only receives the
verified identity and role on every mutating call and trusts it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    FINANCE = "finance"
    STAFF = "staff"


@dataclass(frozen=True, slots=True)
class ActingUser:
    """Verified identity of the staff member performing an operation."""

    user_id: str
    name: str
    role: UserRole

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("user_id is required")
        if not isinstance(self.role, UserRole):
            raise ValueError(f"Unknown role: {self.role!r}")

    @property
    def display_name(self) -> str:
        return self.name or self.user_id
