"""
Domain: Customer.

total_orders and total_revenue are denormalized caches over the customer's
current orders. Only the customer aggregate updater writes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .money import ZERO
from .time import require_utc_timestamp

AGGREGATE_FIELDS = frozenset({"total_orders", "total_revenue"})


@dataclass(frozen=True, slots=True)
class Customer:
    customer_id: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    total_orders: int = 0
    total_revenue: Decimal = ZERO

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
