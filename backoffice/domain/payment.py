"""
Domain: Payments and derived payment status.

Rules implemented here:
- A payment amount is strictly positive with two-decimal precision.
- Payments are immutable once recorded; corrections are further payments.
- Total paid is the two-decimal sum of an order's payments, rounded after
  every accumulation step.
- Payment status is derived, never stored:
  - unpaid: total paid is 0
  - paid: total paid >= order total
  - partial: anything in between
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .money import ZERO, add_money, to_money
from .time import require_utc_timestamp


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    ECOCASH = "ecocash"
    INNBUCKS = "innbucks"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True, slots=True)
class Payment:
    """Immutable ledger entry for money received against an order."""

    payment_id: str
    order_id: str
    amount: Decimal
    method: PaymentMethod
    date: datetime
    created_by: str
    created_at: datetime
    reference: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("date", self.date)
        require_utc_timestamp("created_at", self.created_at)
        if to_money(self.amount) != self.amount:
            raise ValueError("amount must have at most two decimal places")
        if self.amount <= 0:
            raise ValueError("amount must be > 0")


@dataclass(frozen=True, slots=True)
class PaymentRequest:
    """Payment details supplied alongside a status change."""

    amount: Decimal
    method: PaymentMethod
    notes: Optional[str] = None
    reference: Optional[str] = None


def total_paid(
    payments: Iterable[Payment],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Decimal:
    """
    Sum payment amounts, optionally restricted to an inclusive date range.

    Each bound applies on its own; an omitted bound leaves that side open.
    """

    total = ZERO
    for payment in payments:
        if start is not None and payment.date < start:
            continue
        if end is not None and payment.date > end:
            continue
        total = add_money(total, payment.amount)
    return total


def derive_payment_status(paid: Decimal, order_total: Decimal) -> PaymentStatus:
    if paid <= 0:
        return PaymentStatus.UNPAID
    if paid >= order_total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


__all__ = [
    "PaymentMethod",
    "PaymentStatus",
    "Payment",
    "PaymentRequest",
    "total_paid",
    "derive_payment_status",
]
