"""
Payment repository (persistence).

Payments are append-only: this module can insert and read them, and
deliberately offers no update or delete.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping

from backoffice.domain.payment import Payment, PaymentMethod
from backoffice.domain.time import parse_utc_datetime, to_iso_utc

from .store import PAYMENTS, Document, Reader, Transaction


def payment_to_row(payment: Payment) -> Document:
    return {
        "id": payment.payment_id,
        "order_id": payment.order_id,
        "amount": str(payment.amount),
        "method": payment.method.value,
        "reference": payment.reference,
        "notes": payment.notes,
        "date_utc": to_iso_utc(payment.date, name="date"),
        "created_by": payment.created_by,
        "created_at_utc": to_iso_utc(payment.created_at, name="created_at"),
    }


def row_to_payment(row: Mapping[str, Any]) -> Payment:
    return Payment(
        payment_id=str(row["id"]),
        order_id=str(row["order_id"]),
        amount=Decimal(str(row["amount"])),
        method=PaymentMethod(str(row["method"])),
        reference=row.get("reference"),
        notes=row.get("notes"),
        date=parse_utc_datetime(row["date_utc"]),
        created_by=str(row.get("created_by") or ""),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def insert_payment(tx: Transaction, payment: Payment) -> None:
    tx.insert(PAYMENTS, payment_to_row(payment))


def list_payments_by_order(reader: Reader, order_id: str) -> List[Payment]:
    """All payments recorded against an order, newest payment date first."""

    payments = [row_to_payment(row) for row in reader.query(PAYMENTS, order_id=order_id)]
    return sorted(payments, key=lambda p: (p.date, p.created_at), reverse=True)


def list_all_payments(reader: Reader) -> List[Payment]:
    return [row_to_payment(row) for row in reader.query(PAYMENTS)]


__all__ = [
    "payment_to_row",
    "row_to_payment",
    "insert_payment",
    "list_payments_by_order",
    "list_all_payments",
]
