"""
Customer repository for managing customer records.

Profile fields and the denormalized aggregates are written through separate
functions so the aggregate updater stays their only writer.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from backoffice.domain.customer import Customer
from backoffice.domain.money import to_money
from backoffice.domain.time import parse_utc_datetime, to_iso_utc

from .store import CUSTOMERS, Document, Reader, Transaction


def customer_to_row(customer: Customer) -> Document:
    return {
        "id": customer.customer_id,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "email": customer.email,
        "phone": customer.phone,
        "address": customer.address,
        "created_by": customer.created_by,
        "created_at_utc": to_iso_utc(customer.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(customer.updated_at, name="updated_at"),
        "total_orders": customer.total_orders,
        "total_revenue": str(customer.total_revenue),
    }


def row_to_customer(row: Mapping[str, Any]) -> Customer:
    return Customer(
        customer_id=str(row["id"]),
        first_name=str(row.get("first_name") or ""),
        last_name=str(row.get("last_name") or ""),
        email=row.get("email"),
        phone=row.get("phone"),
        address=row.get("address"),
        created_by=row.get("created_by"),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
        total_orders=int(row.get("total_orders") or 0),
        total_revenue=to_money(row.get("total_revenue") or "0"),
    )


def insert_customer(tx: Transaction, customer: Customer) -> None:
    tx.insert(CUSTOMERS, customer_to_row(customer))


def update_customer_profile(tx: Transaction, customer_id: str, fields: Mapping[str, Any], updated_at: datetime) -> None:
    """Patch non-aggregate profile fields."""

    tx.update(CUSTOMERS, customer_id, {**fields, "updated_at_utc": to_iso_utc(updated_at, name="updated_at")})


def write_customer_aggregates(
    tx: Transaction,
    customer_id: str,
    total_orders: int,
    total_revenue: Decimal,
    updated_at: datetime,
) -> None:
    tx.update(
        CUSTOMERS,
        customer_id,
        {
            "total_orders": total_orders,
            "total_revenue": str(total_revenue),
            "updated_at_utc": to_iso_utc(updated_at, name="updated_at"),
        },
    )


def get_customer_by_id(reader: Reader, customer_id: str) -> Optional[Customer]:
    row = reader.get(CUSTOMERS, customer_id)
    return row_to_customer(row) if row is not None else None


def list_customers(reader: Reader) -> List[Customer]:
    return [row_to_customer(row) for row in reader.query(CUSTOMERS)]


__all__ = [
    "customer_to_row",
    "row_to_customer",
    "insert_customer",
    "update_customer_profile",
    "write_customer_aggregates",
    "get_customer_by_id",
    "list_customers",
]
