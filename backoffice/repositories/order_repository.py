"""
Order repository (persistence).

This module provides *only* persistence operations for the Order domain
entity: row mapping, insert, save, fetch and delete. It does not enforce
lifecycle rules (permissions, payment invariants); the order service does.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from backoffice.domain.money import to_money
from backoffice.domain.order import (
    DeliveryDetails,
    DeliveryMethod,
    FulfilmentStatus,
    LineItem,
    Order,
    OrderNote,
    OrderStatus,
)
from backoffice.domain.time import parse_optional_utc_datetime, parse_utc_datetime, to_iso_utc

from .store import ORDERS, Document, Reader, Transaction


def _optional_iso(value: Optional[datetime], name: str) -> Optional[str]:
    return to_iso_utc(value, name=name) if value is not None else None


def _optional_status(value: Any) -> Optional[FulfilmentStatus]:
    return FulfilmentStatus(str(value)) if value else None


def line_item_to_row(item: LineItem) -> Dict[str, Any]:
    return {
        "product_id": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
    }


def row_to_line_item(row: Mapping[str, Any]) -> LineItem:
    return LineItem(
        product_id=str(row["product_id"]),
        name=str(row.get("name", "")),
        quantity=int(row["quantity"]),
        unit_price=Decimal(str(row["unit_price"])),
    )


def delivery_to_row(delivery: DeliveryDetails) -> Dict[str, Any]:
    return {
        "delivery_method": delivery.method.value,
        "delivery_date_utc": _optional_iso(delivery.delivery_date, "delivery_date"),
        "collection_date_utc": _optional_iso(delivery.collection_date, "collection_date"),
        "site_visit_date_utc": _optional_iso(delivery.site_visit_date, "site_visit_date"),
        "delivery_status": delivery.delivery_status.value if delivery.delivery_status else None,
        "collection_status": delivery.collection_status.value if delivery.collection_status else None,
        "site_visit_status": delivery.site_visit_status.value if delivery.site_visit_status else None,
    }


def _row_to_delivery(row: Mapping[str, Any]) -> DeliveryDetails:
    return DeliveryDetails(
        method=DeliveryMethod(str(row.get("delivery_method") or DeliveryMethod.DELIVERY.value)),
        delivery_date=parse_optional_utc_datetime(row.get("delivery_date_utc")),
        collection_date=parse_optional_utc_datetime(row.get("collection_date_utc")),
        site_visit_date=parse_optional_utc_datetime(row.get("site_visit_date_utc")),
        delivery_status=_optional_status(row.get("delivery_status")),
        collection_status=_optional_status(row.get("collection_status")),
        site_visit_status=_optional_status(row.get("site_visit_status")),
    )


def _note_to_row(note: OrderNote) -> Dict[str, Any]:
    return {
        "id": note.note_id,
        "content": note.content,
        "created_by": note.created_by,
        "created_at_utc": to_iso_utc(note.created_at, name="note.created_at"),
    }


def _row_to_note(row: Mapping[str, Any]) -> OrderNote:
    return OrderNote(
        note_id=str(row["id"]),
        content=str(row["content"]),
        created_by=str(row["created_by"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def order_to_row(order: Order) -> Document:
    """Convert an Order into its stored document form."""

    return {
        "id": order.order_id,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "products": [line_item_to_row(item) for item in order.line_items],
        "status": order.status.value,
        **delivery_to_row(order.delivery),
        "total_amount": str(order.total_amount),
        "total_paid": str(order.total_paid),
        "last_payment_date_utc": _optional_iso(order.last_payment_date, "last_payment_date"),
        "notes": [_note_to_row(note) for note in order.notes],
        "created_by": order.created_by,
        "created_at_utc": to_iso_utc(order.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(order.updated_at, name="updated_at"),
    }


def row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a stored document into an Order."""

    return Order(
        order_id=str(row["id"]),
        customer_id=str(row["customer_id"]),
        customer_name=str(row.get("customer_name") or ""),
        line_items=tuple(row_to_line_item(item) for item in row.get("products") or []),
        status=OrderStatus(str(row["status"])),
        delivery=_row_to_delivery(row),
        total_amount=to_money(row["total_amount"]),
        total_paid=to_money(row.get("total_paid") or "0"),
        last_payment_date=parse_optional_utc_datetime(row.get("last_payment_date_utc")),
        notes=tuple(_row_to_note(note) for note in row.get("notes") or []),
        created_by=str(row.get("created_by") or ""),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
    )


def insert_order(tx: Transaction, order: Order) -> None:
    tx.insert(ORDERS, order_to_row(order))


def save_order(tx: Transaction, order: Order) -> None:
    """Persist every field of an existing order."""

    tx.update(ORDERS, order.order_id, order_to_row(order))


def delete_order(tx: Transaction, order_id: str) -> None:
    tx.delete(ORDERS, order_id)


def get_order_by_id(reader: Reader, order_id: str) -> Optional[Order]:
    row = reader.get(ORDERS, order_id)
    return row_to_order(row) if row is not None else None


def list_orders(reader: Reader, **filters: Any) -> List[Order]:
    """List orders matching equality filters (e.g. customer_id=...), newest first."""

    orders = [row_to_order(row) for row in reader.query(ORDERS, **filters)]
    return sorted(orders, key=lambda order: (order.created_at, order.order_id), reverse=True)


def list_orders_by_customer(reader: Reader, customer_id: str) -> List[Order]:
    return list_orders(reader, customer_id=customer_id)


__all__ = [
    "order_to_row",
    "row_to_order",
    "insert_order",
    "save_order",
    "delete_order",
    "get_order_by_id",
    "list_orders",
    "list_orders_by_customer",
]
