"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from backoffice.domain.customer import Customer
from backoffice.domain.leaderboard import LeaderboardEntry
from backoffice.domain.order import DeliveryMethod, FulfilmentStatus, Order, OrderStatus
from backoffice.domain.payment import Payment, PaymentMethod, PaymentStatus
from backoffice.services.notifications import Notification


# ============================================================================
# Customer Models
# ============================================================================

class CustomerCreateRequest(BaseModel):
    """Request to create a customer."""
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Tendai",
                "last_name": "Moyo",
                "email": "tendai@example.com",
                "phone": "+263771234567",
                "address": "12 Samora Machel Ave, Harare"
            }
        }


class CustomerResponse(BaseModel):
    """Customer with its order aggregates."""
    customer_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    total_orders: int
    total_revenue: Decimal
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, customer: Customer) -> "CustomerResponse":
        return cls(
            customer_id=customer.customer_id,
            first_name=customer.first_name,
            last_name=customer.last_name,
            email=customer.email,
            phone=customer.phone,
            address=customer.address,
            total_orders=customer.total_orders,
            total_revenue=customer.total_revenue,
            created_by=customer.created_by,
            created_at=customer.created_at,
            updated_at=customer.updated_at,
        )


# ============================================================================
# Order Models
# ============================================================================

class LineItemModel(BaseModel):
    """Single product line on an order."""
    product_id: str
    name: str = ""
    quantity: int
    unit_price: Decimal


class OrderCreateRequest(BaseModel):
    """Request to create an order in quotation status."""
    customer_id: str
    line_items: List[LineItemModel] = Field(
        ...,
        min_length=1,
        description="Products on the order"
    )
    customer_name: Optional[str] = None
    delivery_method: DeliveryMethod = DeliveryMethod.DELIVERY
    delivery_date: Optional[datetime] = None
    collection_date: Optional[datetime] = None
    site_visit_date: Optional[datetime] = None
    notes: List[str] = []

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "2f1c6a0e9d3b4c5f8a7e6d5c4b3a2910",
                "line_items": [
                    {"product_id": "door-900", "name": "Steel security door", "quantity": 2, "unit_price": "100.00"}
                ],
                "delivery_method": "delivery",
                "notes": ["Customer prefers morning delivery"]
            }
        }


class OrderUpdateRequest(BaseModel):
    """Partial update of an order. Only the fields sent are applied."""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    line_items: Optional[List[LineItemModel]] = None
    delivery_method: Optional[DeliveryMethod] = None
    delivery_date: Optional[datetime] = None
    collection_date: Optional[datetime] = None
    site_visit_date: Optional[datetime] = None
    delivery_status: Optional[FulfilmentStatus] = None
    collection_status: Optional[FulfilmentStatus] = None
    site_visit_status: Optional[FulfilmentStatus] = None
    note: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "delivery_date": "2025-02-01T08:00:00Z",
                "note": "Rescheduled at customer request"
            }
        }


class PaymentInput(BaseModel):
    """Payment details."""
    amount: Decimal = Field(..., description="Amount received; must be greater than 0")
    method: PaymentMethod
    notes: Optional[str] = None
    reference: Optional[str] = None
    date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "amount": "50.00",
                "method": "ecocash",
                "reference": "MP250115.1030.A12345"
            }
        }


class StatusChangeRequest(BaseModel):
    """Request to move an order to another status."""
    status: OrderStatus
    acknowledge_warning: bool = False
    payment: Optional[PaymentInput] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "paid",
                "acknowledge_warning": True,
                "payment": {"amount": "150.00", "method": "bank_transfer"}
            }
        }


class OrderNoteModel(BaseModel):
    note_id: str
    content: str
    created_by: str
    created_at: datetime


class OrderResponse(BaseModel):
    """Order as stored, with its ledger mirrors."""
    order_id: str
    customer_id: str
    customer_name: str
    line_items: List[LineItemModel]
    status: OrderStatus
    total_amount: Decimal
    total_paid: Decimal
    balance: Decimal
    last_payment_date: Optional[datetime] = None
    delivery_method: DeliveryMethod
    delivery_date: Optional[datetime] = None
    collection_date: Optional[datetime] = None
    site_visit_date: Optional[datetime] = None
    delivery_status: Optional[FulfilmentStatus] = None
    collection_status: Optional[FulfilmentStatus] = None
    site_visit_status: Optional[FulfilmentStatus] = None
    notes: List[OrderNoteModel]
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        delivery = order.delivery
        return cls(
            order_id=order.order_id,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            line_items=[
                LineItemModel(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in order.line_items
            ],
            status=order.status,
            total_amount=order.total_amount,
            total_paid=order.total_paid,
            balance=order.balance,
            last_payment_date=order.last_payment_date,
            delivery_method=delivery.method,
            delivery_date=delivery.delivery_date,
            collection_date=delivery.collection_date,
            site_visit_date=delivery.site_visit_date,
            delivery_status=delivery.delivery_status,
            collection_status=delivery.collection_status,
            site_visit_status=delivery.site_visit_status,
            notes=[
                OrderNoteModel(
                    note_id=note.note_id,
                    content=note.content,
                    created_by=note.created_by,
                    created_at=note.created_at,
                )
                for note in order.notes
            ],
            created_by=order.created_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    """Response for order listing."""
    items: List[OrderResponse]
    total_count: int
    filters_applied: Dict[str, Any]


class CreatedResponse(BaseModel):
    """Id of a newly created entity."""
    id: str


# ============================================================================
# Payment Models
# ============================================================================

class PaymentResponse(BaseModel):
    """Immutable payment ledger entry."""
    payment_id: str
    order_id: str
    amount: Decimal
    method: PaymentMethod
    date: datetime
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    created_at: datetime

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            amount=payment.amount,
            method=payment.method,
            date=payment.date,
            reference=payment.reference,
            notes=payment.notes,
            created_by=payment.created_by,
            created_at=payment.created_at,
        )


class PaymentStatusResponse(BaseModel):
    """Payment status derived from the ledger on every request."""
    order_id: str
    status: PaymentStatus
    total_paid: Decimal
    total_amount: Decimal
    balance: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "RPC202501151030450042",
                "status": "partial",
                "total_paid": "50.00",
                "total_amount": "200.00",
                "balance": "150.00"
            }
        }


# ============================================================================
# Reporting Models
# ============================================================================

class LeaderboardEntryResponse(BaseModel):
    """One staff member's performance in the window."""
    user_id: str
    user_name: str
    new_orders: int
    new_orders_value: Decimal
    paid_orders: int
    paid_revenue: Decimal
    total_orders: int
    total_revenue: Decimal
    conversion_rate: Decimal
    weighted_score: Decimal

    @classmethod
    def from_domain(cls, entry: LeaderboardEntry) -> "LeaderboardEntryResponse":
        return cls(
            user_id=entry.user_id,
            user_name=entry.user_name,
            new_orders=entry.new_orders,
            new_orders_value=entry.new_orders_value,
            paid_orders=entry.paid_orders,
            paid_revenue=entry.paid_revenue,
            total_orders=entry.total_orders,
            total_revenue=entry.total_revenue,
            conversion_rate=entry.conversion_rate,
            weighted_score=entry.weighted_score,
        )


class LeaderboardResponse(BaseModel):
    """Ranked leaderboard; unattributed sales are always last."""
    start: datetime
    end: datetime
    entries: List[LeaderboardEntryResponse]


class NotificationResponse(BaseModel):
    notification_id: str
    message: str
    category: str
    created_at: datetime
    read: bool
    link: Optional[str] = None

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            notification_id=notification.notification_id,
            message=notification.message,
            category=notification.category,
            created_at=notification.created_at,
            read=notification.read,
            link=notification.link,
        )


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "PermissionDeniedError",
                "detail": "Role staff may not change order status from production to paid",
                "status_code": 403
            }
        }
