"""
Orders API Endpoints.

Endpoints for the order lifecycle: creation, status changes (optionally
carrying a payment), patches and deletion.
"""

from typing import Optional

from fastapi import APIRouter, Response

from backoffice.api.dependencies import ActingUserDep, EngineDep, to_http_exception
from backoffice.api.models import (
    CreatedResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderUpdateRequest,
    StatusChangeRequest,
)
from backoffice.domain.errors import BackOfficeError
from backoffice.domain.order import OrderStatus
from backoffice.domain.payment import PaymentRequest
from backoffice.domain.user import ActingUser
from backoffice.engine import BackOffice
from backoffice.services.order_service import NewOrder

router = APIRouter()


@router.post(
    "/orders",
    response_model=CreatedResponse,
    status_code=201,
    summary="Create Order",
)
def create_order(
    request: OrderCreateRequest,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    """
    Create an order in `quotation` status.

    **Side effects (same unit of work):**
    - A follow-up task assigned to the caller, due in 3 days
    - The customer's total_orders / total_revenue are recomputed
    - An `order_created` activity
    """
    try:
        order_id = engine.create_order(
            NewOrder(
                customer_id=request.customer_id,
                customer_name=request.customer_name,
                line_items=[item.model_dump() for item in request.line_items],
                delivery_method=request.delivery_method,
                delivery_date=request.delivery_date,
                collection_date=request.collection_date,
                site_visit_date=request.site_visit_date,
                notes=tuple(request.notes),
            ),
            user,
        )
    except BackOfficeError as e:
        raise to_http_exception(e) from e
    return CreatedResponse(id=order_id)


@router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
)
def list_orders(
    customer_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    engine: BackOffice = EngineDep,
):
    try:
        orders = engine.list_orders(customer_id=customer_id, status=status)
    except BackOfficeError as e:
        raise to_http_exception(e) from e

    filters_applied = {}
    if customer_id:
        filters_applied["customer_id"] = customer_id
    if status:
        filters_applied["status"] = status.value

    return OrderListResponse(
        items=[OrderResponse.from_domain(order) for order in orders],
        total_count=len(orders),
        filters_applied=filters_applied,
    )


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
)
def get_order(order_id: str, engine: BackOffice = EngineDep):
    try:
        return OrderResponse.from_domain(engine.get_order_by_id(order_id))
    except BackOfficeError as e:
        raise to_http_exception(e) from e


@router.patch(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Update Order",
    description="Patch delivery details, customer, line items, or append a note.",
)
def update_order(
    order_id: str,
    request: OrderUpdateRequest,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    fields = request.model_dump(exclude_unset=True)
    if "line_items" in fields and fields["line_items"] is not None:
        fields["line_items"] = [dict(item) for item in fields["line_items"]]
    try:
        return OrderResponse.from_domain(engine.update_order(order_id, fields, user))
    except BackOfficeError as e:
        raise to_http_exception(e) from e


@router.delete(
    "/orders/{order_id}",
    status_code=204,
    response_class=Response,
    summary="Delete Order",
    description="Admin and manager only. Payments recorded against the order are kept.",
)
def delete_order(
    order_id: str,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    try:
        engine.delete_order(order_id, user)
    except BackOfficeError as e:
        raise to_http_exception(e) from e
    return Response(status_code=204)


@router.post(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Change Order Status",
)
def change_order_status(
    order_id: str,
    request: StatusChangeRequest,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    """
    Move an order through the pipeline or into/out of `paid`.

    **Rules:**
    1. An order with payments can never return to `quotation` (422)
    2. Entering or leaving `paid` requires admin, manager or finance (403)
    3. Entering or leaving `paid` requires `acknowledge_warning: true` (400)

    A `payment` in the body is recorded in the same unit of work as the status change.
    """
    payment = None
    if request.payment is not None:
        payment = PaymentRequest(
            amount=request.payment.amount,
            method=request.payment.method,
            notes=request.payment.notes,
            reference=request.payment.reference,
        )
    try:
        order = engine.change_order_status(
            order_id,
            request.status,
            user,
            payment=payment,
            acknowledge_warning=request.acknowledge_warning,
        )
    except BackOfficeError as e:
        raise to_http_exception(e) from e
    return OrderResponse.from_domain(order)
