"""
Payments API Endpoints.

Endpoints for recording payments against orders and reading the ledger.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter

from backoffice.api.dependencies import ActingUserDep, EngineDep, to_http_exception
from backoffice.api.models import CreatedResponse, PaymentInput, PaymentResponse, PaymentStatusResponse
from backoffice.domain.errors import BackOfficeError
from backoffice.domain.time import parse_optional_utc_datetime
from backoffice.domain.user import ActingUser
from backoffice.engine import BackOffice

router = APIRouter()


@router.post(
    "/orders/{order_id}/payments",
    response_model=CreatedResponse,
    status_code=201,
    summary="Record Payment",
)
def add_payment(
    order_id: str,
    request: PaymentInput,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    """
    Append a payment to the order's ledger.

    The first payment on an order in `quotation` moves it to `production`
    and completes the order's follow-up task.
    """
    try:
        payment_id = engine.add_payment(
            order_id,
            request.amount,
            request.method,
            user,
            notes=request.notes,
            reference=request.reference,
            date=parse_optional_utc_datetime(request.date),
        )
    except BackOfficeError as e:
        raise to_http_exception(e) from e
    return CreatedResponse(id=payment_id)


@router.get(
    "/orders/{order_id}/payments",
    response_model=List[PaymentResponse],
    summary="List Payments",
    description="Payments for an order, newest first.",
)
def list_payments(order_id: str, engine: BackOffice = EngineDep):
    try:
        return [PaymentResponse.from_domain(p) for p in engine.get_payments_by_order(order_id)]
    except BackOfficeError as e:
        raise to_http_exception(e) from e


@router.get(
    "/orders/{order_id}/payment-status",
    response_model=PaymentStatusResponse,
    summary="Get Payment Status",
)
def get_payment_status(
    order_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    engine: BackOffice = EngineDep,
):
    """
    Derived payment status (unpaid / partial / paid) and balance.

    `start` and `end` each bound `total_paid` on their own (inclusive); the
    status and balance always use the full ledger.
    """
    try:
        order = engine.get_order_by_id(order_id)
        status = engine.get_payment_status(order_id)
        paid = engine.get_total_paid_for_order(
            order_id,
            parse_optional_utc_datetime(start),
            parse_optional_utc_datetime(end),
        )
    except BackOfficeError as e:
        raise to_http_exception(e) from e

    return PaymentStatusResponse(
        order_id=order_id,
        status=status,
        total_paid=paid,
        total_amount=order.total_amount,
        balance=order.balance,
    )
