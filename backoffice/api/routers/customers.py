"""
Customers API Endpoints.

Create, read and patch customers. Order aggregates are read-only here.
"""

from fastapi import APIRouter, Body, HTTPException

from backoffice.api.dependencies import ActingUserDep, EngineDep, to_http_exception
from backoffice.api.models import CreatedResponse, CustomerCreateRequest, CustomerResponse
from backoffice.domain.errors import BackOfficeError
from backoffice.domain.user import ActingUser
from backoffice.engine import BackOffice
from backoffice.services.customer_service import NewCustomer

router = APIRouter()


@router.post(
    "/customers",
    response_model=CreatedResponse,
    status_code=201,
    summary="Create Customer",
)
def create_customer(
    request: CustomerCreateRequest,
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    try:
        customer_id = engine.create_customer(
            NewCustomer(
                first_name=request.first_name,
                last_name=request.last_name,
                email=request.email,
                phone=request.phone,
                address=request.address,
            ),
            user,
        )
    except BackOfficeError as e:
        raise to_http_exception(e) from e
    return CreatedResponse(id=customer_id)


@router.get(
    "/customers/{customer_id}",
    response_model=CustomerResponse,
    summary="Get Customer",
)
def get_customer(customer_id: str, engine: BackOffice = EngineDep):
    try:
        return CustomerResponse.from_domain(engine.get_customer(customer_id))
    except BackOfficeError as e:
        raise to_http_exception(e) from e


@router.patch(
    "/customers/{customer_id}",
    response_model=CustomerResponse,
    summary="Update Customer",
    description="Patch profile fields. total_orders and total_revenue are derived and rejected.",
)
def update_customer(
    customer_id: str,
    fields: dict = Body(..., examples=[{"phone": "+263771234567"}]),
    engine: BackOffice = EngineDep,
    user: ActingUser = ActingUserDep,
):
    if not isinstance(fields, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    try:
        return CustomerResponse.from_domain(engine.update_customer(customer_id, fields, user))
    except BackOfficeError as e:
        raise to_http_exception(e) from e
