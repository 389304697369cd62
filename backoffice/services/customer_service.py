"""
Customer service.

Creates customers and patches their profile fields. The denormalized
aggregate fields are rejected here; only the aggregate updater writes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

from backoffice.domain.activity import ActivityType
from backoffice.domain.customer import AGGREGATE_FIELDS, Customer
from backoffice.domain.errors import NotFoundError, ValidationError
from backoffice.domain.time import utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.customer_repository import get_customer_by_id, insert_customer, update_customer_profile
from backoffice.repositories.store import DocumentStore

from .activity_service import ActivityLog

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"first_name", "last_name", "email", "phone", "address"})


@dataclass(frozen=True, slots=True)
class NewCustomer:
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class CustomerService:
    def __init__(
        self,
        store: DocumentStore,
        activity_log: ActivityLog,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._activity_log = activity_log
        self._clock = clock

    def create_customer(self, data: NewCustomer, actor: ActingUser) -> str:
        if not data.first_name.strip() and not data.last_name.strip():
            raise ValidationError("Customer name is required")

        now = self._clock()
        customer = Customer(
            customer_id=uuid4().hex,
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            email=data.email,
            phone=data.phone,
            address=data.address,
            created_by=actor.user_id,
            created_at=now,
            updated_at=now,
        )

        with self._store.transaction() as tx:
            insert_customer(tx, customer)
            self._activity_log.record(
                tx,
                ActivityType.CUSTOMER_CREATED,
                actor,
                f"Created new customer {customer.full_name}",
                entity_id=customer.customer_id,
                entity_type="customer",
                metadata={"customer_id": customer.customer_id},
            )

        logger.info("Customer created", extra={"customer_id": customer.customer_id, "user_id": actor.user_id})
        return customer.customer_id

    def update_customer(self, customer_id: str, fields: Mapping[str, Any], actor: ActingUser) -> Customer:
        if not fields:
            raise ValidationError("No fields to update")
        aggregate = AGGREGATE_FIELDS & set(fields)
        if aggregate:
            raise ValidationError(
                f"{', '.join(sorted(aggregate))} are derived from the customer's orders and cannot be set"
            )
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown customer fields: {', '.join(sorted(unknown))}")

        with self._store.transaction() as tx:
            if get_customer_by_id(tx, customer_id) is None:
                raise NotFoundError("Customer", customer_id)
            update_customer_profile(tx, customer_id, fields, updated_at=self._clock())
            self._activity_log.record(
                tx,
                ActivityType.CUSTOMER_UPDATED,
                actor,
                f"Customer {customer_id} updated: {', '.join(sorted(fields))}",
                entity_id=customer_id,
                entity_type="customer",
                metadata={"customer_id": customer_id, "changes": sorted(fields)},
            )
            updated = get_customer_by_id(tx, customer_id)

        logger.info("Customer updated", extra={"customer_id": customer_id, "changes": sorted(fields)})
        return updated  # type: ignore[return-value]

    def get_customer(self, customer_id: str) -> Customer:
        customer = get_customer_by_id(self._store, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer


__all__ = ["NewCustomer", "CustomerService"]
