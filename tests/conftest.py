"""
Pytest fixtures shared by the engine, store and API tests.

Every test gets its own in-memory store and engine; nothing is shared
between tests.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from backoffice.config import Settings
from backoffice.domain.user import ActingUser, UserRole
from backoffice.engine import BackOffice
from backoffice.repositories.memory_store import InMemoryDocumentStore
from backoffice.services.customer_service import NewCustomer
from backoffice.services.order_service import NewOrder

START = datetime(2025, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; tests advance it explicitly."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSink:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Optional[str]]] = []

    def notify(self, message: str, category: str, link: Optional[str] = None) -> None:
        self.sent.append({"message": message, "category": category, "link": link})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(timeout_seconds=2.0)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def office(store: InMemoryDocumentStore, clock: FakeClock, sink: RecordingSink) -> BackOffice:
    return BackOffice(store, settings=Settings(), notification_sink=sink, clock=clock, rng=random.Random(7))


@pytest.fixture
def admin() -> ActingUser:
    return ActingUser(user_id="u-admin", name="Rudo Admin", role=UserRole.ADMIN)


@pytest.fixture
def manager() -> ActingUser:
    return ActingUser(user_id="u-manager", name="Farai Manager", role=UserRole.MANAGER)


@pytest.fixture
def finance() -> ActingUser:
    return ActingUser(user_id="u-finance", name="Nyasha Finance", role=UserRole.FINANCE)


@pytest.fixture
def staff() -> ActingUser:
    return ActingUser(user_id="u-staff", name="Tapiwa Staff", role=UserRole.STAFF)


@pytest.fixture
def customer_id(office: BackOffice, staff: ActingUser) -> str:
    return office.create_customer(NewCustomer(first_name="Tendai", last_name="Moyo"), staff)


@pytest.fixture
def make_order(office: BackOffice, customer_id: str, staff: ActingUser) -> Callable[..., str]:
    """Create an order of `quantity` x `unit_price` (default 2 x 100.00)."""

    def _make(
        quantity: int = 2,
        unit_price: str = "100.00",
        actor: Optional[ActingUser] = None,
        customer: Optional[str] = None,
    ) -> str:
        return office.create_order(
            NewOrder(
                customer_id=customer or customer_id,
                line_items=[{"product_id": "door-900", "name": "Security door", "quantity": quantity, "unit_price": unit_price}],
            ),
            actor or staff,
        )

    return _make
