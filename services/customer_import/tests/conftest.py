"""
Shared fixtures for customer import tests.

FakeLinearClient keeps customers in memory and applies creates/updates to
its own state, so a second import run sees the writes of the first.
"""

import asyncio
from typing import Iterable, List, Optional

import pytest

from services.customer_import.errors import (
    CreateCustomerError,
    LinearInternalError,
    ListCustomersError,
    UpdateCustomerError,
)
from services.customer_import.schemas import CustomerPayload, RemoteCustomer


class FakeLinearClient:
    """In-memory stand-in for LinearClient."""

    def __init__(
        self,
        customers: Optional[Iterable[RemoteCustomer]] = None,
        fail_list: bool = False,
        fail_names: Iterable[str] = (),
        delay: float = 0.0,
    ):
        self.customers: List[RemoteCustomer] = list(customers or [])
        self.fail_list = fail_list
        self.fail_names = set(fail_names)
        self.delay = delay
        self.list_calls = 0
        self.created: List[CustomerPayload] = []
        self.updated: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def list_customers(self) -> List[RemoteCustomer]:
        self.list_calls += 1
        if self.fail_list:
            raise ListCustomersError(LinearInternalError("Linear is down"))
        return list(self.customers)

    async def _enter(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)

    async def create_customer(self, payload: CustomerPayload) -> RemoteCustomer:
        await self._enter()
        try:
            if payload.name in self.fail_names:
                raise CreateCustomerError(payload, LinearInternalError("create rejected"))
            remote = RemoteCustomer(
                id=f"cust-{len(self.customers) + 1}",
                name=payload.name,
                external_ids=list(payload.external_ids),
                domains=list(payload.domains),
                size=payload.size,
            )
            self.customers.append(remote)
            self.created.append(payload)
            return remote
        finally:
            self.in_flight -= 1

    async def update_customer(self, customer_id: str, payload: CustomerPayload) -> RemoteCustomer:
        await self._enter()
        try:
            if payload.name in self.fail_names:
                raise UpdateCustomerError(customer_id, payload, LinearInternalError("update rejected"))
            remote = RemoteCustomer(
                id=customer_id,
                name=payload.name,
                external_ids=list(payload.external_ids),
                domains=list(payload.domains),
                size=payload.size,
            )
            self.customers = [remote if c.id == customer_id else c for c in self.customers]
            self.updated.append((customer_id, payload))
            return remote
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_client():
    return FakeLinearClient()


@pytest.fixture
def valid_row():
    return {
        "Debitornummer": "1001",
        "B_Zuordnung": "Kita Sonnenschein",
        "Website": "https://www.kita-sonnenschein.de/",
        "E_Mail": "info@kita-sonnenschein.de",
        "Kinderzahl": "42",
    }
