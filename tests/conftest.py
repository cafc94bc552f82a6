"""Pytest configuration and fixtures."""

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from vetclinic.services.recommendations.models import LoadResult, ServiceInfo, ServiceUsageRecord


def make_records(usage: Dict[int, int]) -> List[ServiceUsageRecord]:
    """Usage records from a service_id -> count map."""
    return [
        ServiceUsageRecord(service_id=service_id, usage_count=count, last_used=date(2024, 1, 1))
        for service_id, count in usage.items()
    ]


def db_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


class FakeHistoryLoader:
    """In-memory stand-in for ServiceHistoryLoader."""

    def __init__(
        self,
        histories: Dict[int, Dict[int, int]],
        services: Dict[int, ServiceInfo],
        popular: Optional[List[Tuple[int, int]]] = None,
        faults: Iterable[str] = (),
    ):
        self.histories = histories
        self.services = services
        self.popular = popular or []
        self.faults = set(faults)
        self.calls: List[str] = []

    def _fault(self, name: str) -> bool:
        self.calls.append(name)
        return name in self.faults

    async def load_customer_history(self, customer_id: int) -> LoadResult:
        if self._fault("history"):
            return LoadResult.fault(db_error())
        return LoadResult.of(make_records(self.histories.get(customer_id, {})))

    async def load_candidate_histories(self, exclude_customer_id: int) -> LoadResult:
        if self._fault("candidates"):
            return LoadResult.fault(db_error())
        return LoadResult.of({
            customer_id: make_records(usage)
            for customer_id, usage in sorted(self.histories.items())
            if customer_id != exclude_customer_id and usage
        })

    async def load_active_services(self, service_ids: Iterable[int]) -> LoadResult:
        if self._fault("services"):
            return LoadResult.fault(db_error())
        return LoadResult.of({
            service_id: self.services[service_id]
            for service_id in service_ids
            if service_id in self.services
        })

    async def load_popular_services(self, limit: int) -> LoadResult:
        if self._fault("popular"):
            return LoadResult.fault(db_error())
        return LoadResult.of([
            (self.services[service_id], count)
            for service_id, count in self.popular
            if service_id in self.services
        ][:limit])


@pytest.fixture
def service_catalog() -> Dict[int, ServiceInfo]:
    """Active services keyed by id (service 99 is inactive and absent)."""
    names = {
        1: ("General checkup", "Examination"),
        2: ("Vaccination", "Prevention"),
        3: ("Grooming", "Care"),
        4: ("Dental cleaning", "Care"),
        5: ("Deworming", "Prevention"),
        6: ("X-ray", "Diagnostics"),
    }
    return {
        service_id: ServiceInfo(
            service_id=service_id,
            name=name,
            description=f"{name} for pets",
            price=100.0 * service_id,
            category=category,
        )
        for service_id, (name, category) in names.items()
    }


@pytest.fixture
def visit_dates() -> List[date]:
    """Three visits 10 and 20 days apart."""
    start = date(2024, 1, 1)
    return [start, start + timedelta(days=10), start + timedelta(days=30)]


@pytest.fixture
def app() -> Any:
    """Create test application with a dummy database session."""
    from main import app as fastapi_app
    from vetclinic.core.database import get_db

    async def get_test_db():
        yield None

    fastapi_app.dependency_overrides[get_db] = get_test_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client (lifespan not started, no database needed)."""
    return TestClient(app)
