"""Unit tests for service history loading."""

from collections import namedtuple
from datetime import date
from decimal import Decimal
from typing import Any, List

import pandas as pd
import pytest
from sqlalchemy.exc import OperationalError

from conftest import db_error
from vetclinic.services.recommendations.data_loader import ServiceHistoryLoader, build_usage_records
from vetclinic.services.recommendations.engine import RecommendationEngine
from vetclinic.services.recommendations.models import LoadStatus, usage_vector

ServiceRow = namedtuple("ServiceRow", "service_id name description price category")
PopularRow = namedtuple("PopularRow", "service_id name description price category usage_count")


class FakeResult:
    def __init__(self, rows: List[Any]):
        self._rows = rows

    def all(self) -> List[Any]:
        return self._rows


class FakeSession:
    """Returns canned rows, or raises when given an exception."""

    def __init__(self, rows: List[Any] = None, error: Exception = None):
        self.rows = rows or []
        self.error = error
        self.executed = 0
        self.rollbacks = 0

    async def execute(self, statement: Any) -> FakeResult:
        self.executed += 1
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)

    async def rollback(self) -> None:
        self.rollbacks += 1


class AbortingSession(FakeSession):
    """Fails one statement, then rejects everything until rolled back (PostgreSQL semantics)."""

    def __init__(self, rows: List[Any]):
        super().__init__(rows=rows)
        self.aborted = False

    async def execute(self, statement: Any) -> FakeResult:
        self.executed += 1
        if self.executed == 1:
            self.aborted = True
            raise db_error()
        if self.aborted:
            raise OperationalError("SELECT 1", {}, Exception("current transaction is aborted"))
        return FakeResult(self.rows)

    async def rollback(self) -> None:
        await super().rollback()
        self.aborted = False


class TestBuildUsageRecords:
    """Tests for grouping completed appointments per service."""

    def test_empty_frame(self) -> None:
        df = pd.DataFrame([], columns=["service_id", "appointment_date"])
        assert build_usage_records(df) == []

    def test_counts_and_last_used(self, visit_dates: List[date]) -> None:
        rows = [(2, d) for d in visit_dates] + [(1, date(2024, 3, 5))]
        df = pd.DataFrame(rows, columns=["service_id", "appointment_date"])

        records = build_usage_records(df)

        assert [r.service_id for r in records] == [1, 2]
        assert records[1].usage_count == 3
        assert records[1].last_used == date(2024, 1, 31)
        assert records[0].usage_count == 1
        assert records[0].last_used == date(2024, 3, 5)

    def test_average_days_between(self, visit_dates: List[date]) -> None:
        df = pd.DataFrame([(2, d) for d in visit_dates], columns=["service_id", "appointment_date"])
        record = build_usage_records(df)[0]
        assert record.avg_days_between == pytest.approx(15.0)

    def test_average_uses_sorted_dates(self, visit_dates: List[date]) -> None:
        shuffled = [visit_dates[2], visit_dates[0], visit_dates[1]]
        df = pd.DataFrame([(2, d) for d in shuffled], columns=["service_id", "appointment_date"])
        record = build_usage_records(df)[0]
        assert record.avg_days_between == pytest.approx(15.0)
        assert record.last_used == visit_dates[2]

    def test_single_use_has_no_average(self) -> None:
        df = pd.DataFrame([(4, date(2024, 2, 1))], columns=["service_id", "appointment_date"])
        assert build_usage_records(df)[0].avg_days_between is None

    def test_same_day_visits(self) -> None:
        df = pd.DataFrame([(4, date(2024, 2, 1)), (4, date(2024, 2, 1))], columns=["service_id", "appointment_date"])
        record = build_usage_records(df)[0]
        assert record.usage_count == 2
        assert record.avg_days_between == pytest.approx(0.0)

    def test_usage_vector(self, visit_dates: List[date]) -> None:
        rows = [(2, d) for d in visit_dates] + [(1, date(2024, 3, 5))]
        df = pd.DataFrame(rows, columns=["service_id", "appointment_date"])
        assert usage_vector(build_usage_records(df)) == {1: 1, 2: 3}


class TestServiceHistoryLoader:
    """Tests for LoadResult statuses of the loader."""

    @pytest.mark.asyncio
    async def test_customer_history_ok(self, visit_dates: List[date]) -> None:
        loader = ServiceHistoryLoader(FakeSession(rows=[(3, d) for d in visit_dates]))
        result = await loader.load_customer_history(1)

        assert result.status is LoadStatus.OK
        assert result.data[0].service_id == 3
        assert result.data[0].usage_count == 3

    @pytest.mark.asyncio
    async def test_customer_without_history_is_empty(self) -> None:
        result = await ServiceHistoryLoader(FakeSession()).load_customer_history(1)
        assert result.is_empty
        assert result.data == []

    @pytest.mark.asyncio
    async def test_customer_history_fault(self) -> None:
        result = await ServiceHistoryLoader(FakeSession(error=db_error())).load_customer_history(1)
        assert result.is_fault
        assert result.data is None
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_connection_error_is_fault(self) -> None:
        result = await ServiceHistoryLoader(FakeSession(error=ConnectionRefusedError())).load_customer_history(1)
        assert result.is_fault

    @pytest.mark.asyncio
    async def test_candidate_histories_grouped_by_customer(self) -> None:
        rows = [
            (2, 1, date(2024, 1, 1)),
            (2, 1, date(2024, 2, 1)),
            (5, 3, date(2024, 1, 5)),
        ]
        result = await ServiceHistoryLoader(FakeSession(rows=rows)).load_candidate_histories(1)

        assert result.is_ok
        assert list(result.data) == [2, 5]
        assert usage_vector(result.data[2]) == {1: 2}
        assert usage_vector(result.data[5]) == {3: 1}

    @pytest.mark.asyncio
    async def test_candidate_histories_fault(self) -> None:
        result = await ServiceHistoryLoader(FakeSession(error=db_error())).load_candidate_histories(1)
        assert result.is_fault

    @pytest.mark.asyncio
    async def test_active_services_skips_query_for_no_ids(self) -> None:
        session = FakeSession()
        result = await ServiceHistoryLoader(session).load_active_services([])
        assert result.is_empty
        assert session.executed == 0

    @pytest.mark.asyncio
    async def test_active_services_converts_price(self) -> None:
        rows = [ServiceRow(3, "Grooming", "Bath and trim", Decimal("150.50"), "Care")]
        result = await ServiceHistoryLoader(FakeSession(rows=rows)).load_active_services([3, 4])

        info = result.data[3]
        assert info.name == "Grooming"
        assert info.price == pytest.approx(150.5)
        assert 4 not in result.data

    @pytest.mark.asyncio
    async def test_popular_services(self) -> None:
        rows = [
            PopularRow(1, "General checkup", None, Decimal("200"), "Examination", 50),
            PopularRow(2, "Vaccination", None, None, "Prevention", 7),
        ]
        result = await ServiceHistoryLoader(FakeSession(rows=rows)).load_popular_services(10)

        assert [(info.service_id, count) for info, count in result.data] == [(1, 50), (2, 7)]
        assert result.data[1][0].price is None

    @pytest.mark.asyncio
    async def test_popular_services_fault(self) -> None:
        result = await ServiceHistoryLoader(FakeSession(error=db_error())).load_popular_services(10)
        assert result.is_fault


class TestFaultRecovery:
    """A failed statement must not poison the session for the fallback."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "load",
        [
            lambda loader: loader.load_customer_history(1),
            lambda loader: loader.load_candidate_histories(1),
            lambda loader: loader.load_active_services([1, 2]),
            lambda loader: loader.load_popular_services(10),
        ],
    )
    async def test_fault_rolls_back_session(self, load) -> None:
        session = FakeSession(error=db_error())
        result = await load(ServiceHistoryLoader(session))

        assert result.is_fault
        assert session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_success_does_not_roll_back(self, visit_dates: List[date]) -> None:
        session = FakeSession(rows=[(3, d) for d in visit_dates])
        await ServiceHistoryLoader(session).load_customer_history(1)
        assert session.rollbacks == 0

    @pytest.mark.asyncio
    async def test_failed_rollback_still_reports_fault(self) -> None:
        class BrokenRollbackSession(FakeSession):
            async def rollback(self) -> None:
                raise db_error()

        result = await ServiceHistoryLoader(BrokenRollbackSession(error=db_error())).load_customer_history(1)
        assert result.is_fault

    @pytest.mark.asyncio
    async def test_fallback_runs_after_aborted_statement(self) -> None:
        rows = [PopularRow(1, "General checkup", None, Decimal("200"), "Examination", 50)]
        session = AbortingSession(rows=rows)

        result = await RecommendationEngine(data_loader=ServiceHistoryLoader(session)).recommend(1)

        assert result.fallback_reason == "history_unavailable"
        assert [rec.service_id for rec in result.recommendations] == [1]
        assert session.rollbacks == 1
