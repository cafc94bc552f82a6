"""
Data loader for recommendations
Reads completed appointments and turns them into per-service usage records
"""
from typing import Dict, Iterable, List, Tuple

import pandas as pd
import structlog
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.models.models import Appointment, Pet, Service
from vetclinic.services.recommendations.models import LoadResult, ServiceInfo, ServiceUsageRecord
from vetclinic.services.utils.constants import APPOINTMENT_COMPLETED

logger = structlog.get_logger()

# Errors that mean "no data available" rather than a bug
DATA_ACCESS_ERRORS = (SQLAlchemyError, OSError)


def build_usage_records(appointments: pd.DataFrame) -> List[ServiceUsageRecord]:
    """
    Group completed appointments by service

    Args:
        appointments: DataFrame with ``service_id`` and ``appointment_date`` columns

    Returns:
        One record per service, ordered by service id
    """
    if appointments.empty:
        return []

    records = []
    for service_id, group in appointments.groupby("service_id", sort=True):
        dates = pd.to_datetime(group["appointment_date"]).sort_values()

        # Gaps between consecutive visits, undefined for a single visit
        gaps = dates.diff().dropna().dt.days
        avg_days_between = float(gaps.mean()) if len(gaps) > 0 else None

        records.append(ServiceUsageRecord(
            service_id=int(service_id),
            usage_count=int(len(group)),
            last_used=dates.iloc[-1].date(),
            avg_days_between=avg_days_between
        ))

    return records


def _to_service_info(row) -> ServiceInfo:
    return ServiceInfo(
        service_id=int(row.service_id),
        name=row.name,
        description=row.description,
        price=float(row.price) if row.price is not None else None,
        category=row.category
    )


class ServiceHistoryLoader:
    """
    Loads service usage history for the recommendation pipeline

    Every method returns a LoadResult; data-access errors are logged
    and reported as FAULT instead of being raised. Nothing is cached:
    each call reads the current state of the database.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rollback(self) -> None:
        """
        Reset the session after a failed statement

        The popularity fallback runs on the same session, and PostgreSQL
        rejects every query in an aborted transaction.
        """
        try:
            await self.db.rollback()
        except DATA_ACCESS_ERRORS as e:
            logger.warning("Session rollback failed", error=str(e))

    async def load_customer_history(self, customer_id: int) -> LoadResult[List[ServiceUsageRecord]]:
        """
        Load the usage records of one customer

        Args:
            customer_id: Customer identifier

        Returns:
            OK with records, EMPTY when the customer has no completed
            appointments, FAULT on data-access errors
        """
        try:
            result = await self.db.execute(
                select(Appointment.service_id, Appointment.appointment_date)
                .join(Pet, Appointment.pet_id == Pet.pet_id)
                .where(
                    Pet.customer_id == customer_id,
                    Appointment.status == APPOINTMENT_COMPLETED
                )
                .order_by(Appointment.appointment_date)
            )
            rows = result.all()
        except DATA_ACCESS_ERRORS as e:
            logger.warning("Failed to load customer history", customer_id=customer_id, error=str(e))
            await self._rollback()
            return LoadResult.fault(e)

        df = pd.DataFrame(rows, columns=["service_id", "appointment_date"])
        return LoadResult.of(build_usage_records(df))

    async def load_candidate_histories(
        self,
        exclude_customer_id: int
    ) -> LoadResult[Dict[int, List[ServiceUsageRecord]]]:
        """
        Load usage records of every other customer with completed appointments

        Args:
            exclude_customer_id: Customer left out of the result (the target)

        Returns:
            customer_id -> records, keyed in ascending customer id order
        """
        try:
            result = await self.db.execute(
                select(Pet.customer_id, Appointment.service_id, Appointment.appointment_date)
                .join(Pet, Appointment.pet_id == Pet.pet_id)
                .where(
                    Pet.customer_id != exclude_customer_id,
                    Appointment.status == APPOINTMENT_COMPLETED
                )
                .order_by(Pet.customer_id, Appointment.appointment_id)
            )
            rows = result.all()
        except DATA_ACCESS_ERRORS as e:
            logger.warning(
                "Failed to load candidate histories",
                customer_id=exclude_customer_id,
                error=str(e)
            )
            await self._rollback()
            return LoadResult.fault(e)

        df = pd.DataFrame(rows, columns=["customer_id", "service_id", "appointment_date"])

        histories = {}
        for customer_id, group in df.groupby("customer_id", sort=True):
            histories[int(customer_id)] = build_usage_records(group)

        return LoadResult.of(histories)

    async def load_active_services(self, service_ids: Iterable[int]) -> LoadResult[Dict[int, ServiceInfo]]:
        """
        Load metadata of the given services that are still active

        Args:
            service_ids: Service identifiers to look up

        Returns:
            service_id -> ServiceInfo; inactive or missing ids are absent
        """
        ids = sorted(set(service_ids))
        if not ids:
            return LoadResult.of({})

        try:
            result = await self.db.execute(
                select(
                    Service.service_id,
                    Service.name,
                    Service.description,
                    Service.price,
                    Service.category
                )
                .where(Service.service_id.in_(ids), Service.is_active.is_(True))
            )
            rows = result.all()
        except DATA_ACCESS_ERRORS as e:
            logger.warning("Failed to load service metadata", service_ids=ids, error=str(e))
            await self._rollback()
            return LoadResult.fault(e)

        return LoadResult.of({int(row.service_id): _to_service_info(row) for row in rows})

    async def load_popular_services(self, limit: int) -> LoadResult[List[Tuple[ServiceInfo, int]]]:
        """
        Load the most frequently completed active services

        Args:
            limit: Maximum number of services

        Returns:
            (ServiceInfo, completed_count) pairs, most completed first,
            ties broken by ascending service id
        """
        usage_count = func.count(Appointment.appointment_id).label("usage_count")

        try:
            result = await self.db.execute(
                select(
                    Service.service_id,
                    Service.name,
                    Service.description,
                    Service.price,
                    Service.category,
                    usage_count
                )
                .join(Appointment, Appointment.service_id == Service.service_id)
                .where(
                    Appointment.status == APPOINTMENT_COMPLETED,
                    Service.is_active.is_(True)
                )
                .group_by(
                    Service.service_id,
                    Service.name,
                    Service.description,
                    Service.price,
                    Service.category
                )
                .order_by(usage_count.desc(), Service.service_id)
                .limit(limit)
            )
            rows = result.all()
        except DATA_ACCESS_ERRORS as e:
            logger.warning("Failed to load popular services", limit=limit, error=str(e))
            await self._rollback()
            return LoadResult.fault(e)

        return LoadResult.of([(_to_service_info(row), int(row.usage_count)) for row in rows])
