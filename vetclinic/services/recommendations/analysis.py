"""
KNN analysis for clinic administrators
Explains which customers are similar to a target and why services get recommended
"""
from typing import Any, Dict, List

import numpy as np
import pandas as pd
import structlog
from sklearn.metrics.pairwise import cosine_similarity
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.models.models import Appointment, Customer, Pet, Service, User
from vetclinic.services.recommendations.data_loader import build_usage_records
from vetclinic.services.recommendations.engine import RecommendationEngine
from vetclinic.services.utils.constants import ALREADY_USED_SUFFIX, APPOINTMENT_COMPLETED

logger = structlog.get_logger()

ALGORITHM_DESCRIPTION = (
    "KNN with cosine similarity (threshold {threshold}) - finds the K customers "
    "whose service usage is most similar to the target and recommends the "
    "services they used that the target has not"
)


class CustomerNotFoundError(LookupError):
    """Raised when the analyzed customer does not exist"""

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


def build_usage_matrix(appointments: pd.DataFrame, service_ids: List[int]) -> pd.DataFrame:
    """
    Prepare customer x service usage matrix

    Args:
        appointments: Completed appointments with ``appointment_id``,
            ``customer_id`` and ``service_id`` columns
        service_ids: Every service of the clinic (matrix columns)

    Returns:
        DataFrame of usage counts indexed by customer id
    """
    if appointments.empty:
        return pd.DataFrame(0, index=pd.Index([], name="customer_id"), columns=service_ids)

    pivot = appointments.pivot_table(
        values="appointment_id",
        index="customer_id",
        columns="service_id",
        aggfunc="count"
    ).fillna(0)

    return pivot.reindex(columns=service_ids, fill_value=0).astype(int)


def similarity_to_target(matrix: pd.DataFrame, target_customer_id: int) -> pd.Series:
    """
    Cosine similarity of every other customer's row to the target row

    Zero rows (no usage) get similarity 0.

    Returns:
        Series of similarities indexed by customer id, in matrix order
    """
    others = matrix.drop(index=target_customer_id, errors="ignore")
    if others.empty or matrix.shape[1] == 0:
        return pd.Series(dtype=float, index=others.index)

    if target_customer_id in matrix.index:
        target = matrix.loc[[target_customer_id]].to_numpy(dtype=float)
    else:
        target = np.zeros((1, matrix.shape[1]))

    scores = cosine_similarity(target, others.to_numpy(dtype=float))[0]
    return pd.Series(np.clip(scores, 0.0, 1.0), index=others.index)


def _service_vector(row: pd.Series, service_names: Dict[int, str]) -> List[Dict[str, Any]]:
    return [
        {
            "service_id": int(service_id),
            "service_name": service_names.get(service_id, "Unknown"),
            "count": int(count)
        }
        for service_id, count in row.items()
        if count > 0
    ]


class KNNAnalyzer:
    """
    Builds the KNN analysis views

    Unlike the recommendation engine, errors propagate to the caller;
    the analysis is an admin tool, not a best-effort feature.
    """

    def __init__(self, db: AsyncSession, engine: RecommendationEngine):
        self.db = db
        self.engine = engine

    async def list_customers(self) -> List[Dict[str, Any]]:
        """
        Customers with at least one completed appointment

        Returns:
            Summaries ordered by number of completed appointments (descending)
        """
        total_completed = func.count(Appointment.appointment_id).label("total_completed")
        last_date = func.max(Appointment.appointment_date).label("last_appointment_date")

        result = await self.db.execute(
            select(
                Customer.customer_id,
                Customer.customer_name,
                User.email,
                User.phone_number,
                total_completed,
                last_date
            )
            .select_from(Customer)
            .join(Pet, Pet.customer_id == Customer.customer_id)
            .join(Appointment, Appointment.pet_id == Pet.pet_id)
            .outerjoin(User, User.user_id == Customer.user_id)
            .where(Appointment.status == APPOINTMENT_COMPLETED)
            .group_by(Customer.customer_id, Customer.customer_name, User.email, User.phone_number)
            .order_by(total_completed.desc(), Customer.customer_id)
        )

        return [
            {
                "customer_id": row.customer_id,
                "customer_name": row.customer_name or "Unknown",
                "email": row.email or "",
                "phone_number": row.phone_number or "",
                "total_completed_appointments": int(row.total_completed),
                "last_appointment_date": (
                    row.last_appointment_date.isoformat() if row.last_appointment_date else None
                )
            }
            for row in result.all()
        ]

    async def analyze_customer(self, customer_id: int, k: int = 5) -> Dict[str, Any]:
        """
        Full KNN breakdown for one customer

        Args:
            customer_id: Customer to analyze
            k: Number of nearest neighbors

        Returns:
            Target details, similar customers, annotated recommendations
            and calculation details

        Raises:
            CustomerNotFoundError: If the customer does not exist
        """
        result = await self.db.execute(
            select(Customer.customer_id, Customer.customer_name, User.email, User.phone_number)
            .select_from(Customer)
            .outerjoin(User, User.user_id == Customer.user_id)
            .where(Customer.customer_id == customer_id)
        )
        target = result.first()
        if target is None:
            raise CustomerNotFoundError(customer_id)

        # All completed appointments, linked to customers through their pets
        result = await self.db.execute(
            select(
                Appointment.appointment_id,
                Pet.customer_id,
                Appointment.service_id,
                Appointment.appointment_date
            )
            .join(Pet, Appointment.pet_id == Pet.pet_id)
            .where(Appointment.status == APPOINTMENT_COMPLETED)
            .order_by(Pet.customer_id, Appointment.appointment_id)
        )
        appointments = pd.DataFrame(
            result.all(),
            columns=["appointment_id", "customer_id", "service_id", "appointment_date"]
        )

        result = await self.db.execute(
            select(Service.service_id, Service.name).order_by(Service.service_id)
        )
        service_names = {row.service_id: row.name for row in result.all()}
        service_ids = list(service_names)

        result = await self.db.execute(select(Customer.customer_id, Customer.customer_name))
        customer_names = {row.customer_id: row.customer_name or "Unknown" for row in result.all()}

        threshold = self.engine.similarity_threshold
        matrix = build_usage_matrix(appointments, service_ids)
        similarities = similarity_to_target(matrix, customer_id)

        # Stable sort keeps ascending customer id order on ties
        qualifying = similarities[similarities > threshold]
        top_k = qualifying.sort_values(ascending=False, kind="mergesort").head(k)

        if customer_id in matrix.index:
            target_row = matrix.loc[customer_id]
        else:
            target_row = pd.Series(0, index=matrix.columns)

        similar_customers = []
        for other_id, score in top_k.items():
            other_row = matrix.loc[other_id]
            similar_customers.append({
                "customer_id": int(other_id),
                "customer_name": customer_names.get(other_id, "Unknown"),
                "similarity_score": float(score),
                "common_services": [
                    service_names.get(service_id, "Unknown")
                    for service_id in matrix.columns
                    if target_row[service_id] > 0 and other_row[service_id] > 0
                ],
                "total_services": int((other_row > 0).sum()),
                "service_vector": _service_vector(other_row, service_names)
            })

        engine_result = await self.engine.recommend(customer_id, k)
        recommendations = []
        for rec in engine_result.recommendations:
            details = []
            for similar in similar_customers:
                usage_count = 0
                if rec.service_id in matrix.columns:
                    usage_count = int(matrix.at[similar["customer_id"], rec.service_id])
                if usage_count > 0:
                    details.append({
                        "customer_name": similar["customer_name"],
                        "similarity_score": similar["similarity_score"],
                        "usage_count": usage_count
                    })

            # Only the popularity fallback can return services the target already used
            reason = rec.reason
            target_usage = int(target_row.get(rec.service_id, 0))
            if target_usage > 0:
                reason += ALREADY_USED_SUFFIX.format(count=target_usage)

            recommendations.append({
                "service_id": rec.service_id,
                "service_name": rec.service_name,
                "service_description": rec.description or "",
                "recommendation_score": rec.score,
                "recommended_by_count": len(details),
                "recommended_by": [
                    f"{d['customer_name']} (similarity: {d['similarity_score']:.3f}, usage: {d['usage_count']})"
                    for d in details
                ],
                "recommended_by_details": details,
                "reason": reason
            })

        target_appointments = appointments[appointments["customer_id"] == customer_id]
        history = sorted(
            build_usage_records(target_appointments),
            key=lambda record: record.usage_count,
            reverse=True
        )

        logger.info(
            "KNN analysis completed",
            customer_id=customer_id,
            k=k,
            similar_customers=len(similar_customers)
        )

        return {
            "target_customer": {
                "customer_id": target.customer_id,
                "customer_name": target.customer_name or "Unknown",
                "email": target.email or "",
                "phone_number": target.phone_number or "",
                "completed_appointments": int(len(target_appointments)),
                "unique_services": int(target_appointments["service_id"].nunique()),
                "service_history": [
                    {
                        **record.to_dict(),
                        "service_name": service_names.get(record.service_id, "Unknown")
                    }
                    for record in history
                ],
                "service_vector": _service_vector(target_row, service_names)
            },
            "k": k,
            "total_customers_analyzed": int(len(similarities)),
            "similar_customers": similar_customers,
            "recommendations": recommendations,
            "fallback_used": engine_result.fallback_used,
            "calculation_details": {
                "vector_size": len(service_ids),
                "cosine_similarity_threshold": threshold,
                "algorithm_description": ALGORITHM_DESCRIPTION.format(threshold=threshold)
            }
        }
