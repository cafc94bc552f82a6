"""
Main recommendation engine
Combines KNN neighbors into service recommendations, with popularity fallback
"""
import time
from typing import List, Optional, Dict, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.core.config import settings
from vetclinic.services.recommendations.data_loader import ServiceHistoryLoader
from vetclinic.services.recommendations.models import (
    RecommendationEntry,
    RecommendationResult,
    usage_vector
)
from vetclinic.services.recommendations.algorithms import (
    NeighborSelector,
    PopularityRecommendationAlgorithm,
    aggregate_neighbor_scores
)
from vetclinic.services.utils.constants import (
    ALGORITHM_KNN,
    ALGORITHM_POPULARITY,
    SIMILAR_CUSTOMERS_REASON
)

logger = structlog.get_logger()


class RecommendationEngine:
    """
    Main recommendation engine

    Stateless: every call reads fresh history through the data loader,
    so one instance per request (per database session) is enough.
    """

    def __init__(
        self,
        data_loader: ServiceHistoryLoader,
        n_neighbors: int = 5,
        similarity_threshold: float = 0.2,
        limit: int = 10
    ):
        """
        Initialize recommendation engine

        Args:
            data_loader: Source of usage history and service metadata
            n_neighbors: Default K for the nearest-neighbor search
            similarity_threshold: Minimum (exclusive) cosine similarity of a neighbor
            limit: Maximum number of recommendations returned
        """
        self.data_loader = data_loader
        self.n_neighbors = n_neighbors
        self.similarity_threshold = similarity_threshold
        self.limit = limit
        self.popularity = PopularityRecommendationAlgorithm(data_loader)

    async def get_recommendations(
        self,
        customer_id: int,
        k: Optional[int] = None
    ) -> List[RecommendationEntry]:
        """Ordered recommendations for a customer; never raises"""
        result = await self.recommend(customer_id, k)
        return result.recommendations

    async def recommend(
        self,
        customer_id: int,
        k: Optional[int] = None
    ) -> RecommendationResult:
        """
        Get recommendations for a customer

        Args:
            customer_id: Customer identifier
            k: Number of neighbors (engine default if None)

        Returns:
            RecommendationResult; falls back to popular services when the
            customer has no history, no neighbor qualifies or data is unavailable
        """
        start_time = time.time()

        try:
            result, fallback_reason = await self._recommend_knn(
                customer_id,
                k if k is not None else self.n_neighbors
            )
        except Exception:
            logger.exception("Unexpected error in KNN recommendation", customer_id=customer_id)
            result, fallback_reason = None, "error"

        if result is None:
            result = await self._recommend_popular(customer_id, fallback_reason)

        result.execution_time_ms = (time.time() - start_time) * 1000
        return result

    async def _recommend_knn(
        self,
        customer_id: int,
        k: int
    ) -> Tuple[Optional[RecommendationResult], Optional[str]]:
        """
        Personalized pipeline

        Returns (result, None), or (None, reason) when the popularity
        fallback must be used instead.
        """
        history = await self.data_loader.load_customer_history(customer_id)
        if history.is_empty:
            return None, "no_history"
        if history.is_fault:
            return None, "history_unavailable"

        candidates = await self.data_loader.load_candidate_histories(exclude_customer_id=customer_id)
        if candidates.is_fault:
            return None, "candidates_unavailable"
        if candidates.is_empty:
            return None, "no_neighbors"

        target_usage = usage_vector(history.data)
        candidate_usage = {
            other_id: usage_vector(records)
            for other_id, records in candidates.data.items()
        }

        selector = NeighborSelector(n_neighbors=k, threshold=self.similarity_threshold)
        neighbors = selector.select(customer_id, target_usage, candidate_usage)
        if not neighbors:
            return None, "no_neighbors"

        scores = aggregate_neighbor_scores(set(target_usage), neighbors, candidate_usage)

        recommendations: List[RecommendationEntry] = []
        if scores:
            services = await self.data_loader.load_active_services(scores.keys())
            if services.is_fault:
                return None, "services_unavailable"

            reason = SIMILAR_CUSTOMERS_REASON.format(count=len(neighbors))
            recommendations = [
                RecommendationEntry.from_service(services.data[service_id], score, reason)
                for service_id, score in scores.items()
                if service_id in services.data
            ]
            recommendations.sort(key=lambda rec: (-rec.score, rec.service_id))
            recommendations = recommendations[:self.limit]

        logger.debug(
            "KNN recommendations computed",
            customer_id=customer_id,
            neighbors=len(neighbors),
            recommendations=len(recommendations)
        )

        return RecommendationResult(
            customer_id=customer_id,
            recommendations=recommendations,
            algorithm_used=ALGORITHM_KNN,
            neighbor_count=len(neighbors)
        ), None

    async def _recommend_popular(self, customer_id: int, reason: Optional[str]) -> RecommendationResult:
        logger.info("Using popularity fallback", customer_id=customer_id, reason=reason)

        try:
            recommendations = await self.popularity.recommend(self.limit)
        except Exception:
            logger.exception("Popularity fallback failed", customer_id=customer_id)
            recommendations = []

        return RecommendationResult(
            customer_id=customer_id,
            recommendations=recommendations,
            algorithm_used=ALGORITHM_POPULARITY,
            fallback_used=True,
            fallback_reason=reason
        )

    def get_info(self) -> Dict:
        """Get engine configuration"""
        return {
            "n_neighbors": self.n_neighbors,
            "similarity_threshold": self.similarity_threshold,
            "limit": self.limit,
            "algorithms": [ALGORITHM_KNN, self.popularity.name]
        }


def build_engine(db: AsyncSession) -> RecommendationEngine:
    """Build a request-scoped engine from application settings"""
    return RecommendationEngine(
        data_loader=ServiceHistoryLoader(db),
        n_neighbors=settings.KNN_N_NEIGHBORS,
        similarity_threshold=settings.KNN_SIMILARITY_THRESHOLD,
        limit=settings.RECOMMENDATION_LIMIT
    )
