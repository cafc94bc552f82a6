"""
Popularity-based recommendation algorithm
Fallback when personalized recommendations are unavailable
"""
from typing import List

import structlog

from vetclinic.services.recommendations.data_loader import ServiceHistoryLoader
from vetclinic.services.recommendations.models import RecommendationEntry
from vetclinic.services.utils.constants import POPULAR_SERVICE_REASON

logger = structlog.get_logger()


class PopularityRecommendationAlgorithm:
    """
    Popularity-based recommendations

    Recommends the services completed most often across the whole clinic.
    NO personalization - returns the same results for every customer.
    """

    name = "popularity"

    def __init__(self, data_loader: ServiceHistoryLoader):
        self.data_loader = data_loader

    async def recommend(self, n: int = 10) -> List[RecommendationEntry]:
        """
        Generate popularity-based recommendations

        Args:
            n: Number of recommendations

        Returns:
            Most completed services first; empty when the data is unavailable
        """
        if n <= 0:
            return []

        popular = await self.data_loader.load_popular_services(n)
        if popular.is_fault:
            logger.error("Popularity fallback unavailable", error=popular.error)
            return []
        if popular.is_empty:
            return []

        return [
            RecommendationEntry.from_service(
                service,
                score=float(completed_count),
                reason=POPULAR_SERVICE_REASON
            )
            for service, completed_count in popular.data[:n]
        ]

    def get_info(self) -> dict:
        """Get algorithm information"""
        return {
            "name": self.name,
            "personalized": False,
            "source": "completed appointments"
        }
