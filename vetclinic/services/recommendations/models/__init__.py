"""
Models for recommendations
"""
from .recommendation import RecommendationEntry, RecommendationResult, ServiceInfo, SimilarityScore
from .usage import LoadResult, LoadStatus, ServiceUsageRecord, usage_vector

__all__ = [
    "RecommendationEntry",
    "RecommendationResult",
    "ServiceInfo",
    "SimilarityScore",
    "LoadResult",
    "LoadStatus",
    "ServiceUsageRecord",
    "usage_vector"
]
