"""
Recommendations module
KNN service recommendations with popularity fallback
"""
from .engine import RecommendationEngine, build_engine
from .models import RecommendationEntry, RecommendationResult, ServiceUsageRecord, LoadResult
from .data_loader import ServiceHistoryLoader
from .analysis import KNNAnalyzer, CustomerNotFoundError

__all__ = [
    "RecommendationEngine",
    "build_engine",
    "RecommendationEntry",
    "RecommendationResult",
    "ServiceUsageRecord",
    "LoadResult",
    "ServiceHistoryLoader",
    "KNNAnalyzer",
    "CustomerNotFoundError"
]
