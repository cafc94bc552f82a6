"""
Recommendation algorithms
"""
from .knn import NeighborSelector, aggregate_neighbor_scores
from .popularity import PopularityRecommendationAlgorithm

__all__ = [
    "NeighborSelector",
    "aggregate_neighbor_scores",
    "PopularityRecommendationAlgorithm"
]
