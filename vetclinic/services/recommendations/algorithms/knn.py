"""
KNN collaborative filtering over customer service usage
"""
from typing import Dict, List, Mapping, Set

from vetclinic.services.recommendations.models import SimilarityScore
from vetclinic.services.recommendations.similarity import cosine_similarity


class NeighborSelector:
    """
    Finds the K customers most similar to a target customer

    A candidate qualifies only when its cosine similarity is strictly
    above the threshold. Ties keep the candidates' enumeration order.
    """

    def __init__(self, n_neighbors: int = 5, threshold: float = 0.2):
        self.n_neighbors = n_neighbors
        self.threshold = threshold

    def select(
        self,
        target_customer_id: int,
        target_usage: Mapping[int, int],
        candidates: Mapping[int, Mapping[int, int]]
    ) -> List[SimilarityScore]:
        """
        Rank candidates by similarity to the target

        Args:
            target_customer_id: Customer the neighbors are searched for
            target_usage: Target's service_id -> usage_count map
            candidates: customer_id -> usage map of the other customers

        Returns:
            Up to n_neighbors scores, most similar first
        """
        if self.n_neighbors <= 0:
            return []

        scores = []
        for customer_id, usage in candidates.items():
            if customer_id == target_customer_id:
                continue

            similarity = cosine_similarity(target_usage, usage)
            if similarity > self.threshold:
                scores.append(SimilarityScore(customer_id=customer_id, score=similarity))

        # sorted() is stable, so equal scores stay in candidate order
        scores = sorted(scores, key=lambda s: s.score, reverse=True)
        return scores[:self.n_neighbors]

    def get_info(self) -> dict:
        """Get selector configuration"""
        return {
            "n_neighbors": self.n_neighbors,
            "threshold": self.threshold,
            "metric": "cosine"
        }


def aggregate_neighbor_scores(
    used_services: Set[int],
    neighbors: List[SimilarityScore],
    neighbor_usage: Mapping[int, Mapping[int, int]]
) -> Dict[int, float]:
    """
    Weighted votes of neighbors for services the target has not used

    score[service] = sum over neighbors of similarity * neighbor usage count

    Args:
        used_services: Services already used by the target
        neighbors: Selected neighbors with their similarity
        neighbor_usage: customer_id -> usage map for (at least) the neighbors

    Returns:
        service_id -> accumulated score
    """
    scores: Dict[int, float] = {}
    for neighbor in neighbors:
        for service_id, usage_count in neighbor_usage.get(neighbor.customer_id, {}).items():
            if service_id in used_services:
                continue
            scores[service_id] = scores.get(service_id, 0.0) + neighbor.score * usage_count
    return scores
