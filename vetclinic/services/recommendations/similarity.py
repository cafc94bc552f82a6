"""
Cosine similarity between sparse usage vectors
"""
from typing import Mapping

import numpy as np


def cosine_similarity(usage_a: Mapping[int, int], usage_b: Mapping[int, int]) -> float:
    """
    Cosine similarity of two service_id -> usage_count maps

    Vectors are laid out over the union of both customers' service ids,
    with 0 for services one side never used.

    Args:
        usage_a: Usage counts of the first customer
        usage_b: Usage counts of the second customer

    Returns:
        Similarity in [0, 1]; 0 when either vector has zero magnitude
    """
    service_ids = sorted(set(usage_a) | set(usage_b))
    if not service_ids:
        return 0.0

    v1 = np.array([usage_a.get(service_id, 0) for service_id in service_ids], dtype=float)
    v2 = np.array([usage_b.get(service_id, 0) for service_id in service_ids], dtype=float)

    magnitude1 = np.linalg.norm(v1)
    magnitude2 = np.linalg.norm(v2)
    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    similarity = float(np.dot(v1, v2) / (magnitude1 * magnitude2))
    return min(similarity, 1.0)
