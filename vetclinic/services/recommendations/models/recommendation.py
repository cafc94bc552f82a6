"""
Data models for recommendations
"""
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class ServiceInfo:
    """Metadata of an active clinic service"""
    service_id: int
    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None


@dataclass
class SimilarityScore:
    """Cosine similarity between the target customer and another customer"""
    customer_id: int
    score: float


@dataclass
class RecommendationEntry:
    """Single recommended service"""
    service_id: int
    service_name: str
    score: float
    reason: str
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None

    @classmethod
    def from_service(cls, service: ServiceInfo, score: float, reason: str) -> "RecommendationEntry":
        return cls(
            service_id=service.service_id,
            service_name=service.name,
            score=score,
            reason=reason,
            description=service.description,
            price=service.price,
            category=service.category,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "service_id": self.service_id,
            "service_name": self.service_name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "score": round(self.score, 4),
            "reason": self.reason
        }


@dataclass
class RecommendationResult:
    """Recommendations for one customer with metadata"""
    customer_id: int
    recommendations: List[RecommendationEntry]
    algorithm_used: str
    fallback_used: bool = False
    fallback_reason: Optional[str] = None
    neighbor_count: int = 0
    execution_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "customer_id": self.customer_id,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "algorithm_used": self.algorithm_used,
            "fallback_used": self.fallback_used,
            "fallback_reason": self.fallback_reason,
            "neighbor_count": self.neighbor_count,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "timestamp": self.timestamp.isoformat(),
            "count": len(self.recommendations)
        }
