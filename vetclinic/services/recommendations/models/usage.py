"""
Service usage models and the data-access result type
"""
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from dataclasses import dataclass
from datetime import date

T = TypeVar("T")


@dataclass
class ServiceUsageRecord:
    """How often and how regularly a customer used one service"""
    service_id: int
    usage_count: int
    last_used: date
    avg_days_between: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "service_id": self.service_id,
            "usage_count": self.usage_count,
            "last_used": self.last_used.isoformat(),
            "avg_days_between": (
                round(self.avg_days_between, 2)
                if self.avg_days_between is not None else None
            )
        }


def usage_vector(records: List[ServiceUsageRecord]) -> Dict[int, int]:
    """Sparse service_id -> usage_count map of a customer's history"""
    return {record.service_id: record.usage_count for record in records}


class LoadStatus(str, Enum):
    """Outcome of a data-access call"""

    OK = "ok"
    EMPTY = "empty"
    FAULT = "fault"


@dataclass
class LoadResult(Generic[T]):
    """
    Result of a data-access call

    The recommendation pipeline branches on ``status`` instead of
    catching exceptions, so a broken database degrades to the
    popularity fallback rather than failing the request.
    """
    status: LoadStatus
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def of(cls, data: T) -> "LoadResult[T]":
        """OK result, or EMPTY when ``data`` has no items"""
        if not data:
            return cls(status=LoadStatus.EMPTY, data=data)
        return cls(status=LoadStatus.OK, data=data)

    @classmethod
    def fault(cls, error: BaseException) -> "LoadResult[T]":
        return cls(status=LoadStatus.FAULT, error=str(error) or error.__class__.__name__)

    @property
    def is_ok(self) -> bool:
        return self.status is LoadStatus.OK

    @property
    def is_empty(self) -> bool:
        return self.status is LoadStatus.EMPTY

    @property
    def is_fault(self) -> bool:
        return self.status is LoadStatus.FAULT
