"""
Recommendations service - high-level business logic for recommendations
Wraps the recommendation engine for the HTTP layer
"""
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.services.recommendations import (
    KNNAnalyzer,
    ServiceHistoryLoader,
    build_engine
)


async def get_recommendations(
    db: AsyncSession,
    customer_id: int,
    k: Optional[int] = None,
    ids_only: bool = False
) -> Union[List[Dict[str, Any]], List[int]]:
    """
    Get service recommendations for a customer

    Args:
        db: Database session
        customer_id: Customer identifier
        k: Number of neighbors (configured default if None)
        ids_only: If True, return simple array of service IDs

    Returns:
        Full format (ids_only=false):
        [{"service_id": 3, "service_name": "Vaccination", "score": 3.7, ...}, ...]

        IDs only (ids_only=true):
        [3, 7, ...]
    """
    engine = build_engine(db)
    recommendations = await engine.get_recommendations(customer_id, k)

    if ids_only:
        return [rec.service_id for rec in recommendations]

    return [rec.to_dict() for rec in recommendations]


async def get_recommendation_details(
    db: AsyncSession,
    customer_id: int,
    k: Optional[int] = None
) -> Dict[str, Any]:
    """
    Get recommendations with engine metadata

    Returns:
        RecommendationResult as dictionary (algorithm, fallback, timing)
    """
    engine = build_engine(db)
    result = await engine.recommend(customer_id, k)
    return result.to_dict()


async def get_popular_services(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Get the most frequently completed services (non-personalized)

    Args:
        db: Database session
        limit: Number of services to return
    """
    engine = build_engine(db)
    recommendations = await engine.popularity.recommend(limit)
    return [rec.to_dict() for rec in recommendations]


async def get_service_history(db: AsyncSession, customer_id: int) -> Optional[List[Dict[str, Any]]]:
    """
    Get a customer's completed-service usage records

    Returns:
        List of usage records (empty for customers without history),
        or None when the data could not be loaded
    """
    loader = ServiceHistoryLoader(db)
    history = await loader.load_customer_history(customer_id)

    if history.is_fault:
        return None
    if history.is_empty:
        return []

    return [record.to_dict() for record in history.data]


async def get_engine_info(db: AsyncSession) -> Dict[str, Any]:
    """Get recommendation engine configuration"""
    engine = build_engine(db)
    return engine.get_info()


async def list_analysis_customers(db: AsyncSession) -> List[Dict[str, Any]]:
    """Customers available for KNN analysis"""
    analyzer = KNNAnalyzer(db, build_engine(db))
    return await analyzer.list_customers()


async def analyze_customer(db: AsyncSession, customer_id: int, k: int = 5) -> Dict[str, Any]:
    """
    KNN analysis of one customer

    Raises:
        CustomerNotFoundError: If the customer does not exist
    """
    analyzer = KNNAnalyzer(db, build_engine(db))
    return await analyzer.analyze_customer(customer_id, k)
