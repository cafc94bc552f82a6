"""
Recommendations router - service recommendations for customers
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.core.config import settings
from vetclinic.core.database import get_db
from vetclinic.services import recommendations_service

router = APIRouter()


@router.get("/popular")
async def get_popular_services(
    limit: int = Query(settings.RECOMMENDATION_LIMIT, ge=1, le=100, description="Number of services"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the most frequently completed services
    Same list for every customer (no personalization)
    """
    return await recommendations_service.get_popular_services(db, limit)


@router.get("/info")
async def get_engine_info(db: AsyncSession = Depends(get_db)):
    """
    Get recommendation engine configuration
    (neighbors, similarity threshold, result limit)
    """
    return await recommendations_service.get_engine_info(db)


@router.get("/{customer_id}")
async def get_customer_recommendations(
    customer_id: int,
    k: int = Query(settings.KNN_N_NEIGHBORS, ge=1, le=settings.KNN_MAX_NEIGHBORS, description="Number of similar customers"),
    ids_only: bool = Query(False, description="Return only service IDs (simple array)"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get personalized service recommendations for a customer

    Uses the K most similar customers (cosine similarity of completed
    service usage). Falls back to popular services for customers without
    history or without similar customers. Always returns a list.

    Returns:
    - ids_only=false: [{service_id, service_name, description, price, category, score, reason}]
    - ids_only=true: [3, 7, 12, ...]
    """
    return await recommendations_service.get_recommendations(
        db,
        customer_id=customer_id,
        k=k,
        ids_only=ids_only
    )


@router.get("/{customer_id}/details")
async def get_customer_recommendation_details(
    customer_id: int,
    k: int = Query(settings.KNN_N_NEIGHBORS, ge=1, le=settings.KNN_MAX_NEIGHBORS, description="Number of similar customers"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get recommendations with metadata
    (algorithm used, fallback reason, neighbor count, execution time)
    """
    return await recommendations_service.get_recommendation_details(db, customer_id=customer_id, k=k)


@router.get("/{customer_id}/history")
async def get_customer_service_history(
    customer_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Get a customer's completed-service history
    Usage count, last use and average days between uses per service
    """
    history = await recommendations_service.get_service_history(db, customer_id)
    if history is None:
        raise HTTPException(status_code=503, detail="Service history is temporarily unavailable")
    return history
