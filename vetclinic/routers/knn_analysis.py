"""
KNN analysis router - admin view of the similarity model
"""
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vetclinic.core.config import settings
from vetclinic.core.database import get_db
from vetclinic.services import recommendations_service
from vetclinic.services.recommendations import CustomerNotFoundError

router = APIRouter()
logger = structlog.get_logger()


@router.get("/customers")
async def get_customers_for_analysis(db: AsyncSession = Depends(get_db)):
    """
    Customers with at least one completed appointment
    Ordered by number of completed appointments
    """
    try:
        return await recommendations_service.list_analysis_customers(db)
    except SQLAlchemyError as e:
        logger.error("Error getting customers for KNN analysis", error=str(e))
        raise HTTPException(status_code=500, detail={"message": "Error retrieving customers", "error": str(e)})


@router.get("/analyze/{customer_id}")
async def analyze_customer(
    customer_id: int,
    k: int = Query(settings.KNN_N_NEIGHBORS, ge=1, le=settings.KNN_MAX_NEIGHBORS, description="Number of similar customers"),
    db: AsyncSession = Depends(get_db)
):
    """
    KNN breakdown for one customer

    Shows the target's service vector, the K most similar customers with
    their common services, and which neighbors back each recommendation.
    """
    try:
        return await recommendations_service.analyze_customer(db, customer_id, k)
    except CustomerNotFoundError:
        raise HTTPException(status_code=404, detail={"message": "Customer not found"})
    except SQLAlchemyError as e:
        logger.error("Error analyzing customer", customer_id=customer_id, error=str(e))
        raise HTTPException(status_code=500, detail={"message": "Error analyzing customer", "error": str(e)})
