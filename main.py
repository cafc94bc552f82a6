"""
FastAPI Vet Clinic Recommendation Service - Main Application
Service recommendations for clinic customers based on completed appointments
"""
import os
from datetime import datetime
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vetclinic.core.config import settings
from vetclinic.core.database import init_db
from vetclinic.core.logging import configure_logging
from vetclinic.routers import recommendations, knn_analysis

# Import models to ensure they're registered with SQLAlchemy
from vetclinic.models import models

configure_logging(settings)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    logger.info("Starting application", app_name=settings.APP_NAME, debug=settings.DEBUG)

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down application")


# Create FastAPI application
app = FastAPI(
    title="Vet Clinic Recommendation Service",
    description="API for recommending clinic services based on similar customers' appointment history",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check"""
    return {
        "message": "Vet Clinic Recommendation Service API",
        "status": "running",
        "version": "1.0.0",
        "timestamp": datetime.now().isoformat()
    }


# Include routers
app.include_router(recommendations.router, prefix="/recommendations", tags=["recommendations"])
app.include_router(knn_analysis.router, prefix="/knn-analysis", tags=["knn-analysis"])


# 404 handler
@app.exception_handler(404)
async def not_found_handler(request, exc):
    detail = getattr(exc, "detail", None)
    return JSONResponse(
        status_code=404,
        content=detail if isinstance(detail, dict) else {"message": "page not found"}
    )


if __name__ == "__main__":
    import uvicorn

    # SSL configuration
    ssl_keyfile = settings.SSL_KEY_PATH if settings.SSL_ENABLED else None
    ssl_certfile = settings.SSL_CERT_PATH if settings.SSL_ENABLED else None

    if settings.SSL_ENABLED and ssl_keyfile and ssl_certfile:
        if os.path.exists(ssl_keyfile) and os.path.exists(ssl_certfile):
            logger.info("Starting HTTPS server", port=settings.PORT)
            uvicorn.run(
                "main:app",
                host="0.0.0.0",
                port=settings.PORT,
                ssl_keyfile=ssl_keyfile,
                ssl_certfile=ssl_certfile,
                reload=settings.DEBUG
            )
        else:
            logger.warning("SSL certificates not found, starting HTTP server", port=settings.PORT)
            uvicorn.run(
                "main:app",
                host="0.0.0.0",
                port=settings.PORT,
                reload=settings.DEBUG
            )
    else:
        logger.info("Starting HTTP server", port=settings.PORT)
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.PORT,
            reload=settings.DEBUG
        )
