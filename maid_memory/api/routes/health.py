"""
Health check and status endpoints.

Endpoints:
- GET /health     Health check for load balancers
- GET /          Root endpoint with API info
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from ...db.database import get_db
from ...config.settings import settings
from ..models.responses import HealthResponse, HealthData

router = APIRouter(tags=["Health"])


async def check_database(db: AsyncSession) -> str:
    """Check database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return "healthy"
    except Exception as e:
        return f"unhealthy: {str(e)}"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Health check endpoint for load balancers and monitoring.",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
):
    """
    Health check endpoint.

    Reports database connectivity; the service is degraded without it.
    """
    db_status = await check_database(db)
    healthy = db_status == "healthy"

    return HealthResponse(
        success=healthy,
        data=HealthData(
            status="healthy" if healthy else "degraded",
            version=settings.app_version,
            database=db_status,
        ),
    )


@router.get(
    "/",
    summary="API root",
    description="Root endpoint with API information.",
)
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "documentation": "/docs",
        "openapi": "/openapi.json",
    }
