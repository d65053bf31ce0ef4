"""Health check and status endpoints"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from app.models.schemas import HealthCheck
from app.core.config import settings
from app.core.dependencies import get_keys_service
from app.services.keys.service import GeminiKeysService

router = APIRouter(tags=["Health"])


@router.get("/", summary="Root Endpoint")
async def root():
    """Root endpoint - API welcome message"""
    return {
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": "/docs",
        "health": "/health"
    }


@router.get("/health", response_model=HealthCheck, summary="Health Check")
async def health_check(keys: GeminiKeysService = Depends(get_keys_service)):
    """
    Check API health and key store availability.

    No authentication required. The service is `degraded` when the store is
    down, since it then runs on environment keys only.
    """
    return HealthCheck(
        status="healthy" if keys.store_available else "degraded",
        timestamp=datetime.now(timezone.utc),
        store_connected=keys.store_available,
        fallback_keys=len(keys.fallback_keys),
        version=settings.VERSION
    )


@router.get("/status", summary="Detailed Status")
async def status(keys: GeminiKeysService = Depends(get_keys_service)):
    """
    Get detailed service status including key counts.

    No authentication required.
    """
    summary = await keys.summary()

    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "operational" if summary.active > 0 else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "keys": {
            "active": summary.active,
            "total": summary.total,
            "store_available": summary.store_available
        },
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "generate": f"{settings.API_V1_PREFIX}/gemini/generate",
            "auth": f"{settings.API_V1_PREFIX}/auth",
            "admin": f"{settings.API_V1_PREFIX}/admin/gemini-keys"
        }
    }
