"""Health check endpoints."""

from fastapi import APIRouter

from blockhaven import __version__
from blockhaven.config import get_settings
from blockhaven.exchange.engine import get_exchange_engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "blockhaven"}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with configuration and engine info."""
    settings = get_settings()
    engine = get_exchange_engine()
    return {
        "status": "healthy",
        "service": "blockhaven",
        "version": __version__,
        "provider": engine.provider.name,
        "catalog_loaded": engine.catalog.is_loaded,
        "config": settings.get_safe_dict(),
    }
