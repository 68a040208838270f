"""
Health probes.

`/health/ready` fails (503) when the order database is unreachable; provider
configuration is reported but never blocks readiness, since webhooks for
unconfigured providers are rejected on their own.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.database import get_db_session
from storefront.core.logging import get_logger
from storefront.dependencies import ServicesDep

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def root() -> dict:
    """API root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.app_version,
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness probe; checks no dependencies."""
    return {"status": "alive", "timestamp": _now()}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    services: ServicesDep,
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Readiness probe: database connectivity plus provider configuration."""
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error("Readiness database check failed", error=str(e))
        db_status = f"error: {type(e).__name__}"

    is_ready = db_status == "connected"
    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    configured = services.settings
    return {
        "status": "ready" if is_ready else "not_ready",
        "checks": {
            "database": db_status,
            "payments": bool(configured.stripe_secret_key and configured.stripe_webhook_secret),
            "fulfillment": bool(configured.prodigi_api_key),
            "email": bool(configured.resend_api_key and configured.mail_from),
        },
        "timestamp": _now(),
    }
