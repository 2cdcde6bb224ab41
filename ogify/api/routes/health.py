"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter

from ogify.config.settings import get_settings
from ogify.core.rendering.engines import get_engine_initializer
from ogify.models.schemas import HealthStatus

router = APIRouter(prefix="/api/v1", tags=["Health"])


def summarize_engine_states(engines: dict) -> str:
    """Overall status from per-engine bootstrap states."""
    if any(state == "failed" for state in engines.values()):
        return "unhealthy"
    if all(state == "ready" for state in engines.values()):
        return "healthy"
    return "degraded"


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Engine readiness summary. Never triggers an engine bootstrap."""
    engines = get_engine_initializer().states()
    return HealthStatus(
        status=summarize_engine_states(engines),  # type: ignore[arg-type]
        version=get_settings().app_version,
        engines=engines,
    )
