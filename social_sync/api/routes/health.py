"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter, Depends

from social_sync.core.services import Services
from social_sync.api.dependencies import get_services
from social_sync.models.schemas import HealthStatus

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(services: Services = Depends(get_services)) -> HealthStatus:
    """
    Application health.

    The browser is launched lazily, so a browser that has not been started yet
    still counts as healthy. A disconnected browser degrades the status.
    """
    browser = services.browser_manager.health()
    status = "healthy" if browser["healthy"] else "degraded"
    return HealthStatus(
        status=status,
        version=services.settings.app_version,
        browser=browser,
        sync_phase=services.orchestrator.phase,
    )
