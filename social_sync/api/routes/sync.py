"""
Sync Routes
===========

Snapshot refresh trigger, sync status and the public image URL helper.
"""

from fastapi import APIRouter, Depends, Query

from social_sync.core.routing import social_image_url
from social_sync.core.services import Services
from social_sync.api.dependencies import get_services
from social_sync.models.schemas import (
    Snapshot,
    SnapshotRefreshed,
    SyncAccepted,
    SyncStatusResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Sync"])


@router.post("/sync", response_model=SyncAccepted, status_code=202)
async def trigger_sync(
    snapshot: Snapshot, services: Services = Depends(get_services)
) -> SyncAccepted:
    """Publish a refreshed snapshot. Dropped if a sync is already running."""
    task = services.orchestrator.notify(SnapshotRefreshed(snapshot=snapshot))
    return SyncAccepted(accepted=task is not None, phase=services.orchestrator.phase)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(services: Services = Depends(get_services)) -> SyncStatusResponse:
    orchestrator = services.orchestrator
    return SyncStatusResponse(
        phase=orchestrator.phase,
        progress=orchestrator.progress,
        last_report=orchestrator.last_report,
    )


@router.get("/social-image-url")
async def image_url_for(
    url: str = Query(..., description="Page URL or pathname"),
    services: Services = Depends(get_services),
) -> dict:
    """Public social image URL for a page."""
    settings = services.settings
    return {
        "url": url,
        "image_url": social_image_url(url, settings.all_locales, settings.default_locale),
    }
