"""
Social Image Routes
===================

On-demand single card rendering for routes outside the static artifact set,
such as subpages, and for live previews.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings
from social_sync.core.errors import StoreIOError
from social_sync.core.routing import ON_DEMAND_ENDPOINT
from social_sync.core.services import Services
from social_sync.api.dependencies import get_app_settings, get_services
from social_sync.models.schemas import RenderTask, Snapshot

logger = get_logger(__name__)

router = APIRouter(tags=["Social Images"])

CACHE_CONTROL = "s-maxage=0, stale-while-revalidate"


def request_base_url(request: Request, settings: Settings) -> str:
    """Origin for card assets: the requesting host locally, the site otherwise."""
    host = request.headers.get("host") or "localhost:3000"
    if settings.environment == "development" or "localhost" in host:
        return f"http://{host}"
    return settings.base_url


async def current_snapshot(services: Services) -> Snapshot:
    """Most recent snapshot known to the process."""
    if services.orchestrator.latest_snapshot is not None:
        return services.orchestrator.latest_snapshot
    try:
        stored = await services.store.load()
    except StoreIOError as e:
        logger.warning("Sync state unreadable, rendering without content", error=str(e))
        stored = None
    return stored or Snapshot()


@router.get(ON_DEMAND_ENDPOINT, response_class=Response)
async def generate_social_image(
    request: Request,
    path: Optional[str] = Query(None, description="Site route to render"),
    url: Optional[str] = Query(None, description="Full page URL, takes precedence over path"),
    image_url: Optional[str] = Query(None, alias="imageUrl", description="Background override"),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """
    Render one social card and return the JPEG bytes.

    Bypasses the batch scheduler and never reads or writes the artifact tree.
    """
    target = url or path or "/"
    snapshot = await current_snapshot(services)
    base_url = request_base_url(request, settings)

    logger.info("On-demand render requested", target=target, base_url=base_url)
    image = await services.render_engine.render(
        RenderTask(target_url=target, snapshot=snapshot, image_url=image_url), base_url=base_url
    )

    return Response(
        content=image,
        media_type="image/jpeg",
        headers={"Cache-Control": CACHE_CONTROL},
    )
