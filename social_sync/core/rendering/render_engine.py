"""
Render Engine
=============

Playwright-based JPEG capture of social cards. Each render opens its own page
on the shared browser, blocks everything but documents, images, stylesheets
and fonts, and captures the fixed card canvas.
"""

from typing import Optional, Dict, Any
import asyncio

from playwright.async_api import Page, Route

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.errors import BrowserUnavailable, RenderFailed
from social_sync.core.rendering.browser import BrowserManager
from social_sync.core.rendering.card_template import SocialCardRenderer, build_document
from social_sync.models.schemas import RenderTask

logger = get_logger(__name__)

ALLOWED_RESOURCE_TYPES = frozenset({"document", "image", "stylesheet", "font"})

# JPEG files start with the SOI marker
JPEG_MAGIC = b"\xff\xd8"


class RenderEngine:
    """Renders one card per call through the shared browser."""

    def __init__(
        self,
        browser_manager: BrowserManager,
        card_renderer: Optional[SocialCardRenderer] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.browser_manager = browser_manager
        self.card_renderer = card_renderer or SocialCardRenderer(self.settings)
        self.logger: Any = logger.bind(component="render_engine")

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.settings.image_width, "height": self.settings.image_height}

    async def warm_up(self) -> None:
        """
        Make sure the browser is running.

        Raises:
            BrowserUnavailable: If the browser cannot be launched
        """
        await self.browser_manager.acquire()

    async def render(self, task: RenderTask, base_url: Optional[str] = None) -> bytes:
        """
        Render a card to JPEG bytes.

        Args:
            task: Render task
            base_url: Origin for relative asset URLs, defaults to the configured one

        Returns:
            Non-empty JPEG bytes

        Raises:
            BrowserUnavailable: If no browser can be obtained
            RenderFailed: On any other failure, including timeouts
        """
        artifact = str(task.artifact_key) if task.artifact_key else task.target_url
        base_url = base_url or self.settings.base_url

        try:
            image = await asyncio.wait_for(
                self._render(task, base_url), timeout=self.settings.render_timeout
            )
        except (BrowserUnavailable, RenderFailed):
            raise
        except asyncio.TimeoutError as e:
            self.logger.error("Render timed out", artifact=artifact)
            raise RenderFailed(
                f"Render timed out after {self.settings.render_timeout}s", artifact
            ) from e
        except Exception as e:
            self.logger.error("Render failed", artifact=artifact, error=str(e))
            raise RenderFailed(f"Render failed for {artifact}: {e}", artifact) from e

        if not image or not image.startswith(JPEG_MAGIC):
            raise RenderFailed(f"Render produced no JPEG data for {artifact}", artifact)

        self.logger.debug("Card rendered", artifact=artifact, file_size=len(image))
        return image

    async def _render(self, task: RenderTask, base_url: str) -> bytes:
        markup = await self.card_renderer.render(
            task.target_url, task.snapshot, image_url=task.image_url, base_url=base_url
        )
        document = build_document(markup, base_url)

        async with self.browser_manager.page(viewport=self.viewport) as page:
            await self._configure_page(page)
            await page.set_content(
                document,
                wait_until="networkidle",
                timeout=self.settings.render_timeout * 1000,
            )
            return await page.screenshot(
                type="jpeg",
                quality=self.settings.jpeg_quality,
                clip={
                    "x": 0,
                    "y": 0,
                    "width": self.settings.image_width,
                    "height": self.settings.image_height,
                },
            )

    async def _configure_page(self, page: Page) -> None:
        """Apply timeouts and the request filter before navigation."""
        page.set_default_timeout(self.settings.render_timeout * 1000)
        await page.route("**/*", self._handle_route)

    async def _handle_route(self, route: Route) -> None:
        """Let static resources through and abort everything else, scripts included."""
        if route.request.resource_type in ALLOWED_RESOURCE_TYPES:
            await route.continue_()
        else:
            await route.abort()
