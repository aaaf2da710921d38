"""
Browser Manager
===============

Owns the single headless Chromium process shared by every render.
Concurrent first use shares one in-flight launch; a failed launch leaves no
cached state behind so the next acquire starts fresh.
"""

from typing import Optional, Dict, Any, AsyncGenerator
import asyncio
from contextlib import asynccontextmanager

from playwright.async_api import async_playwright, Browser, Page, Playwright
from playwright.async_api import Error as PlaywrightError

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.errors import BrowserUnavailable

logger = get_logger(__name__)

# Extra flags for constrained sandboxes without /dev/shm or zygote support
SERVERLESS_ARGS = ["--single-process", "--no-zygote"]


class BrowserManager:
    """Lifecycle of the pooled browser process."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="browser_manager")
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launching: Optional["asyncio.Future[Browser]"] = None
        self.launch_count = 0

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def launch_options(self) -> Dict[str, Any]:
        """Chromium launch options for the current environment."""
        args = list(self.settings.browser_args)
        if self.settings.serverless:
            args.extend(arg for arg in SERVERLESS_ARGS if arg not in args)

        options: Dict[str, Any] = {"headless": self.settings.browser_headless, "args": args}
        if self.settings.browser_executable_path:
            options["executable_path"] = self.settings.browser_executable_path
        return options

    async def acquire(self) -> Browser:
        """
        Return the connected browser, launching it if needed.

        Raises:
            BrowserUnavailable: If the browser cannot be launched
        """
        if self.is_connected:
            return self._browser  # type: ignore[return-value]

        if self._launching is None:
            self._launching = asyncio.ensure_future(self._launch())

        # Shielded so one cancelled caller does not abort the shared launch
        return await asyncio.shield(self._launching)

    async def _launch(self) -> Browser:
        try:
            if self._browser is not None:
                self.logger.warning("Browser disconnected, relaunching")
                await self._discard_browser()

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            browser = await self._playwright.chromium.launch(**self.launch_options())
            self._browser = browser
            self.launch_count += 1
            self.logger.info(
                "Browser launched",
                launch_count=self.launch_count,
                serverless=self.settings.serverless,
            )
            return browser
        except Exception as e:
            self.logger.error("Failed to launch browser", error=str(e))
            self._browser = None
            await self._stop_playwright()
            raise BrowserUnavailable(f"Browser launch failed: {e}") from e
        finally:
            self._launching = None

    @asynccontextmanager
    async def page(self, viewport: Optional[Dict[str, int]] = None) -> AsyncGenerator[Page, None]:
        """
        Open a page on the shared browser and close it on every exit path.

        Raises:
            BrowserUnavailable: If no connected browser can be obtained
        """
        browser = await self.acquire()
        try:
            page = await browser.new_page(viewport=viewport)  # type: ignore[arg-type]
        except PlaywrightError as e:
            if not browser.is_connected():
                raise BrowserUnavailable(f"Browser disconnected: {e}") from e
            raise

        try:
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                self.logger.warning("Failed to close page", error=str(e))

    def health(self) -> Dict[str, Any]:
        """Status summary for health checks."""
        if self._browser is None:
            status = "launching" if self._launching is not None else "not_launched"
        else:
            status = "connected" if self.is_connected else "disconnected"

        return {
            "healthy": status != "disconnected",
            "status": status,
            "launch_count": self.launch_count,
        }

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        await self._discard_browser()
        await self._stop_playwright()
        self.logger.info("Browser manager closed")

    async def _discard_browser(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            await browser.close()
        except PlaywrightError as e:
            self.logger.warning("Failed to close browser", error=str(e))

    async def _stop_playwright(self) -> None:
        playwright, self._playwright = self._playwright, None
        if playwright is None:
            return
        try:
            await playwright.stop()
        except Exception as e:
            self.logger.warning("Failed to stop playwright", error=str(e))
