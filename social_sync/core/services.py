"""
Service Container
=================

Process-wide pipeline services. Built once at startup by the API lifespan or
the CLI and torn down on shutdown; nothing here is a module global.
"""

from dataclasses import dataclass
from typing import Optional

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.queue.scheduler import BatchScheduler
from social_sync.core.rendering.browser import BrowserManager
from social_sync.core.rendering.card_template import SocialCardRenderer
from social_sync.core.rendering.render_engine import RenderEngine
from social_sync.core.storage.manager import ArtifactStorage
from social_sync.core.sync.orchestrator import SyncOrchestrator
from social_sync.core.sync.state_store import StateStore
from social_sync.core.sync.sweeper import OrphanSweeper

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    browser_manager: BrowserManager
    render_engine: RenderEngine
    storage: ArtifactStorage
    scheduler: BatchScheduler
    store: StateStore
    sweeper: OrphanSweeper
    orchestrator: SyncOrchestrator

    async def close(self) -> None:
        """Wait for a running sync and shut the browser down."""
        await self.orchestrator.wait_idle()
        await self.browser_manager.close()
        logger.info("Services closed")


def create_services(
    settings: Optional[Settings] = None,
    render_engine: Optional[RenderEngine] = None,
) -> Services:
    """Wire the pipeline services for ``settings``."""
    settings = settings or get_settings()

    browser_manager = BrowserManager(settings)
    if render_engine is None:
        render_engine = RenderEngine(browser_manager, SocialCardRenderer(settings), settings)

    storage = ArtifactStorage(settings.artifact_root)
    scheduler = BatchScheduler(render_engine, storage)
    store = StateStore(settings.state_file)
    sweeper = OrphanSweeper(storage, settings.all_locales)
    orchestrator = SyncOrchestrator(store, scheduler, sweeper, storage, settings)

    return Services(
        settings=settings,
        browser_manager=browser_manager,
        render_engine=render_engine,
        storage=storage,
        scheduler=scheduler,
        store=store,
        sweeper=sweeper,
        orchestrator=orchestrator,
    )
