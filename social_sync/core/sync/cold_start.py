"""
Cold Start
==========

Bulk generation of the full artifact set for a snapshot. Incremental syncs
skip generation on the very first run, so a deployment runs this once to
populate the tree. Only missing files are rendered.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional
import asyncio
import socket

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.queue.scheduler import BatchScheduler, ProgressCallback
from social_sync.core.routing import valid_keys
from social_sync.core.storage.manager import ArtifactStorage
from social_sync.core.sync.orchestrator import build_batch_task
from social_sync.models.schemas import ArtifactCategory, ArtifactKey, BatchResult, BatchTask, Snapshot

logger = get_logger(__name__)

# Generation order of the bulk run
CATEGORY_ORDER = (
    ArtifactCategory.ROOT,
    ArtifactCategory.ALL_TAGS,
    ArtifactCategory.POST,
    ArtifactCategory.CATEGORY,
    ArtifactCategory.TAG,
)


def _plan_order(key: ArtifactKey):
    return (CATEGORY_ORDER.index(key.category), key.locale or "", key.identifier)


async def plan_cold_start(
    snapshot: Snapshot,
    storage: ArtifactStorage,
    locales: Iterable[str],
    url_prefix: str = "/social-images",
) -> List[BatchTask]:
    """
    Tasks for every valid artifact of ``snapshot`` that is missing on disk.

    The root card is locale-independent and planned once.
    """
    tasks = []
    for key in sorted(valid_keys(snapshot, locales), key=_plan_order):
        task = build_batch_task(key, snapshot, storage.root, url_prefix)
        if not await storage.exists(task.output_path):
            tasks.append(task)
    return tasks


async def run_cold_start(
    snapshot: Snapshot,
    scheduler: BatchScheduler,
    storage: ArtifactStorage,
    settings: Optional[Settings] = None,
    serve_public: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchResult:
    """
    Render every missing artifact of ``snapshot``.

    Args:
        snapshot: Content to render
        scheduler: Batch scheduler used for the run
        storage: Artifact storage
        settings: Settings, defaults to the global settings
        serve_public: Serve ``public_dir`` locally during the run and use it
            as the base URL, for builds where the site is not yet reachable
        on_progress: Called with (completed, total) after every batch

    Raises:
        BrowserUnavailable: If the browser cannot be launched
    """
    settings = settings or get_settings()
    locales = settings.all_locales

    directories = [storage.root]
    for locale in locales:
        directories.extend(
            storage.root / locale / category.value
            for category in (ArtifactCategory.POST, ArtifactCategory.CATEGORY, ArtifactCategory.TAG)
        )
    await storage.ensure_directories(directories)

    tasks = await plan_cold_start(snapshot, storage, locales, settings.public_url_prefix)
    logger.info("Cold start planned", missing=len(tasks), locales=locales)
    if not tasks:
        return BatchResult()

    if serve_public:
        async with serve_directory(settings.public_dir) as base_url:
            return await scheduler.run(tasks, settings.batch_size, on_progress, base_url=base_url)
    return await scheduler.run(tasks, settings.batch_size, on_progress, base_url=settings.base_url)


@asynccontextmanager
async def serve_directory(directory: Path, host: str = "127.0.0.1") -> AsyncIterator[str]:
    """Serve ``directory`` over HTTP on a free port and yield its base URL."""
    app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    app.mount("/", StaticFiles(directory=str(directory)), name="public")

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, 0))
    port = sock.getsockname()[1]

    server = uvicorn.Server(uvicorn.Config(app, log_level="warning", lifespan="off"))
    serve_task = asyncio.create_task(server.serve(sockets=[sock]))
    try:
        while not server.started:
            if serve_task.done():
                serve_task.result()
                raise RuntimeError("Static server exited during startup")
            await asyncio.sleep(0.05)

        base_url = f"http://{host}:{port}"
        logger.info("Serving public directory", directory=str(directory), base_url=base_url)
        yield base_url
    finally:
        server.should_exit = True
        await serve_task
        sock.close()
