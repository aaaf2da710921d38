"""
Sync Orchestrator
=================

Drives one sync through compare, delete, generate, sweep and persist. Only
one sync runs at a time; a request arriving while a sync is in progress is
dropped because a newer snapshot always supersedes an older one.
"""

from pathlib import Path
from typing import Any, Iterable, Optional, Set
import asyncio
import time

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.errors import FileSystemError, StoreIOError
from social_sync.core.queue.scheduler import BatchScheduler
from social_sync.core.storage.manager import ArtifactStorage
from social_sync.core.sync.diff import diff, sorted_keys, summarize
from social_sync.core.sync.state_store import StateStore
from social_sync.core.sync.sweeper import OrphanSweeper
from social_sync.models.schemas import (
    ArtifactKey,
    BatchProgress,
    BatchTask,
    RenderTask,
    Snapshot,
    SnapshotRefreshed,
    SyncPhase,
    SyncReport,
    SyncStatus,
    utcnow,
)

logger = get_logger(__name__)


def build_batch_task(key: ArtifactKey, snapshot: Snapshot, root: Path, url_prefix: str) -> BatchTask:
    """Batch task that renders ``key`` from ``snapshot`` into the artifact tree."""
    return BatchTask(
        task=RenderTask(artifact_key=key, target_url=key.target_url, snapshot=snapshot),
        output_path=key.file_path(root),
        public_url=key.public_url(url_prefix),
    )


class SyncOrchestrator:
    """Single-flight sync state machine."""

    def __init__(
        self,
        store: StateStore,
        scheduler: BatchScheduler,
        sweeper: OrphanSweeper,
        storage: ArtifactStorage,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.scheduler = scheduler
        self.sweeper = sweeper
        self.storage = storage
        self.logger: Any = logger.bind(component="sync_orchestrator")

        self._phase = SyncPhase.IDLE
        self._background: Set[asyncio.Task] = set()
        self.last_report: Optional[SyncReport] = None
        self.latest_snapshot: Optional[Snapshot] = None

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def is_syncing(self) -> bool:
        return self._phase != SyncPhase.IDLE

    @property
    def progress(self) -> Optional[BatchProgress]:
        return self.scheduler.progress

    def notify(self, event: SnapshotRefreshed) -> Optional[asyncio.Task]:
        """
        Handle a refreshed snapshot by starting a background sync.

        Returns:
            The sync task, or None if a sync is already running
        """
        self.latest_snapshot = event.snapshot
        if self.is_syncing or self._background:
            self.logger.info("Sync already in progress, dropping refresh")
            return None

        task = asyncio.create_task(self.sync(event.snapshot))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for outstanding background syncs."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def sync(self, snapshot: Snapshot) -> Optional[SyncReport]:
        """
        Bring the artifact tree in line with ``snapshot``.

        Returns:
            SyncReport, or None if the request was dropped because a sync was
            already running
        """
        if self.is_syncing:
            self.logger.info("Sync already in progress, request dropped")
            return None

        # Set before the first await so concurrent callers see the guard
        self._phase = SyncPhase.COMPARING
        self.latest_snapshot = snapshot
        started_at = utcnow()
        start_time = time.perf_counter()

        try:
            report = await self._run(snapshot)
        except Exception as e:
            self.logger.error(
                "Sync failed", phase=self._phase.value, error=str(e), error_type=type(e).__name__
            )
            report = SyncReport(status=SyncStatus.FAILED, error=str(e))
        finally:
            self._phase = SyncPhase.IDLE

        report.started_at = started_at
        report.duration = time.perf_counter() - start_time
        self.last_report = report
        self.logger.info(
            "Sync finished",
            status=report.status.value,
            generated=report.generated,
            deleted=report.deleted,
            swept=report.swept,
            persisted=report.persisted,
            duration=round(report.duration, 3),
        )
        return report

    async def _run(self, snapshot: Snapshot) -> SyncReport:
        force = self.settings.force_regenerate

        self._phase = SyncPhase.COMPARING
        previous = await self._load_previous()
        delta = diff(previous, snapshot, self.settings.all_locales, force=force)

        if previous is None and not force:
            self.logger.info("First sync, saving state without generating")
            self._phase = SyncPhase.PERSISTING
            return SyncReport(status=SyncStatus.FIRST_RUN, persisted=await self._persist(snapshot))

        self.logger.info("Snapshot compared", **summarize(delta))

        self._phase = SyncPhase.DELETING
        if delta.to_generate:
            # Fail on a missing browser before any artifact is touched
            await self.scheduler.renderer.warm_up()
        deleted = await self._delete(delta.to_delete_for_removal | delta.stale_keys)

        self._phase = SyncPhase.GENERATING
        root = self.settings.artifact_root
        tasks = [
            build_batch_task(key, snapshot, root, self.settings.public_url_prefix)
            for key in sorted_keys(delta.to_generate)
        ]
        batch = await self.scheduler.run(
            tasks, self.settings.batch_size, base_url=self.settings.base_url
        )

        self._phase = SyncPhase.SWEEPING
        sweep = await self.sweeper.sweep(snapshot)

        self._phase = SyncPhase.PERSISTING
        persisted = await self._persist(snapshot)

        return SyncReport(
            status=SyncStatus.COMPLETED,
            generated=len(tasks),
            deleted=deleted,
            swept=len(sweep.deleted),
            batch=batch,
            persisted=persisted,
        )

    async def _load_previous(self) -> Optional[Snapshot]:
        try:
            return await self.store.load()
        except StoreIOError as e:
            self.logger.warning("Failed to load sync state, treating as first sync", error=str(e))
            return None

    async def _persist(self, snapshot: Snapshot) -> bool:
        try:
            await self.store.save(snapshot)
        except StoreIOError as e:
            self.logger.error("Failed to save sync state", error=str(e))
            return False
        return True

    async def _delete(self, keys: Iterable[ArtifactKey]) -> int:
        deleted = 0
        root = self.settings.artifact_root
        for key in sorted_keys(keys):
            try:
                if await self.storage.delete(key.file_path(root)):
                    deleted += 1
            except FileSystemError as e:
                self.logger.warning("Failed to delete artifact", artifact=str(key), error=str(e))
        if deleted:
            self.logger.info("Stale artifacts deleted", count=deleted)
        return deleted
