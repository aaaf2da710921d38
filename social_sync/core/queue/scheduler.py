"""
Batch Scheduler
===============

Runs render tasks in sequential batches of bounded size. Tasks inside a batch
run concurrently and the next batch starts only when the whole batch has
settled, which bounds the number of open browser pages.
"""

from typing import Any, AsyncIterator, Callable, List, Optional, Protocol, Sequence
import asyncio
import time

from social_sync.config.logging import get_logger
from social_sync.core.errors import BrowserUnavailable
from social_sync.core.storage.manager import ArtifactStorage
from social_sync.models.schemas import (
    BatchProgress,
    BatchResult,
    BatchTask,
    RenderTask,
    TaskError,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


class Renderer(Protocol):
    async def warm_up(self) -> None: ...

    async def render(self, task: RenderTask, base_url: Optional[str] = None) -> bytes: ...


class BatchScheduler:
    """Bounded-concurrency executor for render tasks."""

    def __init__(self, renderer: Renderer, storage: ArtifactStorage):
        self.renderer = renderer
        self.storage = storage
        self.logger: Any = logger.bind(component="batch_scheduler")
        self.progress: Optional[BatchProgress] = None
        self.result: Optional[BatchResult] = None

    async def run(
        self,
        tasks: Sequence[BatchTask],
        concurrency: int,
        on_progress: Optional[ProgressCallback] = None,
        base_url: Optional[str] = None,
    ) -> BatchResult:
        """
        Execute every task and report the aggregate outcome.

        Args:
            tasks: Tasks with their output paths
            concurrency: Tasks per batch
            on_progress: Called with (completed, total) after every batch
            base_url: Origin passed through to the renderer

        Returns:
            BatchResult with success/failure counts and per-task errors

        Raises:
            BrowserUnavailable: If the browser cannot be obtained
        """
        async for progress in self.iter_batches(tasks, concurrency, base_url):
            if on_progress:
                on_progress(progress.completed, progress.total)
        return self.result or BatchResult()

    async def iter_batches(
        self,
        tasks: Sequence[BatchTask],
        concurrency: int,
        base_url: Optional[str] = None,
    ) -> AsyncIterator[BatchProgress]:
        """Execute tasks batch by batch, yielding progress after each batch."""
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        start_time = time.perf_counter()
        result = BatchResult()
        self.result = result
        self.progress = None
        total = len(tasks)

        if total == 0:
            return

        await self.storage.ensure_directories(task.output_path.parent for task in tasks)
        await self.renderer.warm_up()

        batch_count = (total + concurrency - 1) // concurrency
        self.logger.info(
            "Starting batch generation", total=total, batch_size=concurrency, batches=batch_count
        )

        for batch_index, offset in enumerate(range(0, total, concurrency)):
            batch = tasks[offset : offset + concurrency]
            outcomes = await asyncio.gather(
                *(self._run_task(task, base_url) for task in batch), return_exceptions=True
            )

            browser_error: Optional[BaseException] = None
            for task, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                    raise outcome
                if isinstance(outcome, BrowserUnavailable):
                    browser_error = outcome
                    result.failure_count += 1
                    result.errors.append(TaskError(artifact=task.label, error=str(outcome)))
                elif isinstance(outcome, Exception):
                    result.failure_count += 1
                    result.errors.append(TaskError(artifact=task.label, error=str(outcome)))
                    self.logger.warning("Card generation failed", artifact=task.label, error=str(outcome))
                else:
                    result.success_count += 1
                    if outcome:
                        result.rendered_count += 1
                    else:
                        result.skipped_count += 1

            result.duration = time.perf_counter() - start_time
            if browser_error is not None:
                self.logger.error("Browser lost during batch", error=str(browser_error))
                raise browser_error

            self.progress = BatchProgress(
                completed=result.success_count + result.failure_count,
                total=total,
                batch_index=batch_index,
                batch_count=batch_count,
            )
            self.logger.info(
                "Batch completed",
                completed=self.progress.completed,
                total=total,
                percent=self.progress.percent,
            )
            yield self.progress

        self.logger.info(
            "Batch generation complete",
            success=result.success_count,
            failed=result.failure_count,
            rendered=result.rendered_count,
            skipped=result.skipped_count,
            duration=round(result.duration, 3),
        )

    async def _run_task(self, task: BatchTask, base_url: Optional[str]) -> bool:
        """
        Materialize one task.

        Returns:
            True if a card was rendered, False if the output already existed
        """
        if await self.storage.exists(task.output_path):
            return False

        image = await self.renderer.render(task.task, base_url=base_url)
        await self.storage.write(task.output_path, image)
        return True
