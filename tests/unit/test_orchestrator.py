"""
Unit Tests for the Sync Orchestrator
====================================

Phase ordering, the single-flight guard, first runs and failure handling.
"""

import asyncio
from unittest.mock import patch

import pytest

from social_sync.core.errors import StoreIOError
from social_sync.core.queue.scheduler import BatchScheduler
from social_sync.core.sync.orchestrator import SyncOrchestrator, build_batch_task
from social_sync.core.sync.sweeper import OrphanSweeper
from social_sync.models.schemas import (
    ArtifactKey,
    SnapshotRefreshed,
    SyncPhase,
    SyncStatus,
)

from tests.utils.builders import FakeRenderer, make_page, make_snapshot, touch


@pytest.fixture
def s1():
    return make_snapshot({"p1": make_page("a", "A"), "p2": make_page("b", "B")}, {"en": {"x": 1}})


@pytest.fixture
def s2():
    return make_snapshot(
        {"p1": make_page("a", "A changed"), "p3": make_page("c", "C")},
        {"en": {"y": 2}},
    )


def build(test_settings, storage, state_store, renderer):
    scheduler = BatchScheduler(renderer, storage)
    sweeper = OrphanSweeper(storage, test_settings.all_locales)
    return SyncOrchestrator(state_store, scheduler, sweeper, storage, test_settings)


class TestFirstRun:
    """Syncing without a stored snapshot."""

    async def test_first_run_persists_without_generating(
        self, orchestrator, fake_renderer, state_store, s1
    ):
        report = await orchestrator.sync(s1)

        assert report.status == SyncStatus.FIRST_RUN
        assert report.persisted is True
        assert fake_renderer.rendered == []
        assert (await state_store.load()).model_dump() == s1.model_dump()
        assert orchestrator.phase == SyncPhase.IDLE

    async def test_unreadable_state_is_first_run(self, orchestrator, state_store, fake_renderer, s1):
        state_store.path.parent.mkdir(parents=True)
        state_store.path.write_text("garbage", encoding="utf-8")

        report = await orchestrator.sync(s1)

        assert report.status == SyncStatus.FIRST_RUN
        assert fake_renderer.rendered == []

    async def test_undecodable_state_is_first_run(self, orchestrator, state_store, s1):
        state_store.path.parent.mkdir(parents=True)
        state_store.path.write_bytes(b"\xff\xfe\x00garbage")

        first = await orchestrator.sync(s1)
        second = await orchestrator.sync(s1)

        assert first.status == SyncStatus.FIRST_RUN
        assert first.persisted is True
        assert second.status == SyncStatus.COMPLETED

    async def test_force_regenerate_generates_on_first_run(
        self, test_settings, storage, state_store, fake_renderer, s1
    ):
        test_settings.force_regenerate = True
        orchestrator = build(test_settings, storage, state_store, fake_renderer)

        report = await orchestrator.sync(s1)

        assert report.status == SyncStatus.COMPLETED
        assert sorted(fake_renderer.rendered) == ["/en/post/a", "/en/post/b", "/en/tag/x"]


class TestIncrementalSync:
    """Syncing against a stored snapshot."""

    async def test_full_cycle(self, orchestrator, state_store, storage, fake_renderer, s1, s2):
        await state_store.save(s1)
        root = storage.root
        for name in ["root.jpg", "en/all-tags.jpg", "en/post/a.jpg", "en/post/b.jpg", "en/tag/x.jpg"]:
            touch(root / name)

        report = await orchestrator.sync(s2)

        assert report.status == SyncStatus.COMPLETED
        assert sorted(fake_renderer.rendered) == ["/en/post/a", "/en/post/c", "/en/tag/y"]
        assert report.generated == 3
        assert report.batch.rendered_count == 3
        assert not (root / "en" / "post" / "b.jpg").exists()
        assert not (root / "en" / "tag" / "x.jpg").exists()
        assert (root / "en" / "post" / "a.jpg").read_bytes() != b"\xff\xd8old"
        assert (root / "root.jpg").exists()
        assert report.persisted is True
        assert (await state_store.load()).model_dump() == s2.model_dump()

    async def test_tasks_built_in_key_order(
        self, orchestrator, test_settings, state_store, fake_renderer, s1, s2
    ):
        await state_store.save(s1)
        test_settings.batch_size = 1

        await orchestrator.sync(s2)

        assert fake_renderer.rendered == ["/en/post/a", "/en/post/c", "/en/tag/y"]

    async def test_sweeper_removes_leftovers(self, orchestrator, state_store, storage, s1):
        await state_store.save(s1)
        stray = touch(storage.root / "en" / "post" / "never-existed.jpg")

        report = await orchestrator.sync(s1)

        assert report.swept == 1
        assert not stray.exists()

    async def test_phase_order(self, orchestrator, state_store, s1, s2):
        await state_store.save(s1)
        seen = []

        def spy(target, name):
            original = getattr(target, name)

            async def wrapper(*args, **kwargs):
                seen.append((name, orchestrator.phase))
                return await original(*args, **kwargs)

            return patch.object(target, name, side_effect=wrapper)

        with spy(state_store, "load"), spy(orchestrator.storage, "delete"), spy(
            orchestrator.scheduler, "run"
        ), spy(orchestrator.sweeper, "sweep"), spy(state_store, "save"):
            await orchestrator.sync(s2)

        order = [step for index, step in enumerate(seen) if index == 0 or seen[index - 1] != step]
        assert order == [
            ("load", SyncPhase.COMPARING),
            ("delete", SyncPhase.DELETING),
            ("run", SyncPhase.GENERATING),
            ("sweep", SyncPhase.SWEEPING),
            ("save", SyncPhase.PERSISTING),
        ]


class TestFailures:
    """Failure handling."""

    async def test_browser_unavailable_does_not_persist(
        self, test_settings, storage, state_store, s1, s2
    ):
        await state_store.save(s1)
        kept = touch(storage.root / "en" / "post" / "b.jpg")
        orchestrator = build(test_settings, storage, state_store, FakeRenderer(browser_down=True))

        report = await orchestrator.sync(s2)

        assert report.status == SyncStatus.FAILED
        assert "Browser" in report.error
        assert report.persisted is False
        assert kept.exists()
        assert (await state_store.load()).model_dump() == s1.model_dump()
        assert orchestrator.phase == SyncPhase.IDLE

    async def test_render_failure_is_isolated(self, test_settings, storage, state_store, s1, s2):
        await state_store.save(s1)
        renderer = FakeRenderer(fail_on={"/en/post/c"})
        orchestrator = build(test_settings, storage, state_store, renderer)

        report = await orchestrator.sync(s2)

        assert report.status == SyncStatus.COMPLETED
        assert report.batch.failure_count == 1
        assert report.batch.errors[0].artifact == "post/en/c"
        assert report.persisted is True

    async def test_save_failure_is_reported(self, orchestrator, state_store, s1, s2):
        await state_store.save(s1)

        with patch.object(state_store, "save", side_effect=StoreIOError("read-only")):
            report = await orchestrator.sync(s2)

        assert report.status == SyncStatus.COMPLETED
        assert report.persisted is False

    async def test_unexpected_error_returns_to_idle(self, orchestrator, state_store, s1, s2):
        await state_store.save(s1)

        with patch.object(orchestrator.sweeper, "sweep", side_effect=RuntimeError("boom")):
            report = await orchestrator.sync(s2)

        assert report.status == SyncStatus.FAILED
        assert report.error == "boom"
        assert orchestrator.phase == SyncPhase.IDLE
        assert orchestrator.last_report == report
        assert (await state_store.load()).model_dump() == s1.model_dump()


class TestSingleFlight:
    """Concurrent sync requests."""

    async def test_concurrent_request_is_dropped(self, test_settings, storage, state_store, s1, s2):
        await state_store.save(s1)
        orchestrator = build(test_settings, storage, state_store, FakeRenderer(delay=0.05))

        first, second = await asyncio.gather(orchestrator.sync(s2), orchestrator.sync(s2))

        assert first.status == SyncStatus.COMPLETED
        assert second is None

    async def test_sync_allowed_again_after_completion(self, orchestrator, s1):
        assert await orchestrator.sync(s1) is not None
        assert await orchestrator.sync(s1) is not None

    async def test_notify_runs_in_background(self, orchestrator, state_store, s1):
        task = orchestrator.notify(SnapshotRefreshed(snapshot=s1))

        assert task is not None
        assert orchestrator.notify(SnapshotRefreshed(snapshot=s1)) is None

        await orchestrator.wait_idle()
        assert orchestrator.last_report.status == SyncStatus.FIRST_RUN
        assert orchestrator.latest_snapshot == s1
        assert await state_store.load() is not None


class TestBuildBatchTask:
    """Task construction from artifact keys."""

    def test_paths_and_urls(self, tmp_path, s1):
        key = ArtifactKey.for_tag("ko", "한글")

        task = build_batch_task(key, s1, tmp_path, "/social-images")

        assert task.output_path == tmp_path / "ko" / "tag" / f"{key.identifier}.jpg"
        assert task.public_url == f"/social-images/ko/tag/{key.identifier}.jpg"
        assert task.task.target_url == f"/ko/tag/{key.identifier}"
        assert task.label == f"tag/ko/{key.identifier}"
