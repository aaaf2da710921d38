"""
Test Configuration
==================

Shared fixtures: isolated settings rooted in a temporary directory, artifact
storage and a fake renderer. No test launches a real browser.
"""

from pathlib import Path
from typing import List

import pytest
from pydantic_settings import SettingsConfigDict

from social_sync.config.settings import Settings
from social_sync.core.queue.scheduler import BatchScheduler
from social_sync.core.storage.manager import ArtifactStorage
from social_sync.core.sync.orchestrator import SyncOrchestrator
from social_sync.core.sync.state_store import StateStore
from social_sync.core.sync.sweeper import OrphanSweeper

from tests.utils.builders import FakeRenderer


class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "DEBUG"
    locales: List[str] = ["en", "ko"]
    render_base_url: str = "http://site.test"
    batch_size: int = 2
    render_timeout: int = 5

    model_config = SettingsConfigDict(env_file=None, env_prefix="SOCIAL_SYNC_TEST_")


@pytest.fixture
def test_settings(tmp_path: Path) -> TestSettings:
    """Settings with every path inside the test's temporary directory."""
    return TestSettings(
        public_dir=tmp_path / "public",
        state_file=tmp_path / ".next" / "social-images-state.json",
    )


@pytest.fixture
def artifact_root(test_settings: TestSettings) -> Path:
    root = test_settings.artifact_root
    root.mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def storage(artifact_root: Path) -> ArtifactStorage:
    return ArtifactStorage(artifact_root)


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def state_store(test_settings: TestSettings) -> StateStore:
    return StateStore(test_settings.state_file)


@pytest.fixture
def orchestrator(
    test_settings: TestSettings,
    storage: ArtifactStorage,
    fake_renderer: FakeRenderer,
    state_store: StateStore,
) -> SyncOrchestrator:
    scheduler = BatchScheduler(fake_renderer, storage)
    sweeper = OrphanSweeper(storage, test_settings.all_locales)
    return SyncOrchestrator(state_store, scheduler, sweeper, storage, test_settings)
