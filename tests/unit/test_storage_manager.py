"""
Unit Tests for Artifact Storage
===============================
"""

import asyncio
from unittest.mock import patch

import pytest

from social_sync.core.errors import FileSystemError
from social_sync.core.storage.manager import ArtifactStorage

from tests.utils.builders import touch


class TestArtifactStorage:
    """Test file operations on the artifact tree."""

    async def test_write_and_exists(self, storage):
        path = storage.root / "en" / "post" / "a.jpg"
        path.parent.mkdir(parents=True)

        assert not await storage.exists(path)
        await storage.write(path, b"\xff\xd8data")

        assert await storage.exists(path)
        assert path.read_bytes() == b"\xff\xd8data"
        assert list(path.parent.iterdir()) == [path]

    async def test_write_failure_leaves_no_file(self, storage):
        path = storage.root / "a.jpg"

        with patch("aiofiles.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await storage.write(path, b"\xff\xd8data")

        assert list(storage.root.iterdir()) == []

    async def test_cancelled_write_leaves_no_temp_file(self, storage):
        path = storage.root / "a.jpg"

        with patch("aiofiles.os.replace", side_effect=asyncio.CancelledError()):
            with pytest.raises(asyncio.CancelledError):
                await storage.write(path, b"\xff\xd8data")

        assert list(storage.root.iterdir()) == []

    async def test_ensure_directories_deduplicates(self, storage):
        dirs = [storage.root / "en" / "post", storage.root / "en" / "post", storage.root / "ko" / "tag"]

        count = await storage.ensure_directories(dirs)

        assert count == 2
        assert all(directory.is_dir() for directory in dirs)

    async def test_delete(self, storage):
        path = touch(storage.root / "root.jpg")

        assert await storage.delete(path) is True
        assert await storage.delete(path) is False

    async def test_delete_error(self, storage):
        path = touch(storage.root / "root.jpg")

        with patch("aiofiles.os.remove", side_effect=PermissionError("denied")):
            with pytest.raises(FileSystemError) as exc_info:
                await storage.delete(path)

        assert exc_info.value.path == str(path)

    async def test_list_images_only_jpegs(self, storage):
        touch(storage.root / "en" / "tag" / "b.jpg")
        touch(storage.root / "en" / "tag" / "a.jpg")
        touch(storage.root / "en" / "tag" / "readme.md")

        assert await storage.list_images(storage.root / "en" / "tag") == ["a.jpg", "b.jpg"]

    async def test_list_images_missing_directory(self, storage):
        assert await storage.list_images(storage.root / "nope") == []

    async def test_list_locale_dirs(self, storage):
        (storage.root / "ko").mkdir()
        (storage.root / "en").mkdir()
        touch(storage.root / "root.jpg")

        assert await storage.list_locale_dirs() == ["en", "ko"]

    async def test_list_locale_dirs_missing_root(self, tmp_path):
        assert await ArtifactStorage(tmp_path / "missing").list_locale_dirs() == []
