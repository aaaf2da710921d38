"""
Orphan Sweeper
==============

Deletes card images that no longer correspond to any artifact of the current
snapshot. Only ``.jpg`` files inside the known artifact directories are ever
considered.
"""

from pathlib import Path
from typing import Any, Iterable, List, Optional, Set

from social_sync.config.logging import get_logger
from social_sync.core.errors import FileSystemError
from social_sync.core.routing import valid_keys
from social_sync.core.storage.manager import IMAGE_SUFFIX, ArtifactStorage
from social_sync.models.schemas import ArtifactCategory, ArtifactKey, Snapshot, SweepResult

logger = get_logger(__name__)

SWEPT_CATEGORIES = (ArtifactCategory.POST, ArtifactCategory.CATEGORY, ArtifactCategory.TAG)


class OrphanSweeper:
    """Removes artifacts whose key is not valid for a snapshot."""

    def __init__(self, storage: ArtifactStorage, locales: Iterable[str] = ()):
        self.storage = storage
        self.locales = list(locales)
        self.logger: Any = logger.bind(component="orphan_sweeper")

    async def sweep(self, current: Snapshot) -> SweepResult:
        """
        Delete every orphaned card image.

        Running it twice on the same snapshot deletes nothing the second time.
        Files that cannot be listed or deleted are recorded in ``failed``.
        """
        result = SweepResult()
        keep = valid_keys(current, self.locales)

        for path in await self._orphans(keep, result):
            try:
                if await self.storage.delete(path):
                    result.deleted.append(str(path))
            except FileSystemError as e:
                self.logger.warning("Failed to delete orphan", path=e.path, error=str(e))
                result.failed.append(str(path))

        if result.deleted or result.failed:
            self.logger.info(
                "Orphan sweep finished", deleted=len(result.deleted), failed=len(result.failed)
            )
        return result

    async def _orphans(self, keep: Set[ArtifactKey], result: SweepResult) -> List[Path]:
        root = self.storage.root
        orphans: List[Path] = []

        for name in await self._list(root, result):
            if name != ArtifactKey.root().filename:
                orphans.append(root / name)

        try:
            on_disk = await self.storage.list_locale_dirs()
        except FileSystemError as e:
            self.logger.warning("Failed to list locales", path=e.path, error=str(e))
            result.failed.append(e.path)
            on_disk = []

        for locale in sorted(set(on_disk) | set(self.locales)):
            locale_dir = root / locale
            for name in await self._list(locale_dir, result):
                key = self._locale_level_key(locale, name)
                if key is None or key not in keep:
                    orphans.append(locale_dir / name)

            for category in SWEPT_CATEGORIES:
                directory = locale_dir / category.value
                for name in await self._list(directory, result):
                    key = ArtifactKey(
                        category=category, locale=locale, identifier=name[: -len(IMAGE_SUFFIX)]
                    )
                    if key not in keep:
                        orphans.append(directory / name)

        return orphans

    async def _list(self, directory: Path, result: SweepResult) -> List[str]:
        try:
            return await self.storage.list_images(directory)
        except FileSystemError as e:
            self.logger.warning("Failed to list directory", path=e.path, error=str(e))
            result.failed.append(e.path)
            return []

    @staticmethod
    def _locale_level_key(locale: str, name: str) -> Optional[ArtifactKey]:
        key = ArtifactKey.all_tags(locale)
        return key if name == key.filename else None

