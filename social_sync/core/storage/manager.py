"""
Artifact Storage Manager
========================

File-system access to the generated card tree. The tree itself is the index
of which artifacts exist: existence means "already generated".
"""

from pathlib import Path
from typing import Iterable, List

import aiofiles
import aiofiles.os

from social_sync.config.logging import get_logger
from social_sync.core.errors import FileSystemError

logger = get_logger(__name__)

IMAGE_SUFFIX = ".jpg"


class ArtifactStorage:
    """Reads and writes card images below a single root directory."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.logger = logger.bind(component="artifact_storage")

    async def exists(self, path: Path) -> bool:
        return await aiofiles.os.path.exists(path)

    async def ensure_directories(self, directories: Iterable[Path]) -> int:
        """
        Create every distinct directory once.

        Returns:
            Number of distinct directories ensured
        """
        unique = sorted({Path(directory) for directory in directories})
        for directory in unique:
            await aiofiles.os.makedirs(directory, exist_ok=True)
        return len(unique)

    async def write(self, path: Path, data: bytes) -> None:
        """Write ``data`` so that ``path`` never exists half-written."""
        path = Path(path)
        temp_path = path.with_name(f".{path.name}.tmp")
        try:
            async with aiofiles.open(temp_path, "wb") as handle:
                await handle.write(data)
            await aiofiles.os.replace(temp_path, path)
        except BaseException:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.remove(temp_path)
            raise

    async def delete(self, path: Path) -> bool:
        """
        Delete one artifact file.

        Returns:
            True if a file was removed, False if it did not exist

        Raises:
            FileSystemError: If the file exists but could not be removed
        """
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FileSystemError(f"Failed to delete {path}: {e}", path) from e
        self.logger.debug("Artifact deleted", path=str(path))
        return True

    async def list_images(self, directory: Path) -> List[str]:
        """Names of the card images directly inside ``directory``."""
        try:
            names = await aiofiles.os.listdir(directory)
        except FileNotFoundError:
            return []
        except NotADirectoryError:
            return []
        except OSError as e:
            raise FileSystemError(f"Failed to list {directory}: {e}", directory) from e
        return sorted(name for name in names if name.endswith(IMAGE_SUFFIX))

    async def list_locale_dirs(self) -> List[str]:
        """Locale directories currently present below the root."""
        try:
            names = await aiofiles.os.listdir(self.root)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise FileSystemError(f"Failed to list {self.root}: {e}", self.root) from e

        locales = []
        for name in sorted(names):
            if await aiofiles.os.path.isdir(self.root / name):
                locales.append(name)
        return locales
