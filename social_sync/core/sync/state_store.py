"""
State Store
===========

Persists the last synced snapshot as a JSON document. Writes go to a temp
file in the same directory which then replaces the store, so a reader never
observes a half-written state.
"""

from pathlib import Path
from typing import Any, Optional
import os
import tempfile

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from social_sync.config.logging import get_logger
from social_sync.core.errors import StoreIOError
from social_sync.models.schemas import Snapshot, SyncState

logger = get_logger(__name__)


class StateStore:
    """Single-file store of the last synced snapshot."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger: Any = logger.bind(component="state_store", path=str(self.path))

    async def load(self) -> Optional[Snapshot]:
        """
        Load the last synced snapshot.

        Returns:
            The snapshot, or None if nothing has been stored yet

        Raises:
            StoreIOError: If the store exists but cannot be read or parsed
        """
        state = await self.load_state()
        return state.snapshot if state else None

    async def load_state(self) -> Optional[SyncState]:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
                content = await handle.read()
        except FileNotFoundError:
            self.logger.info("No previous sync state")
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StoreIOError(f"Failed to read sync state {self.path}: {e}") from e

        try:
            return SyncState.model_validate_json(content)
        except ValidationError as e:
            raise StoreIOError(f"Corrupt sync state {self.path}: {e}") from e

    async def save(self, snapshot: Snapshot) -> None:
        """
        Replace the stored snapshot.

        Raises:
            StoreIOError: If the state cannot be written
        """
        content = SyncState(snapshot=snapshot).model_dump_json(indent=2)
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            os.close(fd)
            try:
                async with aiofiles.open(temp_name, "w", encoding="utf-8") as handle:
                    await handle.write(content)
                    await handle.flush()
                    os.fsync(handle.fileno())
                await aiofiles.os.replace(temp_name, self.path)
            except BaseException:
                if await aiofiles.os.path.exists(temp_name):
                    await aiofiles.os.remove(temp_name)
                raise
        except OSError as e:
            raise StoreIOError(f"Failed to write sync state {self.path}: {e}") from e

        self.logger.info("Sync state saved", pages=len(snapshot.pages))

    async def clear(self) -> bool:
        """Remove the stored state. Returns False if there was none."""
        try:
            await aiofiles.os.remove(self.path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreIOError(f"Failed to remove sync state {self.path}: {e}") from e
        return True
