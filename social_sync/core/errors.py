"""
Error Types
===========

Exceptions raised by the social image pipeline.
"""

from pathlib import Path
from typing import Optional, Union


class SocialImageError(Exception):
    """Base class for pipeline errors."""

    pass


class BrowserUnavailable(SocialImageError):
    """The headless browser could not be launched or is disconnected."""

    pass


class RenderFailed(SocialImageError):
    """Rendering a single card failed."""

    def __init__(self, message: str, artifact: Optional[str] = None):
        super().__init__(message)
        self.artifact = artifact


class StoreIOError(SocialImageError):
    """The sync state could not be read or written."""

    pass


class FileSystemError(SocialImageError):
    """An artifact file could not be deleted or listed."""

    def __init__(self, message: str, path: Union[str, Path]):
        super().__init__(message)
        self.path = str(path)
