"""Reading documents by path.

The engine never touches the filesystem itself; it asks a ``Fetch``
implementation for the text of a path. The default, ``NullFetch``, refuses
every request so that hosts have to opt in to I/O.
"""
from pathlib import Path
from typing import Protocol
import asyncio
import io
import logging

logger = logging.getLogger(__name__)


class Fetch(Protocol):
    """Anything that can read a document asynchronously."""

    async def fetch(self, path: Path) -> str:
        """Return the text at ``path``. Raises OSError on failure."""
        ...


class NullFetch:
    """Fails every request with ``io.UnsupportedOperation``."""

    async def fetch(self, path: Path) -> str:
        raise io.UnsupportedOperation("unsupported")

    def __repr__(self) -> str:
        return "NullFetch()"


class FileSystemFetch:
    """Reads UTF-8 files from the local filesystem in a worker thread."""

    async def fetch(self, path: Path) -> str:
        logger.debug(f"Reading {path}")
        try:
            return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            raise OSError(f"stream did not contain valid UTF-8: {e}") from e

    def __repr__(self) -> str:
        return "FileSystemFetch()"


DefaultFetch = NullFetch
