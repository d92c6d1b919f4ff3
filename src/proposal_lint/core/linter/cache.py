"""Run-level cache of cross-referenced documents.

Each key is fetched and parsed at most once per run; the result (a parsed
document or the FetchError explaining why there isn't one) is shared by
every rule that asks for it. The cache is owned by a single ``Linter.run``
and never invalidated while it lasts.
"""
from pathlib import Path, PurePath
from typing import Iterator, Optional, Union, TYPE_CHECKING
import logging
import os

from .errors import FetchError, ResourceKey, UndeclaredResource

if TYPE_CHECKING:
    from .context import Document

logger = logging.getLogger(__name__)


def base_dir(path: Optional[PurePath]) -> Path:
    """Directory that relative references in a document resolve against."""
    if path is None:
        return Path(".")
    return Path(path).parent


def path_key(base: PurePath, requested: Union[str, PurePath]) -> str:
    """Normalized cache key for ``requested`` as seen from ``base``."""
    return os.path.normpath(Path(base) / requested)


def proposal_root(path: Optional[PurePath]) -> str:
    """
    Directory holding sibling proposals.

    A proposal stored as ``<name>/index.md`` has its siblings one level up.
    """
    root = base_dir(path)
    if path is not None and Path(path).name == "index.md":
        root = root / ".."
    return os.path.normpath(root)


def proposal_key(path: Optional[PurePath], number: int) -> tuple[str, int]:
    return proposal_root(path), number


class ResourceCache:
    """Fetched documents keyed by normalized path or proposal key."""

    def __init__(self) -> None:
        self._entries: dict[ResourceKey, Union["Document", FetchError]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ResourceKey]:
        return iter(self._entries)

    def store(self, key: ResourceKey, entry: Union["Document", FetchError]) -> None:
        if key in self._entries:
            logger.debug(f"Ignoring second result for cached key {key!r}")
            return
        self._entries[key] = entry

    def lookup(self, key: ResourceKey) -> "Document":
        """
        Get a cached document.

        Raises:
            FetchError: The document was requested but could not be read.
            UndeclaredResource: Nobody requested this key.
        """
        try:
            entry = self._entries[key]
        except KeyError:
            raise UndeclaredResource(key) from None

        if isinstance(entry, FetchError):
            raise entry
        return entry

    def failures(self) -> dict[ResourceKey, FetchError]:
        return {k: v for k, v in self._entries.items() if isinstance(v, FetchError)}
