"""Shared test fixtures."""
import os

import pytest


class MemoryFetch:
    """In-memory fetcher that records every path it is asked for."""

    def __init__(self, files: dict[str, str]):
        self.files = {os.path.normpath(k): v for k, v in files.items()}
        self.calls: list[str] = []

    async def fetch(self, path) -> str:
        key = os.path.normpath(str(path))
        self.calls.append(key)
        try:
            return self.files[key]
        except KeyError:
            raise FileNotFoundError(2, "No such file or directory", key) from None


@pytest.fixture
def memory_fetch():
    """Factory for MemoryFetch doubles."""
    def make(files: dict[str, str] | None = None) -> MemoryFetch:
        return MemoryFetch(files or {})
    return make


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's PROPOSAL_LINT_* settings out of tests."""
    for name in list(os.environ):
        if name.startswith("PROPOSAL_LINT_"):
            monkeypatch.delenv(name)
