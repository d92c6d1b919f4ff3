"""Exceptions raised by the lint engine and its plugins."""
from typing import Optional, Union

# A cache key: a normalized path, or (root directory, proposal number)
ResourceKey = Union[str, tuple[str, int]]


class LinterError(Exception):
    """A run could not complete."""

    def __init__(self, message: str, origin: Optional[str] = None):
        super().__init__(message)
        self.origin = origin


class ReportError(Exception):
    """The diagnostic sink failed. Always fatal for the run."""

    def __str__(self) -> str:
        return f"report failed: {super().__str__()}"


class LintError(Exception):
    """
    A rule could not do its job (as opposed to finding a problem).

    Raised from ``find_resources`` or ``lint``; aborts only that rule for
    the current document.
    """


class InvalidRuleConfig(LintError):
    """A rule was configured with something unusable, like a bad regex."""


class UndeclaredResource(LintError, LookupError):
    """A rule looked up a document it never asked for during discovery."""

    def __init__(self, key: ResourceKey):
        super().__init__(f"no document was requested for `{describe_key(key)}`")
        self.key = key


class ModifierError(Exception):
    """A modifier failed to update the lint settings."""


class FetchError(Exception):
    """
    A cross-referenced document could not be read or parsed.

    Stored in the resource cache instead of being raised during fetching;
    rules see it when they look the document up.
    """

    def __init__(self, key: ResourceKey, reason: Union[str, BaseException]):
        super().__init__(str(reason))
        self.key = key
        self.reason = reason


def describe_key(key: ResourceKey) -> str:
    if isinstance(key, tuple):
        return f"proposal {key[1]}"
    return key
