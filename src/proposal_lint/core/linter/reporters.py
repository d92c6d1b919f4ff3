"""Reporters: where finished diagnostics go.

Reporters may be shared between rules (and between documents when a host
lints several at once), so every stateful reporter guards ``report`` with a
lock. A reporter never mutates the message it receives; wrappers that add
to a message work on a copy.
"""
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional, TextIO
import copy
import io
import json
import threading

from rich.console import Console
from rich.text import Text

from proposal_lint.core.snippets import Level, Message, render

from .errors import ReportError


class Reporter:
    """Base class for reporters. Raise ReportError when the sink fails."""

    def report(self, message: Message) -> None:
        raise NotImplementedError


class NullReporter(Reporter):
    """Discards everything."""

    def report(self, message: Message) -> None:
        pass


class TextReporter(Reporter):
    """Writes the plain-text rendering of each message to a stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else io.StringIO()
        self._lock = threading.Lock()

    def report(self, message: Message) -> None:
        text = render(message) + "\n"
        with self._lock:
            try:
                self.stream.write(text)
            except (OSError, ValueError) as e:
                raise ReportError(str(e)) from e

    def getvalue(self) -> str:
        """Everything written so far, when the stream is a StringIO."""
        if not isinstance(self.stream, io.StringIO):
            raise TypeError("getvalue() needs an in-memory stream")
        return self.stream.getvalue()


class JsonReporter(Reporter):
    """Collects one JSON-safe dict per message."""

    def __init__(self):
        self.reports: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def report(self, message: Message) -> None:
        data = message.to_dict()
        data["formatted"] = render(message)
        with self._lock:
            self.reports.append(data)

    def to_json(self, indent: Optional[int] = 2) -> str:
        with self._lock:
            return json.dumps(self.reports, indent=indent, ensure_ascii=False)


class ConsoleReporter(Reporter):
    """Prints messages to a rich console, with the header coloured by level."""

    STYLES = {
        Level.ERROR: "bold red",
        Level.WARNING: "bold yellow",
        Level.INFO: "bold blue",
        Level.NOTE: "bold cyan",
        Level.HELP: "bold green",
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)
        self._lock = threading.Lock()

    def report(self, message: Message) -> None:
        header, _, rest = render(message).partition("\n")

        text = Text(header, style=self.STYLES[message.level])
        if rest:
            text.append("\n" + rest)

        with self._lock:
            try:
                self.console.print(text)
                self.console.print()
            except OSError as e:
                raise ReportError(str(e)) from e


@dataclass
class Counts:
    error: int = 0
    warning: int = 0
    info: int = 0
    note: int = 0
    help: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class CountReporter(Reporter):
    """Tallies messages per level, then passes them on."""

    def __init__(self, inner: Reporter):
        self.inner = inner
        self._counts = Counts()
        self._lock = threading.Lock()

    @property
    def counts(self) -> Counts:
        with self._lock:
            return copy.copy(self._counts)

    def report(self, message: Message) -> None:
        with self._lock:
            name = message.level.value
            setattr(self._counts, name, getattr(self._counts, name) + 1)
        self.inner.report(message)


class AdditionalHelpReporter(Reporter):
    """
    Adds a Help footer the first time each message id is seen.

    ``message_fn`` turns an id (a rule slug) into the footer text, e.g. a
    link to the rule's documentation.
    """

    def __init__(self, inner: Reporter, message_fn: Callable[[str], str]):
        self.inner = inner
        self.message_fn = message_fn
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def report(self, message: Message) -> None:
        if message.id is None:
            self.inner.report(message)
            return

        with self._lock:
            first = message.id not in self._seen
            self._seen.add(message.id)

        if first:
            message = copy.deepcopy(message)
            message.add_footer(Level.HELP.title(self.message_fn(message.id)))

        self.inner.report(message)
