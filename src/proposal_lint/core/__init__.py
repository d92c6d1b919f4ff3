"""Core modules: preamble parsing, diagnostics, tree walking and fetching."""
from .fetch import DefaultFetch, Fetch, FileSystemFetch, NullFetch
from .preamble import Field, ParseErrors, Preamble, SplitError, split
from .snippets import Annotation, Level, Message, Snippet, render
from .tree import Next, Visitor, walk

__all__ = [
    "DefaultFetch",
    "Fetch",
    "FileSystemFetch",
    "NullFetch",
    "Field",
    "ParseErrors",
    "Preamble",
    "SplitError",
    "split",
    "Annotation",
    "Level",
    "Message",
    "Snippet",
    "render",
    "Next",
    "Visitor",
    "walk",
]
