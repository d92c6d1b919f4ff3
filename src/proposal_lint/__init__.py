"""Lint engine for proposal documents."""

__version__ = "0.1.0"
