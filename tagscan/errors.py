"""Exceptions raised by the lint engine."""

from __future__ import annotations


class TagscanError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(TagscanError):
    """Configuration or suppression data is unusable; nothing should be scanned."""


class ParseError(TagscanError):
    """A syntax tree could not be produced for one file."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
