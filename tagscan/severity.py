"""Severity definitions for lint findings."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Enumerate the supported severity levels for findings."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    COMMENT = "COMMENT"

    @property
    def rank(self) -> int:
        """Return an integer ranking, higher means more severe."""

        ordering = {
            Severity.ERROR: 3,
            Severity.WARNING: 2,
            Severity.INFO: 1,
            Severity.COMMENT: 0,
        }
        return ordering[self]

    @classmethod
    def parse(cls, value: "Severity | str") -> "Severity":
        """Return the severity named by ``value`` (case-insensitive)."""

        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}") from None
