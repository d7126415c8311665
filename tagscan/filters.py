"""Suppression filters applied to findings before they are admitted."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Pattern, Sequence

import yaml

from .errors import ConfigurationError
from .result import Finding
from .severity import Severity
from .utils import parse_yaml_text

logger = logging.getLogger(__name__)

FIELD_ALIASES = {
    "code": "code",
    "file": "file",
    "message": "message",
    "messageText": "message",
    "line": "line",
    "severity": "severity",
}


@dataclass(frozen=True)
class SuppressionRule:
    """One declarative suppression entry; unset fields match anything."""

    code: Optional[Pattern[str]] = None
    file: Optional[Pattern[str]] = None
    message: Optional[Pattern[str]] = None
    line: Optional[int] = None
    severity: Optional[Severity] = None

    def matches(self, finding: Finding) -> bool:
        if self.code is not None and not self.code.fullmatch(finding.code):
            return False
        if self.file is not None and not self.file.search(finding.file.replace("\\", "/")):
            return False
        if self.message is not None and not self.message.search(finding.message):
            return False
        if self.line is not None and finding.line != self.line:
            return False
        if self.severity is not None and finding.severity is not self.severity:
            return False
        return True


class SuppressionFilter:
    """Admit a finding unless some suppression rule matches it."""

    def __init__(self, rules: Iterable[SuppressionRule] = ()) -> None:
        self._rules: Sequence[SuppressionRule] = tuple(rules)

    @property
    def rules(self) -> Sequence[SuppressionRule]:
        return self._rules

    def admits(self, finding: Finding) -> bool:
        for rule in self._rules:
            if rule.matches(finding):
                logger.debug("Suppressed %s at %s:%d", finding.code, finding.file, finding.line)
                return False
        return True

    def __len__(self) -> int:
        return len(self._rules)


def _compile(value: Any, field_name: str, index: int) -> Pattern[str]:
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"Suppression entry {index}: '{field_name}' must be a non-empty string")
    try:
        return re.compile(value)
    except re.error as exc:
        raise ConfigurationError(f"Suppression entry {index}: invalid {field_name} pattern {value!r}: {exc}") from exc


def _build_rule(entry: Any, index: int) -> SuppressionRule:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Suppression entry {index} is not a mapping")
    unknown = sorted(str(key) for key in entry if key not in FIELD_ALIASES)
    if unknown:
        raise ConfigurationError(f"Suppression entry {index}: unknown keys {', '.join(unknown)}")

    values = {FIELD_ALIASES[key]: value for key, value in entry.items()}
    if not values:
        raise ConfigurationError(f"Suppression entry {index} specifies no fields")

    kwargs: dict = {}
    for name in ("code", "file", "message"):
        if name in values:
            kwargs[name] = _compile(values[name], name, index)
    if "line" in values:
        line = values["line"]
        if isinstance(line, bool) or not isinstance(line, int):
            raise ConfigurationError(f"Suppression entry {index}: 'line' must be an integer")
        kwargs["line"] = line
    if "severity" in values:
        try:
            kwargs["severity"] = Severity.parse(values["severity"])
        except ValueError as exc:
            raise ConfigurationError(f"Suppression entry {index}: {exc}") from exc
    return SuppressionRule(**kwargs)


def create_filter(source: Any = None) -> SuppressionFilter:
    """Build a filter from loaded entries, raw JSON/YAML text, or ``None``.

    ``None`` and blank text produce a filter that admits everything. Any
    malformed source raises :class:`ConfigurationError`.
    """

    if source is None:
        return SuppressionFilter()
    if isinstance(source, (str, bytes)):
        try:
            text = source.decode("utf-8") if isinstance(source, bytes) else source
        except UnicodeDecodeError as exc:
            raise ConfigurationError(f"Suppression source is not valid UTF-8: {exc}") from exc
        if not text.strip():
            return SuppressionFilter()
        try:
            source = parse_yaml_text(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Suppression source is not valid JSON/YAML: {exc}") from exc
        if source is None:
            return SuppressionFilter()
    if isinstance(source, Mapping) or not isinstance(source, (list, tuple)):
        raise ConfigurationError("Suppression source must be a list of entries")

    rules: List[SuppressionRule] = [_build_rule(entry, index) for index, entry in enumerate(source)]
    logger.debug("Built suppression filter with %d entries", len(rules))
    return SuppressionFilter(rules)
