"""Per-file state handed to every rule."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from .config import RuleConfiguration
from .filters import SuppressionFilter
from .result import Finding, FindingCollection
from .utils import ROOT_MARKER, resolve_project_root

logger = logging.getLogger(__name__)

Location = Union[Tuple[int, int], Any]


def _line_column(location: Location) -> Tuple[int, int]:
    if location is None:
        return (1, 1)
    if isinstance(location, tuple):
        line, column = location
        return (int(line), int(column))
    return (int(getattr(location, "line", 1)), int(getattr(location, "column", 1)))


class ScanContext:
    """Collect the findings of one file scan.

    Rules report through :meth:`add_finding`, which is the only path into the
    shared :class:`FindingCollection`. Findings stay local until
    :meth:`commit` hands them over as one block in document order.
    """

    def __init__(
        self,
        path: os.PathLike | str,
        configuration: RuleConfiguration,
        collection: FindingCollection,
        suppression_filter: Optional[SuppressionFilter] = None,
    ) -> None:
        self.path = str(path)
        self.configuration = configuration
        self._collection = collection
        self._local_filter = suppression_filter
        self._findings: List[Finding] = []
        self._seen: Set[Tuple[str, int, int, Tuple[str, ...]]] = set()
        self._roots: Dict[str, Optional[Path]] = {}
        self._committed = False

    @property
    def findings(self) -> Tuple[Finding, ...]:
        return tuple(self._findings)

    def add_finding(self, code: str, location: Location = None, *arguments: Any) -> Optional[Finding]:
        """Admit a finding for ``code`` at ``location`` unless disabled or suppressed."""

        setting = self.configuration.setting(code)
        if not setting.enabled:
            return None
        if self._committed:
            raise RuntimeError(f"Scan of {self.path} is already committed")

        line, column = _line_column(location)
        args = tuple(str(argument) for argument in arguments)
        key = (code, line, column, args)
        if key in self._seen:
            return None

        finding = Finding(
            code=code,
            message=self.configuration.render(code, args),
            severity=setting.severity,
            file=self.path,
            line=line,
            column=column,
            arguments=args,
        )
        if not self._collection.admits(finding):
            return None
        if self._local_filter is not None and not self._local_filter.admits(finding):
            return None
        self._seen.add(key)
        self._findings.append(finding)
        return finding

    def parameter(self, code: str, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.configuration.parameter(code, key, default)

    def project_root(self, marker: str = ROOT_MARKER) -> Optional[Path]:
        """Return the project root for this file, looked up once per marker."""

        if marker not in self._roots:
            self._roots[marker] = resolve_project_root(self.path, marker)
            logger.debug("Project root for %s: %s", self.path, self._roots[marker])
        return self._roots[marker]

    def commit(self) -> None:
        """Merge this file's findings into the shared collection."""

        if self._committed:
            return
        self._committed = True
        ordered = sorted(self._findings, key=lambda finding: finding.location)
        self._collection.extend(ordered)
