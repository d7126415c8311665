"""Core result data structures for the lint engine."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field, asdict
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import TagscanError
from .severity import Severity

if TYPE_CHECKING:
    from .filters import SuppressionFilter

SEVERITY_ORDER: Sequence[Severity] = (
    Severity.ERROR,
    Severity.WARNING,
    Severity.INFO,
    Severity.COMMENT,
)


@dataclass(frozen=True)
class Finding:
    """Capture a single issue raised by a rule."""

    code: str
    message: str
    severity: Severity
    file: str
    line: int
    column: int
    arguments: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.code:
            raise ValueError("Finding code must not be empty")

    @property
    def location(self) -> Tuple[int, int]:
        return (self.line, self.column)

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["arguments"] = list(self.arguments)
        return data


class FindingCollection:
    """Append-only store of admitted findings shared by every file scan.

    Appends are serialized with a lock so several worker threads may commit
    into one collection. Severity counters are updated under the same lock
    and therefore always agree with the stored sequence.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._findings: List[Finding] = []
        self._by_severity: Counter = Counter()
        self._by_code: Dict[str, Counter] = {}
        self._filter: Optional["SuppressionFilter"] = None

    @property
    def filter(self) -> Optional["SuppressionFilter"]:
        return self._filter

    def attach_filter(self, suppression_filter: "SuppressionFilter") -> None:
        """Attach the suppression filter consulted before admission."""

        with self._lock:
            if self._findings:
                raise TagscanError("A filter must be attached before any finding is admitted")
            self._filter = suppression_filter

    def admits(self, finding: Finding) -> bool:
        if self._filter is None:
            return True
        return self._filter.admits(finding)

    def append(self, finding: Finding) -> None:
        self.extend((finding,))

    def extend(self, findings: Iterable[Finding]) -> None:
        """Append ``findings`` as one contiguous block."""

        batch = list(findings)
        with self._lock:
            for finding in batch:
                self._findings.append(finding)
                self._by_severity[finding.severity] += 1
                self._by_code.setdefault(finding.code, Counter())[finding.severity] += 1

    def counts_by_severity(self) -> Dict[Severity, int]:
        with self._lock:
            return {severity: self._by_severity.get(severity, 0) for severity in SEVERITY_ORDER}

    def counts_by_code(self) -> Dict[str, Dict[Severity, int]]:
        with self._lock:
            return {code: dict(counts) for code, counts in sorted(self._by_code.items())}

    def by_rule(self, code: str) -> List[Finding]:
        with self._lock:
            return [finding for finding in self._findings if finding.code == code]

    def by_file(self, path: str) -> List[Finding]:
        with self._lock:
            return [finding for finding in self._findings if finding.file == path]

    def snapshot(self) -> List[Finding]:
        with self._lock:
            return list(self._findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._findings)

    @property
    def total(self) -> int:
        return len(self)

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": {severity.value: count for severity, count in self.counts_by_severity().items()},
            "codes": {
                code: {severity.value: count for severity, count in counts.items()}
                for code, counts in self.counts_by_code().items()
            },
            "findings": [finding.to_dict() for finding in self],
        }


@dataclass
class LintResult:
    """Bundle the finding collection with batch-level outcome details."""

    findings: FindingCollection = field(default_factory=FindingCollection)
    scanned_files: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    aborted: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.findings.counts_by_severity()[Severity.ERROR] == 0 and self.aborted is None

    def counts_by_severity(self) -> Dict[Severity, int]:
        return self.findings.counts_by_severity()

    def top_findings(self, limit: int = 5) -> List[Finding]:
        """Return findings ordered by severity ranking."""

        ordered = sorted(
            self.findings,
            key=lambda finding: (-finding.severity.rank, finding.file, finding.line, finding.column),
        )
        return ordered[:limit]

    def to_dict(self) -> Dict[str, object]:
        data = self.findings.to_dict()
        data["files"] = {"scanned": list(self.scanned_files), "skipped": list(self.skipped_files)}
        data["aborted"] = self.aborted
        data["passed"] = self.passed
        return data
