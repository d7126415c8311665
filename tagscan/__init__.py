"""Rule-based lint engine for tag/script markup files."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("tagscan")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

from .errors import ConfigurationError, ParseError, TagscanError
from .linter import Linter, build_configuration
from .result import Finding, FindingCollection, LintResult
from .severity import Severity

__all__ = [
    "__version__",
    "ConfigurationError",
    "Finding",
    "FindingCollection",
    "Linter",
    "LintResult",
    "ParseError",
    "Severity",
    "TagscanError",
    "build_configuration",
]
