"""Public entry point tying configuration, rules and the dispatch engine together."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from . import __version__
from .config import (
    PARSE_ERROR,
    ConfigOverrides,
    RuleConfiguration,
    RuleGroup,
    defaults_from_rules,
    layer_configuration,
    load_overrides,
    merge_overrides,
    resolve_configuration,
)
from .context import ScanContext
from .engine import DispatchEngine
from .errors import ConfigurationError, ParseError
from .filters import SuppressionFilter, create_filter
from .nodes import Node
from .result import FindingCollection, LintResult
from .rules import RULE_GROUPS, Rule, build_registry, load_rules
from .utils import find_ancestor_files

logger = logging.getLogger(__name__)

Parser = Callable[[str], Optional[Node]]

CONFIG_FILENAME = ".tagscan.yml"

FileSetup = Tuple[RuleConfiguration, DispatchEngine, Optional[SuppressionFilter]]


def build_configuration(
    rules: Sequence[Rule],
    overrides: Optional[ConfigOverrides] = None,
    groups: Sequence[RuleGroup] = RULE_GROUPS,
) -> RuleConfiguration:
    """Resolve the configuration for ``rules`` with optional user overrides.

    Groups are narrowed to the codes the loaded rules declare; groups left
    empty are dropped.
    """

    overrides = overrides or ConfigOverrides()
    defaults = defaults_from_rules(rules)
    narrowed = []
    for group in groups:
        codes = tuple(code for code in group.codes if code in defaults)
        if codes:
            narrowed.append(RuleGroup(group.name, codes, group.description))
    return resolve_configuration(
        defaults,
        overrides.groups,
        overrides.rules,
        groups=narrowed,
        extensions=overrides.extensions,
    )


class Linter:
    """Scan pre-parsed files and collect findings.

    Everything that can fail because of bad configuration fails here, in the
    constructor, before any file is scanned. With ``config_ancestry`` the
    ``config_filename`` files found above each scanned file are layered on
    top of the base configuration, outermost first; a bad one aborts the
    batch when the first file below it is reached.
    """

    def __init__(
        self,
        parser: Optional[Parser] = None,
        configuration: Optional[RuleConfiguration] = None,
        rules: Optional[Sequence[Rule]] = None,
        suppressions: Any = None,
        *,
        rule_error_policy: str = "finding",
        config_ancestry: bool = False,
        config_filename: str = CONFIG_FILENAME,
        verbose: bool = False,
    ) -> None:
        self.parser = parser
        self.rules: List[Rule] = list(rules) if rules is not None else load_rules()
        self.configuration = configuration or build_configuration(self.rules)
        self.suppression_filter: SuppressionFilter = create_filter(suppressions)
        self.registry = build_registry(self.rules, self.configuration)
        self.rule_error_policy = rule_error_policy
        self.engine = DispatchEngine(self.registry, rule_error_policy)
        self.config_ancestry = config_ancestry
        self.config_filename = config_filename
        self._setups: Dict[Tuple[str, ...], FileSetup] = {}
        self._setups_lock = threading.Lock()
        if verbose:
            logging.getLogger("tagscan").setLevel(logging.DEBUG)

    @classmethod
    def from_config_file(
        cls,
        path: os.PathLike | str,
        parser: Optional[Parser] = None,
        rules: Optional[Sequence[Rule]] = None,
        suppressions: Any = None,
        **kwargs: Any,
    ) -> "Linter":
        rules = list(rules) if rules is not None else load_rules()
        overrides = load_overrides(path, known_codes=defaults_from_rules(rules))
        configuration = build_configuration(rules, overrides)
        if suppressions is None:
            suppressions = overrides.filter
        return cls(parser, configuration, rules, suppressions, **kwargs)

    @property
    def version(self) -> str:
        return __version__

    def rule_groups(self) -> Tuple[RuleGroup, ...]:
        return self.configuration.groups

    def accepts(self, path: os.PathLike | str) -> bool:
        return self.configuration.accepts(path)

    def _new_result(self) -> LintResult:
        result = LintResult()
        result.findings.attach_filter(self.suppression_filter)
        return result

    def _setup_for(self, path: str) -> FileSetup:
        """Return the configuration, engine and extra filter that apply to ``path``."""

        if not self.config_ancestry:
            return self.configuration, self.engine, None
        files = tuple(str(found) for found in find_ancestor_files(path, self.config_filename))
        if not files:
            return self.configuration, self.engine, None
        with self._setups_lock:
            setup = self._setups.get(files)
            if setup is None:
                setup = self._layer(files)
                self._setups[files] = setup
        return setup

    def _layer(self, files: Sequence[str]) -> FileSetup:
        known = self.configuration.settings
        overrides = merge_overrides(load_overrides(found, known_codes=known) for found in files)
        configuration = layer_configuration(self.configuration, overrides)
        engine = DispatchEngine(build_registry(self.rules, configuration), self.rule_error_policy)
        local_filter = create_filter(overrides.filter) if overrides.filter else None
        logger.debug("Layered configuration from %s", ", ".join(files))
        return configuration, engine, local_filter

    def _context_for(self, path: str, collection: FindingCollection) -> Tuple[ScanContext, DispatchEngine]:
        configuration, engine, local_filter = self._setup_for(path)
        return ScanContext(path, configuration, collection, local_filter), engine

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def scan_source(self, tree: Optional[Node], filename: str = "source.cfc") -> LintResult:
        """Scan one already parsed tree."""

        result = self._new_result()
        context, engine = self._context_for(filename, result.findings)
        _run_tree(engine, tree, context)
        context.commit()
        result.scanned_files.append(filename)
        return result

    def scan_files(
        self,
        paths: Iterable[os.PathLike | str],
        workers: int = 1,
        deadline: Optional[float] = None,
    ) -> LintResult:
        """Parse and scan ``paths``, optionally on ``workers`` threads.

        Findings are committed file by file in the order of ``paths``. A
        ``deadline`` (a :func:`time.monotonic` value) and configuration errors
        stop the batch between files; files already committed are kept.
        """

        if self.parser is None:
            raise ConfigurationError("No parser configured")
        result = self._new_result()
        file_list = [str(path) for path in paths]

        with ThreadPoolExecutor(max_workers=workers) if workers > 1 else _NoPool() as pool:
            pending = self._schedule(pool, file_list, result.findings)
            for index, (path, outcome) in enumerate(pending):
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("Deadline reached, %d file(s) not scanned", len(file_list) - index)
                    result.skipped_files.extend(file_list[index:])
                    pool.shutdown(wait=True, cancel_futures=True)
                    break
                try:
                    context = outcome()
                except ConfigurationError as exc:
                    logger.error("Scan aborted at %s: %s", path, exc)
                    result.aborted = str(exc)
                    result.skipped_files.extend(file_list[index:])
                    pool.shutdown(wait=True, cancel_futures=True)
                    break
                context.commit()
                result.scanned_files.append(path)
        return result

    def scan_file(self, path: os.PathLike | str) -> LintResult:
        return self.scan_files([path])

    def _schedule(
        self,
        pool: Any,
        paths: Sequence[str],
        collection: FindingCollection,
    ) -> Iterator[Tuple[str, Callable[[], ScanContext]]]:
        if isinstance(pool, _NoPool):
            for path in paths:
                yield path, (lambda path=path: self._scan_one(path, collection))
            return
        futures = [pool.submit(self._scan_one, path, collection) for path in paths]
        for path, future in zip(paths, futures):
            yield path, future.result

    def _scan_one(self, path: str, collection: FindingCollection) -> ScanContext:
        context, engine = self._context_for(path, collection)
        try:
            tree = self.parser(path)
        except ConfigurationError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            reason = exc.reason if isinstance(exc, ParseError) else f"{type(exc).__name__}: {exc}"
            logger.warning("Could not parse %s: %s", path, reason)
            context.add_finding(PARSE_ERROR, (1, 1), reason)
            return context
        logger.debug("Scanning %s", path)
        _run_tree(engine, tree, context)
        return context


def _run_tree(engine: DispatchEngine, tree: Optional[Node], context: ScanContext) -> None:
    """Walk ``tree``; a missing or malformed tree becomes a ``PARSE_ERROR`` finding."""

    if tree is None:
        logger.warning("Parser returned no syntax tree for %s", context.path)
        context.add_finding(PARSE_ERROR, (1, 1), "parser returned no syntax tree")
        return
    try:
        engine.run(tree, context)
    except ConfigurationError:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        reason = f"malformed syntax tree: {type(exc).__name__}: {exc}"
        logger.warning("Could not walk %s: %s", context.path, reason)
        context.add_finding(PARSE_ERROR, (1, 1), reason)


class _NoPool:
    """Stand-in for an executor when scanning on the calling thread."""

    def __enter__(self) -> "_NoPool":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        return None
