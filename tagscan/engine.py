"""Walk a syntax tree and dispatch each node to the rules observing it."""

from __future__ import annotations

import logging

from .config import PLUGIN_ERROR
from .context import ScanContext
from .errors import ConfigurationError
from .nodes import Node, walk
from .rules import RuleRegistry

logger = logging.getLogger(__name__)

RULE_ERROR_POLICIES = ("finding", "log")


class DispatchEngine:
    """Run registered rules over one tree per call.

    A rule that raises while visiting a node is reported as a
    ``PLUGIN_ERROR`` finding (or only logged with ``rule_error_policy="log"``)
    and the walk continues. Configuration errors propagate.
    """

    def __init__(self, registry: RuleRegistry, rule_error_policy: str = "finding") -> None:
        if rule_error_policy not in RULE_ERROR_POLICIES:
            raise ConfigurationError(f"Unknown rule error policy: {rule_error_policy}")
        self.registry = registry
        self.rule_error_policy = rule_error_policy

    def run(self, tree: Node, context: ScanContext) -> None:
        for node in walk(tree):
            for rule in self.registry.rules_for(node.category):
                try:
                    rule.visit(node, context)
                except ConfigurationError:
                    raise
                except Exception as exc:  # pylint: disable=broad-except
                    self._rule_failed(rule, node, context, exc)

    def _rule_failed(self, rule, node: Node, context: ScanContext, exc: Exception) -> None:
        logger.warning(
            "Rule %s failed on %s:%s:%s: %s",
            rule.name,
            context.path,
            node.line,
            node.column,
            exc,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
        if self.rule_error_policy == "finding":
            context.add_finding(PLUGIN_ERROR, node, rule.name, f"{type(exc).__name__}: {exc}")
