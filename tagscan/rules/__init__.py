"""Rule protocol and registry."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Protocol, Tuple

from tagscan.config import RuleConfiguration, RuleGroup, RuleMessage
from tagscan.context import ScanContext
from tagscan.errors import ConfigurationError
from tagscan.nodes import Node, NodeCategory

logger = logging.getLogger(__name__)

RULE_GROUPS: Tuple[RuleGroup, ...] = (
    RuleGroup(
        "Correctness",
        ("INCORRECT_COMPONENT_NAME",),
        "References that cannot be resolved at runtime.",
    ),
    RuleGroup(
        "Debugging",
        ("AVOID_USING_CFDUMP_TAG", "AVOID_USING_WRITEDUMP"),
        "Debug output left in code.",
    ),
)


class Rule(Protocol):
    """Protocol implemented by all rules."""

    name: str
    categories: FrozenSet[NodeCategory]
    messages: Tuple[RuleMessage, ...]

    def visit(self, node: Node, context: ScanContext) -> None:
        """Inspect ``node`` and report through ``context.add_finding``."""


class RuleRegistry:
    """Index rules by the node categories they observe.

    Rules whose codes are all disabled are left out when registered, so
    dispatch never has to consult the configuration.
    """

    def __init__(self, configuration: RuleConfiguration) -> None:
        self._configuration = configuration
        self._rules: List[Rule] = []
        self._index: Dict[NodeCategory, List[Rule]] = {}

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules)

    def register(self, rule: Rule) -> bool:
        """Register ``rule``; return ``False`` when it is disabled."""

        codes = [message.code for message in rule.messages]
        for code in codes:
            if not self._configuration.knows(code):
                raise ConfigurationError(f"Rule {rule.name} declares unknown code {code}")
        if not any(self._configuration.is_enabled(code) for code in codes):
            logger.debug("Rule %s is disabled", rule.name)
            return False
        self._rules.append(rule)
        for category in rule.categories:
            self._index.setdefault(NodeCategory(category), []).append(rule)
        return True

    def rules_for(self, category: NodeCategory) -> Tuple[Rule, ...]:
        return tuple(self._index.get(category, ()))

    def __len__(self) -> int:
        return len(self._rules)


def build_registry(rules: Iterable[Rule], configuration: RuleConfiguration) -> RuleRegistry:
    registry = RuleRegistry(configuration)
    for rule in rules:
        registry.register(rule)
    return registry


def load_rules() -> List[Rule]:
    from .dump import CFDumpRule, WriteDumpRule
    from .get_instance import GetInstanceRule

    return [
        GetInstanceRule(),
        CFDumpRule(),
        WriteDumpRule(),
    ]


__all__ = [
    "RULE_GROUPS",
    "Rule",
    "RuleRegistry",
    "ScanContext",
    "build_registry",
    "load_rules",
]
