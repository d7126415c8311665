"""Detect debug dumps left in markup and script."""

from __future__ import annotations

import re

from tagscan.config import RuleMessage
from tagscan.nodes import STATEMENT_CATEGORIES, Node, NodeCategory, head_text
from tagscan.severity import Severity

from . import Rule, ScanContext

WRITEDUMP_PATTERN = re.compile(r"(?i)\bwriteDump\s*\(")


class CFDumpRule:
    """Report ``<cfdump>`` tags."""

    name = "cfdump_tag"
    categories = frozenset({NodeCategory.ELEMENT})
    messages = (
        RuleMessage("AVOID_USING_CFDUMP_TAG", Severity.WARNING, "Avoid leaving <cfdump> tags in committed code."),
    )

    def visit(self, node: Node, context: ScanContext) -> None:
        tag = (getattr(node, "name", None) or "").lower()
        if tag == "cfdump":
            context.add_finding("AVOID_USING_CFDUMP_TAG", node)


class WriteDumpRule:
    """Report ``writeDump()`` calls in script statements."""

    name = "write_dump"
    categories = STATEMENT_CATEGORIES
    messages = (
        RuleMessage("AVOID_USING_WRITEDUMP", Severity.INFO, "Avoid leaving writeDump() calls in committed code."),
    )

    def visit(self, node: Node, context: ScanContext) -> None:
        if WRITEDUMP_PATTERN.search(head_text(node)):
            context.add_finding("AVOID_USING_WRITEDUMP", node)


def get_rules() -> list[Rule]:
    return [CFDumpRule(), WriteDumpRule()]
