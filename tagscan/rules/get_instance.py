"""Flag injector lookups that name a component file missing from the project."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from tagscan.config import RuleMessage
from tagscan.nodes import STATEMENT_CATEGORIES, Node, NodeCategory, head_text
from tagscan.severity import Severity
from tagscan.utils import ROOT_MARKER

from . import Rule, ScanContext

CODE = "INCORRECT_COMPONENT_NAME"
GET_INSTANCE_PATTERN = re.compile(
    r"(?i)application\.injector\.getInstance\(['\"]{1,2}([\w.]+)['\"]{1,2}\)"
)
COMPONENT_EXTENSION = "cfc"


class GetInstanceRule:
    """Check ``application.injector.getInstance("a.b.C")`` against the filesystem.

    The dotted name is resolved to ``a/b/C.cfc`` under the project root,
    the nearest directory holding the root marker file. Without a project
    root the name is resolved against the current working directory. Only
    the first lookup in a node's text is checked.
    """

    name = "get_instance"
    categories = STATEMENT_CATEGORIES | {NodeCategory.ELEMENT}
    messages = (
        RuleMessage(
            CODE,
            Severity.ERROR,
            "Component {0} passed to application.injector.getInstance() does not exist.",
        ),
    )

    def visit(self, node: Node, context: ScanContext) -> None:
        match = GET_INSTANCE_PATTERN.search(head_text(node))
        if match is None:
            return
        component_name = match.group(1)
        if not self._component_exists(component_name, context):
            context.add_finding(CODE, node, component_name)

    def _component_exists(self, component_name: str, context: ScanContext) -> bool:
        root = self._lookup_root(context)
        extension = context.parameter(CODE, "componentExtension", COMPONENT_EXTENSION)
        relative = component_name.replace(".", "/") + "." + extension.lstrip(".")
        try:
            return (root / relative).exists()
        except OSError:
            return False

    def _lookup_root(self, context: ScanContext) -> Path:
        marker = context.parameter(CODE, "rootMarker", ROOT_MARKER)
        root: Optional[Path] = context.project_root(marker)
        if root is None:
            return Path.cwd()
        return root


def get_rule() -> Rule:
    return GetInstanceRule()
