import pytest

from tagscan.config import PLUGIN_ERROR, ConfigOverrides, RuleMessage
from tagscan.context import ScanContext
from tagscan.engine import DispatchEngine
from tagscan.errors import ConfigurationError
from tagscan.linter import build_configuration
from tagscan.nodes import NodeCategory, SyntaxNode
from tagscan.result import FindingCollection
from tagscan.rules import build_registry
from tagscan.severity import Severity


class MarkerRule:
    """Report every node of its categories whose source contains ``marker``."""

    def __init__(self, name, code, categories, marker="!"):
        self.name = name
        self.categories = frozenset(categories)
        self.messages = (RuleMessage(code, Severity.WARNING, f"{code} at {{0}}"),)
        self.marker = marker
        self.visited = []

    def visit(self, node, context):
        self.visited.append(node)
        if self.marker in node.decompile():
            context.add_finding(self.messages[0].code, node, node.decompile())


class ExplodingRule:
    name = "exploding"
    categories = frozenset({NodeCategory.EXPRESSION_STATEMENT})
    messages = (RuleMessage("EXPLODING", Severity.INFO, "never"),)

    def visit(self, node, context):
        raise RuntimeError("boom")


def _run(rules, tree, overrides=None, policy="finding"):
    configuration = build_configuration(rules, overrides)
    collection = FindingCollection()
    registry = build_registry(rules, configuration)
    context = ScanContext("page.cfm", configuration, collection)
    DispatchEngine(registry, policy).run(tree, context)
    context.commit()
    return collection, registry


def _tree():
    return SyntaxNode(
        NodeCategory.DOCUMENT,
        children=(
            SyntaxNode(NodeCategory.ELEMENT, "<cfoutput!>", line=1, column=1, name="cfoutput", children=(
                SyntaxNode(NodeCategory.EXPRESSION_STATEMENT, "x = 1!", line=2, column=3),
                SyntaxNode(NodeCategory.IF, "if (a!) {}", line=3, column=3, children=(
                    SyntaxNode(NodeCategory.EXPRESSION_STATEMENT, "y!", line=4, column=5),
                )),
            )),
            SyntaxNode(NodeCategory.EXPRESSION_STATEMENT, "z!", line=6, column=1),
        ),
    )


@pytest.mark.parametrize("category", [c for c in NodeCategory if c is not NodeCategory.DOCUMENT])
def test_one_matching_node_yields_one_finding(category):
    rule = MarkerRule("marker", "MARKER", {category})
    tree = SyntaxNode(NodeCategory.DOCUMENT, children=(SyntaxNode(category, "hit!", line=2, column=4),))

    collection, _ = _run([rule], tree)

    assert [(f.code, f.line, f.column) for f in collection] == [("MARKER", 2, 4)]


def test_walk_visits_every_node_in_document_order():
    rule = MarkerRule("everything", "ALL", set(NodeCategory), marker="\x00")

    _run([rule], _tree())

    assert [node.line for node in rule.visited] == [1, 1, 2, 3, 4, 6]


def test_findings_sorted_by_location_regardless_of_registration():
    statements = MarkerRule("statements", "STMT", {NodeCategory.EXPRESSION_STATEMENT})
    elements = MarkerRule("elements", "ELEM", {NodeCategory.ELEMENT, NodeCategory.IF})

    collection, _ = _run([statements, elements], _tree())

    assert [(f.line, f.code) for f in collection] == [
        (1, "ELEM"),
        (2, "STMT"),
        (3, "ELEM"),
        (4, "STMT"),
        (6, "STMT"),
    ]


def test_same_node_keeps_registration_order():
    second = MarkerRule("second", "SECOND", {NodeCategory.EXPRESSION_STATEMENT})
    first = MarkerRule("first", "FIRST", {NodeCategory.EXPRESSION_STATEMENT})
    tree = SyntaxNode(NodeCategory.DOCUMENT, children=(SyntaxNode(NodeCategory.EXPRESSION_STATEMENT, "a!"),))

    collection, registry = _run([second, first], tree)

    assert [f.code for f in collection] == ["SECOND", "FIRST"]
    assert registry.rules_for(NodeCategory.EXPRESSION_STATEMENT) == (second, first)


def test_disabled_rule_is_not_registered_and_reports_nothing():
    rule = MarkerRule("statements", "STMT", {NodeCategory.EXPRESSION_STATEMENT})
    overrides_rules = {"STMT": {"enabled": False}}

    collection, registry = _run([rule], _tree(), ConfigOverrides(rules=overrides_rules))

    assert len(collection) == 0
    assert len(registry) == 0
    assert rule.visited == []


def test_rule_failure_becomes_plugin_error_and_walk_continues():
    marker = MarkerRule("statements", "STMT", {NodeCategory.EXPRESSION_STATEMENT})

    collection, _ = _run([ExplodingRule(), marker], _tree())

    errors = collection.by_rule(PLUGIN_ERROR)
    assert [f.line for f in errors] == [2, 4, 6]
    assert errors[0].arguments[0] == "exploding"
    assert "boom" in errors[0].message
    assert errors[0].severity is Severity.ERROR
    assert [f.line for f in collection.by_rule("STMT")] == [2, 4, 6]


def test_rule_failure_can_be_logged_only(caplog):
    collection, _ = _run([ExplodingRule()], _tree(), policy="log")

    assert len(collection) == 0
    assert "boom" in caplog.text


def test_configuration_errors_propagate():
    class BadCodeRule(MarkerRule):
        def visit(self, node, context):
            context.add_finding("NOT_DECLARED", node)

    rule = BadCodeRule("bad", "BAD", {NodeCategory.EXPRESSION_STATEMENT})

    with pytest.raises(ConfigurationError):
        _run([rule], _tree())


def test_unknown_policy_rejected():
    with pytest.raises(ConfigurationError):
        _run([], _tree(), policy="ignore")


def test_identical_findings_are_reported_once():
    class TwiceRule(MarkerRule):
        def visit(self, node, context):
            context.add_finding("TWICE", node, "same")
            context.add_finding("TWICE", node, "same")

    collection, _ = _run([TwiceRule("twice", "TWICE", {NodeCategory.IF})], _tree())

    assert len(collection.by_rule("TWICE")) == 1
