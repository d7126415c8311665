"""Syntax node categories and the node shape the engine walks.

Parsers are external; the engine only needs each node to report its
category, its location, its children and a decompiled source text.
:class:`SyntaxNode` is a plain implementation parsers (and tests) can use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Protocol, Sequence, Tuple


class NodeCategory(str, Enum):
    """Closed set of node kinds rules can subscribe to."""

    DOCUMENT = "document"
    COMPONENT = "component"
    FUNCTION = "function"
    ELEMENT = "element"
    TEXT = "text"
    EXPRESSION_STATEMENT = "expression_statement"
    IF = "if"
    SWITCH = "switch"
    FOR = "for"
    FOR_IN = "for_in"
    WHILE = "while"
    DO_WHILE = "do_while"
    BLOCK = "block"
    EXPRESSION = "expression"
    OTHER = "other"


STATEMENT_CATEGORIES = frozenset(
    {
        NodeCategory.EXPRESSION_STATEMENT,
        NodeCategory.IF,
        NodeCategory.SWITCH,
        NodeCategory.FOR,
        NodeCategory.FOR_IN,
        NodeCategory.WHILE,
        NodeCategory.DO_WHILE,
    }
)


class Node(Protocol):
    """Shape of a node produced by an external parser."""

    category: NodeCategory
    line: int
    column: int

    @property
    def children(self) -> Sequence["Node"]: ...

    def decompile(self) -> str: ...


@dataclass
class SyntaxNode:
    """A parsed node.

    ``head`` holds the controlling expression of a statement (the condition
    of an ``if``, the variable of a ``switch``, the structure of a ``for-in``)
    or the start tag content of an element. ``name`` is the tag or function
    name where one applies.
    """

    category: NodeCategory
    source: str = ""
    line: int = 1
    column: int = 1
    children: Tuple["SyntaxNode", ...] = field(default_factory=tuple)
    head: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        self.category = NodeCategory(self.category)
        self.children = tuple(self.children)

    def decompile(self) -> str:
        return self.source


COMPOUND_CATEGORIES = STATEMENT_CATEGORIES - {NodeCategory.EXPRESSION_STATEMENT}


def start_tag(source: str) -> str:
    """Return the content of the opening tag at the start of ``source``."""

    text = source.lstrip()
    if not text.startswith("<"):
        return ""
    end = text.find(">")
    return text[1:end] if end != -1 else text[1:]


def head_text(node: Node) -> str:
    """Return the text a rule should inspect for ``node``.

    Compound statements and elements never expose their body here: the
    nested nodes are visited on their own. A compound statement without a
    ``head`` yields an empty string; an element falls back to its start tag.
    """

    head = getattr(node, "head", None)
    if head is not None:
        return head
    if node.category in COMPOUND_CATEGORIES:
        return ""
    if node.category == NodeCategory.ELEMENT:
        return start_tag(node.decompile())
    return node.decompile()


def walk(root: Node) -> Iterator[Node]:
    """Yield ``root`` and its descendants depth-first in document order."""

    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(tuple(node.children)))
