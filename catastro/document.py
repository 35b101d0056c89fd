"""
Catastro – schema-less reader for OVC XML and Sede HTML

The upstream responses are loosely documented and vary between endpoints
(and sometimes between calls), so nothing here knows about any particular
schema. A document becomes a plain recursive structure:

    leaf      -> str (trimmed text)
    sequence  -> list of nodes (repeated elements, document order)
    mapping   -> dict of lowercase local-name -> node

and fields are looked up generically with find_first().

Namespace prefixes ("soap:Body" -> "body") and xmlns declarations are dropped.
"""

from __future__ import annotations

import warnings
from typing import Any, Iterator, Union

from bs4 import BeautifulSoup, Tag, XMLParsedAsHTMLWarning

Node = Union[str, list, dict]

# OVC XML goes through html.parser on purpose (no lxml dependency).
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)


def _local_name(name: str) -> str:
    return name.rsplit(":", 1)[-1].lower()


def _build(tag: Tag) -> Node:
    children = [c for c in tag.children if isinstance(c, Tag)]
    if not children:
        return tag.get_text().strip()

    out: dict[str, Any] = {}
    for child in children:
        key = _local_name(child.name)
        value = _build(child)
        if key not in out:
            out[key] = value
        elif isinstance(out[key], list):
            out[key].append(value)
        else:
            out[key] = [out[key], value]
    return out


def parse(text: str) -> Node:
    """Parse XML or HTML into a Node. Empty input gives an empty dict."""
    if not text or not text.strip():
        return {}
    soup = BeautifulSoup(text, "html.parser")
    tree = _build(soup)
    return tree if tree != "" else {}


def is_empty(tree: Node) -> bool:
    return not tree


def _items(node: Node) -> Iterator[tuple[str, Node]]:
    if isinstance(node, dict):
        yield from node.items()
    elif isinstance(node, list):
        for item in node:
            yield from _items(item)


def _first_text(value: Node) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item:
                return item
    return None


def find_first(tree: Node, name: str) -> str | None:
    """
    First non-empty text value of a field called `name` (case-insensitive).

    Every field at one depth is checked before any child is entered, so a
    shallow match always wins over a deeper one. Repeated elements are
    scanned in document order.
    """
    target = name.lower()
    level = [tree]
    while level:
        deeper: list[Node] = []
        for node in level:
            for key, value in _items(node):
                if key == target:
                    text = _first_text(value)
                    if text:
                        return text
                if not isinstance(value, str):
                    deeper.append(value)
        level = deeper
    return None


def find_nodes(tree: Node, name: str) -> list[Node]:
    """All subtrees called `name`, breadth-first, repeated elements flattened."""
    target = name.lower()
    found: list[Node] = []
    level = [tree]
    while level:
        deeper: list[Node] = []
        for node in level:
            for key, value in _items(node):
                if key == target:
                    found.extend(value if isinstance(value, list) else [value])
                if not isinstance(value, str):
                    deeper.append(value)
        level = deeper
    return found


def find_node(tree: Node, name: str) -> Node | None:
    nodes = find_nodes(tree, name)
    return nodes[0] if nodes else None
