"""Rebuild a nested page tree from a flat descendant list."""

from __future__ import annotations

from typing import Iterable, Sequence

from confluence_cli.confluence.models import PageRef, PageTreeNode


def build_tree(pages: Sequence[PageRef], root_id: str) -> list[PageTreeNode]:
    """Nest ``pages`` under their parents and return the top-level nodes.

    Pages hanging directly off ``root_id``, or whose parent is missing from
    ``pages``, are returned at the top level. Pages caught in a parent cycle
    are promoted to the top level too, so every input page appears exactly
    once. Sibling order follows the input.
    """

    nodes: dict[str, PageTreeNode] = {}
    for page in pages:
        nodes[page.id] = PageTreeNode(
            id=page.id,
            title=page.title,
            space_key=page.space_key,
            parent_id=page.parent_id,
        )

    top_level: list[PageTreeNode] = []
    for page in pages:
        node = nodes[page.id]
        parent = nodes.get(page.parent_id) if page.parent_id != root_id else None
        if parent is None or parent is node:
            top_level.append(node)
        else:
            parent.children.append(node)

    reached: set[str] = set()
    for node in top_level:
        _mark_reached(node, reached)

    for page in pages:
        if page.id in reached:
            continue
        node = nodes[page.id]
        parent = nodes[page.parent_id]
        parent.children[:] = [child for child in parent.children if child is not node]
        top_level.append(node)
        _mark_reached(node, reached)
    return top_level


def _mark_reached(node: PageTreeNode, reached: set[str]) -> None:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.id in reached:
            continue
        reached.add(current.id)
        stack.extend(current.children)


def count_nodes(nodes: Iterable[PageTreeNode]) -> int:
    return sum(1 + count_nodes(node.children) for node in nodes)
