"""Pruning of the semantic tree down to the nodes that carry changes."""

from __future__ import annotations

from typing import Iterable, Optional

from .models import Edge, SemanticNode


def changerify(nodes: list[SemanticNode], collected: Optional[list[SemanticNode]] = None) -> list[SemanticNode]:
    """
    Filter a list of sibling nodes, bottom-up.

    A node survives when it has a change of its own or a surviving child.
    Surviving nodes have their child list replaced by the filtered one, their
    render flags switched on and their model instance detached. They are also
    appended to `collected` in post order (deepest first).

    Args:
        nodes: Sibling nodes to filter
        collected: Receives every surviving node

    Returns:
        The surviving siblings, in their original order
    """
    if collected is None:
        collected = []

    filtered = []
    for node in nodes:
        if node.children:
            node.children = changerify(node.children, collected)

        if node.changes or node.children:
            node.render_changes = True
            node.render_props = True
            node.instance = None
            filtered.append(node)
            collected.append(node)
    return filtered


def unique_nodes(nodes: Iterable[SemanticNode]) -> list[SemanticNode]:
    """First node per id, order preserved."""
    seen: set[str] = set()
    unique = []
    for node in nodes:
        if node.id not in seen:
            seen.add(node.id)
            unique.append(node)
    return unique


def select_edges(nodes: list[SemanticNode], edges: Iterable[Edge]) -> list[Edge]:
    """
    Choose the edges that connect surviving nodes to their parents.

    One edge per (source, target) pair survives; a reference edge wins over
    a structural one.
    """
    by_target: dict[str, list[Edge]] = {}
    for edge in edges:
        by_target.setdefault(edge.target, []).append(edge)

    candidates: dict[str, Edge] = {}
    for node in nodes:
        for edge in by_target.get(node.id, []):
            if edge.source == node.parent_id and edge.id not in candidates:
                candidates[edge.id] = edge

    chosen: dict[tuple[str, str], Edge] = {}
    for edge in candidates.values():
        pair = (edge.source, edge.target)
        current = chosen.get(pair)
        if current is None:
            chosen[pair] = edge
        elif edge.ref and not current.ref:
            chosen[pair] = edge
    return list(chosen.values())
