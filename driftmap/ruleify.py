"""Transfer of static-analysis results from the left tree to the changed nodes."""

from __future__ import annotations

from typing import Iterable

from .document import SemanticDocument
from .models import SemanticNode


def transfer_rule_results(left: SemanticDocument, changed_nodes: Iterable[SemanticNode]) -> int:
    """
    Copy the rule results of each left node onto the changed node with the same id.

    Returns:
        Number of results copied
    """
    if left is None or not left.nodes:
        return 0

    left_by_id: dict[str, SemanticNode] = {}
    for node in left.nodes:
        if node.id and node.id not in left_by_id:
            left_by_id[node.id] = node

    copied = 0
    for node in changed_nodes:
        if node is None or not node.id:
            continue
        left_node = left_by_id.get(node.id)
        if left_node is None or not left_node.rule_results:
            continue
        for result in left_node.rule_results:
            node.add_rule_result(result)
            copied += 1
    return copied
