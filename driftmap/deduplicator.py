"""Hierarchy-aware deduplication of the diffs carried by a node tree."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Optional

from .models import ChangeStatistics, Diff, SemanticNode
from .statistics import calculate_statistics
from .utils import format_scalar


@dataclass
class _Claim:
    change: Diff
    node_id: str
    depth: int
    node_path: list[str] = field(default_factory=list)


class ChangeDeduplicator:
    """
    Keeps one copy of each diff, claimed by the deepest node it appears on.

    A diff seen again on a deeper node moves there; seen again on a node at
    the same depth or shallower, it is dropped.

    Usage:
        dedup = ChangeDeduplicator()
        for node in nodes:
            dedup.deduplicate_node_changes(node)
        stats = dedup.get_statistics()
    """

    def __init__(self):
        self._seen: dict[str, _Claim] = {}
        self._by_node: dict[str, list[Diff]] = {}
        self._parents: dict[str, str] = {}

    @staticmethod
    def change_hash(change: Diff) -> str:
        """Semantic hash over property, kind, values and new coordinates."""
        text = "{}:{}:{}:{}".format(
            change.property,
            change.kind.value,
            change.original_encoded or format_scalar(change.original),
            change.new_encoded or format_scalar(change.new),
        )
        ctx = change.context
        if ctx.new_line is not None and ctx.new_column is not None:
            text += f":{ctx.new_line}:{ctx.new_column}"
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def register_node(self, node_id: str, parent_id: Optional[str]):
        if parent_id:
            self._parents[node_id] = parent_id

    def depth(self, node_id: str) -> int:
        depth = 0
        current = node_id
        seen = {current}
        while current in self._parents:
            current = self._parents[current]
            if current in seen:
                break
            seen.add(current)
            depth += 1
        return depth

    def node_path(self, node_id: str) -> list[str]:
        path = [node_id]
        current = node_id
        while current in self._parents and self._parents[current] not in path:
            current = self._parents[current]
            path.insert(0, current)
        return path

    def process_change(self, change: Diff, node_id: str) -> bool:
        """
        Offer a diff seen at a node.

        Returns:
            True when the diff was not seen before
        """
        hash_ = self.change_hash(change)
        depth = self.depth(node_id)

        existing = self._seen.get(hash_)
        if existing is not None:
            if depth > existing.depth:
                previous = self._by_node.get(existing.node_id, [])
                self._by_node[existing.node_id] = [
                    c for c in previous if self.change_hash(c) != hash_
                ]
                existing.node_id = node_id
                existing.depth = depth
                existing.node_path = self.node_path(node_id)
                self._by_node.setdefault(node_id, []).append(change)
            return False

        self._seen[hash_] = _Claim(change, node_id, depth, self.node_path(node_id))
        self._by_node.setdefault(node_id, []).append(change)
        return True

    def get_unique_changes_for_node(self, node_id: str) -> list[Diff]:
        return list(self._by_node.get(node_id, []))

    def get_all_unique_changes(self) -> list[Diff]:
        return [claim.change for claim in self._seen.values()]

    def deduplicate_node_changes(self, node: SemanticNode):
        """Offer every diff of a node, then keep only the NodeChanges it still claims."""
        if node is None or not node.changes:
            return

        self.register_node(node.id, node.parent_id)
        for node_change in node.changes:
            for change in node_change.group.all_changes():
                self.process_change(change, node.id)

        kept = []
        for node_change in node.changes:
            for change in node_change.group.all_changes():
                claim = self._seen.get(self.change_hash(change))
                if claim is not None and claim.node_id == node.id:
                    kept.append(node_change)
                    break
        node.changes = kept

    def get_statistics(self) -> ChangeStatistics:
        return calculate_statistics(self.get_all_unique_changes())

    def get_duplicate_count(self) -> int:
        processed = sum(len(changes) for changes in self._by_node.values())
        return processed - len(self._seen)

    def reset(self):
        self._seen = {}
        self._by_node = {}
        self._parents = {}
