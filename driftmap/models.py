"""Data models for DriftMap."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from .utils import encode_value


class ChangeKind(Enum):
    PROPERTY_ADDED = "PropertyAdded"
    PROPERTY_REMOVED = "PropertyRemoved"
    OBJECT_ADDED = "ObjectAdded"
    OBJECT_REMOVED = "ObjectRemoved"
    MODIFIED = "Modified"


ADDITIONS = frozenset({ChangeKind.PROPERTY_ADDED, ChangeKind.OBJECT_ADDED})
REMOVALS = frozenset({ChangeKind.PROPERTY_REMOVED, ChangeKind.OBJECT_REMOVED})


@dataclass
class ChangeContext:
    """Source-text coordinates of a change, each side independently optional."""
    original_line: Optional[int] = None
    original_column: Optional[int] = None
    new_line: Optional[int] = None
    new_column: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "original_line": self.original_line,
            "original_column": self.original_column,
            "new_line": self.new_line,
            "new_column": self.new_column,
        }


@dataclass(eq=False)
class Diff:
    """A single property-level difference between the two documents."""
    property: str
    kind: ChangeKind
    original: Any = None
    new: Any = None
    context: ChangeContext = field(default_factory=ChangeContext)
    original_object: Any = None
    new_object: Any = None
    breaking: bool = False
    path: str = ""
    type: str = ""

    @property
    def attributed(self) -> bool:
        return bool(self.path)

    @property
    def original_encoded(self) -> str:
        return _encode(self.original)

    @property
    def new_encoded(self) -> str:
        return _encode(self.new)

    def to_dict(self) -> dict:
        return {
            "property": self.property,
            "kind": self.kind.value,
            "original": self.original,
            "new": self.new,
            "context": self.context.to_dict(),
            "breaking": self.breaking,
            "path": self.path,
            "type": self.type,
        }


def _encode(value: Any) -> str:
    # Structured values only; scalars are rendered directly.
    if isinstance(value, (dict, list)):
        return encode_value(value)
    return ""


@dataclass(eq=False)
class DiffGroup:
    """
    A container of diffs mirroring one OpenAPI object.

    Own property-level diffs live in ``changes``. Nested groups are kept per
    field: ``children`` for single objects, ``maps`` for keyed objects and
    ``lists`` for positional members. Extension diffs have their own group.
    ``reference`` is the $ref through which the object was reached, if any;
    one referenced group is shared by the definition and every use of it.
    """
    kind: str
    name: str = ""
    changes: list[Diff] = field(default_factory=list)
    children: dict[str, DiffGroup] = field(default_factory=dict)
    maps: dict[str, dict[str, DiffGroup]] = field(default_factory=dict)
    lists: dict[str, list[DiffGroup]] = field(default_factory=dict)
    extensions: Optional[DiffGroup] = None
    new_hash: Optional[str] = None
    original_hash: Optional[str] = None
    new_object: Any = None
    original_object: Any = None
    reference: str = ""

    def child(self, name: str) -> Optional[DiffGroup]:
        return self.children.get(name)

    def mapped(self, name: str) -> dict[str, DiffGroup]:
        return self.maps.get(name, {})

    def listed(self, name: str) -> list[DiffGroup]:
        return self.lists.get(name, [])

    def property_changes(self) -> list[Diff]:
        """Own property-level diffs, without any nested group."""
        return list(self.changes)

    def properties_only(self) -> DiffGroup:
        """Return a view of this group stripped of every nested group."""
        return DiffGroup(
            kind=self.kind,
            name=self.name,
            changes=list(self.changes),
            new_hash=self.new_hash,
            original_hash=self.original_hash,
            new_object=self.new_object,
            original_object=self.original_object,
            reference=self.reference,
        )

    def child_groups(self) -> Iterator[DiffGroup]:
        """Yield directly nested groups in field order."""
        yield from self.children.values()
        for entries in self.maps.values():
            yield from entries.values()
        for members in self.lists.values():
            yield from members
        if self.extensions is not None:
            yield self.extensions

    def walk(self) -> Iterator[DiffGroup]:
        """Yield this group and every nested group once, even through cycles."""
        seen: set[int] = set()
        stack = [self]
        while stack:
            group = stack.pop()
            if id(group) in seen:
                continue
            seen.add(id(group))
            yield group
            stack.extend(reversed(list(group.child_groups())))

    def all_changes(self) -> list[Diff]:
        """Flatten every diff in this group and its nested groups."""
        changes = []
        for group in self.walk():
            changes.extend(group.changes)
        return changes

    def total_changes(self) -> int:
        return len(self.all_changes())

    def total_breaking_changes(self) -> int:
        return sum(1 for c in self.all_changes() if c.breaking)

    def is_empty(self) -> bool:
        return not self.all_changes()

    def to_dict(self, _seen: Optional[set] = None) -> dict:
        seen = _seen if _seen is not None else set()
        if id(self) in seen:
            return {"kind": self.kind, "name": self.name, "cycle": True}
        seen = seen | {id(self)}

        result = {
            "kind": self.kind,
            "name": self.name,
            "changes": [c.to_dict() for c in self.changes],
        }
        if self.reference:
            result["reference"] = self.reference
        if self.children:
            result["children"] = {k: g.to_dict(seen) for k, g in self.children.items()}
        if self.maps:
            result["maps"] = {
                f: {k: g.to_dict(seen) for k, g in entries.items()}
                for f, entries in self.maps.items()
            }
        if self.lists:
            result["lists"] = {
                f: [g.to_dict(seen) for g in members]
                for f, members in self.lists.items()
            }
        if self.extensions is not None:
            result["extensions"] = self.extensions.to_dict(seen)
        return result


@dataclass(eq=False)
class NodeChange:
    """The record attached to a semantic node during distribution."""
    id: str
    id_hash: str
    type: str
    group: DiffGroup
    path: str = ""
    array_index: Optional[int] = None

    def property_changes(self) -> list[Diff]:
        return self.group.property_changes()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "id_hash": self.id_hash,
            "type": self.type,
            "path": self.path,
            "array_index": self.array_index,
            "changes": [c.to_dict() for c in self.property_changes()],
        }


@dataclass
class Edge:
    """A directed link between two semantic nodes."""
    source: str
    target: str
    ref: str = ""
    poly: str = ""

    @property
    def id(self) -> str:
        if self.ref:
            return f"{self.source}->{self.target}@{self.ref}"
        return f"{self.source}->{self.target}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "ref": self.ref,
            "poly": self.poly,
        }


@dataclass
class RuleResult:
    """A static-analysis finding attached to a node."""
    rule_id: str
    message: str
    severity: str = "warn"
    path: str = ""

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "message": self.message,
            "severity": self.severity,
            "path": self.path,
        }


@dataclass(eq=False)
class SemanticNode:
    """A node of the right-hand document's semantic tree."""
    id: str
    type: str
    label: str = ""
    parent_id: Optional[str] = None
    array_index: Optional[int] = None
    instance: Any = None
    changes: list[NodeChange] = field(default_factory=list)
    children: list[SemanticNode] = field(default_factory=list)
    rule_results: list[RuleResult] = field(default_factory=list)
    render_changes: bool = False
    render_props: bool = False
    id_hash: str = field(init=False)

    def __post_init__(self):
        self.id_hash = hashlib.sha256(self.id.encode("utf-8")).hexdigest()

    def add_change(self, change: NodeChange):
        self.changes.append(change)

    def has_changes(self) -> bool:
        return bool(self.changes)

    def property_changes(self) -> list[Diff]:
        changes = []
        for node_change in self.changes:
            changes.extend(node_change.property_changes())
        return changes

    def add_rule_result(self, result: RuleResult):
        self.rule_results.append(result)

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "id_hash": self.id_hash,
            "parent_id": self.parent_id,
            "type": self.type,
            "label": self.label,
            "array_index": self.array_index,
            "children": [c.to_dict() for c in self.children],
        }
        if self.render_changes:
            result["changes"] = [c.to_dict() for c in self.changes]
        if self.rule_results:
            result["rule_results"] = [r.to_dict() for r in self.rule_results]
        return result


@dataclass
class ChangeStatistics:
    """Counts over a deduplicated change set."""
    additions: int = 0
    modifications: int = 0
    removals: int = 0

    @property
    def total(self) -> int:
        return self.additions + self.modifications + self.removals

    def to_dict(self) -> dict:
        return {
            "additions": self.additions,
            "modifications": self.modifications,
            "removals": self.removals,
            "total": self.total,
        }


@dataclass
class BuildError:
    """A structured, non-fatal error surfaced on the error channel."""
    message: str
    path: str = ""
    ref: str = ""
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "path": self.path,
            "ref": self.ref,
            "line": self.line,
            "column": self.column,
        }
