"""Property-level diffing of two semantic documents."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .document import ModelObject, SemanticDocument
from .kinds import (
    SINGLE,
    DYNAMIC,
    MAP,
    LIST,
    fields_for,
    is_extension,
    list_identity,
    member_label,
    scalar_keys,
)
from .loader import YamlMapping, YamlSequence
from .models import ChangeContext, ChangeKind, Diff, DiffGroup
from .utils import values_equal

logger = logging.getLogger(__name__)

WILDCARD = "*"


class BreakingRules:
    """
    Decides whether a change breaks consumers of the API.

    Rules are keyed by (object kind, property, change kind); any part may be
    the wildcard "*". The most specific rule wins:

        (kind, property, change) > (kind, property, *) > (kind, *, change)
        > (*, property, change) > (*, *, change)

    Usage:
        rules = BreakingRules({("info", "title", ChangeKind.MODIFIED): True})
        rules.is_breaking("schema", "type", ChangeKind.MODIFIED)
    """

    DEFAULTS: dict[tuple, bool] = {
        ("schema", "type", ChangeKind.MODIFIED): True,
        ("schema", "format", ChangeKind.MODIFIED): True,
        ("schema", "enum", ChangeKind.MODIFIED): True,
        ("schema", "enum", ChangeKind.PROPERTY_ADDED): True,
        ("schema", "required", ChangeKind.MODIFIED): True,
        ("schema", "required", ChangeKind.PROPERTY_ADDED): True,
        ("schema", "properties", ChangeKind.OBJECT_REMOVED): True,
        ("schema", "items", ChangeKind.OBJECT_REMOVED): True,
        ("schema", "allOf", ChangeKind.OBJECT_ADDED): True,
        ("schema", "allOf", ChangeKind.OBJECT_REMOVED): True,
        ("schema", "oneOf", ChangeKind.OBJECT_REMOVED): True,
        ("schema", "anyOf", ChangeKind.OBJECT_REMOVED): True,
        ("paths", "path", ChangeKind.OBJECT_REMOVED): True,
        ("pathItem", WILDCARD, ChangeKind.OBJECT_REMOVED): True,
        ("operation", "operationId", ChangeKind.MODIFIED): True,
        ("operation", "parameters", ChangeKind.OBJECT_REMOVED): True,
        ("operation", "requestBody", ChangeKind.OBJECT_REMOVED): True,
        ("operation", "responses", ChangeKind.OBJECT_REMOVED): True,
        ("responses", "codes", ChangeKind.OBJECT_REMOVED): True,
        ("responses", "default", ChangeKind.OBJECT_REMOVED): True,
        ("parameter", "name", ChangeKind.MODIFIED): True,
        ("parameter", "in", ChangeKind.MODIFIED): True,
        ("parameter", "required", ChangeKind.MODIFIED): True,
        ("parameter", "required", ChangeKind.PROPERTY_ADDED): True,
        ("parameter", "schema", ChangeKind.OBJECT_REMOVED): True,
        ("requestBody", "required", ChangeKind.MODIFIED): True,
        ("requestBody", "content", ChangeKind.OBJECT_REMOVED): True,
        ("response", "content", ChangeKind.OBJECT_REMOVED): True,
        ("mediaType", "schema", ChangeKind.OBJECT_REMOVED): True,
        ("components", "schemas", ChangeKind.OBJECT_REMOVED): True,
        ("components", "securitySchemes", ChangeKind.OBJECT_REMOVED): True,
        ("securityScheme", "type", ChangeKind.MODIFIED): True,
        ("securityScheme", "in", ChangeKind.MODIFIED): True,
        ("securityScheme", "name", ChangeKind.MODIFIED): True,
        ("securityScheme", "scheme", ChangeKind.MODIFIED): True,
        ("oauthFlow", "tokenUrl", ChangeKind.MODIFIED): True,
        ("oauthFlow", "authorizationUrl", ChangeKind.MODIFIED): True,
        ("server", "url", ChangeKind.MODIFIED): True,
    }

    def __init__(self, overrides: Optional[dict[tuple, bool]] = None):
        self.rules = dict(self.DEFAULTS)
        if overrides:
            self.rules.update(overrides)

    def is_breaking(self, kind: str, property: str, change: ChangeKind) -> bool:
        for key in (
            (kind, property, change),
            (kind, property, WILDCARD),
            (kind, WILDCARD, change),
            (WILDCARD, property, change),
            (WILDCARD, WILDCARD, change),
        ):
            if key in self.rules:
                return self.rules[key]
        return False


class Differ:
    """
    Compares two semantic documents kind by kind and builds the diff tree.

    Handles:
    - Plain properties (added, removed, modified) with source coordinates
    - Extensions, collected in their own group
    - Single children, keyed maps and positional lists
    - $ref use sites: one group per definition pair, shared by every use
      and carrying the reference it was reached through
    - Cycles through $ref (the revisit reuses the in-progress group)
    """

    def __init__(self, rules: Optional[BreakingRules] = None):
        self.rules = rules or BreakingRules()
        self._memo: dict[tuple[int, int], DiffGroup] = {}
        self._in_progress: set[int] = set()

    def diff(self, left: SemanticDocument, right: SemanticDocument) -> Optional[DiffGroup]:
        """
        Diff two documents.

        Args:
            left: The original document
            right: The modified document

        Returns:
            The document diff group, or None when nothing changed
        """
        self._memo = {}
        self._in_progress = set()

        group = self.compare(left.root, right.root)
        if group is None:
            return None
        _prune(group, set())
        if group.is_empty():
            return None

        logger.debug(
            "diffed documents: %d changes (%d breaking)",
            group.total_changes(), group.total_breaking_changes(),
        )
        return group

    def compare(self, left: ModelObject, right: ModelObject) -> Optional[DiffGroup]:
        """Compare two model objects of the same kind."""
        key = (id(left.resolved()), id(right.resolved()))
        if key in self._memo:
            existing = self._memo[key]
            if right.reference and not existing.reference:
                existing.reference = right.reference
            if id(existing) in self._in_progress or _occupied(existing):
                return existing
            return None

        group = DiffGroup(
            kind=right.kind,
            name=right.label,
            new_object=right,
            original_object=left,
            reference=right.reference,
        )
        self._memo[key] = group
        self._in_progress.add(id(group))
        try:
            self._compare_properties(group, left, right)
            self._compare_extensions(group, left, right)
            for spec in fields_for(right.kind):
                if spec.shape in (SINGLE, DYNAMIC):
                    self._compare_single(group, spec, left, right)
                elif spec.shape == MAP:
                    self._compare_map(group, spec, left, right)
                elif spec.shape == LIST:
                    self._compare_list(group, spec, left, right)
        finally:
            self._in_progress.discard(id(group))

        return group if _occupied(group) else None

    def _compare_properties(self, group: DiffGroup, left: ModelObject, right: ModelObject):
        """Compare plain (non-object) properties."""
        lv, rv = left.value, right.value
        left_keys = scalar_keys(left.kind, lv)
        right_keys = scalar_keys(right.kind, rv)
        left_set = set(left_keys)

        for key in right_keys:
            if key in left_set:
                if not values_equal(lv[key], rv[key]):
                    group.changes.append(self._change(
                        right.kind, key, ChangeKind.MODIFIED,
                        original=lv[key], new=rv[key],
                        context=_context(lv, key, rv, key),
                        original_object=left, new_object=right,
                    ))
            else:
                group.changes.append(self._change(
                    right.kind, key, ChangeKind.PROPERTY_ADDED,
                    new=rv[key],
                    context=_context(None, None, rv, key),
                    original_object=left, new_object=right,
                ))

        right_set = set(right_keys)
        for key in left_keys:
            if key not in right_set:
                group.changes.append(self._change(
                    right.kind, key, ChangeKind.PROPERTY_REMOVED,
                    original=lv[key],
                    context=_context(lv, key, None, None),
                    original_object=left, new_object=right,
                ))

    def _compare_extensions(self, group: DiffGroup, left: ModelObject, right: ModelObject):
        """Compare x- extensions into a separate extension group."""
        lv = left.value if isinstance(left.value, dict) else {}
        rv = right.value if isinstance(right.value, dict) else {}
        changes = []

        for key, value in rv.items():
            if not is_extension(key):
                continue
            if key in lv:
                if not values_equal(lv[key], value):
                    changes.append(self._change(
                        "extension", key, ChangeKind.MODIFIED,
                        original=lv[key], new=value,
                        context=_context(lv, key, rv, key),
                        original_object=left, new_object=right,
                    ))
            else:
                changes.append(self._change(
                    "extension", key, ChangeKind.PROPERTY_ADDED,
                    new=value,
                    context=_context(None, None, rv, key),
                    original_object=left, new_object=right,
                ))

        for key, value in lv.items():
            if is_extension(key) and key not in rv:
                changes.append(self._change(
                    "extension", key, ChangeKind.PROPERTY_REMOVED,
                    original=value,
                    context=_context(lv, key, None, None),
                    original_object=left, new_object=right,
                ))

        if changes:
            group.extensions = DiffGroup(
                kind="extension",
                name=right.label,
                changes=changes,
                new_object=right,
                original_object=left,
            )

    def _compare_single(self, group: DiffGroup, spec, left: ModelObject, right: ModelObject):
        """Compare a single nested object (or the schema branch of a dynamic value)."""
        left_child = left.child(spec.name)
        right_child = right.child(spec.name)

        if left_child is None and right_child is None:
            return

        if left_child is None:
            group.changes.append(self._change(
                right.kind, spec.name, ChangeKind.OBJECT_ADDED,
                new=right_child.value,
                context=_context(None, None, right.value, spec.name),
                original_object=left, new_object=right_child,
            ))
            return

        if right_child is None:
            group.changes.append(self._change(
                right.kind, spec.name, ChangeKind.OBJECT_REMOVED,
                original=left_child.value,
                context=_context(left.value, spec.name, None, None),
                original_object=left_child, new_object=right,
            ))
            return

        nested = self.compare(left_child, right_child)
        if nested is not None:
            group.children[spec.name] = nested

    def _compare_map(self, group: DiffGroup, spec, left: ModelObject, right: ModelObject):
        """Compare a keyed map of objects, preserving the right-hand key order."""
        left_entries = left.entries(spec.name)
        right_entries = right.entries(spec.name)
        left_raw = _container(left.value, spec)
        right_raw = _container(right.value, spec)
        label = spec.change_label
        nested_groups: dict[str, DiffGroup] = {}

        for key, right_child in right_entries.items():
            left_child = left_entries.get(key)
            if left_child is None:
                group.changes.append(self._change(
                    right.kind, label, ChangeKind.OBJECT_ADDED,
                    new=key,
                    context=_key_context(None, None, right_raw, key),
                    original_object=left, new_object=right_child,
                ))
                continue
            nested = self.compare(left_child, right_child)
            if nested is not None:
                nested_groups[key] = nested

        for key, left_child in left_entries.items():
            if key not in right_entries:
                group.changes.append(self._change(
                    right.kind, label, ChangeKind.OBJECT_REMOVED,
                    original=key,
                    context=_key_context(left_raw, key, None, None),
                    original_object=left_child, new_object=right,
                ))

        if nested_groups:
            group.maps[spec.name] = nested_groups

    def _compare_list(self, group: DiffGroup, spec, left: ModelObject, right: ModelObject):
        """
        Compare a positional list of objects.

        Members pair up by identity first, then by identical content, then by
        position among whatever is left. Unpaired members become groups holding
        a single ObjectAdded or ObjectRemoved.
        """
        left_members = left.members(spec.name)
        right_members = right.members(spec.name)
        if not left_members and not right_members:
            return

        pairs = _pair_members(spec.kind, left_members, right_members)
        paired_left = {id(l) for l, _ in pairs}
        paired_right = {id(r) for _, r in pairs}
        member_groups: list[DiffGroup] = []

        for left_member, right_member in pairs:
            nested = self.compare(left_member, right_member)
            if nested is None:
                continue
            if id(nested) not in self._in_progress:
                nested.new_hash = right_member.hash
                nested.original_hash = left_member.hash
            member_groups.append(nested)

        right_raw = right.value.get(spec.name) if isinstance(right.value, dict) else None
        left_raw = left.value.get(spec.name) if isinstance(left.value, dict) else None

        for member in right_members:
            if id(member) in paired_right:
                continue
            added = self._change(
                right.kind, spec.name, ChangeKind.OBJECT_ADDED,
                new=_member_value(member),
                context=_item_context(None, None, right_raw, member.index),
                original_object=None, new_object=member,
            )
            member_groups.append(DiffGroup(
                kind=member.kind,
                name=member.label,
                changes=[added],
                new_hash=member.hash,
                new_object=member,
            ))

        for member in left_members:
            if id(member) in paired_left:
                continue
            removed = self._change(
                right.kind, spec.name, ChangeKind.OBJECT_REMOVED,
                original=_member_value(member),
                context=_item_context(left_raw, member.index, None, None),
                original_object=member, new_object=None,
            )
            member_groups.append(DiffGroup(
                kind=member.kind,
                name=member.label,
                changes=[removed],
                original_hash=member.hash,
                original_object=member,
            ))

        if member_groups:
            group.lists[spec.name] = member_groups

    def _change(
        self,
        kind: str,
        property: str,
        change: ChangeKind,
        original: Any = None,
        new: Any = None,
        context: Optional[ChangeContext] = None,
        original_object: Any = None,
        new_object: Any = None,
    ) -> Diff:
        return Diff(
            property=property,
            kind=change,
            original=original,
            new=new,
            context=context or ChangeContext(),
            original_object=original_object,
            new_object=new_object,
            breaking=self.rules.is_breaking(kind, property, change),
        )


def _pair_members(kind: str, left: list[ModelObject], right: list[ModelObject]) -> list[tuple]:
    pairs = []
    free_left = list(left)
    free_right = list(right)

    # Identity (server url, tag name, parameter name+in, ...)
    by_identity: dict[Any, ModelObject] = {}
    for member in free_left:
        identity = list_identity(kind, member.value)
        if identity is not None and identity not in by_identity:
            by_identity[identity] = member
    for member in list(free_right):
        identity = list_identity(kind, member.value)
        if identity is not None and identity in by_identity:
            match = by_identity.pop(identity)
            pairs.append((match, member))
            free_left.remove(match)
            free_right.remove(member)

    # Identical content
    by_hash: dict[str, list[ModelObject]] = {}
    for member in free_left:
        by_hash.setdefault(member.hash, []).append(member)
    for member in list(free_right):
        candidates = by_hash.get(member.hash)
        if candidates:
            match = candidates.pop(0)
            pairs.append((match, member))
            free_left.remove(match)
            free_right.remove(member)

    # Position, only for members without an identity of their own
    anonymous_left = [m for m in free_left if list_identity(kind, m.value) is None]
    anonymous_right = [m for m in free_right if list_identity(kind, m.value) is None]
    for left_member, right_member in zip(anonymous_left, anonymous_right):
        pairs.append((left_member, right_member))

    return pairs


def _member_value(member: ModelObject) -> Any:
    label = member_label(member.kind, member.value, "")
    return label or member.value


def _occupied(group: DiffGroup) -> bool:
    return bool(
        group.changes
        or group.children
        or group.maps
        or group.lists
        or group.extensions is not None
    )


def _prune(group: DiffGroup, seen: set):
    """Drop nested groups that ended up without any change."""
    if id(group) in seen:
        return
    seen.add(id(group))

    for name, child in list(group.children.items()):
        _prune(child, seen)
        if child.is_empty():
            del group.children[name]

    for field_name, entries in list(group.maps.items()):
        for key, child in list(entries.items()):
            _prune(child, seen)
            if child.is_empty():
                del entries[key]
        if not entries:
            del group.maps[field_name]

    for field_name, members in list(group.lists.items()):
        for child in members:
            _prune(child, seen)
        kept = [m for m in members if not m.is_empty()]
        if kept:
            group.lists[field_name] = kept
        else:
            del group.lists[field_name]


def _container(value: Any, spec) -> Any:
    if not isinstance(value, dict):
        return None
    if spec.inline:
        return value
    return value.get(spec.name)


def _context(left: Any, left_key: Any, right: Any, right_key: Any) -> ChangeContext:
    context = ChangeContext()
    if isinstance(left, YamlMapping) and left_key is not None:
        context.original_line, context.original_column = left.position_of(left_key)
    if isinstance(right, YamlMapping) and right_key is not None:
        context.new_line, context.new_column = right.position_of(right_key)
    return context


def _key_context(left: Any, left_key: Any, right: Any, right_key: Any) -> ChangeContext:
    context = ChangeContext()
    if isinstance(left, YamlMapping) and left_key is not None:
        context.original_line, context.original_column = left.key_position_of(left_key)
    if isinstance(right, YamlMapping) and right_key is not None:
        context.new_line, context.new_column = right.key_position_of(right_key)
    return context


def _item_context(left: Any, left_index: Any, right: Any, right_index: Any) -> ChangeContext:
    context = ChangeContext()
    if isinstance(left, YamlSequence) and left_index is not None:
        context.original_line, context.original_column = left.position_of(left_index)
    if isinstance(right, YamlSequence) and right_index is not None:
        context.new_line, context.new_column = right.position_of(right_index)
    return context
