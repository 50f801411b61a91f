"""Typed traversal of the right-hand document alongside its diff tree."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .distributor import (
    TravelContext,
    attribute,
    process_maps,
    process_slice,
    push_changes,
    push_changes_from_slice,
    push_reference,
    push_extensions,
    ChangeRecord,
)
from .document import ModelObject
from .exceptions import UnknownKindError
from .kinds import KINDS, SINGLE, DYNAMIC, MAP, LIST, FieldSpec, fields_for
from .models import ChangeKind, DiffGroup

_WHOLE_OBJECT = frozenset({ChangeKind.OBJECT_ADDED, ChangeKind.OBJECT_REMOVED})

# Document-level lists whose added/removed members are reported on the document.
_DOCUMENT_LISTS = {
    "servers": ("$.servers", "server"),
    "tags": ("$.tags", "tag"),
}

# Schema fields whose changes belong to the schema itself.
_SCHEMA_OWNED = ("discriminator", "externalDocs")


class Visitor:
    """
    Dispatches every model object to the handler of its kind.

    Each handler attributes the object's own diffs to its node, then hands the
    nested groups of the context to the matching children. A group whose kind
    does not match the object is skipped.

    Usage:
        visitor = Visitor()
        visitor.visit(document.root, TravelContext(group=changes, sink=sink))
    """

    def __init__(self, strict_mode: bool = False, logger: Optional[logging.Logger] = None):
        self.strict_mode = strict_mode
        self.logger = logger or logging.getLogger(__name__)
        self._handlers: dict[str, Callable[[ModelObject, TravelContext], None]] = {
            kind: self.visit_object for kind in KINDS
        }
        self._handlers["document"] = self.visit_document
        self._handlers["schema"] = self.visit_schema

    def visit(self, obj: ModelObject, ctx: TravelContext):
        if ctx.sink.cancelled or ctx.group is None:
            return

        handler = self._handlers.get(obj.kind)
        if handler is None:
            if self.strict_mode:
                raise UnknownKindError(obj.kind, obj.json_path)
            self.logger.warning("unknown object kind '%s' at %s", obj.kind, obj.json_path)
            return

        if ctx.group.kind != obj.kind:
            self.logger.debug(
                "skipping %s: %s changes do not apply to a %s",
                obj.json_path, ctx.group.kind, obj.kind,
            )
            return

        if obj.target is not None:
            # Referenced branches are replayed from their definition.
            push_reference(obj, ctx)
            return

        handler(obj, ctx)

    def visit_object(self, obj: ModelObject, ctx: TravelContext):
        """Default handler: own diffs here, nested groups to the children."""
        push_changes(obj, ctx)
        push_extensions(obj, ctx.group, ctx)
        for spec in fields_for(obj.kind):
            self.visit_field(obj, spec, ctx)

    def visit_document(self, doc: ModelObject, ctx: TravelContext):
        group = ctx.group
        push_changes(doc, ctx)

        for spec in fields_for("document"):
            if spec.name in _DOCUMENT_LISTS:
                path, node_type = _DOCUMENT_LISTS[spec.name]
                self._visit_document_list(doc, spec, group.listed(spec.name), ctx, path, node_type)
            else:
                self.visit_field(doc, spec, ctx)

        push_extensions(doc, group, ctx)

    def visit_schema(self, schema: ModelObject, ctx: TravelContext):
        group = ctx.group
        push_changes(schema, ctx)

        for spec in fields_for("schema"):
            if spec.name in _SCHEMA_OWNED:
                owned = group.child(spec.name)
                if owned is not None:
                    push_changes(schema, ctx.with_group(owned))
                continue
            self.visit_field(schema, spec, ctx)

        push_extensions(schema, group, ctx)

    def visit_field(self, obj: ModelObject, spec: FieldSpec, ctx: TravelContext):
        """Hand the nested group(s) of one field to the matching children."""
        group = ctx.group

        if spec.shape in (SINGLE, DYNAMIC):
            nested = group.child(spec.name)
            child = obj.child(spec.name)
            if nested is not None and child is not None:
                self.visit(child, ctx.with_group(nested))

        elif spec.shape == MAP:
            nested_map = group.mapped(spec.name)
            if nested_map:
                process_maps(self, nested_map, obj.entries(spec.name), ctx, obj, spec.name, spec.inline)

        elif spec.shape == LIST:
            members = group.listed(spec.name)
            if not members:
                return
            if spec.kind == "securityRequirement":
                push_changes_from_slice(obj, members, ctx)
            else:
                process_slice(self, members, obj.members(spec.name), ctx, obj, spec.name)

    def _visit_document_list(
        self,
        doc: ModelObject,
        spec: FieldSpec,
        groups: list[DiffGroup],
        ctx: TravelContext,
        path: str,
        node_type: str,
    ):
        """
        Servers and tags: property-level changes go to the matching member;
        whole members added or removed are reported on the document.
        """
        if not groups:
            return
        members = doc.members(spec.name)

        for group in groups:
            own_kinds = {c.kind for c in group.changes}
            if own_kinds and own_kinds <= _WHOLE_OBJECT:
                if doc.node is not None:
                    attribute(doc.node, group, doc, node_type=node_type, path=path)
                    ctx.sink.publish(ChangeRecord(model=doc, node=doc.node))
                continue
            process_slice(self, [group], members, ctx, doc, spec.name)
