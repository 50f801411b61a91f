"""Attribution of diff groups onto semantic nodes, and the change-record channel."""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Optional, TYPE_CHECKING

from .document import ModelObject
from .jsonpath_utils import friendly_reference
from .models import DiffGroup, NodeChange, SemanticNode
from .utils import field_path, key_path

if TYPE_CHECKING:
    from .visitor import Visitor

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass
class ChangeRecord:
    """
    One message on the change channel.

    Either a node that was visited (and possibly received a NodeChange), or a
    pending reference: a diff group that reached a $ref use site, to be
    replayed against the definition the reference points at.
    `reference_key` is the definition's (document key, pointer segments);
    `reference_path` is the fragment-only node id.
    """
    model: Any = None
    node: Optional[SemanticNode] = None
    group: Optional[DiffGroup] = None
    reference: str = ""
    reference_path: str = ""
    reference_key: Optional[tuple] = None

    @property
    def is_reference(self) -> bool:
        return bool(self.reference or self.reference_path)

    @property
    def is_local(self) -> bool:
        return self.reference.startswith("#")


class ChangeSink:
    """
    A bounded channel of change records with cooperative cancellation.

    Publishing blocks while the channel is full and gives up once the run is
    cancelled. The channel is closed once; iteration ends at the close.
    """

    def __init__(
        self,
        maxsize: int = 256,
        publish_timeout: float = 0.05,
        cancelled: Optional[threading.Event] = None,
    ):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._cancelled = cancelled or threading.Event()
        self._closed = False
        self._lock = threading.Lock()
        self.publish_timeout = publish_timeout

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def publish(self, record: ChangeRecord) -> bool:
        """Queue a record; returns False when the run was cancelled first."""
        while not self._cancelled.is_set():
            try:
                self._queue.put(record, timeout=self.publish_timeout)
                return True
            except queue.Full:
                continue
        return False

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[ChangeRecord]:
        while True:
            record = self._queue.get()
            if record is _CLOSED:
                return
            yield record


@dataclass(frozen=True)
class TravelContext:
    """The immutable traversal context: the group to apply here, and the sink."""
    group: Optional[DiffGroup]
    sink: ChangeSink

    def with_group(self, group: Optional[DiffGroup]) -> TravelContext:
        return TravelContext(group=group, sink=self.sink)


def attribute(
    node: SemanticNode,
    group: DiffGroup,
    obj: ModelObject,
    node_type: str = "",
    path: str = "",
) -> Optional[NodeChange]:
    """
    Attach the own property-level diffs of a group to a node.

    Each diff gets its path and type stamped (overrides first, then the
    object's own). A diff already stamped elsewhere is copied rather than
    restamped. Nothing is attached when the node already carries every
    (path, type, property) this group would add.

    Returns:
        The attached NodeChange, or None
    """
    own = group.properties_only()
    if not own.changes:
        return None

    resolved_type = node_type or node.type
    resolved_path = path or obj.json_path

    existing = {(c.path, c.type, c.property) for c in node.property_changes()}
    if all((resolved_path, resolved_type, c.property) in existing for c in own.changes):
        return None

    stamped = []
    for diff in own.changes:
        if diff.attributed and (diff.path, diff.type) != (resolved_path, resolved_type):
            diff = dataclasses.replace(diff)
        diff.path = resolved_path
        diff.type = resolved_type
        stamped.append(diff)
    own.changes = stamped

    node_change = NodeChange(
        id=node.id,
        id_hash=node.id_hash,
        type=node.type,
        group=own,
        path=obj.json_path,
        array_index=node.array_index,
    )
    node.add_change(node_change)
    return node_change


def push_changes(obj: Optional[ModelObject], ctx: TravelContext, node_type: str = "", path: str = ""):
    """Attribute the context group here and publish the node (or a pending reference)."""
    group = ctx.group
    if group is None or obj is None:
        return

    if obj.node is not None:
        attribute(obj.node, group, obj, node_type, path)
        ctx.sink.publish(ChangeRecord(model=obj, node=obj.node))
    elif obj.is_reference:
        ctx.sink.publish(reference_record(obj, group))


def push_reference(obj: ModelObject, ctx: TravelContext):
    """
    A $ref use site: its own diffs are attributed here, and the group is
    queued for replay from the definition instead of descending again.
    """
    group = ctx.group
    if group is None:
        return
    if obj.node is not None:
        attribute(obj.node, group, obj)
        ctx.sink.publish(ChangeRecord(model=obj, node=obj.node))
    ctx.sink.publish(reference_record(obj, group))


def reference_record(obj: ModelObject, group: DiffGroup) -> ChangeRecord:
    target = obj.target
    return ChangeRecord(
        model=obj,
        group=group,
        reference=obj.reference,
        reference_path=friendly_reference(obj.reference),
        reference_key=target.definition_key if target is not None else None,
    )


def push_changes_from_slice(
    obj: ModelObject,
    groups: list[DiffGroup],
    ctx: TravelContext,
    node_type: str = "",
    path: str = "",
):
    """Attribute a list of groups onto one object."""
    if not groups or obj is None:
        return

    if obj.node is not None:
        for group in groups:
            attribute(obj.node, group, obj, node_type, path)
        ctx.sink.publish(ChangeRecord(model=obj, node=obj.node))
    elif obj.is_reference:
        for group in groups:
            ctx.sink.publish(reference_record(obj, group))


def push_extensions(obj: ModelObject, group: Optional[DiffGroup], ctx: TravelContext):
    """Attribute the extension diffs of an object to that object."""
    if group is not None and group.extensions is not None:
        push_changes(obj, ctx.with_group(group.extensions), node_type="extension")


def process_slice(
    visitor: Visitor,
    groups: list[DiffGroup],
    members: list[ModelObject],
    ctx: TravelContext,
    owner: ModelObject,
    field_name: str,
):
    """
    Distribute the member groups of a list field.

    A group visits every member whose content hash equals its new hash, or
    failing that its original hash. A group that matches no member (a removed
    member) is attributed to the owner under the list's path.
    """
    for group in groups:
        located = []
        if group.new_hash:
            located = [m for m in members if m.hash == group.new_hash]
        if not located and group.original_hash:
            located = [m for m in members if m.hash == group.original_hash]
        if not located and group.new_object is not None:
            located = [m for m in members if m is group.new_object]

        if located:
            for member in located:
                visitor.visit(member, ctx.with_group(group))
            continue

        push_changes(
            owner,
            ctx.with_group(group),
            node_type=group.kind,
            path=field_path(owner.json_path, field_name),
        )


def process_maps(
    visitor: Visitor,
    groups: dict[str, DiffGroup],
    entries: dict[str, ModelObject],
    ctx: TravelContext,
    owner: ModelObject,
    field_name: str,
    inline: bool = False,
):
    """
    Distribute the keyed groups of a map field, in key order.

    A key with no object on the right-hand side, or whose object never
    becomes a node (server variables), is attributed to the owner under the
    key's path.
    """
    for key, group in groups.items():
        child = entries.get(key)
        if child is not None and (child.node is not None or child.is_reference):
            visitor.visit(child, ctx.with_group(group))
            continue

        base = owner.json_path if inline else field_path(owner.json_path, field_name)
        push_changes(owner, ctx.with_group(group), node_type=group.kind, path=key_path(base, key))
