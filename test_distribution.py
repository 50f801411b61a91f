"""Tests for attribution, the change channel and the visitor."""

import threading

import pytest
from driftmap import (
    ChangeContext,
    ChangeKind,
    Changerator,
    Diff,
    DiffGroup,
    SemanticDocument,
    SemanticNode,
    UnknownKindError,
)
from driftmap.distributor import ChangeRecord, ChangeSink, TravelContext, attribute
from driftmap.document import ModelObject
from driftmap.visitor import Visitor


def changerate(left_yaml, right_yaml):
    changerator = Changerator(
        SemanticDocument.from_content(left_yaml),
        SemanticDocument.from_content(right_yaml),
    )
    changerator.changerate()
    return changerator


PARAMETERS = """
openapi: 3.1.0
info:
  title: orders
  version: 1.0.0
paths:
  /orders:
    get:
      parameters:
%s
      responses:
        '200':
          description: ok
"""

LIMIT = "        - name: limit\n          in: query\n          description: %s"
OFFSET = "        - name: offset\n          in: query"


class TestAttribute:
    """Test attaching a group's own diffs to a node."""

    def setup_method(self):
        self.node = SemanticNode(id="$.info", type="info")
        self.obj = ModelObject("info", {}, "$.info")
        self.diff = Diff(property="title", kind=ChangeKind.MODIFIED, original="a", new="b")
        self.group = DiffGroup(kind="info", changes=[self.diff])

    def test_stamps_path_and_type(self):
        """Test that diffs are stamped with the node's path and type."""
        node_change = attribute(self.node, self.group, self.obj)
        assert node_change is not None
        assert self.diff.path == "$.info"
        assert self.diff.type == "info"
        assert self.node.changes == [node_change]

    def test_overrides(self):
        """Test explicit path and type overrides."""
        attribute(self.node, self.group, self.obj, node_type="server", path="$.servers")
        assert self.diff.path == "$.servers"
        assert self.diff.type == "server"

    def test_idempotent(self):
        """Test that attaching the same group twice adds nothing."""
        attribute(self.node, self.group, self.obj)
        assert attribute(self.node, self.group, self.obj) is None
        assert len(self.node.changes) == 1

    def test_nested_groups_stripped(self):
        """Test that only the group's own diffs are attached."""
        nested = Diff(property="name", kind=ChangeKind.MODIFIED)
        self.group.children["contact"] = DiffGroup(kind="contact", changes=[nested])
        node_change = attribute(self.node, self.group, self.obj)
        assert node_change.group.all_changes() == [self.diff]

    def test_empty_group(self):
        """Test that a group without own diffs attaches nothing."""
        assert attribute(self.node, DiffGroup(kind="info"), self.obj) is None
        assert not self.node.has_changes()

    def test_restamp_copies(self):
        """Test that a diff stamped elsewhere is copied, not moved."""
        attribute(self.node, self.group, self.obj)
        other = SemanticNode(id="$.other", type="info")
        attribute(other, self.group, ModelObject("info", {}, "$.other"))
        assert self.diff.path == "$.info"
        assert other.property_changes()[0].path == "$.other"


class TestChangeSink:
    """Test the bounded change channel."""

    def test_publish_and_drain(self):
        """Test that records come out in order and iteration stops at close."""
        sink = ChangeSink(maxsize=4)
        records = [ChangeRecord(reference_path=f"$.r{i}") for i in range(3)]
        for record in records:
            assert sink.publish(record) is True
        sink.close()
        assert list(sink) == records

    def test_close_twice(self):
        """Test that closing again is harmless."""
        sink = ChangeSink()
        sink.close()
        sink.close()
        assert list(sink) == []

    def test_publish_after_cancel(self):
        """Test that a full channel gives up once the run is cancelled."""
        cancelled = threading.Event()
        sink = ChangeSink(maxsize=1, publish_timeout=0.01, cancelled=cancelled)
        assert sink.publish(ChangeRecord()) is True
        cancelled.set()
        assert sink.publish(ChangeRecord()) is False
        assert sink.cancelled


class TestVisitor:
    """Test dispatch rules."""

    def setup_method(self):
        self.sink = ChangeSink()

    def test_unknown_kind_logged(self):
        """Test that an unknown kind is skipped outside strict mode."""
        visitor = Visitor()
        obj = ModelObject("mystery", {}, "$.mystery")
        ctx = TravelContext(group=DiffGroup(kind="mystery"), sink=self.sink)
        visitor.visit(obj, ctx)

    def test_unknown_kind_strict(self):
        """Test that strict mode raises on an unknown kind."""
        visitor = Visitor(strict_mode=True)
        obj = ModelObject("mystery", {}, "$.mystery")
        ctx = TravelContext(group=DiffGroup(kind="mystery"), sink=self.sink)
        with pytest.raises(UnknownKindError):
            visitor.visit(obj, ctx)

    def test_mismatched_group_skipped(self):
        """Test that a group of another kind is not applied."""
        document = SemanticDocument.from_content("openapi: 3.1.0\ninfo:\n  title: a\n")
        info = document.root.child("info")
        group = DiffGroup(kind="schema", changes=[Diff(property="type", kind=ChangeKind.MODIFIED)])
        Visitor().visit(info, TravelContext(group=group, sink=self.sink))
        assert not info.node.has_changes()


class TestListDistribution:
    """Test distribution of list member groups."""

    def test_changed_member(self):
        """Test that a changed parameter is attributed to the parameter itself."""
        changerator = changerate(
            PARAMETERS % (LIMIT % "how many"),
            PARAMETERS % (LIMIT % "how many at most"),
        )
        assert len(changerator.changes) == 1
        assert changerator.changes[0].path == "$.paths['/orders'].get.parameters[0]"

    def test_removed_member(self):
        """Test that a removed parameter is attributed to the operation's list."""
        changerator = changerate(
            PARAMETERS % ((LIMIT % "many") + "\n" + OFFSET),
            PARAMETERS % (LIMIT % "many"),
        )
        assert len(changerator.changes) == 1
        change = changerator.changes[0]
        assert change.kind == ChangeKind.OBJECT_REMOVED
        assert change.path == "$.paths['/orders'].get.parameters"
        assert change.type == "parameter"
        assert change.breaking is True

    def test_added_member(self):
        """Test that an added parameter is found by its hash."""
        changerator = changerate(
            PARAMETERS % (LIMIT % "many"),
            PARAMETERS % ((LIMIT % "many") + "\n" + OFFSET),
        )
        assert len(changerator.changes) == 1
        change = changerator.changes[0]
        assert change.kind == ChangeKind.OBJECT_ADDED
        assert change.path == "$.paths['/orders'].get.parameters[1]"


class TestMapDistribution:
    """Test distribution of keyed groups."""

    def test_removed_response(self):
        """Test that a removed response code is attributed to the responses object."""
        left = PARAMETERS % (LIMIT % "many") + "        '404':\n          description: missing\n"
        right = PARAMETERS % (LIMIT % "many")
        changerator = changerate(left, right)
        assert len(changerator.changes) == 1
        change = changerator.changes[0]
        assert change.kind == ChangeKind.OBJECT_REMOVED
        assert change.original == "404"
        assert change.path == "$.paths['/orders'].get.responses"

    def test_server_variable_change(self):
        """Test that a changed server variable lands on its server under the variable's path."""
        template = """
openapi: 3.1.0
info:
  title: vars
  version: 1.0.0
servers:
  - url: https://{region}.example.com
    variables:
      region:
        default: %s
"""
        changerator = changerate(template % "eu", template % "us")
        assert len(changerator.changes) == 1
        change = changerator.changes[0]
        assert change.property == "default"
        assert change.path == "$.servers[0].variables['region']"
        assert change.type == "serverVariable"


class TestRecordContext:
    """Test the immutable traversal context."""

    def test_with_group(self):
        """Test that switching groups keeps the sink and leaves the original alone."""
        sink = ChangeSink()
        group = DiffGroup(kind="info")
        ctx = TravelContext(group=None, sink=sink)
        switched = ctx.with_group(group)
        assert switched.group is group
        assert switched.sink is sink
        assert ctx.group is None

    def test_context_defaults(self):
        """Test that change coordinates default to unknown."""
        assert ChangeContext().to_dict() == {
            "original_line": None,
            "original_column": None,
            "new_line": None,
            "new_column": None,
        }
