"""Tests for pruning, edge selection, statistics and rule-result transfer."""

from driftmap import (
    ChangeKind,
    Diff,
    DiffGroup,
    Edge,
    NodeChange,
    RuleResult,
    SemanticDocument,
    SemanticNode,
    calculate_statistics,
)
from driftmap.cleaner import changerify, select_edges, unique_nodes
from driftmap.ruleify import transfer_rule_results


def changed(node):
    diff = Diff(property="description", kind=ChangeKind.MODIFIED, original="a", new="b")
    node.add_change(NodeChange(id=node.id, id_hash=node.id_hash, type=node.type, group=DiffGroup(kind=node.type, changes=[diff])))
    return node


def tree():
    root = SemanticNode(id="$", type="document")
    info = SemanticNode(id="$.info", type="info", parent_id="$", instance=object())
    paths = SemanticNode(id="$.paths", type="paths", parent_id="$")
    item = SemanticNode(id="$.paths['/a']", type="pathItem", parent_id="$.paths")
    get = SemanticNode(id="$.paths['/a'].get", type="operation", parent_id="$.paths['/a']")
    root.children = [info, paths]
    paths.children = [item]
    item.children = [get]
    return root, info, paths, item, get


class TestChangerify:
    """Test pruning a tree down to its changed nodes."""

    def test_prunes_unchanged_branches(self):
        """Test that branches without changes disappear."""
        root, info, paths, item, get = tree()
        changed(get)

        collected = []
        survivors = changerify([root], collected)

        assert survivors == [root]
        assert root.children == [paths]
        assert [n.id for n in collected] == ["$.paths['/a'].get", "$.paths['/a']", "$.paths", "$"]

    def test_flags_and_detached_instance(self):
        """Test that survivors render their changes and drop their model."""
        root, info, paths, item, get = tree()
        changed(info)
        changerify([root])
        assert info.render_changes is True
        assert info.render_props is True
        assert info.instance is None

    def test_nothing_changed(self):
        """Test that an unchanged tree prunes to nothing."""
        root, *_ = tree()
        collected = []
        assert changerify([root], collected) == []
        assert collected == []

    def test_unique_nodes(self):
        """Test that the first node per id is kept."""
        first = SemanticNode(id="$.a", type="schema")
        second = SemanticNode(id="$.a", type="schema")
        other = SemanticNode(id="$.b", type="schema")
        assert unique_nodes([first, other, second]) == [first, other]


class TestSelectEdges:
    """Test choosing the edges of the pruned tree."""

    def test_one_edge_per_pair(self):
        """Test that a reference edge wins over the structural one."""
        node = SemanticNode(id="$.b", type="schema", parent_id="$.a")
        structural = Edge(source="$.a", target="$.b")
        reference = Edge(source="$.a", target="$.b", ref="#/components/schemas/B")
        assert select_edges([node], [structural, reference]) == [reference]
        assert select_edges([node], [reference, structural]) == [reference]

    def test_only_parent_edges(self):
        """Test that edges from anything but the node's parent are ignored."""
        node = SemanticNode(id="$.b", type="schema", parent_id="$.a")
        stray = Edge(source="$.z", target="$.b")
        assert select_edges([node], [stray]) == []

    def test_root_has_no_edge(self):
        """Test that the root contributes no edge."""
        root = SemanticNode(id="$", type="document")
        assert select_edges([root], [Edge(source="$", target="$.info")]) == []


class TestStatistics:
    """Test counting changes by kind."""

    def test_counts(self):
        """Test that every kind lands in its bucket."""
        changes = [
            Diff(property="a", kind=ChangeKind.PROPERTY_ADDED),
            Diff(property="b", kind=ChangeKind.OBJECT_ADDED),
            Diff(property="c", kind=ChangeKind.MODIFIED),
            Diff(property="d", kind=ChangeKind.PROPERTY_REMOVED),
            Diff(property="e", kind=ChangeKind.OBJECT_REMOVED),
        ]
        stats = calculate_statistics(changes)
        assert stats.additions == 2
        assert stats.modifications == 1
        assert stats.removals == 2
        assert stats.total == 5

    def test_empty(self):
        """Test that no changes means zero everywhere."""
        assert calculate_statistics([]).to_dict() == {
            "additions": 0,
            "modifications": 0,
            "removals": 0,
            "total": 0,
        }


class TestRuleTransfer:
    """Test copying rule results from the left tree."""

    DOC = "openapi: 3.1.0\ninfo:\n  title: %s\n  version: 1.0.0\n"

    def setup_method(self):
        self.left = SemanticDocument.from_content(self.DOC % "chip")
        self.right = SemanticDocument.from_content(self.DOC % "chop")

    def test_copied_by_id(self):
        """Test that results move to the right node with the same id."""
        result = RuleResult(rule_id="info-contact", message="Info should have a contact")
        self.left.node("$.info").add_rule_result(result)

        copied = transfer_rule_results(self.left, [self.right.node("$.info"), self.right.root_node])
        assert copied == 1
        assert self.right.node("$.info").rule_results == [result]
        assert self.right.root_node.rule_results == []

    def test_no_left_results(self):
        """Test that nothing is copied when the left tree has no results."""
        assert transfer_rule_results(self.left, [self.right.node("$.info")]) == 0
