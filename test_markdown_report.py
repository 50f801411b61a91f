"""Tests for the Markdown report and the change tree view."""

from driftmap import (
    ChangeContext,
    ChangeKind,
    Changerator,
    Diff,
    DiffGroup,
    HTMLConfig,
    MarkdownReporter,
    NodeChange,
    RenderConfig,
    SemanticDocument,
    SemanticNode,
    TreeConfig,
    TreeRenderer,
)
from driftmap.markdown_report import (
    format_object_type,
    get_indent,
    indent_multiline,
    parse_reference,
    sanitize_name,
)


EXAMPLES = """
openapi: 3.1.0
info:
  title: pets
  version: 1.0.0
paths:
  /pets:
    post:
      parameters:
%(parameters)s
      requestBody:
        content:
          application/json:
            examples:
              rex:
                summary: %(summary)s
      responses:
        '201':
          description: created
"""

LIMIT = "        - name: limit\n          in: query"
SAUCE = "        - name: sauce\n          in: query"


def render(left, right, config=None):
    changerator = Changerator(SemanticDocument.from_content(left), SemanticDocument.from_content(right))
    changerator.changerate()
    return changerator.generate_report(config=config)


class TestHelpers:
    """Test the small formatting helpers."""

    def test_format_object_type(self):
        """Test display names of object kinds."""
        assert format_object_type("requestBody") == "Request Body"
        assert format_object_type("mediaType") == "Media Type"
        assert format_object_type("widget") == "Widget"

    def test_get_indent(self):
        """Test two spaces per level."""
        assert get_indent(0) == ""
        assert get_indent(2) == "    "

    def test_sanitize_name(self):
        """Test marker-safe names."""
        assert sanitize_name("a-b<c>") == "a_bltcgt"

    def test_indent_multiline(self):
        """Test indenting continuation lines and fenced blocks."""
        assert indent_multiline("one\ntwo", 2) == "one\n  two"
        assert indent_multiline("```yaml\na: 1\n```", 2) == "  ```yaml\n  a: 1\n  ```"
        assert indent_multiline("single", 2) == "single"


class TestDescribe:
    """Test change descriptions."""

    def setup_method(self):
        self.reporter = MarkdownReporter(DiffGroup(kind="document"))

    def test_modified(self):
        """Test a modified scalar."""
        change = Diff(property="title", kind=ChangeKind.MODIFIED, original="chip", new="chop")
        assert self.reporter.describe(change) == ("`title` changed to *'chop'*", False)

    def test_added_and_removed(self):
        """Test added and removed scalars."""
        added = Diff(property="url", kind=ChangeKind.PROPERTY_ADDED, new="http://fresh.com")
        removed = Diff(property="email", kind=ChangeKind.PROPERTY_REMOVED, original="a@b.c")
        assert self.reporter.describe(added) == ("`url` added *'http://fresh.com'*", False)
        assert self.reporter.describe(removed) == ("`email` removed *'a@b.c'*", False)

    def test_paths_and_schemas(self):
        """Test whole paths and schemas added or removed."""
        path = Diff(property="path", kind=ChangeKind.OBJECT_ADDED, new="/pets")
        schema = Diff(property="schemas", kind=ChangeKind.OBJECT_REMOVED, original="Pet")
        assert self.reporter.describe(path) == ("Added path *'/pets'*", False)
        assert self.reporter.describe(schema) == ("Removed schema *'Pet'*", False)

    def test_prefixed_property(self):
        """Test properties with a display prefix."""
        change = Diff(property="servers", kind=ChangeKind.OBJECT_ADDED, new="https://c.example.com")
        assert self.reporter.describe(change) == ("Server: `servers` added *'https://c.example.com'*", False)

    def test_structured_extension(self):
        """Test that structured extension values are fenced."""
        change = Diff(property="x-rate", kind=ChangeKind.PROPERTY_ADDED, new={"limit": 10})
        text, block = self.reporter.describe(change)
        assert block is True
        assert text.startswith("Extension `x-rate` added:\n\n```json")

    def test_empty_value(self):
        """Test a change without values."""
        change = Diff(property="deprecated", kind=ChangeKind.MODIFIED)
        assert self.reporter.describe(change) == ("Deprecated `deprecated` modified", False)


class TestMarkdownReport:
    """Test whole reports."""

    def test_no_changes(self):
        """Test a report over an empty diff."""
        report = MarkdownReporter(None).generate()
        assert report == "# What Changed Report\n\nNo changes detected.\n\n"

    def test_summary_and_table(self):
        """Test the summary sentence and the per-object table."""
        report = render(
            EXAMPLES % {"parameters": LIMIT, "summary": "a dog"},
            EXAMPLES % {"parameters": LIMIT + "\n" + SAUCE, "summary": "a good dog"},
        )
        assert "**2** changes detected, with **no** breaking changes." in report
        assert "- Additions: **1**" in report
        assert "- Modifications: **1**" in report
        assert "| Object               | Total Changes | Breaking Changes |" in report
        assert "| Parameter | 1 | - |" in report
        assert "| Example | 1 | - |" in report

    def test_parameter_added(self):
        """Test that an added parameter names its location."""
        report = render(
            EXAMPLES % {"parameters": LIMIT, "summary": "a dog"},
            EXAMPLES % {"parameters": LIMIT + "\n" + SAUCE, "summary": "a dog"},
        )
        assert "**POST** `/pets`" in report
        assert "- Query Parameter `sauce` added" in report

    def test_example_markers(self):
        """Test that examples are marked only when the nested-list fix is on."""
        left = EXAMPLES % {"parameters": LIMIT, "summary": "a dog"}
        right = EXAMPLES % {"parameters": LIMIT, "summary": "a good dog"}

        plain = render(left, right)
        assert "- Example `rex`:" in plain
        assert "pb33f-example-start" not in plain

        config = RenderConfig(html=HTMLConfig(enable_nested_list_fix=True))
        marked = render(left, right, config)
        assert "  <!-- pb33f-example-start:rex -->\n  - Example `rex`:\n" in marked
        assert "<!-- pb33f-example-end:rex -->" in marked

    def test_parse_reference(self):
        """Test splitting a reference into its component field and name."""
        assert parse_reference("#/components/schemas/Pet") == ("schemas", "Pet")
        assert parse_reference("models.yaml#/components/parameters/Limit") == ("parameters", "Limit")
        assert parse_reference("#/paths/~1pets") == ("", "/pets")
        assert parse_reference("pet.yaml") == ("", "pet.yaml")


class TestDeduplicatedCounts:
    """Test that the summary counts the deduplicated diffs when given."""

    def setup_method(self):
        self.first = Diff(property="description", kind=ChangeKind.MODIFIED, original="a", new="b", type="schema")
        copy = Diff(property="description", kind=ChangeKind.MODIFIED, original="a", new="b", type="schema")
        schemas = {
            "Pet": DiffGroup(kind="schema", name="Pet", changes=[self.first]),
            "Toy": DiffGroup(kind="schema", name="Toy", changes=[copy]),
        }
        components = DiffGroup(kind="components", maps={"schemas": schemas})
        self.changes = DiffGroup(kind="document", children={"components": components})

    def test_tree_counts(self):
        """Test that without a deduplicated set every diff in the tree is counted."""
        report = MarkdownReporter(self.changes).generate()
        assert "**2** changes detected" in report
        assert "| Schema | 2 | - |" in report

    def test_deduplicated_counts(self):
        """Test that the summary and the table follow the deduplicated set."""
        report = MarkdownReporter(self.changes, deduplicated=[self.first]).generate()
        assert "**1** change detected" in report
        assert "- Modifications: **1**" in report
        assert "| Schema | 1 | - |" in report


class TestTreeRenderer:
    """Test the text tree view."""

    def setup_method(self):
        self.root = SemanticNode(id="$", type="document", label="Document")
        self.info = SemanticNode(id="$.info", type="info", label="Info", parent_id="$")
        self.root.children = [self.info]
        self.change = Diff(
            property="title",
            kind=ChangeKind.MODIFIED,
            original="chip",
            new="chop",
            context=ChangeContext(original_line=3, original_column=10, new_line=3, new_column=10),
        )
        self.info.add_change(NodeChange(
            id=self.info.id,
            id_hash=self.info.id_hash,
            type="info",
            group=DiffGroup(kind="info", changes=[self.change]),
        ))

    def test_ascii(self):
        """Test the ASCII rendering with line numbers."""
        text = TreeRenderer(self.root, TreeConfig(use_emojis=False)).render()
        assert text == "└─┬Info\n  └──[M] title (3:10)\n"

    def test_breaking_and_statistics(self):
        """Test the breaking suffix and per-node statistics."""
        self.change.breaking = True
        text = TreeRenderer(self.root, TreeConfig(use_emojis=False, show_statistics=True)).render()
        assert text == "└─┬Info (1 changes, 1 breaking)\n  └──[M] title (3:10){X}\n"

    def test_emoji_symbols(self):
        """Test the emoji symbols and hidden line numbers."""
        text = TreeRenderer(self.root, TreeConfig(show_line_numbers=False)).render()
        assert text == "└─┬Info\n  └──[🔀] title\n"

    def test_removal_uses_original_coordinates(self):
        """Test that removals point at the original document."""
        removed = Diff(
            property="summary",
            kind=ChangeKind.PROPERTY_REMOVED,
            context=ChangeContext(original_line=7, original_column=3),
        )
        assert TreeRenderer.change_location(removed) == (7, 3)

    def test_empty_root(self):
        """Test that no root renders nothing."""
        assert TreeRenderer(None).render() == ""
