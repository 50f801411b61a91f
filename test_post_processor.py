"""Tests for HTML post-processing and the HTML renderer."""

from driftmap import (
    BreakingConfig,
    HTMLConfig,
    HTMLRenderer,
    NestedListFixStrategy,
    RenderConfig,
)
from driftmap.html_report import NO_CHANGES_REPORT
from driftmap.post_processor import PostProcessor


SUMMARY_TABLE = (
    "<table>\n<thead>\n<tr>\n<th>Object</th>\n<th>Total Changes</th>\n</tr>\n</thead>\n"
    "<tbody>\n<tr>\n<td>Info</td>\n<td>1</td>\n</tr>\n<tr>\n<td>Mystery</td>\n<td>2</td>\n</tr>\n"
    "</tbody>\n</table>\n"
)

EXAMPLE_REGION = (
    "<!-- pb33f-example-start:pet_example -->\n"
    "<ul>\n<li>Example <code>pet</code></li>\n</ul>\n"
    "<pre><code>name: rex\n</code></pre>\n"
    "<!-- pb33f-example-end:pet_example -->\n"
)


class TestPostProcessor:
    """Test each rewrite of the rendered HTML."""

    def setup_method(self):
        self.processor = PostProcessor(HTMLConfig(), BreakingConfig())

    def test_breaking_badge(self):
        """Test that the bold badge becomes a styled span."""
        html = self.processor.replace_breaking_badge("<p>type changed <strong>(💔 breaking)</strong></p>")
        assert html == '<p>type changed <span class="breaking-change">💔 breaking</span></p>'

    def test_custom_badge(self):
        """Test a configured badge and class."""
        processor = PostProcessor(HTMLConfig(), BreakingConfig(badge="BREAKS", css_class="danger"))
        html = processor.replace_breaking_badge("<strong>(BREAKS)</strong>")
        assert html == '<span class="danger">BREAKS</span>'

    def test_heading_class(self):
        """Test that headings receive the configured class."""
        html = self.processor.add_heading_class("<h2>Servers</h2><h4>Info</h4>")
        assert html == '<h2 class="change-heading">Servers</h2><h4 class="change-heading">Info</h4>'

    def test_remove_markers(self):
        """Test that raw and escaped markers are removed."""
        html = self.processor.remove_markers(
            "<!-- pb33f-example-start:a -->x&lt;!-- pb33f-example-end:a --&gt;"
        )
        assert html == "x"

    def test_summary_table(self):
        """Test that the statistics table is tagged and known objects get icons."""
        html = self.processor.process_object_summary_table(SUMMARY_TABLE)
        assert '<table class="object-change-summary">' in html
        assert '<td><pb33f-model-icon icon="info" size="tiny"></pb33f-model-icon>Info</td>' in html
        assert "<td>Mystery</td>" in html

    def test_summary_table_without_icons(self):
        """Test that icons can be turned off."""
        processor = PostProcessor(HTMLConfig(enable_object_icons=False))
        html = processor.process_object_summary_table(SUMMARY_TABLE)
        assert '<table class="object-change-summary">' in html
        assert "pb33f-model-icon" not in html

    def test_inline_strategy_keeps_code(self):
        """Test that the inline strategy leaves code blocks in place."""
        processor = PostProcessor(HTMLConfig(enable_nested_list_fix=True))
        html = processor.process(EXAMPLE_REGION)
        assert "example-code" not in html
        assert "pb33f-example" not in html
        assert html.index("</ul>") < html.index("<pre><code>name: rex")

    def test_extract_strategy(self):
        """Test that the extract strategy moves code blocks after the example."""
        processor = PostProcessor(HTMLConfig(
            enable_nested_list_fix=True,
            nested_list_fix_strategy=NestedListFixStrategy.EXTRACT,
        ))
        html = processor.process(EXAMPLE_REGION)
        assert '<div class="example-code" data-example="pet_example">' in html
        assert html.index("</ul>") < html.index('<div class="example-code"')
        assert html.index('<div class="example-code"') < html.index("<pre>")
        assert "pb33f-example" not in html


class TestHTMLRenderer:
    """Test Markdown to HTML conversion."""

    def test_no_changes(self):
        """Test the no-changes report."""
        renderer = HTMLRenderer()
        assert renderer.render_markdown(None) == NO_CHANGES_REPORT

    def test_convert(self):
        """Test that converted reports are post-processed."""
        renderer = HTMLRenderer()
        html = renderer.convert("#### Info\n\n- `title` changed **(💔 breaking)**\n")
        assert '<h4 class="change-heading">Info</h4>' in html
        assert '<span class="breaking-change">💔 breaking</span>' in html

    def test_raw_html_escaped_by_default(self):
        """Test that raw HTML in the report is escaped unless allowed."""
        html = HTMLRenderer().convert("<b>bold</b>\n")
        assert "&lt;b&gt;" in html

        allowed = HTMLRenderer(RenderConfig(html=HTMLConfig(allow_raw_html=True))).convert("<b>bold</b>\n")
        assert "<b>bold</b>" in allowed
