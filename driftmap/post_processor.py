"""Clean-up pass over the HTML produced from a Markdown report."""

from __future__ import annotations

import html
import re
from typing import Optional

from .render_config import BreakingConfig, HTMLConfig, NestedListFixStrategy

MARKER_PATTERN = re.compile(r"<!-- pb33f-[^>]+ -->")
ESCAPED_MARKER_PATTERN = re.compile(r"&lt;!-- pb33f-[^&]+ --&gt;")
EXAMPLE_REGION_PATTERN = re.compile(
    r"(?:<!--|&lt;!--) pb33f-example-start:(?P<key>[^ ]+) (?:-->|--&gt;)"
    r"(?P<body>.*?)"
    r"(?:<!--|&lt;!--) pb33f-example-end:(?P=key) (?:-->|--&gt;)",
    re.DOTALL,
)
PRE_BLOCK_PATTERN = re.compile(r"<pre>.*?</pre>\n?", re.DOTALL)
HEADING_PATTERN = re.compile(r"<h([1-6])>")
ROW_PATTERN = re.compile(r"<tr>.*?</tr>", re.DOTALL)
FIRST_CELL_PATTERN = re.compile(r"<td>(?P<cell>.*?)</td>", re.DOTALL)

OBJECT_ICONS = {
    "Info": "info",
    "Contact": "contact",
    "License": "license",
    "Operation": "operation",
    "Parameter": "parameter",
    "Schema": "schema",
    "Response": "response",
    "Request Body": "requestBody",
    "Header": "header",
    "Media Type": "mediaType",
    "Path": "path",
    "Tag": "tag",
    "Security": "securityScheme",
    "Server": "server",
    "Webhook": "webhook",
    "Callback": "callback",
    "Example": "example",
    "Extension": "extension",
    "Component": "components",
    "Components": "components",
    "Paths": "path",
    "Path Item": "path",
}


class PostProcessor:
    """
    Rewrites rendered report HTML.

    - Adds the summary class and object icons to the statistics table
    - Turns the bold breaking badge into a styled span
    - Adds the configured class to headings
    - Applies the nested-list fix strategy to marked examples
    - Removes example markers, raw or escaped

    Usage:
        processor = PostProcessor(config.html, config.breaking)
        html = processor.process(html)
    """

    def __init__(self, config: Optional[HTMLConfig] = None, breaking: Optional[BreakingConfig] = None):
        self.config = config or HTMLConfig()
        self.breaking = breaking or BreakingConfig()

    def process(self, text: str) -> str:
        text = self.process_object_summary_table(text)
        text = self.replace_breaking_badge(text)
        text = self.add_heading_class(text)
        if self.config.enable_nested_list_fix and (
            self.config.nested_list_fix_strategy == NestedListFixStrategy.EXTRACT
        ):
            text = self.extract_example_code(text)
        return self.remove_markers(text)

    def remove_markers(self, text: str) -> str:
        text = MARKER_PATTERN.sub("", text)
        return ESCAPED_MARKER_PATTERN.sub("", text)

    def replace_breaking_badge(self, text: str) -> str:
        badge = html.escape(self.breaking.badge, quote=False)
        pattern = re.compile(r"<strong>\(" + re.escape(badge) + r"\)</strong>")
        css_class = html.escape(self.breaking.css_class)
        return pattern.sub(lambda _: f'<span class="{css_class}">{badge}</span>', text)

    def add_heading_class(self, text: str) -> str:
        if not self.config.heading_class:
            return text
        css_class = html.escape(self.config.heading_class)
        return HEADING_PATTERN.sub(lambda m: f'<h{m.group(1)} class="{css_class}">', text)

    def extract_example_code(self, text: str) -> str:
        """Move the code blocks of each marked example to just after the example."""

        def extract(match: re.Match) -> str:
            body = match.group("body")
            blocks = PRE_BLOCK_PATTERN.findall(body)
            if not blocks:
                return match.group(0)
            body = PRE_BLOCK_PATTERN.sub("", body)
            key = match.group("key")
            return (
                f"{body}"
                f'<div class="example-code" data-example="{html.escape(key)}">\n'
                f"{''.join(blocks)}</div>\n"
            )

        return EXAMPLE_REGION_PATTERN.sub(extract, text)

    def process_object_summary_table(self, text: str) -> str:
        """Tag the per-object statistics table and prefix its rows with icons."""
        header = text.find("<th>Object")
        if header == -1:
            return text
        start = text.rfind("<table", 0, header)
        if start == -1:
            return text
        tag_end = text.find(">", start)
        end = text.find("</table>", start)
        if tag_end == -1 or end == -1:
            return text

        tag = text[start:tag_end + 1]
        if 'class="' in tag:
            tag = tag.replace('class="', 'class="object-change-summary ', 1)
        else:
            tag = '<table class="object-change-summary"' + tag[len("<table"):]

        content = text[tag_end + 1:end]
        if self.config.enable_object_icons:
            content = ROW_PATTERN.sub(self._row_with_icon, content)
        return text[:start] + tag + content + text[end:]

    @staticmethod
    def _row_with_icon(row: re.Match) -> str:
        row_html = row.group(0)
        cell = FIRST_CELL_PATTERN.search(row_html)
        if cell is None:
            return row_html
        icon = OBJECT_ICONS.get(cell.group("cell").strip())
        if icon is None:
            return row_html
        insert = cell.start("cell")
        return (
            row_html[:insert]
            + f'<pb33f-model-icon icon="{icon}" size="tiny"></pb33f-model-icon>'
            + row_html[insert:]
        )
