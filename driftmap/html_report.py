"""HTML rendering of the Markdown report."""

from __future__ import annotations

from typing import Optional

from markdown_it import MarkdownIt

from .document import SemanticDocument
from .markdown_report import MarkdownReporter
from .models import Diff, DiffGroup
from .post_processor import PostProcessor
from .render_config import RenderConfig, default_render_config

NO_CHANGES_REPORT = "# What Changed?\n\nNo changes detected between the API versions.\n\n"


class HTMLRenderer:
    """
    Converts the Markdown report to HTML and post-processes it.

    Usage:
        renderer = HTMLRenderer(config)
        html = renderer.render_html(changes, right_document, right_content)
    """

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or default_render_config()
        self.markdown = MarkdownIt(
            "commonmark",
            {"html": self.config.html.allow_raw_html},
        ).enable("table")

    def render_markdown(
        self,
        changes: Optional[DiffGroup],
        document: Optional[SemanticDocument] = None,
        right_content: Optional[bytes] = None,
        deduplicated: Optional[list[Diff]] = None,
    ) -> str:
        if changes is None:
            return NO_CHANGES_REPORT
        reporter = MarkdownReporter(changes, document, right_content, self.config, deduplicated)
        return reporter.generate()

    def render_html(
        self,
        changes: Optional[DiffGroup],
        document: Optional[SemanticDocument] = None,
        right_content: Optional[bytes] = None,
        deduplicated: Optional[list[Diff]] = None,
    ) -> str:
        markdown = self.render_markdown(changes, document, right_content, deduplicated)
        return self.convert(markdown)

    def convert(self, markdown: str) -> str:
        """Render Markdown text through markdown-it and the post-processor."""
        rendered = self.markdown.render(markdown)
        processor = PostProcessor(self.config.html, self.config.breaking)
        return processor.process(rendered)
