"""Report driver: renders a document diff tree as Markdown or HTML."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .document import SemanticDocument
from .exceptions import RenderError
from .html_report import NO_CHANGES_REPORT, HTMLRenderer
from .models import Diff, DiffGroup
from .render_config import RenderConfig, merge_configs

logger = logging.getLogger(__name__)


class OutputFormat(Enum):
    MARKDOWN = "markdown"
    HTML = "html"


def render_markdown(
    changes: Optional[DiffGroup],
    document: Optional[SemanticDocument] = None,
    content: Optional[bytes] = None,
    config: Optional[RenderConfig] = None,
    deduplicated: Optional[list[Diff]] = None,
) -> str:
    return generate_report(changes, document, content, OutputFormat.MARKDOWN, config, deduplicated)


def render_html(
    changes: Optional[DiffGroup],
    document: Optional[SemanticDocument] = None,
    content: Optional[bytes] = None,
    config: Optional[RenderConfig] = None,
    deduplicated: Optional[list[Diff]] = None,
) -> str:
    return generate_report(changes, document, content, OutputFormat.HTML, config, deduplicated)


def generate_report(
    changes: Optional[DiffGroup],
    document: Optional[SemanticDocument] = None,
    content: Optional[bytes] = None,
    output_format: OutputFormat = OutputFormat.MARKDOWN,
    config: Optional[RenderConfig] = None,
    deduplicated: Optional[list[Diff]] = None,
) -> str:
    """
    Render a report for a document diff tree.

    Args:
        changes: Document diff group (None when nothing changed)
        document: Right-hand semantic document
        content: Raw right-hand document bytes, for value formatting
        output_format: Markdown or HTML
        config: Render configuration, merged over the defaults
        deduplicated: The run's deduplicated diffs; counts are taken from these

    Returns:
        The report text

    Raises:
        RenderError: If rendering fails
    """
    renderer = HTMLRenderer(merge_configs(None, config))
    try:
        if output_format == OutputFormat.HTML:
            report = renderer.render_html(changes, document, content, deduplicated)
        else:
            report = renderer.render_markdown(changes, document, content, deduplicated)
    except (ValueError, TypeError, KeyError) as e:
        raise RenderError(output_format.value, str(e)) from e

    logger.debug("rendered %s report (%d characters)", output_format.value, len(report))
    return report
