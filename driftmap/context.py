"""Source snippets around a line of the right-hand document."""

from __future__ import annotations

import json
from typing import Optional

MAX_LINE_LENGTH = 200
YAML_CONTEXT_LINES = 2
JSON_CONTEXT_LINES = 4


def detect_format(content: bytes) -> str:
    """'json' when the first non-whitespace character opens an object or array."""
    trimmed = content.strip()
    if trimmed[:1] in (b"{", b"["):
        return "json"
    return "yaml"


def _pretty_json_lines(content: bytes) -> list[str]:
    text = content.decode("utf-8", errors="replace")
    try:
        value = json.loads(text)
    except ValueError:
        return text.split("\n")
    return json.dumps(value, indent=2, ensure_ascii=False).split("\n")


class ContextExtractor:
    """
    Extracts the lines surrounding a line number.

    JSON documents are pretty-printed before lines are taken; YAML is used
    as written. Lines are split once and cached.

    Usage:
        extractor = ContextExtractor(content)
        snippet = extractor.extract(42)
    """

    def __init__(self, content: Optional[bytes]):
        self.content = content or b""
        self.format = detect_format(self.content)
        self._lines: Optional[list[str]] = None

    @property
    def lines(self) -> list[str]:
        if self._lines is None:
            if self.format == "json":
                self._lines = _pretty_json_lines(self.content)
            else:
                self._lines = self.content.decode("utf-8", errors="replace").split("\n")
        return self._lines

    def extract(self, line_number: int) -> str:
        """
        Return the snippet around a 1-based line, or "" when out of range.

        Args:
            line_number: Line to centre the snippet on

        Returns:
            Lines joined with newlines (each newline-terminated), common indent removed
        """
        if not self.content:
            return ""

        lines = self.lines
        index = line_number - 1
        if index < 0 or index >= len(lines):
            return ""

        radius = JSON_CONTEXT_LINES if self.format == "json" else YAML_CONTEXT_LINES
        start = max(0, index - radius)
        end = min(len(lines), index + radius + 1)

        window = []
        for line in lines[start:end]:
            if len(line) > MAX_LINE_LENGTH:
                line = line[:MAX_LINE_LENGTH - 3] + "..."
            window.append(line)

        indents = [
            len(line) - len(line.lstrip(" \t"))
            for line in window
            if line.strip()
        ]
        min_indent = min(indents) if indents else 0

        snippet = []
        for line in window:
            if min_indent > 0 and len(line) >= min_indent:
                line = line[min_indent:]
            snippet.append(line + "\n")
        return "".join(snippet)

    def clear(self):
        """Drop the cached lines and the content."""
        self._lines = None
        self.content = b""
