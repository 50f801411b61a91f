"""Detection and pretty printing of structured values shown in reports."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any, Optional

import yaml


class StructuredFormat(Enum):
    PLAIN = ""
    JSON = "json"
    YAML = "yaml"
    XML = "xml"


def detect_format(value: str) -> StructuredFormat:
    """
    Guess the format of a value by its shape.

    Multi-line text with "key: value" pairs that does not open a JSON object
    or array is YAML; bracketed text is JSON; angle-bracketed text is XML.
    """
    if not value:
        return StructuredFormat.PLAIN

    trimmed = value.strip()
    if (
        "\n" in trimmed
        and (": " in trimmed or ":\n" in trimmed)
        and not trimmed.startswith(("{", "["))
    ):
        return StructuredFormat.YAML

    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        return StructuredFormat.JSON

    if trimmed.startswith("<") and trimmed.endswith(">"):
        return StructuredFormat.XML

    return StructuredFormat.PLAIN


def detect_document_format(content: Optional[bytes]) -> StructuredFormat:
    """JSON when the document opens an object or array, YAML otherwise."""
    if not content:
        return StructuredFormat.PLAIN
    trimmed = content.strip()
    if not trimmed:
        return StructuredFormat.PLAIN
    if trimmed[:1] in (b"{", b"["):
        return StructuredFormat.JSON
    return StructuredFormat.YAML


def _parse_json(value: str) -> tuple[Any, bool]:
    try:
        return json.loads(value), True
    except ValueError:
        return None, False


def _parse_yaml(value: str) -> tuple[Any, bool]:
    try:
        return yaml.safe_load(value), True
    except yaml.YAMLError:
        return None, False


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True)


def _dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True).rstrip("\n")


def _pretty(value: str, fmt: StructuredFormat) -> Optional[str]:
    if fmt == StructuredFormat.JSON:
        data, ok = _parse_json(value)
        return _dump_json(data) if ok else None
    if fmt == StructuredFormat.YAML:
        data, ok = _parse_yaml(value)
        return _dump_yaml(data) if ok else None
    if fmt == StructuredFormat.XML:
        try:
            ET.fromstring(value)
        except ET.ParseError:
            return None
        return value
    return None


def pretty_print(value: str) -> tuple[str, StructuredFormat]:
    """
    Pretty print a structured value.

    Returns:
        (formatted value, detected format); the input unchanged and PLAIN
        when it does not parse
    """
    fmt = detect_format(value)
    formatted = _pretty(value, fmt)
    if formatted is None:
        return value, StructuredFormat.PLAIN
    return formatted, fmt


def convert_json_to_yaml(value: str) -> Optional[str]:
    data, ok = _parse_json(value)
    if not ok:
        return None
    return _dump_yaml(data)


def format_as_code_block(value: str, fmt: StructuredFormat) -> str:
    return f"```{fmt.value}\n{value}\n```"


def indent_code_block(block: str, spaces: int) -> str:
    if spaces <= 0:
        return block
    indent = " " * spaces
    return "\n".join(indent + line for line in block.split("\n"))


def should_format_as_block(value: str) -> bool:
    return bool(value) and detect_format(value) != StructuredFormat.PLAIN


def format_structured_value(value: str, target: StructuredFormat) -> tuple[str, bool]:
    """
    Format a value for a report, as a fenced block when it is structured.

    JSON values are converted to YAML when the source document is YAML.
    Values that look structured but do not parse are fenced as written.

    Args:
        value: The value as text
        target: Format of the document the value came from

    Returns:
        (text, True) for a fenced block, (value, False) for plain text
    """
    fmt = detect_format(value)
    if fmt == StructuredFormat.PLAIN:
        return value, False

    if fmt == StructuredFormat.JSON and target == StructuredFormat.YAML:
        converted = convert_json_to_yaml(value)
        if converted is not None:
            return format_as_code_block(converted, StructuredFormat.YAML), True

    formatted = _pretty(value, fmt)
    if formatted is None:
        formatted = value
    return format_as_code_block(formatted, fmt), True


def format_inline(value: str) -> str:
    """Single-line rendering of a value; multi-line text collapses to one line."""
    if value == "":
        return "(empty)"
    if "\n" in value:
        return " ".join(value.replace("\n", " ").split())
    return value
