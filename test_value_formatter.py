"""Tests for structured value detection and formatting."""

from driftmap.value_formatter import (
    StructuredFormat,
    convert_json_to_yaml,
    detect_document_format,
    detect_format,
    format_as_code_block,
    format_inline,
    format_structured_value,
    indent_code_block,
    pretty_print,
    should_format_as_block,
)


class TestDetectFormat:
    """Test guessing the format of a value."""

    def test_json(self):
        """Test bracketed values."""
        assert detect_format('{"a": 1}') == StructuredFormat.JSON
        assert detect_format("[1, 2]") == StructuredFormat.JSON

    def test_yaml(self):
        """Test multi-line key/value text."""
        assert detect_format("name: pet\ntype: object") == StructuredFormat.YAML

    def test_xml(self):
        """Test angle-bracketed values."""
        assert detect_format("<pet><name>rex</name></pet>") == StructuredFormat.XML

    def test_plain(self):
        """Test everything else."""
        assert detect_format("") == StructuredFormat.PLAIN
        assert detect_format("a pet") == StructuredFormat.PLAIN
        assert detect_format("name: pet") == StructuredFormat.PLAIN

    def test_document_format(self):
        """Test detecting the format of a whole document."""
        assert detect_document_format(b'  {"openapi": "3.1.0"}') == StructuredFormat.JSON
        assert detect_document_format(b"openapi: 3.1.0") == StructuredFormat.YAML
        assert detect_document_format(b"") == StructuredFormat.PLAIN
        assert detect_document_format(None) == StructuredFormat.PLAIN


class TestFormatting:
    """Test pretty printing and fencing."""

    def test_pretty_print_json(self):
        """Test that JSON is indented with sorted keys."""
        formatted, fmt = pretty_print('{"b": 1, "a": 2}')
        assert fmt == StructuredFormat.JSON
        assert formatted == '{\n  "a": 2,\n  "b": 1\n}'

    def test_pretty_print_invalid(self):
        """Test that values that do not parse come back unchanged."""
        assert pretty_print("<unclosed>") == ("<unclosed>", StructuredFormat.PLAIN)
        assert pretty_print("{not json}") == ("{not json}", StructuredFormat.PLAIN)

    def test_convert_json_to_yaml(self):
        """Test converting JSON text to YAML."""
        assert convert_json_to_yaml('{"name": "pet"}') == "name: pet"
        assert convert_json_to_yaml("nope") is None

    def test_code_block(self):
        """Test fencing and indenting a block."""
        block = format_as_code_block("a: 1", StructuredFormat.YAML)
        assert block == "```yaml\na: 1\n```"
        assert indent_code_block(block, 2) == "  ```yaml\n  a: 1\n  ```"
        assert indent_code_block(block, 0) == block

    def test_structured_value_for_yaml_document(self):
        """Test that JSON values are shown as YAML for a YAML document."""
        text, block = format_structured_value('{"a": 1}', StructuredFormat.YAML)
        assert block is True
        assert text == "```yaml\na: 1\n```"

    def test_structured_value_for_json_document(self):
        """Test that JSON values stay JSON for a JSON document."""
        text, block = format_structured_value('{"a": 1}', StructuredFormat.JSON)
        assert text == '```json\n{\n  "a": 1\n}\n```'

    def test_plain_value(self):
        """Test that plain values are not fenced."""
        assert format_structured_value("hello", StructuredFormat.YAML) == ("hello", False)
        assert should_format_as_block("hello") is False
        assert should_format_as_block("[1]") is True

    def test_unparseable_structured_value(self):
        """Test that a value that looks structured but does not parse is fenced as written."""
        assert format_structured_value("<a>", StructuredFormat.YAML) == ("```xml\n<a>\n```", True)

    def test_format_inline(self):
        """Test single-line rendering."""
        assert format_inline("") == "(empty)"
        assert format_inline("one\n  two\nthree") == "one two three"
        assert format_inline("plain") == "plain"
