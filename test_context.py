"""Tests for source snippet extraction."""

from driftmap.context import ContextExtractor, detect_format


YAML_DOC = b"a: 1\nb: 2\nc: 3\nd: 4\ne: 5\nf: 6\n"


class TestContextExtractor:
    """Test snippets around a line."""

    def test_yaml_window(self):
        """Test two lines either side of a YAML line."""
        extractor = ContextExtractor(YAML_DOC)
        assert extractor.extract(3) == "a: 1\nb: 2\nc: 3\nd: 4\ne: 5\n"

    def test_window_clipped_at_start(self):
        """Test that the window stops at the first line."""
        extractor = ContextExtractor(YAML_DOC)
        assert extractor.extract(1) == "a: 1\nb: 2\nc: 3\n"

    def test_out_of_range(self):
        """Test that lines outside the document give nothing."""
        extractor = ContextExtractor(YAML_DOC)
        assert extractor.extract(0) == ""
        assert extractor.extract(100) == ""

    def test_common_indent_removed(self):
        """Test that the shared indentation is stripped."""
        extractor = ContextExtractor(b"    a: 1\n    b:\n      c: 2\n")
        assert extractor.extract(2) == "a: 1\nb:\n  c: 2\n\n"

    def test_json_pretty_printed(self):
        """Test that JSON is pretty printed before lines are taken."""
        extractor = ContextExtractor(b'{"a": 1, "b": 2}')
        assert extractor.format == "json"
        assert extractor.extract(2) == '{\n  "a": 1,\n  "b": 2\n}\n'

    def test_invalid_json_falls_back(self):
        """Test that JSON that does not parse is split as written."""
        extractor = ContextExtractor(b'{"a": 1,\n"b": }')
        assert extractor.extract(1) == '{"a": 1,\n"b": }\n'

    def test_long_lines_truncated(self):
        """Test that long lines are cut with an ellipsis."""
        extractor = ContextExtractor(("x" * 250).encode("utf-8"))
        line = extractor.extract(1).rstrip("\n")
        assert len(line) == 200
        assert line.endswith("...")

    def test_empty_content(self):
        """Test that an empty document gives nothing."""
        assert ContextExtractor(None).extract(1) == ""

    def test_clear(self):
        """Test that clearing drops the content."""
        extractor = ContextExtractor(YAML_DOC)
        extractor.extract(1)
        extractor.clear()
        assert extractor.extract(1) == ""

    def test_detect_format(self):
        """Test document format detection."""
        assert detect_format(b"  [1, 2]") == "json"
        assert detect_format(b"openapi: 3.1.0") == "yaml"
