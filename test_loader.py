"""Tests for document loading, positions and $ref resolution."""

import pytest
from driftmap import DocumentLoadError, SpecLoader, UnresolvableReferenceError
from driftmap.loader import YamlMapping, YamlSequence, position_of


SAMPLE = """openapi: 3.1.0
info:
  title: chip
responses:
  200:
    description: ok
tags:
  - name: pets
  - name: stores
"""


class TestPositions:
    """Test that loaded containers remember where they start."""

    def setup_method(self):
        self.loader = SpecLoader()
        self.document = self.loader.load_content(SAMPLE)

    def test_containers_are_position_aware(self):
        """Test that mappings and sequences are the position-aware types."""
        root = self.document.root
        assert isinstance(root, YamlMapping)
        assert isinstance(root["info"], YamlMapping)
        assert isinstance(root["tags"], YamlSequence)

    def test_key_and_value_positions(self):
        """Test 1-based key and value coordinates."""
        root = self.document.root
        assert root.key_position_of("info") == (2, 1)
        assert root["info"].position_of("title") == (3, 10)

    def test_sequence_item_positions(self):
        """Test that each sequence item records its own start."""
        tags = self.document.root["tags"]
        assert tags.position_of(0) == (8, 5)
        assert tags.position_of(1) == (9, 5)
        assert tags.position_of(5) == (None, None)

    def test_integer_keys_become_text(self):
        """Test that numeric keys such as response codes are loaded as strings."""
        assert "200" in self.document.root["responses"]

    def test_position_of_scalar(self):
        """Test that scalars have no position of their own."""
        assert position_of("chip") == (None, None)
        assert position_of(self.document.root["info"]) == (3, 3)

    def test_format(self):
        """Test document format detection."""
        assert self.document.format == "yaml"
        assert self.loader.load_content('{"openapi": "3.1.0"}').format == "json"


class TestLoadErrors:
    """Test documents that cannot be loaded."""

    def setup_method(self):
        self.loader = SpecLoader()

    def test_invalid_yaml(self):
        """Test that a syntax error carries its location."""
        with pytest.raises(DocumentLoadError) as exc_info:
            self.loader.load_content("info: [1, 2\n")
        assert exc_info.value.line is not None

    def test_empty_document(self):
        """Test that an empty document is rejected."""
        with pytest.raises(DocumentLoadError):
            self.loader.load_content("")

    def test_missing_file(self, tmp_path):
        """Test that a missing file is reported."""
        with pytest.raises(DocumentLoadError):
            self.loader.load_file(tmp_path / "missing.yaml")


class TestResolve:
    """Test $ref resolution."""

    def setup_method(self):
        self.loader = SpecLoader()

    def test_local_reference(self):
        """Test resolving a pointer inside the same document."""
        origin = self.loader.load_content(
            "components:\n  schemas:\n    Pet:\n      type: object\n"
        )
        key, value, document = self.loader.resolve("#/components/schemas/Pet", origin)
        assert value["type"] == "object"
        assert document is origin
        assert key[1] == ("components", "schemas", "Pet")

    def test_escaped_pointer(self):
        """Test that '~1' decodes to '/' in pointer segments."""
        origin = self.loader.load_content("paths:\n  /pets:\n    summary: pets\n")
        _, value, _ = self.loader.resolve("#/paths/~1pets", origin)
        assert value["summary"] == "pets"

    def test_missing_target(self):
        """Test that a pointer to nothing cannot be resolved."""
        origin = self.loader.load_content("components: {}\n")
        with pytest.raises(UnresolvableReferenceError):
            self.loader.resolve("#/components/schemas/Pet", origin)

    def test_remote_reference(self):
        """Test that remote references are not fetched."""
        origin = self.loader.load_content("a: 1\n")
        with pytest.raises(UnresolvableReferenceError):
            self.loader.resolve("https://example.com/pet.yaml#/Pet", origin)

    def test_relative_file_reference(self, tmp_path):
        """Test resolving a reference into a sibling file, which is then cached."""
        (tmp_path / "models.yaml").write_text("Pet:\n  type: string\n")
        (tmp_path / "openapi.yaml").write_text("openapi: 3.1.0\n")
        origin = self.loader.load_file(tmp_path / "openapi.yaml")

        _, value, document = self.loader.resolve("models.yaml#/Pet", origin)
        assert value["type"] == "string"
        assert document.location == (tmp_path / "models.yaml").resolve()
        assert self.loader.load_file(tmp_path / "models.yaml") is document

    def test_whole_file_reference(self, tmp_path):
        """Test that a reference without a fragment resolves to the whole file."""
        (tmp_path / "pet.yaml").write_text("type: object\n")
        (tmp_path / "openapi.yaml").write_text("openapi: 3.1.0\n")
        origin = self.loader.load_file(tmp_path / "openapi.yaml")

        _, value, _ = self.loader.resolve("pet.yaml", origin)
        assert value["type"] == "object"


MERGED = """
definitions:
  base: &base
    type: object
    description: shared
  extra: &extra
    description: extra
    nullable: true
schema:
  <<: [*base, *extra]
  description: own
"""


class TestMergeKeys:
    """Test YAML merge keys."""

    def setup_method(self):
        self.loader = SpecLoader()
        self.schema = self.loader.load_content(MERGED).root["schema"]

    def test_merged_keys_are_present(self):
        """Test that keys from every merged mapping reach the loaded mapping."""
        assert self.schema["type"] == "object"
        assert self.schema["nullable"] is True
        assert "<<" not in self.schema

    def test_explicit_key_wins(self):
        """Test that a key written on the mapping beats the merged one."""
        assert self.schema["description"] == "own"

    def test_merged_keys_keep_positions(self):
        """Test that merged values point at where they were written."""
        line, _ = self.schema.position_of("type")
        assert line == 4


class TestConstructors:
    """Test that scalar construction state is not shared between documents."""

    def test_one_constructor_per_document(self, monkeypatch):
        """Test that every parse builds with its own constructor."""
        import driftmap.loader as loader_module

        created = []

        class CountingConstructor(loader_module.SafeConstructor):
            def __init__(self):
                super().__init__()
                created.append(self)

        monkeypatch.setattr(loader_module, "SafeConstructor", CountingConstructor)
        loader = SpecLoader()
        loader.load_content("a: 1\n")
        loader.load_content("b: 2\n")
        assert len(created) == 2
        assert created[0] is not created[1]
