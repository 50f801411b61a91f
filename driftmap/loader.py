"""Position-aware loading of OpenAPI documents and $ref resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from yaml.constructor import SafeConstructor

from .exceptions import DocumentLoadError, UnresolvableReferenceError
from .utils import split_pointer

logger = logging.getLogger(__name__)


class YamlMapping(dict):
    """A mapping that remembers where it, its keys and its values start."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.line = 0
        self.column = 0
        self.value_marks: dict[Any, tuple[int, int]] = {}
        self.key_marks: dict[Any, tuple[int, int]] = {}

    def position_of(self, key: Any) -> tuple[Optional[int], Optional[int]]:
        return self.value_marks.get(key, (None, None))

    def key_position_of(self, key: Any) -> tuple[Optional[int], Optional[int]]:
        return self.key_marks.get(key, (None, None))


class YamlSequence(list):
    """A sequence that remembers where it and each item start."""

    def __init__(self, *args):
        super().__init__(*args)
        self.line = 0
        self.column = 0
        self.item_marks: list[tuple[int, int]] = []

    def position_of(self, index: int) -> tuple[Optional[int], Optional[int]]:
        if 0 <= index < len(self.item_marks):
            return self.item_marks[index]
        return (None, None)


def _mark(node: yaml.Node) -> tuple[int, int]:
    return node.start_mark.line + 1, node.start_mark.column + 1


def _key(value: Any) -> Any:
    # Response codes and similar keys arrive as ints; node ids want text.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def position_of(value: Any) -> tuple[Optional[int], Optional[int]]:
    """Start position of a loaded container, or (None, None) for scalars."""
    if isinstance(value, (YamlMapping, YamlSequence)):
        return value.line, value.column
    return None, None


@dataclass
class LoadedDocument:
    """Raw content plus the position-aware tree built from it."""
    content: bytes
    root: Any
    location: Optional[Path] = None

    @property
    def key(self) -> str:
        if self.location is not None:
            return str(self.location)
        return f"inline:{id(self)}"

    @property
    def format(self) -> str:
        trimmed = self.content.lstrip()
        if trimmed[:1] in (b"{", b"["):
            return "json"
        return "yaml"


class SpecLoader:
    """
    Loads YAML or JSON documents into position-aware containers and resolves
    $ref values against them, caching every file it reads.

    Usage:
        loader = SpecLoader()
        doc = loader.load_file("openapi.yaml")
        key, value, target = loader.resolve("#/components/schemas/Pet", doc)
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir) if base_dir else None
        self._documents: dict[Path, LoadedDocument] = {}

    def load_file(self, path: str | Path) -> LoadedDocument:
        """Load and cache a document from disk."""
        path = Path(path)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        path = path.resolve()

        if path in self._documents:
            return self._documents[path]

        if not path.exists():
            raise DocumentLoadError(f"Document not found: {path}", location=str(path))

        with open(path, 'rb') as f:
            content = f.read()

        document = self._parse(content, path)
        self._documents[path] = document
        logger.debug("loaded document %s (%d bytes)", path, len(content))
        return document

    def load_content(self, content: bytes | str, location: Optional[str | Path] = None) -> LoadedDocument:
        """Load a document from memory; `location` anchors relative references."""
        if isinstance(content, str):
            content = content.encode('utf-8')
        path = Path(location).resolve() if location else None
        document = self._parse(content, path)
        if path is not None:
            self._documents[path] = document
        return document

    def _parse(self, content: bytes, location: Optional[Path]) -> LoadedDocument:
        # Try YAML first (also handles JSON since JSON is valid YAML)
        try:
            node = yaml.compose(content.decode('utf-8'), Loader=yaml.SafeLoader)
        except yaml.MarkedYAMLError as e:
            mark = e.problem_mark
            raise DocumentLoadError(
                f"Failed to parse document: {e.problem}",
                location=str(location) if location else None,
                line=mark.line + 1 if mark else None,
                column=mark.column + 1 if mark else None,
            )
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise DocumentLoadError(
                f"Failed to parse document: {e}",
                location=str(location) if location else None,
            )

        if node is None:
            raise DocumentLoadError("Document is empty", location=str(location) if location else None)

        # Fresh per document: a constructor caches every object it builds.
        return LoadedDocument(content=content, root=self._convert(node, SafeConstructor()), location=location)

    def _convert(self, node: yaml.Node, constructor: SafeConstructor) -> Any:
        """
        Convert a composed YAML node into position-aware containers.

        Merge keys ('<<') are expanded: explicit keys win over merged ones,
        and an earlier merged mapping wins over a later one.
        """
        if isinstance(node, yaml.MappingNode):
            mapping = YamlMapping()
            mapping.line, mapping.column = _mark(node)
            merges = []
            for key_node, value_node in node.value:
                if key_node.tag == 'tag:yaml.org,2002:merge':
                    merges.append(value_node)
                    continue
                key = _key(constructor.construct_object(key_node, deep=True))
                mapping[key] = self._convert(value_node, constructor)
                mapping.key_marks[key] = _mark(key_node)
                mapping.value_marks[key] = _mark(value_node)
            for merge_node in merges:
                self._merge(mapping, merge_node, constructor)
            return mapping

        if isinstance(node, yaml.SequenceNode):
            sequence = YamlSequence()
            sequence.line, sequence.column = _mark(node)
            for item in node.value:
                sequence.append(self._convert(item, constructor))
                sequence.item_marks.append(_mark(item))
            return sequence

        return constructor.construct_object(node, deep=True)

    def _merge(self, mapping: YamlMapping, merge_node: yaml.Node, constructor: SafeConstructor):
        sources = merge_node.value if isinstance(merge_node, yaml.SequenceNode) else [merge_node]
        for source in sources:
            if not isinstance(source, yaml.MappingNode):
                line, column = _mark(source)
                logger.warning("merge key at line %s, column %s does not name a mapping; ignored", line, column)
                continue
            merged = self._convert(source, constructor)
            for key, value in merged.items():
                if key in mapping:
                    continue
                mapping[key] = value
                mapping.key_marks[key] = merged.key_marks[key]
                mapping.value_marks[key] = merged.value_marks[key]

    def resolve(self, ref: str, origin: LoadedDocument) -> tuple[tuple[str, tuple], Any, LoadedDocument]:
        """
        Resolve a $ref.

        Args:
            ref: The reference, local ('#/a/b'), relative ('file.yaml#/a/b') or whole-file
            origin: The document the reference appears in

        Returns:
            ((document key, pointer segments), resolved value, document the value lives in)
        """
        if ref.startswith('http://') or ref.startswith('https://'):
            raise UnresolvableReferenceError(ref, "remote references are not fetched")

        file_part, _, pointer = ref.partition('#')

        if file_part:
            if origin.location is not None:
                base = origin.location.parent
            else:
                base = self.base_dir or Path.cwd()
            try:
                document = self.load_file(base / file_part)
            except DocumentLoadError as e:
                raise UnresolvableReferenceError(ref, e.message)
        else:
            document = origin

        segments = tuple(split_pointer(pointer))
        resolved = document.root
        for part in segments:
            if isinstance(resolved, dict) and part in resolved:
                resolved = resolved[part]
            elif isinstance(resolved, list) and part.isdigit() and int(part) < len(resolved):
                resolved = resolved[int(part)]
            else:
                raise UnresolvableReferenceError(ref, f"path component '{part}' not found")

        return (document.key, segments), resolved, document
