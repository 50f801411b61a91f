"""Semantic graph of an OpenAPI document: model objects, nodes and edges."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

from .exceptions import UnresolvableReferenceError
from .kinds import (
    SINGLE,
    DYNAMIC,
    MAP,
    LIST,
    NODELESS_KINDS,
    POLYMORPHIC_FIELDS,
    fields_for,
    field_entries,
    is_extension,
    member_label,
)
from .loader import LoadedDocument, SpecLoader, position_of
from .models import BuildError, Edge, SemanticNode
from .utils import field_path, hash_value, index_path, key_path

logger = logging.getLogger(__name__)

MAX_REFERENCE_CHAIN = 32


class ModelObject:
    """
    One OpenAPI object of a loaded document.

    Holds the raw (reference-resolved) value, its JSON-Path id and its typed
    children. A $ref use site points at its definition through `target` and
    has no children of its own. `node` is None only for objects that never
    join the semantic tree: an unresolvable $ref or a nodeless kind.
    """

    def __init__(
        self,
        kind: str,
        value: Any,
        json_path: str,
        parent: Optional[ModelObject] = None,
        source: Optional[LoadedDocument] = None,
        segments: tuple = (),
        field_name: str = "",
        key: Optional[str] = None,
        index: Optional[int] = None,
        label: str = "",
        poly: str = "",
    ):
        self.kind = kind
        self.value = value
        self.json_path = json_path
        self.parent = parent
        self.source = source
        self.segments = tuple(segments)
        self.field_name = field_name
        self.key = key
        self.index = index
        self.label = label
        self.poly = poly
        self.node: Optional[SemanticNode] = None
        self.reference = ""
        self.target: Optional[ModelObject] = None
        self._children: dict[str, ModelObject] = {}
        self._maps: dict[str, dict[str, ModelObject]] = {}
        self._lists: dict[str, list[ModelObject]] = {}
        self._hash: Optional[str] = None

    @property
    def is_reference(self) -> bool:
        return bool(self.reference)

    @property
    def definition_key(self) -> Optional[tuple[str, tuple]]:
        """(document key, pointer segments) of the location this object was built from."""
        if self.source is None:
            return None
        return self.source.key, self.segments

    @property
    def hash(self) -> str:
        if self._hash is None:
            self._hash = hash_value(self.value)
        return self._hash

    @property
    def position(self) -> tuple[Optional[int], Optional[int]]:
        return position_of(self.value)

    def resolved(self) -> ModelObject:
        """The object whose children describe this one (the definition, for a use site)."""
        return self.target if self.target is not None else self

    def child(self, name: str) -> Optional[ModelObject]:
        return self.resolved()._children.get(name)

    def entries(self, name: str) -> dict[str, ModelObject]:
        return self.resolved()._maps.get(name, {})

    def members(self, name: str) -> list[ModelObject]:
        return self.resolved()._lists.get(name, [])

    def __repr__(self) -> str:
        return f"ModelObject({self.kind!r}, {self.json_path!r})"


class SemanticDocument:
    """
    Builds the model tree and the semantic node graph of one document.

    Every definition is built once, where it lives. A $ref use site becomes a
    leaf node linked to its parent twice (structurally and by the reference)
    and to the definition's node by a reference edge, so the graph is a DAG
    through $ref. A definition with no home in the document tree (another
    file, or an untyped location) is built under its first use site; later
    uses link to that one.

    Usage:
        doc = SemanticDocument.from_file("openapi.yaml")
        node = doc.node("$.paths['/pets'].get")
        pet = doc.definition((doc.document.key, ("components", "schemas", "Pet")))
    """

    def __init__(self, document: LoadedDocument, loader: Optional[SpecLoader] = None):
        self.document = document
        self.loader = loader or SpecLoader()
        self.nodes: list[SemanticNode] = []
        self.edges: list[Edge] = []
        self.errors: list[BuildError] = []
        self._index: dict[str, list[SemanticNode]] = {}
        self._definitions: dict[tuple, ModelObject] = {}
        self._uses: list[tuple[ModelObject, tuple]] = []

        self.root = self._build(
            kind="document",
            raw=document.root,
            json_path="$",
            parent=None,
            source=document,
            segments=(),
            label="Document",
        )
        self._link_references()

    @classmethod
    def from_file(cls, path: str | Path, loader: Optional[SpecLoader] = None) -> SemanticDocument:
        loader = loader or SpecLoader()
        return cls(loader.load_file(path), loader)

    @classmethod
    def from_content(
        cls,
        content: bytes | str,
        location: Optional[str | Path] = None,
        loader: Optional[SpecLoader] = None,
    ) -> SemanticDocument:
        loader = loader or SpecLoader()
        return cls(loader.load_content(content, location), loader)

    @property
    def content(self) -> bytes:
        return self.document.content

    @property
    def root_node(self) -> Optional[SemanticNode]:
        return self.root.node

    def node(self, node_id: str) -> Optional[SemanticNode]:
        """First node registered under an id."""
        found = self._index.get(node_id)
        return found[0] if found else None

    def find_nodes(self, node_id: str) -> list[SemanticNode]:
        """Every node registered under an id."""
        return list(self._index.get(node_id, []))

    def definition(self, key: Optional[tuple]) -> Optional[ModelObject]:
        """The object built for a (document key, pointer segments) location."""
        if key is None:
            return None
        return self._definitions.get((key[0], tuple(key[1])))

    def use_sites(self, definition: ModelObject) -> list[ModelObject]:
        """Every $ref use site linked to a definition, in document order."""
        return [use for use, _ in self._uses if use.target is definition or use is definition]

    def walk(self) -> Iterator[ModelObject]:
        """Yield every model object that joined the semantic tree, depth first."""
        for node in self.nodes:
            if node.instance is not None:
                yield node.instance

    def _build(
        self,
        kind: str,
        raw: Any,
        json_path: str,
        parent: Optional[ModelObject],
        source: LoadedDocument,
        segments: tuple,
        field_name: str = "",
        key: Optional[str] = None,
        index: Optional[int] = None,
        label: str = "",
        poly: str = "",
    ) -> ModelObject:
        if isinstance(raw, dict) and isinstance(raw.get("$ref"), str):
            return self._build_use(kind, raw, json_path, parent, source, field_name, key, index, label, poly)

        if index is not None:
            label = member_label(kind, raw, label)

        obj = ModelObject(kind, raw, json_path, parent, source, segments, field_name, key, index, label, poly)
        self._definitions.setdefault(obj.definition_key, obj)
        if kind not in NODELESS_KINDS:
            self._attach_node(obj, parent)
        self._build_children(obj)
        return obj

    def _build_use(
        self,
        kind: str,
        raw: Any,
        json_path: str,
        parent: Optional[ModelObject],
        source: LoadedDocument,
        field_name: str,
        key: Optional[str],
        index: Optional[int],
        label: str,
        poly: str,
    ) -> ModelObject:
        """A $ref use site: resolved now, linked once the whole tree exists."""
        reference = raw["$ref"]
        try:
            target_key, resolved, target_source = self._resolve_chain(raw, source)
        except UnresolvableReferenceError as e:
            self._record_error(str(e), json_path, reference, raw)
            obj = ModelObject(kind, raw, json_path, parent, source, (), field_name, key, index, label, poly)
            obj.reference = reference
            return obj

        if index is not None:
            label = member_label(kind, resolved, label)

        obj = ModelObject(
            kind, resolved, json_path, parent, target_source, target_key[1],
            field_name, key, index, label, poly,
        )
        obj.reference = reference
        if kind not in NODELESS_KINDS:
            self._attach_node(obj, parent)
        self._uses.append((obj, target_key))
        return obj

    def _resolve_chain(self, raw: Any, source: LoadedDocument) -> tuple[tuple, Any, LoadedDocument]:
        """Follow $ref to $ref until a value that is not a reference."""
        target_key = None
        chain = 0
        while isinstance(raw, dict) and isinstance(raw.get("$ref"), str):
            ref = raw["$ref"]
            chain += 1
            if chain > MAX_REFERENCE_CHAIN:
                raise UnresolvableReferenceError(ref, "reference chain too long")
            target_key, raw, source = self.loader.resolve(ref, source)
        return target_key, raw, source

    def _link_references(self):
        # Building a definition under a use site can add further uses.
        i = 0
        while i < len(self._uses):
            use, target_key = self._uses[i]
            i += 1
            definition = self._definitions.get(target_key)

            if definition is None:
                logger.debug("building %s under its first use %s", use.reference, use.json_path)
                self._definitions[target_key] = use
                self._build_children(use)
                continue

            if definition is use:
                continue

            if definition.kind != use.kind:
                logger.debug(
                    "reference '%s' at %s points at a %s, not a %s",
                    use.reference, use.json_path, definition.kind, use.kind,
                )
                self._build_children(use)
                continue

            use.target = definition
            if use.node is not None and definition.node is not None:
                self.edges.append(Edge(
                    source=use.node.id,
                    target=definition.node.id,
                    ref=use.reference,
                    poly=use.poly,
                ))

    def _attach_node(self, obj: ModelObject, parent: Optional[ModelObject]):
        parent_node = parent.node if parent is not None else None
        node = SemanticNode(
            id=obj.json_path,
            type=obj.kind,
            label=obj.label or obj.kind,
            parent_id=parent_node.id if parent_node is not None else None,
            array_index=obj.index,
            instance=obj,
        )
        obj.node = node
        self.nodes.append(node)
        self._index.setdefault(node.id, []).append(node)

        if parent_node is not None:
            parent_node.children.append(node)
            self.edges.append(Edge(source=parent_node.id, target=node.id, poly=obj.poly))
            if obj.reference:
                self.edges.append(Edge(source=parent_node.id, target=node.id, ref=obj.reference, poly=obj.poly))

    def _build_children(self, obj: ModelObject):
        raw = obj.value
        if not isinstance(raw, dict):
            return

        for spec in fields_for(obj.kind):
            value = field_entries(spec, obj.kind, raw)
            if value is None:
                continue

            if spec.shape in (SINGLE, DYNAMIC):
                if isinstance(value, dict):
                    obj._children[spec.name] = self._build(
                        kind=spec.kind,
                        raw=value,
                        json_path=field_path(obj.json_path, spec.name),
                        parent=obj,
                        source=obj.source,
                        segments=obj.segments + (spec.name,),
                        field_name=spec.name,
                        label=spec.name,
                    )

            elif spec.shape == MAP:
                if not isinstance(value, dict):
                    continue
                base_path = obj.json_path if spec.inline else field_path(obj.json_path, spec.name)
                base_segments = obj.segments if spec.inline else obj.segments + (spec.name,)
                entries = {}
                for key, entry in value.items():
                    if spec.kind != "schema" and is_extension(key):
                        continue
                    if not isinstance(entry, dict):
                        continue
                    entries[key] = self._build(
                        kind=spec.kind,
                        raw=entry,
                        json_path=key_path(base_path, key),
                        parent=obj,
                        source=obj.source,
                        segments=base_segments + (str(key),),
                        field_name=spec.name,
                        key=key,
                        label=str(key),
                    )
                obj._maps[spec.name] = entries

            elif spec.shape == LIST:
                if not isinstance(value, list):
                    continue
                list_path = field_path(obj.json_path, spec.name)
                poly = spec.name if spec.name in POLYMORPHIC_FIELDS else ""
                members = []
                for i, item in enumerate(value):
                    if not isinstance(item, dict):
                        continue
                    members.append(self._build(
                        kind=spec.kind,
                        raw=item,
                        json_path=index_path(list_path, i),
                        parent=obj,
                        source=obj.source,
                        segments=obj.segments + (spec.name, str(i)),
                        field_name=spec.name,
                        index=i,
                        label=f"{spec.name}[{i}]",
                        poly=poly,
                    ))
                obj._lists[spec.name] = members

    def _record_error(self, message: str, json_path: str, ref: str, raw: Any):
        line, column = position_of(raw)
        error = BuildError(message=message, path=json_path, ref=ref, line=line, column=column)
        self.errors.append(error)
        logger.warning("%s (at %s)", message, json_path)
