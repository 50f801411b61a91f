"""JSONPath utilities for DriftMap."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Iterable, TYPE_CHECKING

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathParserError

from .kinds import SINGLE, DYNAMIC, MAP, fields_for, field_spec
from .models import RuleResult, SemanticNode
from .utils import field_path, index_path, key_path, split_pointer

if TYPE_CHECKING:
    from .document import SemanticDocument

logger = logging.getLogger(__name__)


class JSONPathMatcher:
    """Utility class for JSONPath matching over loaded documents."""

    # Cache for compiled JSONPath expressions
    _cache: dict = {}

    @classmethod
    def compile(cls, path: str):
        """Compile and cache a JSONPath expression."""
        if path not in cls._cache:
            try:
                cls._cache[path] = jsonpath_parse(path)
            except JsonPathParserError as e:
                raise ValueError(f"Invalid JSONPath expression '{path}': {e}")
        return cls._cache[path]

    @classmethod
    def find_all(cls, data: Any, path: str) -> list[tuple[str, Any]]:
        """
        Find all matches for a JSONPath expression.

        Returns:
            List of (full_path, value) tuples
        """
        try:
            expr = cls.compile(path)
        except ValueError as e:
            logger.warning("%s", e)
            return []
        return [(str(m.full_path), m.value) for m in expr.find(data)]

    @classmethod
    def find_values(cls, data: Any, path: str) -> list[Any]:
        """Find all values matching a JSONPath expression."""
        return [value for _, value in cls.find_all(data, path)]

    @classmethod
    def find_nodes(cls, document: SemanticDocument, path: str) -> list[SemanticNode]:
        """
        Find the semantic nodes of every location a JSONPath expression matches.

        Scalar matches resolve to the node of the object holding them. A
        definition reached through several $refs yields the node of every use.

        Args:
            document: The document to query
            path: JSONPath expression over the raw document

        Returns:
            Matching nodes in document order, without duplicates
        """
        try:
            expr = cls.compile(path)
        except ValueError as e:
            logger.warning("%s", e)
            return []

        by_value: dict[int, list[SemanticNode]] = {}
        for node in document.nodes:
            if node.instance is not None:
                by_value.setdefault(id(node.instance.value), []).append(node)

        found: list[SemanticNode] = []
        seen: set[int] = set()
        for match in expr.find(document.document.root):
            owner = match
            while owner is not None and id(owner.value) not in by_value:
                owner = owner.context
            if owner is None:
                continue
            for node in by_value[id(owner.value)]:
                if id(node) not in seen:
                    seen.add(id(node))
                    found.append(node)
        return found


def attach_rule_results(document: SemanticDocument, findings: Iterable[tuple[str, RuleResult]]) -> int:
    """
    Attach static-analysis findings to the nodes their JSONPath selects.

    Args:
        document: The document the findings were produced against
        findings: (JSONPath expression, result) pairs

    Returns:
        Number of results attached
    """
    attached = 0
    for expression, result in findings:
        for node in JSONPathMatcher.find_nodes(document, expression):
            node.add_rule_result(dataclasses.replace(result, path=node.id))
            attached += 1
    return attached


def friendly_reference(ref: str) -> str:
    """
    Convert a $ref into the node id of the definition it points at.

    Only the fragment is used, so '#/components/schemas/Pet' and
    'models.yaml#/components/schemas/Pet' both become
    "$.components.schemas['Pet']".
    """
    _, _, pointer = ref.partition('#')
    segments = split_pointer(pointer)

    path = "$"
    kind = "document"
    i = 0
    while i < len(segments):
        segment = segments[i]
        spec = field_spec(kind, segment) if kind else None

        if spec is not None and not spec.inline:
            path = field_path(path, segment)
            i += 1
            if spec.shape in (SINGLE, DYNAMIC):
                kind = spec.kind
                continue
            if i >= len(segments):
                break
            entry = segments[i]
            if spec.shape == MAP or not entry.isdigit():
                path = key_path(path, entry)
            else:
                path = index_path(path, int(entry))
            kind = spec.kind
            i += 1
            continue

        inline = next((s for s in fields_for(kind) if s.inline), None) if kind else None
        path = key_path(path, segment)
        kind = inline.kind if inline is not None else ""
        i += 1

    return path
