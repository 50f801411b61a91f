"""Runner that loads two OpenAPI documents from disk and reports what changed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .changerator import Changerator, ChangeratorConfig
from .document import SemanticDocument
from .loader import SpecLoader
from .models import BuildError, ChangeStatistics, Diff, DiffGroup, Edge, SemanticNode
from .render_config import RenderConfig
from .report import OutputFormat

logger = logging.getLogger(__name__)


@dataclass
class WhatChangedResult:
    """Everything one comparison produced."""
    changes: Optional[DiffGroup]
    diffs: list[Diff] = field(default_factory=list)
    nodes: list[SemanticNode] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    statistics: ChangeStatistics = field(default_factory=ChangeStatistics)
    errors: list[BuildError] = field(default_factory=list)
    report: str = ""

    @property
    def has_changes(self) -> bool:
        return self.changes is not None

    @property
    def breaking_changes(self) -> int:
        return sum(1 for d in self.diffs if d.breaking)

    def to_dict(self) -> dict:
        return {
            "statistics": self.statistics.to_dict(),
            "breaking_changes": self.breaking_changes,
            "changes": [d.to_dict() for d in self.diffs],
            "nodes": [n.id for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "errors": [e.to_dict() for e in self.errors],
        }

    def print_summary(self):
        stats = self.statistics
        print("=" * 60)
        print("WHAT CHANGED")
        print("=" * 60)
        if not self.has_changes:
            print("No changes detected.")
            return
        print(f"Changes:        {stats.total}")
        print(f"  Additions:     {stats.additions}")
        print(f"  Modifications: {stats.modifications}")
        print(f"  Removals:      {stats.removals}")
        print(f"Breaking:       {self.breaking_changes}")
        print(f"Changed nodes:  {len(self.nodes)}")
        if self.errors:
            print(f"Build errors:   {len(self.errors)}")
            for error in self.errors:
                print(f"  - {error.path or '$'}: {error.message}")
        print("=" * 60)


class WhatChangedRunner:
    """
    Compares two OpenAPI documents on disk.

    Usage:
        runner = WhatChangedRunner("v1/openapi.yaml", "v2/openapi.yaml")
        result = runner.run()
        print(result.report)

    Or as a one-liner:
        result = WhatChangedRunner.compare("v1/openapi.yaml", "v2/openapi.yaml")
    """

    def __init__(
        self,
        left_path: str | Path,
        right_path: str | Path,
        config: Optional[ChangeratorConfig] = None,
        render_config: Optional[RenderConfig] = None,
    ):
        """
        Initialize the runner.

        Args:
            left_path: Path to the original document (YAML or JSON)
            right_path: Path to the modified document
            config: Optional distribution configuration
            render_config: Optional report configuration
        """
        self.left_path = Path(left_path)
        self.right_path = Path(right_path)
        self.config = config or ChangeratorConfig()
        self.render_config = render_config
        self._left: Optional[SemanticDocument] = None
        self._right: Optional[SemanticDocument] = None

    @property
    def left(self) -> SemanticDocument:
        """Load and cache the original document."""
        if self._left is None:
            self._left = SemanticDocument.from_file(self.left_path, SpecLoader())
        return self._left

    @property
    def right(self) -> SemanticDocument:
        """Load and cache the modified document."""
        if self._right is None:
            self._right = SemanticDocument.from_file(self.right_path, SpecLoader())
        return self._right

    def run(self, output_format: OutputFormat = OutputFormat.MARKDOWN) -> WhatChangedResult:
        """
        Diff, distribute, prune and render.

        Args:
            output_format: Format of the rendered report

        Returns:
            WhatChangedResult for the two documents
        """
        logger.info("comparing %s -> %s", self.left_path, self.right_path)
        changerator = Changerator(self.left, self.right, config=self.config)
        changes = changerator.changerate()

        result = WhatChangedResult(changes=changes, errors=list(changerator.errors))
        if changes is not None:
            result.diffs = list(changerator.changes)
            result.statistics = changerator.calculate_statistics()
            result.nodes, result.edges = changerator.build_node_change_tree()
            changerator.ruleify(self.left)

        result.report = changerator.generate_report(output_format, self.render_config)
        logger.info(
            "%d changes (%d breaking) across %d nodes",
            result.statistics.total, result.breaking_changes, len(result.nodes),
        )
        return result

    @classmethod
    def compare(
        cls,
        left_path: str | Path,
        right_path: str | Path,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        config: Optional[ChangeratorConfig] = None,
        render_config: Optional[RenderConfig] = None,
    ) -> WhatChangedResult:
        """
        Convenience class method to compare two documents in one call.

        Example:
            result = WhatChangedRunner.compare("old.yaml", "new.yaml")
        """
        runner = cls(left_path, right_path, config, render_config)
        return runner.run(output_format)


def what_changed(
    left_path: str | Path,
    right_path: str | Path,
    output_format: OutputFormat = OutputFormat.MARKDOWN,
) -> WhatChangedResult:
    """
    Compare two documents on disk.

    This is the simplest way to use the library:

        from driftmap.runner import what_changed
        print(what_changed("old.yaml", "new.yaml").report)
    """
    return WhatChangedRunner.compare(left_path, right_path, output_format)
