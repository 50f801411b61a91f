"""
DriftMap - What changed between two OpenAPI 3.x documents

Diffs two OpenAPI documents, attributes every change to the node of the
right-hand document it belongs to (replaying $ref definitions onto their uses),
prunes the document tree down to the changed nodes and renders a
Markdown or HTML report.
"""

from .changerator import Changerator, ChangeratorConfig
from .differ import BreakingRules, Differ
from .document import ModelObject, SemanticDocument
from .loader import SpecLoader
from .models import (
    ChangeKind,
    ChangeContext,
    Diff,
    DiffGroup,
    NodeChange,
    SemanticNode,
    Edge,
    RuleResult,
    ChangeStatistics,
    BuildError,
)
from .deduplicator import ChangeDeduplicator
from .ledger import DedupLedger
from .statistics import calculate_statistics
from .render_config import (
    RenderConfig,
    BreakingConfig,
    HTMLConfig,
    NestedListFixStrategy,
    default_render_config,
    merge_configs,
)
from .report import (
    OutputFormat,
    generate_report,
    render_markdown,
    render_html,
)
from .markdown_report import MarkdownReporter
from .html_report import HTMLRenderer
from .tree_report import TreeRenderer, TreeConfig
from .jsonpath_utils import JSONPathMatcher, attach_rule_results
from .runner import (
    WhatChangedRunner,
    WhatChangedResult,
    what_changed,
)
from .exceptions import (
    DriftMapError,
    DocumentLoadError,
    UnresolvableReferenceError,
    UnknownKindError,
    TraversalCancelledError,
    RenderError,
)

__version__ = "0.1.0"
__all__ = [
    # Documents
    "SpecLoader",
    "SemanticDocument",
    "ModelObject",
    # Diffing
    "Differ",
    "BreakingRules",
    "ChangeKind",
    "ChangeContext",
    "Diff",
    "DiffGroup",
    # Distribution
    "Changerator",
    "ChangeratorConfig",
    "NodeChange",
    "SemanticNode",
    "Edge",
    "BuildError",
    "DedupLedger",
    "ChangeDeduplicator",
    "ChangeStatistics",
    "calculate_statistics",
    # Rule results
    "RuleResult",
    "JSONPathMatcher",
    "attach_rule_results",
    # Rendering
    "RenderConfig",
    "BreakingConfig",
    "HTMLConfig",
    "NestedListFixStrategy",
    "default_render_config",
    "merge_configs",
    "OutputFormat",
    "generate_report",
    "render_markdown",
    "render_html",
    "MarkdownReporter",
    "HTMLRenderer",
    "TreeRenderer",
    "TreeConfig",
    # Simple Runner
    "WhatChangedRunner",
    "WhatChangedResult",
    "what_changed",
    # Errors
    "DriftMapError",
    "DocumentLoadError",
    "UnresolvableReferenceError",
    "UnknownKindError",
    "TraversalCancelledError",
    "RenderError",
]
