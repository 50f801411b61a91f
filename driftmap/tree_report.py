"""Text tree view of a pruned change tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import ADDITIONS, REMOVALS, Diff, SemanticNode

BRANCH = "├──"
LAST_BRANCH = "└──"
BRANCH_DOWN = "├─┬"
LAST_BRANCH_DOWN = "└─┬"
VERTICAL = "│ "
EMPTY = "  "


@dataclass(frozen=True)
class ChangeSymbols:
    modified: str
    added: str
    removed: str
    breaking: str


EMOJI_SYMBOLS = ChangeSymbols(modified="[🔀]", added="[➕]", removed="[➖]", breaking="❌")
ASCII_SYMBOLS = ChangeSymbols(modified="[M]", added="[+]", removed="[-]", breaking="{X}")


@dataclass
class TreeConfig:
    """Options for the tree view."""
    use_emojis: bool = True
    show_line_numbers: bool = True
    show_statistics: bool = False


def branch_symbol(is_last: bool, has_children: bool) -> str:
    if has_children:
        return LAST_BRANCH_DOWN if is_last else BRANCH_DOWN
    return LAST_BRANCH if is_last else BRANCH


class TreeRenderer:
    """
    Renders the children of a change-tree root as box-drawing text.

    Each node lists its own property changes before its child nodes.

    Usage:
        nodes, edges = changerator.build_node_change_tree()
        print(TreeRenderer(right.root_node, TreeConfig(use_emojis=False)).render())
    """

    def __init__(self, root: Optional[SemanticNode], config: Optional[TreeConfig] = None):
        self.root = root
        self.config = config or TreeConfig()
        self.symbols = EMOJI_SYMBOLS if self.config.use_emojis else ASCII_SYMBOLS
        self._stats: dict[int, tuple[int, int]] = {}

    def render(self) -> str:
        if self.root is None:
            return ""
        if self.config.show_statistics:
            self._compute_stats(self.root)

        out: list[str] = []
        children = self.root.children
        for i, child in enumerate(children):
            self._render_node(out, child, "", i == len(children) - 1)
        return "".join(out)

    def _compute_stats(self, node: SemanticNode) -> tuple[int, int]:
        cached = self._stats.get(id(node))
        if cached is not None:
            return cached

        total, breaking = 0, 0
        for change in node.property_changes():
            total += 1
            if change.breaking:
                breaking += 1
        for child in node.children:
            child_total, child_breaking = self._compute_stats(child)
            total += child_total
            breaking += child_breaking

        self._stats[id(node)] = (total, breaking)
        return total, breaking

    def _render_node(self, out: list[str], node: SemanticNode, prefix: str, is_last: bool):
        changes = node.property_changes()
        has_items = bool(changes) or bool(node.children)

        out.append(prefix)
        out.append(branch_symbol(is_last, has_items))
        out.append(node.label or node.type or "Unknown")

        if self.config.show_statistics:
            total, breaking = self._stats.get(id(node), (0, 0))
            if total > 0:
                if breaking > 0:
                    out.append(f" ({total} changes, {breaking} breaking)")
                else:
                    out.append(f" ({total} changes)")
        out.append("\n")

        child_prefix = prefix + (EMPTY if is_last else VERTICAL)
        for i, change in enumerate(changes):
            last_item = i == len(changes) - 1 and not node.children
            self._render_change(out, change, child_prefix, last_item)
        for i, child in enumerate(node.children):
            self._render_node(out, child, child_prefix, i == len(node.children) - 1)

    def _render_change(self, out: list[str], change: Diff, prefix: str, is_last: bool):
        out.append(prefix)
        out.append(branch_symbol(is_last, False))
        out.append(self.change_symbol(change))
        out.append(" ")
        out.append(change.property)

        if self.config.show_line_numbers:
            line, column = self.change_location(change)
            if line > 0:
                out.append(f" ({line}:{column})")

        if change.breaking:
            out.append(self.symbols.breaking)
        out.append("\n")

    def change_symbol(self, change: Diff) -> str:
        if change.kind in ADDITIONS:
            return self.symbols.added
        if change.kind in REMOVALS:
            return self.symbols.removed
        return self.symbols.modified

    @staticmethod
    def change_location(change: Diff) -> tuple[int, int]:
        """Original coordinates for removals, new coordinates otherwise."""
        ctx = change.context
        if change.kind in REMOVALS:
            return ctx.original_line or 0, ctx.original_column or 0
        return ctx.new_line or 0, ctx.new_column or 0
