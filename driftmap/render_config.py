"""Rendering options for the Markdown and HTML reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


DEFAULT_BADGE = "💔 breaking"


class NestedListFixStrategy(Enum):
    # Code blocks stay inside the example's list item.
    INLINE = "inline"
    # Code blocks move out of the example, after its list.
    EXTRACT = "extract"


@dataclass
class BreakingConfig:
    """How breaking changes are marked."""
    badge: str = DEFAULT_BADGE
    css_class: str = "breaking-change"

    @property
    def marker(self) -> str:
        """The Markdown marker written after a breaking change."""
        return f"**({self.badge})**"


@dataclass
class HTMLConfig:
    """Options applied when the Markdown report is converted to HTML."""
    heading_class: str = "change-heading"
    enable_nested_list_fix: bool = False
    allow_raw_html: bool = False
    nested_list_fix_strategy: NestedListFixStrategy = NestedListFixStrategy.INLINE
    enable_object_icons: bool = True


@dataclass
class RenderConfig:
    """
    Rendering configuration.

    Usage:
        config = RenderConfig(html=HTMLConfig(enable_nested_list_fix=True))
        html = generate_report(changes, document, content, OutputFormat.HTML, config)
    """
    breaking: BreakingConfig = field(default_factory=BreakingConfig)
    html: HTMLConfig = field(default_factory=HTMLConfig)

    @property
    def inject_example_markers(self) -> bool:
        return self.html is not None and self.html.enable_nested_list_fix


def default_render_config() -> RenderConfig:
    return RenderConfig()


def merge_configs(base: Optional[RenderConfig], override: Optional[RenderConfig]) -> RenderConfig:
    """
    Overlay one configuration on another.

    Non-empty strings from the override win. Flags and the strategy are
    taken from the override whenever it sets anything at all; an override
    section equal to the defaults leaves the base untouched.

    Args:
        base: Starting configuration (defaults when None)
        override: Values to apply on top

    Returns:
        A new RenderConfig; neither argument is modified
    """
    base = base or default_render_config()
    if override is None:
        return RenderConfig(
            breaking=_copy_breaking(base.breaking),
            html=_copy_html(base.html),
        )
    return RenderConfig(
        breaking=_merge_breaking(base.breaking, override.breaking),
        html=_merge_html(base.html, override.html),
    )


def _copy_breaking(config: Optional[BreakingConfig]) -> BreakingConfig:
    config = config or BreakingConfig()
    return BreakingConfig(badge=config.badge, css_class=config.css_class)


def _copy_html(config: Optional[HTMLConfig]) -> HTMLConfig:
    config = config or HTMLConfig()
    return HTMLConfig(
        heading_class=config.heading_class,
        enable_nested_list_fix=config.enable_nested_list_fix,
        allow_raw_html=config.allow_raw_html,
        nested_list_fix_strategy=config.nested_list_fix_strategy,
        enable_object_icons=config.enable_object_icons,
    )


def _merge_breaking(base: Optional[BreakingConfig], override: Optional[BreakingConfig]) -> BreakingConfig:
    merged = _copy_breaking(base)
    if override is None:
        return merged
    if override.badge:
        merged.badge = override.badge
    if override.css_class:
        merged.css_class = override.css_class
    return merged


def _merge_html(base: Optional[HTMLConfig], override: Optional[HTMLConfig]) -> HTMLConfig:
    merged = _copy_html(base)
    if override is None or override == HTMLConfig():
        return merged
    if override.heading_class:
        merged.heading_class = override.heading_class
    merged.enable_nested_list_fix = override.enable_nested_list_fix
    merged.allow_raw_html = override.allow_raw_html
    merged.nested_list_fix_strategy = override.nested_list_fix_strategy
    merged.enable_object_icons = override.enable_object_icons
    return merged
