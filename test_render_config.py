"""Tests for render configuration and its merging."""

from driftmap import (
    BreakingConfig,
    HTMLConfig,
    NestedListFixStrategy,
    RenderConfig,
    default_render_config,
    merge_configs,
)


class TestRenderConfig:
    """Test configuration defaults."""

    def test_defaults(self):
        """Test the default badge, classes and flags."""
        config = default_render_config()
        assert config.breaking.badge == "💔 breaking"
        assert config.breaking.marker == "**(💔 breaking)**"
        assert config.breaking.css_class == "breaking-change"
        assert config.html.heading_class == "change-heading"
        assert config.html.nested_list_fix_strategy == NestedListFixStrategy.INLINE
        assert config.inject_example_markers is False

    def test_markers_follow_nested_list_fix(self):
        """Test that enabling the nested-list fix turns on example markers."""
        config = RenderConfig(html=HTMLConfig(enable_nested_list_fix=True))
        assert config.inject_example_markers is True


class TestMergeConfigs:
    """Test overlaying configurations."""

    def test_no_override(self):
        """Test that merging nothing copies the base."""
        base = RenderConfig(breaking=BreakingConfig(badge="BREAKS"))
        merged = merge_configs(base, None)
        assert merged.breaking.badge == "BREAKS"
        assert merged is not base
        assert merged.breaking is not base.breaking

    def test_no_base(self):
        """Test that a missing base means the defaults."""
        merged = merge_configs(None, None)
        assert merged.breaking.badge == "💔 breaking"

    def test_non_empty_strings_win(self):
        """Test that only non-empty strings replace the base."""
        base = RenderConfig(breaking=BreakingConfig(badge="BREAKS", css_class="base"))
        override = RenderConfig(breaking=BreakingConfig(badge="", css_class="override"))
        merged = merge_configs(base, override)
        assert merged.breaking.badge == "BREAKS"
        assert merged.breaking.css_class == "override"

    def test_default_html_section_keeps_base(self):
        """Test that an html section left at the defaults changes nothing."""
        base = RenderConfig(html=HTMLConfig(enable_nested_list_fix=True, allow_raw_html=True))
        merged = merge_configs(base, RenderConfig())
        assert merged.html.enable_nested_list_fix is True
        assert merged.html.allow_raw_html is True

    def test_html_flags_from_override(self):
        """Test that a customised html section supplies every flag."""
        base = RenderConfig(html=HTMLConfig(allow_raw_html=True))
        override = RenderConfig(html=HTMLConfig(
            enable_nested_list_fix=True,
            nested_list_fix_strategy=NestedListFixStrategy.EXTRACT,
        ))
        merged = merge_configs(base, override)
        assert merged.html.enable_nested_list_fix is True
        assert merged.html.nested_list_fix_strategy == NestedListFixStrategy.EXTRACT
        assert merged.html.allow_raw_html is False

    def test_inputs_untouched(self):
        """Test that neither argument is modified."""
        base = RenderConfig()
        override = RenderConfig(breaking=BreakingConfig(badge="BREAKS"))
        merge_configs(base, override)
        assert base.breaking.badge == "💔 breaking"
        assert override.breaking.badge == "BREAKS"
