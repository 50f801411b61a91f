#!/usr/bin/env python
"""Compare two OpenAPI documents from the command line."""

import argparse
import json
import logging
import sys
from pathlib import Path

from driftmap import (
    ChangeratorConfig,
    DriftMapError,
    HTMLConfig,
    NestedListFixStrategy,
    OutputFormat,
    RenderConfig,
    TreeConfig,
    TreeRenderer,
    WhatChangedRunner,
)


def main():
    parser = argparse.ArgumentParser(
        description="Report what changed between two OpenAPI documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_what_changed.py old.yaml new.yaml
  python run_what_changed.py old.yaml new.yaml -f html -o report.html
  python run_what_changed.py old.yaml new.yaml --tree --ascii
  python run_what_changed.py old.yaml new.yaml --json changes.json
        """
    )

    parser.add_argument("left", help="Path to the original document (YAML or JSON)")
    parser.add_argument("right", help="Path to the modified document (YAML or JSON)")
    parser.add_argument(
        "-f", "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.MARKDOWN.value,
        help="Report format"
    )
    parser.add_argument("-o", "--output", help="Write the report to this file instead of stdout")
    parser.add_argument("--json", dest="json_path", help="Also write the change set as JSON")
    parser.add_argument("--tree", action="store_true", help="Print the change tree instead of the report")
    parser.add_argument("--ascii", action="store_true", help="Use ASCII symbols in the change tree")
    parser.add_argument("--stats", action="store_true", help="Show per-branch statistics in the change tree")
    parser.add_argument("--strict", action="store_true", help="Fail on object kinds without a visitor")
    parser.add_argument(
        "--nested-list-fix",
        choices=[s.value for s in NestedListFixStrategy],
        help="Mark examples and apply this strategy to their code blocks (HTML)"
    )
    parser.add_argument("--raw-html", action="store_true", help="Allow raw HTML in the HTML report")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress the summary")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    for path in (args.left, args.right):
        if not Path(path).exists():
            print(f"Error: Document not found: {path}", file=sys.stderr)
            return 1

    html_config = HTMLConfig(allow_raw_html=args.raw_html)
    if args.nested_list_fix:
        html_config.enable_nested_list_fix = True
        html_config.nested_list_fix_strategy = NestedListFixStrategy(args.nested_list_fix)

    runner = WhatChangedRunner(
        args.left,
        args.right,
        config=ChangeratorConfig(strict_mode=args.strict),
        render_config=RenderConfig(html=html_config),
    )

    try:
        result = runner.run(OutputFormat(args.format))
    except DriftMapError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.tree:
        tree = TreeRenderer(
            runner.right.root_node,
            TreeConfig(use_emojis=not args.ascii, show_statistics=args.stats),
        )
        output = tree.render() if result.has_changes else ""
    else:
        output = result.report

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(output)
    else:
        print(output)

    if args.json_path:
        with open(args.json_path, 'w') as f:
            json.dump(result.to_dict(), indent=2, fp=f, default=str)

    if not args.quiet:
        result.print_summary()

    # Breaking changes fail the run
    return 1 if result.breaking_changes else 0


if __name__ == "__main__":
    sys.exit(main())
