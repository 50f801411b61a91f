"""Example usage of the DriftMap change distributor."""

import json
from driftmap import (
    Changerator,
    HTMLConfig,
    NestedListFixStrategy,
    OutputFormat,
    RenderConfig,
    SemanticDocument,
    TreeConfig,
    TreeRenderer,
)

# Original API description
original_spec = """
openapi: 3.1.0
info:
  title: Burger Shop
  version: 1.0.0
  contact:
    name: hello
servers:
  - url: https://api.burgers.example
  - url: https://staging.burgers.example
paths:
  /burgers/{burgerId}:
    get:
      operationId: getBurger
      parameters:
        - name: burgerId
          in: path
          required: true
          schema:
            type: string
      responses:
        '200':
          description: A burger
          content:
            application/json:
              schema:
                $ref: '#/components/schemas/Burger'
components:
  schemas:
    Burger:
      type: object
      properties:
        name:
          type: string
        vegan:
          type: boolean
x-internal: false
"""

# Modified API description
modified_spec = """
openapi: 3.1.0
info:
  title: Burger Shop
  version: 1.1.0
  contact:
    name: there
    url: http://fresh.example
servers:
  - url: https://api.burgers.example
  - url: https://staging.burgers.example
  - url: https://eu.burgers.example
paths:
  /burgers/{burgerId}:
    get:
      operationId: getBurger
      parameters:
        - name: burgerId
          in: path
          required: true
          schema:
            type: string
        - name: sauce
          in: query
          schema:
            type: string
      responses:
        '200':
          description: A burger
          content:
            application/json:
              schema:
                $ref: '#/components/schemas/Burger'
components:
  schemas:
    Burger:
      type: object
      properties:
        name:
          type: string
        vegan:
          type: string
x-internal: true
"""


def main():
    print("=" * 60)
    print("DriftMap Change Distributor - Example")
    print("=" * 60)

    left = SemanticDocument.from_content(original_spec)
    right = SemanticDocument.from_content(modified_spec)

    # Diff and distribute the changes onto the modified document
    changerator = Changerator(left, right)
    changes = changerator.changerate()
    if changes is None:
        print("\nNo changes detected.")
        return

    stats = changerator.calculate_statistics()
    print(f"\nSummary:")
    print(f"  Additions: {stats.additions}")
    print(f"  Modifications: {stats.modifications}")
    print(f"  Removals: {stats.removals}")

    print(f"\nChanges:")
    for change in changerator.changes:
        flag = " (breaking)" if change.breaking else ""
        print(f"  - [{change.kind.value}] {change.path} {change.property}{flag}")

    nodes, edges = changerator.build_node_change_tree()
    print(f"\nChanged nodes: {len(nodes)}, edges: {len(edges)}")

    print("\n" + "-" * 60)
    print("Change Tree:")
    print(TreeRenderer(right.root_node, TreeConfig(show_statistics=True)).render())

    print("-" * 60)
    print("Markdown Report:")
    print(changerator.generate_report())

    print("-" * 60)
    print("Change Set JSON:")
    print(json.dumps([c.to_dict() for c in changerator.changes], indent=2, default=str))


def example_html_report():
    """Example that renders the report as HTML with marked examples."""
    print("\n" + "=" * 60)
    print("Example with HTML Output")
    print("=" * 60)

    left = SemanticDocument.from_content(original_spec)
    right = SemanticDocument.from_content(modified_spec)

    changerator = Changerator(left, right)
    changerator.changerate()

    config = RenderConfig(html=HTMLConfig(
        enable_nested_list_fix=True,
        nested_list_fix_strategy=NestedListFixStrategy.EXTRACT,
    ))
    print(changerator.generate_report(OutputFormat.HTML, config))


if __name__ == "__main__":
    main()
    example_html_report()
