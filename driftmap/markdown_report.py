"""Markdown rendering of a document diff tree."""

from __future__ import annotations

import contextlib
from typing import Iterator, Optional

from .document import ModelObject, SemanticDocument
from .models import ADDITIONS, REMOVALS, ChangeKind, Diff, DiffGroup
from .render_config import RenderConfig, default_render_config
from .utils import format_scalar, split_pointer
from .value_formatter import detect_document_format, format_inline, format_structured_value

REPORT_TITLE = "# What Changed Report\n\n"

OPERATION_ORDER = ("get", "post", "put", "delete", "patch", "options", "head", "trace")

OBJECT_TYPE_NAMES = {
    "info": "Info",
    "contact": "Contact",
    "license": "License",
    "operation": "Operation",
    "parameter": "Parameter",
    "schema": "Schema",
    "response": "Response",
    "responses": "Responses",
    "requestBody": "Request Body",
    "header": "Header",
    "mediaType": "Media Type",
    "path": "Path",
    "pathItem": "Path Item",
    "paths": "Paths",
    "tag": "Tag",
    "security": "Security",
    "securityRequirement": "Security",
    "securityScheme": "Security",
    "server": "Server",
    "serverVariable": "Server Variable",
    "webhook": "Webhook",
    "callback": "Callback",
    "link": "Link",
    "example": "Example",
    "externalDoc": "External Doc",
    "extension": "Extension",
    "components": "Component",
    "document": "Document",
    "oauthFlows": "OAuth Flows",
    "oauthFlow": "OAuth Flow",
    "xml": "XML",
}

PROPERTY_PREFIXES = {
    "tags": "Tag",
    "servers": "Server:",
    "security": "Security",
    "externalDocs": "External Doc",
    "callbacks": "Callback",
    "requestBodies": "Request Bodies",
    "deprecated": "Deprecated",
    "responses": "Responses",
}

COMPONENT_TITLES = (
    ("schemas", "Schema"),
    ("securitySchemes", "Security Scheme"),
    ("responses", "Response"),
    ("parameters", "Parameter"),
    ("examples", "Example"),
    ("requestBodies", "Request Body"),
    ("headers", "Header"),
    ("links", "Link"),
    ("callbacks", "Callback"),
    ("pathItems", "Path Item"),
)

CALLBACK_SUMMARY_PROPERTIES = frozenset({"summary", "description", "operationId"})

REFERENCE_TITLES = (
    ("schemas", "Schemas"),
    ("parameters", "Parameters"),
    ("headers", "Headers"),
    ("responses", "Responses"),
    ("requestBodies", "Request Bodies"),
    ("securitySchemes", "Security Schemes"),
    ("examples", "Examples"),
    ("links", "Links"),
    ("callbacks", "Callbacks"),
    ("pathItems", "Path Items"),
    ("", "Other References"),
)


def format_object_type(kind: str) -> str:
    """Display name of an object kind: 'requestBody' -> 'Request Body'."""
    if kind in OBJECT_TYPE_NAMES:
        return OBJECT_TYPE_NAMES[kind]
    return kind[:1].upper() + kind[1:]


def get_indent(level: int) -> str:
    """Two spaces per nesting level, matching Markdown list indentation."""
    if level <= 0:
        return ""
    return "  " * level


def sanitize_name(name: str) -> str:
    return name.replace("-", "_").replace(">", "gt").replace("<", "lt")


def indent_multiline(desc: str, spaces: int) -> str:
    """
    Indent the continuation lines of a description.

    A description that opens with a fence is indented on every line so the
    block stays inside its list item; anything else keeps its first line
    where the list marker put it.
    """
    if spaces <= 0 or spaces > 100 or "\n" not in desc:
        return desc

    indent = " " * spaces
    lines = desc.split("\n")
    if lines[0].strip().startswith("```"):
        return "\n".join(indent + line for line in lines)
    return "\n".join([lines[0]] + [indent + line for line in lines[1:]])


def is_serialized_object(value) -> bool:
    """True for whole objects (a tag, a schema) rather than identifiers."""
    if not isinstance(value, dict):
        return False
    return any(key in value for key in ("name", "description", "type"))


def first_line_number(changes: list[Diff]) -> Optional[int]:
    for change in changes:
        ctx = change.context
        if ctx.new_line is not None:
            return ctx.new_line
        if ctx.original_line is not None:
            return ctx.original_line
    return None


def _has_text(value) -> bool:
    return value is not None and value != ""


def _nested_changes(group: DiffGroup, skip: tuple = ()) -> tuple[list[Diff], list[DiffGroup]]:
    """
    Every diff below a group, excluding its own diffs, its extensions and
    skipped fields. The walk stops at referenced groups; those that changed
    are returned separately so their reference can be shown instead.
    """
    stack = []
    for name, child in group.children.items():
        if name not in skip:
            stack.append(child)
    for name, entries in group.maps.items():
        if name not in skip:
            stack.extend(entries.values())
    for name, members in group.lists.items():
        if name not in skip:
            stack.extend(members)
    stack.reverse()

    changes: list[Diff] = []
    references: list[DiffGroup] = []
    seen = {id(group)}
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if current.reference:
            if not current.is_empty():
                references.append(current)
            continue
        changes.extend(current.changes)
        stack.extend(reversed(list(current.child_groups())))
    return changes, references


def parse_reference(ref: str) -> tuple[str, str]:
    """
    Component field and name of a $ref: '#/components/schemas/Pet' gives
    ('schemas', 'Pet'). Anything that does not point into components gives
    an empty field and the last pointer segment (or the file) as the name.
    """
    file_part, _, fragment = ref.partition("#")
    segments = split_pointer(fragment)
    if len(segments) >= 3 and segments[0] == "components":
        return segments[1], "/".join(segments[2:])
    if segments:
        return "", segments[-1]
    return "", file_part or ref


def _membership_only(group: DiffGroup) -> bool:
    """A list member that was added or removed as a whole."""
    if not group.changes or group.children or group.maps or group.lists or group.extensions:
        return False
    return all(c.kind in (ChangeKind.OBJECT_ADDED, ChangeKind.OBJECT_REMOVED) for c in group.changes)


class MarkdownReporter:
    """
    Renders a document diff tree as a Markdown report.

    The report opens with a summary sentence and the per-object statistics
    table, followed by a breakdown: document info, servers, security, tags,
    operations, webhooks, components and document extensions. A change
    reached through a $ref is shown once, in the closing Referenced Changes
    section, and every use of it points there.

    Counts come from `deduplicated` when given (the distributed, deduplicated
    diffs of a run); otherwise from the diff tree itself.

    Usage:
        reporter = MarkdownReporter(changes, right_document, right_content)
        markdown = reporter.generate()
    """

    def __init__(
        self,
        changes: Optional[DiffGroup],
        document: Optional[SemanticDocument] = None,
        right_content: Optional[bytes] = None,
        config: Optional[RenderConfig] = None,
        deduplicated: Optional[list[Diff]] = None,
    ):
        self.changes = changes
        self.document = document
        self.deduplicated = deduplicated
        if right_content is None and document is not None:
            right_content = document.content
        self.right_content = right_content or b""
        self.source_format = detect_document_format(self.right_content)
        self.config = config or default_render_config()

    @property
    def breaking(self) -> str:
        return self.config.breaking.marker

    def generate(self) -> str:
        out: list[str] = [REPORT_TITLE]
        if self.changes is None or self.changes.is_empty():
            out.append("No changes detected.\n\n")
            return "".join(out)

        self._summary(out)
        self._breakdown(out)
        self._referenced_changes(out)
        return "".join(out)

    # Summary

    def _counted_changes(self) -> list[Diff]:
        if self.deduplicated is not None:
            return self.deduplicated
        return self.changes.all_changes()

    def _summary(self, out: list[str]):
        changes = self._counted_changes()
        total = len(changes)
        breaking = sum(1 for c in changes if c.breaking)

        word = "change" if total == 1 else "changes"
        out.append(f"**{total}** {word} detected")
        if breaking > 0:
            verb = "are" if breaking > 1 or total > 1 else "is"
            out.append(f", **{breaking}** {verb} {self.breaking}.\n\n")
        else:
            out.append(", with **no** breaking changes.\n\n")

        additions = sum(1 for c in changes if c.kind in ADDITIONS)
        modifications = sum(1 for c in changes if c.kind == ChangeKind.MODIFIED)
        removals = sum(1 for c in changes if c.kind in REMOVALS)
        if additions:
            out.append(f"- Additions: **{additions}**\n")
        if modifications:
            out.append(f"- Modifications: **{modifications}**\n")
        if removals:
            out.append(f"- Removals: **{removals}**\n")
        out.append("\n")

        self._type_statistics(out)

    def _type_statistics(self, out: list[str]):
        stats: dict[str, list[int]] = {}
        if self.deduplicated is not None:
            counted = [(change.type or "document", change) for change in self.deduplicated]
        else:
            counted = [(group.kind, change) for group in self.changes.walk() for change in group.changes]

        for kind, change in counted:
            if kind == "securityRequirement":
                kind = "security"
            entry = stats.setdefault(kind, [0, 0])
            entry[0] += 1
            if change.breaking:
                entry[1] += 1

        if not stats:
            return

        out.append("| Object               | Total Changes | Breaking Changes |\n")
        out.append("|----------------------|---------------|------------------|\n")
        for kind in sorted(stats):
            total, breaking = stats[kind]
            out.append(f"| {format_object_type(kind)} | {total} | {breaking or '-'} |\n")
        out.append("\n")

    # Breakdown

    def _breakdown(self, out: list[str]):
        doc = self.changes
        out.append("## Change Breakdown\n\n")

        info = doc.child("info")
        external_docs = doc.child("externalDocs")
        if doc.changes or (info and not info.is_empty()) or (external_docs and not external_docs.is_empty()):
            out.append("### Document Info\n\n")
            self._render_info(out)

        if doc.listed("servers"):
            out.append("### Servers\n\n")
            self._render_servers(out, doc.listed("servers"))

        if doc.listed("security"):
            out.append("### Security\n\n")
            self._render_security(out, doc.listed("security"))

        if doc.listed("tags"):
            out.append("### Tags\n\n")
            self._render_tags(out, doc.listed("tags"))

        paths = doc.child("paths")
        if paths is not None and not paths.is_empty():
            out.append("### Operations\n\n")
            self._render_paths(out, paths)

        if doc.mapped("webhooks"):
            out.append("### Webhooks\n\n")
            self._render_webhooks(out, doc.mapped("webhooks"))

        components = doc.child("components")
        if components is not None and not components.is_empty():
            out.append("### Components\n\n")
            self._render_components(out, components)

        if doc.extensions is not None and not doc.extensions.is_empty():
            out.append("### Extensions\n\n")
            out.append("---\n\n")
            out.append("#### Document Extensions\n\n")
            for change in doc.extensions.changes:
                self._render_change(out, change)
            out.append("\n")

    def _heading(self, out: list[str], title: str, group: DiffGroup):
        out.append("---\n\n")
        out.append(f"#### {title}\n\n")
        if group.total_breaking_changes() > 0:
            out.append(f"{self.breaking}\n\n")

    def _render_info(self, out: list[str]):
        doc = self.changes
        if doc.changes:
            self._heading(out, "Document", DiffGroup(kind="document", changes=doc.changes))
            for change in doc.changes:
                self._render_change(out, change)
            out.append("\n")

        info = doc.child("info")
        if info is not None:
            if info.changes:
                self._heading(out, "Info", info.properties_only())
                for change in info.changes:
                    self._render_change(out, change)
                out.append("\n")

            for name, title in (("contact", "Contact"), ("license", "License")):
                child = info.child(name)
                if child is None or child.is_empty():
                    continue
                self._heading(out, title, child)
                for change in child.changes:
                    self._render_change(out, change)
                self._render_nested_extensions(out, child.extensions, False)
                out.append("\n")

            self._render_nested_extensions(out, info.extensions, False)

        external_docs = doc.child("externalDocs")
        if external_docs is not None and not external_docs.is_empty():
            self._heading(out, "External Docs", external_docs)
            for change in external_docs.changes:
                self._render_change(out, change)
            self._render_nested_extensions(out, external_docs.extensions, False)
            out.append("\n")

    def _render_servers(self, out: list[str], servers: list[DiffGroup]):
        for server in servers:
            if server.is_empty():
                continue
            self._heading(out, self._server_name(server), server)
            for change in server.changes:
                self._render_change(out, change)
            self._render_server_variables(out, server, 0)
            self._render_nested_extensions(out, server.extensions, False)
            out.append("\n")

    def _render_server_variables(self, out: list[str], server: DiffGroup, level: int):
        variables = server.mapped("variables")
        prefix = get_indent(level)
        for name in sorted(variables):
            variable = variables[name]
            if variable.is_empty():
                continue
            out.append(f"{prefix}- Variable `{name}`:\n")
            for change in variable.all_changes():
                self._write_indented(out, change, (level + 1) * 2 + 2, get_indent(level + 1))

    def _server_name(self, server: DiffGroup) -> str:
        if server.name:
            return f"Server: `{server.name}`"
        for change in server.changes:
            if change.property == "url":
                value = change.new if _has_text(change.new) else change.original
                if _has_text(value):
                    return f"Server: `{value}`"
        line = first_line_number(server.all_changes())
        if line is not None:
            return f"Server (line {line})"
        return "Server"

    def _render_security(self, out: list[str], requirements: list[DiffGroup]):
        for requirement in requirements:
            if requirement.is_empty():
                continue
            name = "Security Requirement"
            if requirement.name:
                name = f"Security Requirement: `{requirement.name}`"
            self._heading(out, name, requirement)
            for change in requirement.changes:
                self._render_change(out, change)
            out.append("\n")

    def _render_tags(self, out: list[str], tags: list[DiffGroup]):
        for tag in tags:
            if tag.is_empty():
                continue
            self._heading(out, self._tag_name(tag), tag)
            for change in tag.changes:
                self._render_change(out, change)
            external_docs = tag.child("externalDocs")
            if external_docs is not None:
                for change in external_docs.all_changes():
                    self._render_change(out, change)
            self._render_nested_extensions(out, tag.extensions, False)
            out.append("\n")

    def _tag_name(self, tag: DiffGroup) -> str:
        if tag.name:
            return f"Tag: `{tag.name}`"
        line = first_line_number(tag.all_changes())
        if line is not None:
            return f"Tag (__line {line}__)"
        return "Tag"

    # Operations

    def _render_paths(self, out: list[str], paths: DiffGroup):
        if paths.changes:
            for change in paths.changes:
                self._render_change(out, change)
            out.append("\n")

        path_items = paths.mapped("pathItems")
        for path in sorted(path_items):
            item = path_items[path]
            if item.is_empty():
                continue
            if item.changes or item.listed("parameters"):
                self._heading(out, f"Path `{path}`", item)
            self._render_path_item_content(out, path, item, "Path Parameters")

    def _render_webhooks(self, out: list[str], webhooks: dict[str, DiffGroup]):
        for name in sorted(webhooks):
            item = webhooks[name]
            if item.is_empty():
                continue
            if item.changes or item.listed("parameters"):
                self._heading(out, f"Webhook: `{name}`", item)
            self._render_path_item_content(out, name, item, "Webhook Parameters")

    def _render_path_item_content(self, out: list[str], name: str, item: DiffGroup, parameters_label: str):
        for change in item.changes:
            self._render_change(out, change)

        parameters = item.listed("parameters")
        if parameters:
            out.append(f"\n**{parameters_label}:**\n\n")
            self._render_parameters(out, parameters)

        self._render_nested_extensions(out, item.extensions, False)

        if item.changes or parameters:
            out.append("\n")

        if item.listed("servers"):
            out.append("**Servers:**\n\n")
            self._render_server_list(out, item.listed("servers"))
            out.append("\n")

        for method in OPERATION_ORDER:
            operation = item.child(method)
            if operation is not None and not operation.is_empty():
                self._render_operation(out, method.upper(), name, operation)

    def _render_operation(self, out: list[str], method: str, path: str, operation: DiffGroup):
        self._heading(out, f"**{method}** `{path}`", operation)

        if operation.changes:
            with self._example(out, "operation-properties", 0):
                for change in operation.changes:
                    self._render_change(out, change)
            out.append("\n")

        parameters = operation.listed("parameters")
        if parameters:
            out.append("**Parameters:**\n\n")
            self._render_parameters(out, parameters)
            out.append("\n")

        external_docs = operation.child("externalDocs")
        if external_docs is not None and not external_docs.is_empty():
            out.append("**External Documentation:**\n\n")
            for change in external_docs.changes:
                self._render_change(out, change)
            self._render_nested_extensions(out, external_docs.extensions, False)
            out.append("\n")

        servers = operation.listed("servers")
        if servers:
            out.append("**Servers:**\n\n")
            self._render_server_list(out, servers)
            out.append("\n")

        request_body = operation.child("requestBody")
        if request_body is not None and not request_body.is_empty():
            out.append("**Request Body:**\n\n")
            if request_body.reference:
                self._render_reference(out, request_body, "")
            else:
                for change in request_body.changes:
                    self._render_change(out, change)
                content = request_body.mapped("content")
                for media_type in sorted(content):
                    self._render_media_type(out, "Media Type", media_type, content[media_type], 0)
                self._render_nested_extensions(out, request_body.extensions, False)
            out.append("\n")

        responses = operation.child("responses")
        if responses is not None and not responses.is_empty():
            out.append("**Responses:**\n\n")
            self._render_responses(out, responses)

        callbacks = operation.mapped("callbacks")
        if callbacks:
            out.append("**Callbacks:**\n\n")
            self._render_callbacks(out, callbacks)
            out.append("\n")

        security = operation.listed("security")
        if security:
            out.append("**Security:**\n\n")
            for requirement in security:
                if _membership_only(requirement):
                    for change in requirement.changes:
                        self._render_change(out, change)
                    continue
                out.append(f"- Security Requirement `{requirement.name}`:\n")
                for change in requirement.all_changes():
                    self._write_indented(out, change, 4, "  ")
            out.append("\n")

        if operation.extensions is not None and not operation.extensions.is_empty():
            self._render_nested_extensions(out, operation.extensions, False)

        out.append("\n")

    def _render_parameters(self, out: list[str], parameters: list[DiffGroup]):
        # Whole parameters added or removed come first, then parameters that changed.
        for parameter in parameters:
            if _membership_only(parameter):
                for change in parameter.changes:
                    self._render_change(out, change)

        for parameter in parameters:
            if _membership_only(parameter) or parameter.is_empty():
                continue
            out.append(f"- {self._parameter_name(parameter)}:\n")
            if parameter.reference:
                self._render_reference(out, parameter, "  ")
                continue
            for change in parameter.changes:
                self._write_indented(out, change, 4, "  ")
            self._render_nested(out, parameter, 4, "  ")
            self._render_nested_extensions(out, parameter.extensions, True)

    def _parameter_name(self, parameter: DiffGroup) -> str:
        if parameter.name:
            return f"Parameter `{parameter.name}`"
        for change in parameter.changes:
            if change.property == "name":
                value = change.new if _has_text(change.new) else change.original
                if _has_text(value):
                    return f"Parameter `{value}`"
        return "Parameter"

    def _render_server_list(self, out: list[str], servers: list[DiffGroup]):
        for server in servers:
            if server.is_empty():
                continue
            out.append(f"- {self._server_name(server)}:\n")
            for change in server.changes:
                self._write_indented(out, change, 4, "  ")
            self._render_server_variables(out, server, 1)
            self._render_nested_extensions(out, server.extensions, True)

    def _render_media_type(self, out: list[str], label: str, name: str, media_type: DiffGroup, level: int):
        if media_type.is_empty():
            return
        out.append(f"{get_indent(level)}- {label} `{name}`:\n")

        # Examples first, so the media type's own list items follow them.
        for example_name, example in media_type.mapped("examples").items():
            if example.is_empty():
                continue
            with self._example(out, example_name, level + 1):
                out.append(f"{get_indent(level + 1)}- Example `{example_name}`:\n")
                if example.reference:
                    self._render_reference(out, example, get_indent(level + 2))
                    continue
                for change in example.all_changes():
                    self._write_indented(out, change, (level + 2) * 2 + 2, get_indent(level + 2))

        indent = get_indent(level + 1)
        code_indent = (level + 1) * 2 + 2
        for change in media_type.changes:
            self._write_indented(out, change, code_indent, indent)
        self._render_nested(out, media_type, code_indent, indent, skip=("examples",))

        self._render_nested_extensions(out, media_type.extensions, True)

    def _render_responses(self, out: list[str], responses: DiffGroup):
        for change in responses.changes:
            self._render_change(out, change)

        by_code = dict(responses.mapped("codes"))
        default = responses.child("default")
        if default is not None:
            by_code["default"] = default

        for code in sorted(by_code):
            response = by_code[code]
            if response.is_empty():
                continue
            out.append(f"- Response `{code}`:\n")
            if response.reference:
                self._render_reference(out, response, "  ")
                continue
            for change in response.changes:
                self._write_indented(out, change, 4, "  ")

            headers = response.mapped("headers")
            for name in sorted(headers):
                header = headers[name]
                if header.is_empty():
                    continue
                out.append(f"  - Header `{name}`:\n")
                if header.reference:
                    self._render_reference(out, header, "    ")
                    continue
                for change in header.all_changes():
                    self._write_indented(out, change, 6, "    ")

            content = response.mapped("content")
            for media_type in sorted(content):
                self._render_media_type(out, "Content", media_type, content[media_type], 1)

            links = response.mapped("links")
            for name in sorted(links):
                link = links[name]
                if link.is_empty():
                    continue
                out.append(f"  - Link `{name}`:\n")
                if link.reference:
                    self._render_reference(out, link, "    ")
                    continue
                for change in link.all_changes():
                    self._write_indented(out, change, 6, "    ")

            self._render_nested_extensions(out, response.extensions, True)

        out.append("\n")

    def _render_callbacks(self, out: list[str], callbacks: dict[str, DiffGroup]):
        for name in sorted(callbacks):
            callback = callbacks[name]
            if callback.is_empty():
                continue
            out.append(f"- Callback `{name}`:\n")
            for change in callback.changes:
                self._write_indented(out, change, 4, "  ")

            expressions = callback.mapped("expressions")
            for expression in sorted(expressions):
                item = expressions[expression]
                if item.is_empty():
                    continue
                out.append(f"  - Expression `{expression}`:\n")
                for change in item.changes:
                    self._write_indented(out, change, 6, "    ")
                # Operation summaries only; full detail would nest too deep.
                for method in OPERATION_ORDER:
                    operation = item.child(method)
                    if operation is None or operation.is_empty():
                        continue
                    out.append(f"    - **{method.upper()}**: {operation.total_changes()} change(s)\n")
                    for change in operation.changes:
                        if change.property in CALLBACK_SUMMARY_PROPERTIES:
                            self._write_indented(out, change, 8, "      ")

            self._render_nested_extensions(out, callback.extensions, True)

    # Components

    def _render_components(self, out: list[str], components: DiffGroup):
        if components.changes:
            for change in components.changes:
                self._render_change(out, change)
            out.append("\n")

        for field_name, title in COMPONENT_TITLES:
            entries = components.mapped(field_name)
            for name in sorted(entries):
                group = entries[name]
                if group.is_empty():
                    continue
                self._heading(out, f"{title}: `{name}`", group)
                for change in group.changes:
                    self._render_change(out, change)
                self._render_nested(out, group, 2, "")
                self._render_nested_extensions(out, group.extensions, False)
                out.append("\n")

        self._render_nested_extensions(out, components.extensions, False)

    # References

    def _render_nested(self, out: list[str], group: DiffGroup, code_indent: int, prefix: str, skip: tuple = ()):
        changes, references = _nested_changes(group, skip)
        for change in changes:
            self._write_indented(out, change, code_indent, prefix)
        for referenced in references:
            self._render_reference(out, referenced, prefix)

    def _render_reference(self, out: list[str], group: DiffGroup, prefix: str):
        line = f"See referenced component `{group.reference}`"
        if group.total_breaking_changes() > 0:
            line += f" {self.breaking}"
        out.append(f"{prefix}- {line}\n")

    def _referenced_groups(self) -> list[DiffGroup]:
        """Every changed group reached through a $ref, once each."""
        return [g for g in self.changes.walk() if g.reference and not g.is_empty()]

    def _referenced_changes(self, out: list[str]):
        referenced = self._referenced_groups()
        if not referenced:
            return

        by_type: dict[str, list[tuple[str, DiffGroup]]] = {}
        for group in referenced:
            field_name, name = parse_reference(group.reference)
            known = any(field_name == f for f, _ in REFERENCE_TITLES)
            by_type.setdefault(field_name if known else "", []).append((name, group))

        out.append("\n\n---\n\n## Referenced Changes\n\n")
        out.append("The following component changes are referenced in multiple locations throughout the document.\n\n")

        for field_name, title in REFERENCE_TITLES:
            entries = by_type.get(field_name)
            if not entries:
                continue
            out.append(f"### {title}\n\n")
            for name, group in sorted(entries, key=lambda e: (e[1].reference, e[0])):
                self._render_referenced(out, name, group)

    def _render_referenced(self, out: list[str], name: str, group: DiffGroup):
        self._heading(out, f"`{name}`", group)
        out.append(f"**Reference:** `{group.reference}`\n\n")
        for change in group.changes:
            self._render_change(out, change)
        self._render_nested(out, group, 2, "")
        self._render_nested_extensions(out, group.extensions, False)

        uses = self._use_sites(group)
        if uses:
            out.append("\n**Used in:**\n\n")
            for path in uses:
                out.append(f"- `{path}`\n")
        out.append("\n")

    def _use_sites(self, group: DiffGroup) -> list[str]:
        if self.document is None:
            return []
        obj = group.new_object
        if not isinstance(obj, ModelObject):
            return []
        paths = []
        for use in self.document.use_sites(obj.resolved()):
            if use.json_path not in paths:
                paths.append(use.json_path)
        return paths

    # Changes

    @contextlib.contextmanager
    def _example(self, out: list[str], name: str, level: int) -> Iterator[None]:
        """Surround an example with machine-readable markers when the nested-list fix is on."""
        inject = self.config.inject_example_markers
        indent = get_indent(level)
        if inject:
            out.append(f"{indent}<!-- pb33f-example-start:{sanitize_name(name)} -->\n")
        yield
        if inject:
            out.append(f"{indent}<!-- pb33f-example-end:{sanitize_name(name)} -->\n")

    def _write_breaking_marker(self, out: list[str], code_block: bool):
        out.append("\n\n" if code_block else " ")
        out.append(self.breaking)

    def _render_change(self, out: list[str], change: Diff):
        desc, code_block = self.describe(change)
        if code_block:
            desc = indent_multiline(desc, 2)
        out.append("- ")
        out.append(desc)
        if change.breaking:
            self._write_breaking_marker(out, code_block)
        out.append("\n")

    def _write_indented(self, out: list[str], change: Diff, code_indent: int, prefix: str):
        desc, code_block = self.describe(change)
        if code_block:
            desc = indent_multiline(desc, code_indent)
        out.append(f"{prefix}- {desc}")
        if change.breaking:
            self._write_breaking_marker(out, code_block)
        out.append("\n")

    def _render_nested_extensions(self, out: list[str], extensions: Optional[DiffGroup], indent: bool):
        if extensions is None or extensions.is_empty():
            return
        prefix = "  " if indent else ""
        code_indent = 4 if indent else 2
        for change in extensions.changes:
            self._write_indented(out, change, code_indent, prefix)

    def describe(self, change: Diff) -> tuple[str, bool]:
        """
        Human-readable description of a change.

        Returns:
            (description, whether it contains a fenced code block)
        """
        prop = change.property or "value"
        added = change.kind in ADDITIONS
        removed = change.kind in REMOVALS

        if prop in ("path", "schemas") and (added or removed):
            noun = "path" if prop == "path" else "schema"
            verb = "Added" if added else "Removed"
            value = change.new if added else change.original
            if _has_text(value):
                return f"{verb} {noun} *'{format_inline(format_scalar(value))}'*", False
            return f"{verb} {noun}", False

        if prop == "parameters" and (added or removed):
            return self._describe_parameter(change, "added" if added else "removed"), False

        is_extension = prop.startswith("x-")
        if prop == "example":
            label = "Example `value`"
        elif is_extension:
            label = f"Extension `{prop}`"
        elif prop in PROPERTY_PREFIXES:
            label = f"{PROPERTY_PREFIXES[prop]} `{prop}`"
        elif change.kind in (ChangeKind.OBJECT_ADDED, ChangeKind.OBJECT_REMOVED):
            kind = self._object_kind(change)
            if kind and kind != "document":
                label = f"{format_object_type(kind)} `{prop}`"
            else:
                label = f"`{prop}`"
        else:
            label = f"`{prop}`"

        if added:
            if _has_text(change.new):
                if change.kind == ChangeKind.OBJECT_ADDED and is_serialized_object(change.new):
                    return f"{label} added", False
                return self._describe_value(label, change, is_extension, "added", True)
            return f"{label} added", False

        if removed:
            if _has_text(change.original):
                if change.kind == ChangeKind.OBJECT_REMOVED and is_serialized_object(change.original):
                    return f"{label} removed", False
                return self._describe_value(label, change, is_extension, "removed", False)
            return f"{label} removed", False

        if _has_text(change.original) or _has_text(change.new):
            return self._describe_value(label, change, is_extension, "changed to", True)
        return f"{label} modified", False

    def _describe_value(self, label: str, change: Diff, is_extension: bool, verb: str, use_new: bool) -> tuple[str, bool]:
        encoded = change.new_encoded if use_new else change.original_encoded
        value = format_scalar(change.new if use_new else change.original)

        if encoded:
            formatted, code_block = format_structured_value(encoded, self.source_format)
            if code_block:
                return f"{label} {verb}:\n\n{formatted}", True
            return f"{label} {verb} *'{format_inline(encoded)}'*", False

        if is_extension:
            formatted, code_block = format_structured_value(value, self.source_format)
            if code_block:
                return f"{label} {verb}:\n\n{formatted}", True

        return f"{label} {verb} *'{format_inline(value)}'*", False

    def _describe_parameter(self, change: Diff, verb: str) -> str:
        obj = change.new_object if verb == "added" else change.original_object
        name, location = "", ""
        if isinstance(obj, ModelObject) and isinstance(obj.value, dict):
            name = format_scalar(obj.value.get("name"))
            location = format_scalar(obj.value.get("in"))
        if not name:
            value = change.new if verb == "added" else change.original
            if isinstance(value, str):
                name = value
        if not name:
            return f"Parameter {verb}"
        if location:
            return f"{location[:1].upper()}{location[1:]} Parameter `{name}` {verb}"
        return f"Parameter `{name}` {verb}"

    @staticmethod
    def _object_kind(change: Diff) -> str:
        obj = change.new_object if change.kind == ChangeKind.OBJECT_ADDED else change.original_object
        if isinstance(obj, ModelObject):
            return obj.kind
        return change.type
