"""OpenAPI 3.x object kinds and the child fields each kind carries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


SINGLE = "single"
MAP = "map"
LIST = "list"
DYNAMIC = "dynamic"  # a nested schema or a boolean


@dataclass(frozen=True)
class FieldSpec:
    """
    One child field of an OpenAPI object.

    Inline maps take their entries from the owner's own keys (Paths, Responses,
    Callback) and contribute no field segment to node ids.
    """
    name: str
    shape: str
    kind: str
    inline: bool = False
    label: str = ""

    @property
    def change_label(self) -> str:
        return self.label or self.name


HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_SCHEMA_SINGLES = ("not", "contains", "if", "then", "else", "propertyNames", "unevaluatedItems")
_SCHEMA_DYNAMICS = ("items", "additionalProperties", "unevaluatedProperties")
_SCHEMA_LISTS = ("allOf", "oneOf", "anyOf", "prefixItems")
_SCHEMA_MAPS = ("properties", "patternProperties", "dependentSchemas")
POLYMORPHIC_FIELDS = frozenset({"allOf", "oneOf", "anyOf", "prefixItems"})


KINDS: dict[str, tuple[FieldSpec, ...]] = {
    "document": (
        FieldSpec("info", SINGLE, "info"),
        FieldSpec("servers", LIST, "server"),
        FieldSpec("paths", SINGLE, "paths"),
        FieldSpec("webhooks", MAP, "pathItem", label="webhooks"),
        FieldSpec("components", SINGLE, "components"),
        FieldSpec("security", LIST, "securityRequirement"),
        FieldSpec("tags", LIST, "tag"),
        FieldSpec("externalDocs", SINGLE, "externalDoc"),
    ),
    "info": (
        FieldSpec("contact", SINGLE, "contact"),
        FieldSpec("license", SINGLE, "license"),
    ),
    "contact": (),
    "license": (),
    "server": (
        FieldSpec("variables", MAP, "serverVariable"),
    ),
    "serverVariable": (),
    "paths": (
        FieldSpec("pathItems", MAP, "pathItem", inline=True, label="path"),
    ),
    "pathItem": tuple(FieldSpec(m, SINGLE, "operation") for m in HTTP_METHODS) + (
        FieldSpec("servers", LIST, "server"),
        FieldSpec("parameters", LIST, "parameter"),
    ),
    "operation": (
        FieldSpec("externalDocs", SINGLE, "externalDoc"),
        FieldSpec("parameters", LIST, "parameter"),
        FieldSpec("requestBody", SINGLE, "requestBody"),
        FieldSpec("responses", SINGLE, "responses"),
        FieldSpec("callbacks", MAP, "callback"),
        FieldSpec("security", LIST, "securityRequirement"),
        FieldSpec("servers", LIST, "server"),
    ),
    "parameter": (
        FieldSpec("schema", SINGLE, "schema"),
        FieldSpec("examples", MAP, "example"),
        FieldSpec("content", MAP, "mediaType"),
    ),
    "header": (
        FieldSpec("schema", SINGLE, "schema"),
        FieldSpec("examples", MAP, "example"),
        FieldSpec("content", MAP, "mediaType"),
    ),
    "requestBody": (
        FieldSpec("content", MAP, "mediaType"),
    ),
    "mediaType": (
        FieldSpec("schema", SINGLE, "schema"),
        FieldSpec("examples", MAP, "example"),
        FieldSpec("encoding", MAP, "encoding"),
    ),
    "encoding": (
        FieldSpec("headers", MAP, "header"),
    ),
    "responses": (
        FieldSpec("default", SINGLE, "response"),
        FieldSpec("codes", MAP, "response", inline=True),
    ),
    "response": (
        FieldSpec("headers", MAP, "header"),
        FieldSpec("content", MAP, "mediaType"),
        FieldSpec("links", MAP, "link"),
    ),
    "link": (
        FieldSpec("server", SINGLE, "server"),
    ),
    "callback": (
        FieldSpec("expressions", MAP, "pathItem", inline=True),
    ),
    "example": (),
    "schema": (
        tuple(FieldSpec(f, LIST, "schema") for f in _SCHEMA_LISTS)
        + tuple(FieldSpec(f, SINGLE, "schema") for f in _SCHEMA_SINGLES)
        + tuple(FieldSpec(f, DYNAMIC, "schema") for f in _SCHEMA_DYNAMICS)
        + tuple(FieldSpec(f, MAP, "schema") for f in _SCHEMA_MAPS)
        + (
            FieldSpec("discriminator", SINGLE, "discriminator"),
            FieldSpec("xml", SINGLE, "xml"),
            FieldSpec("externalDocs", SINGLE, "externalDoc"),
        )
    ),
    "discriminator": (),
    "xml": (),
    "externalDoc": (),
    "components": tuple(
        FieldSpec(name, MAP, kind) for name, kind in (
            ("schemas", "schema"),
            ("responses", "response"),
            ("parameters", "parameter"),
            ("examples", "example"),
            ("requestBodies", "requestBody"),
            ("headers", "header"),
            ("securitySchemes", "securityScheme"),
            ("links", "link"),
            ("callbacks", "callback"),
            ("pathItems", "pathItem"),
        )
    ),
    "securityScheme": (
        FieldSpec("flows", SINGLE, "oauthFlows"),
    ),
    "oauthFlows": tuple(
        FieldSpec(f, SINGLE, "oauthFlow")
        for f in ("implicit", "password", "clientCredentials", "authorizationCode")
    ),
    "oauthFlow": (),
    "securityRequirement": (),
    "tag": (
        FieldSpec("externalDocs", SINGLE, "externalDoc"),
    ),
}

# Kinds that are compared but never become nodes of the semantic tree.
NODELESS_KINDS = frozenset({"serverVariable"})


def fields_for(kind: str) -> tuple[FieldSpec, ...]:
    return KINDS.get(kind, ())


def field_spec(kind: str, name: str) -> Optional[FieldSpec]:
    for spec in fields_for(kind):
        if spec.name == name:
            return spec
    return None


def is_extension(key: Any) -> bool:
    return isinstance(key, str) and key.startswith("x-")


def inline_entries(kind: str, value: Any) -> dict:
    """Entries of an inline map, taken from the owner's own keys."""
    if not isinstance(value, dict):
        return {}
    if kind == "paths":
        return {k: v for k, v in value.items() if str(k).startswith("/")}
    if kind == "responses":
        return {k: v for k, v in value.items() if k != "default" and not is_extension(k)}
    if kind == "callback":
        return {k: v for k, v in value.items() if not is_extension(k)}
    return {}


def field_entries(spec: FieldSpec, owner_kind: str, value: Any) -> Any:
    """Raw value of a child field, or None when absent."""
    if not isinstance(value, dict):
        return None
    if spec.inline:
        entries = inline_entries(owner_kind, value)
        return entries or None
    return value.get(spec.name)


def scalar_keys(kind: str, value: Any) -> list:
    """
    Plain properties of an object: everything that is not a child field,
    a $ref or an extension. Dynamic fields count as plain when not a mapping.
    """
    if not isinstance(value, dict):
        return []

    child_fields = {}
    for spec in fields_for(kind):
        if not spec.inline:
            child_fields[spec.name] = spec
    inline = set(inline_entries(kind, value))

    keys = []
    for key in value:
        if key == "$ref" or is_extension(key) or key in inline:
            continue
        spec = child_fields.get(key)
        if spec is not None:
            if spec.shape == DYNAMIC and not isinstance(value[key], dict):
                keys.append(key)
            continue
        keys.append(key)
    return keys


def list_identity(kind: str, value: Any) -> Optional[Any]:
    """Identity of a list member used to pair members across documents."""
    if not isinstance(value, dict):
        return None
    if kind == "server":
        return value.get("url")
    if kind == "tag":
        return value.get("name")
    if kind == "parameter":
        if "name" in value:
            return (value.get("name"), value.get("in"))
        return None
    if kind == "securityRequirement":
        return tuple(sorted(str(k) for k in value))
    return None


def member_label(kind: str, value: Any, fallback: str) -> str:
    """Human label of a list member node."""
    if isinstance(value, dict):
        if kind == "server" and value.get("url"):
            return str(value["url"])
        if kind in ("tag", "parameter") and value.get("name"):
            return str(value["name"])
        if kind == "securityRequirement" and value:
            return ", ".join(str(k) for k in value)
    return fallback
