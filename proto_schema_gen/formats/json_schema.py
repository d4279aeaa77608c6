"""
JSON Schema (draft-07) emitter.
"""

from __future__ import annotations

import json
from typing import Any

from ..annotations import description_of
from ..config import OutputFormat, ProtoConfig
from ..ir import CompositeType, EnumType, GenerationContext, TypeKind
from ..resolver import (
    FieldShape,
    MessagePlan,
    ResolvedField,
    enum_name,
    enum_value_name,
    field_description,
    field_json_name,
)
from ..type_mapping import TypeMapper
from ..utils import to_snake_case
from .base import EmitterView, FormatEmitter

DRAFT_07 = "http://json-schema.org/draft-07/schema#"

_INTEGER_TYPES = (
    "int32",
    "int64",
    "uint32",
    "uint64",
    "sint32",
    "sint64",
    "fixed32",
    "fixed64",
    "sfixed32",
    "sfixed64",
)

# Protobuf type -> JSON schema fragment
_PROTO_SCHEMAS: dict[str, dict[str, Any]] = {
    **{name: {"type": "integer"} for name in _INTEGER_TYPES},
    "double": {"type": "number"},
    "float": {"type": "number"},
    "bool": {"type": "boolean"},
    "string": {"type": "string"},
    "bytes": {"type": "string", "contentEncoding": "base64"},
    "google.protobuf.Timestamp": {"type": "string", "format": "date-time"},
    "google.protobuf.Duration": {"type": "string"},
    "google.protobuf.Any": {},
    "google.protobuf.Struct": {"type": "object"},
    "google.protobuf.Value": {},
    "google.protobuf.ListValue": {"type": "array"},
    "google.protobuf.Empty": {"type": "object"},
    "google.protobuf.StringValue": {"type": "string"},
    "google.protobuf.BytesValue": {"type": "string", "contentEncoding": "base64"},
    "google.protobuf.BoolValue": {"type": "boolean"},
    "google.protobuf.FloatValue": {"type": "number"},
    "google.protobuf.DoubleValue": {"type": "number"},
    "google.protobuf.Int32Value": {"type": "integer"},
    "google.protobuf.Int64Value": {"type": "integer"},
    "google.protobuf.UInt32Value": {"type": "integer"},
    "google.protobuf.UInt64Value": {"type": "integer"},
}


def proto_schema(proto_type: str) -> dict[str, Any]:
    """JSON schema for a protobuf type name: a scalar fragment or a definition reference."""
    if proto_type in _PROTO_SCHEMAS:
        return dict(_PROTO_SCHEMAS[proto_type])
    return {"$ref": f"#/definitions/{proto_type}"}


class JsonSchemaEmitter(FormatEmitter):
    """Emit one JSON Schema document per generation unit."""

    FORMAT = OutputFormat.JSON_SCHEMA
    EXTENSION = ".schema.json"

    def emit(self, ctx: GenerationContext, config: ProtoConfig) -> str:
        view = self.build_view(ctx, config)
        return json.dumps(self.build_schema(view, ctx), indent=2) + "\n"

    def build_schema(self, view: EmitterView, ctx: GenerationContext) -> dict[str, Any]:
        definitions: dict[str, Any] = {}
        properties: dict[str, Any] = {}
        mapper = view.resolver.mapper

        for template in view.templates + self.alias_templates(view, ctx):
            definitions[template.name] = self._template_schema(template, ctx, mapper)

        for plan in view.plans:
            definitions[plan.name] = self._message_schema(plan, ctx)
            properties[to_snake_case(plan.name)] = {"$ref": f"#/definitions/{plan.name}"}

        for enum in view.enums:
            name = enum_name(enum)
            definitions[name] = self._enum_schema(enum)
            properties[to_snake_case(name)] = {"$ref": f"#/definitions/{name}"}

        return {
            "$schema": DRAFT_07,
            "title": view.title,
            "description": f"JSON Schema for {view.title} protobuf package",
            "type": "object",
            "definitions": definitions,
            "properties": properties,
        }

    def _message_schema(self, plan: MessagePlan, ctx: GenerationContext) -> dict[str, Any]:
        composite = plan.composite
        if composite.is_alias and composite.alias_target:
            schema: dict[str, Any] = {"$ref": f"#/definitions/{composite.alias_target}"}
            if plan.description:
                schema["description"] = plan.description
            return schema

        schema = {"type": "object"}
        if plan.description:
            schema["description"] = plan.description
        properties: dict[str, Any] = {}
        required: list[str] = []
        for resolved in plan.fields:
            name = field_json_name(resolved.field, ctx)
            properties[name] = self._field_schema(resolved)
            if not resolved.optional and not resolved.nullable:
                required.append(name)
        schema["properties"] = properties
        if required:
            schema["required"] = required
        return schema

    @staticmethod
    def _field_schema(resolved: ResolvedField) -> dict[str, Any]:
        if resolved.shape == FieldShape.MAP:
            schema: dict[str, Any] = {"type": "object", "additionalProperties": proto_schema(resolved.map_value)}
        elif resolved.shape == FieldShape.REPEATED:
            schema = {"type": "array", "items": proto_schema(resolved.proto_type)}
        else:
            schema = proto_schema(resolved.proto_type)
        if resolved.description:
            schema["description"] = resolved.description
        return schema

    def _template_schema(self, template: CompositeType, ctx: GenerationContext, mapper: TypeMapper) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for f in self.template_fields(template, ctx):
            schema = self._expr_schema(f.type, template.type_params, mapper)
            description = field_description(f)
            if description:
                schema["description"] = description
            properties[field_json_name(f, ctx)] = schema
        schema = {"type": "object", "properties": properties}
        if template.doc:
            schema["description"] = template.doc
        return schema

    def _expr_schema(self, expr, type_params: list[str], mapper: TypeMapper) -> dict[str, Any]:
        if expr.is_byte_sequence:
            return proto_schema("bytes")
        if expr.kind == TypeKind.POINTER:
            return self._expr_schema(expr.elem, type_params, mapper)
        if expr.kind == TypeKind.SEQUENCE:
            return {"type": "array", "items": self._expr_schema(expr.elem, type_params, mapper)}
        if expr.kind == TypeKind.MAP:
            return {"type": "object", "additionalProperties": self._expr_schema(expr.value, type_params, mapper)}
        if expr.kind == TypeKind.NAMED and not expr.package and expr.name in type_params:
            return {}
        return proto_schema(mapper.proto_type(expr))

    @staticmethod
    def _enum_schema(enum: EnumType) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "string", "enum": [enum_value_name(v) for v in enum.values]}
        description = description_of(enum.annotations) or enum.doc
        if description:
            schema["description"] = description
        return schema
