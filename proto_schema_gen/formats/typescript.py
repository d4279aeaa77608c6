"""
TypeScript definitions emitter.
"""

from __future__ import annotations

from ..annotations import description_of
from ..config import OutputFormat, ProtoConfig
from ..ir import CompositeType, EnumType, GenerationContext, TypeExpr, TypeKind
from ..resolver import (
    FieldShape,
    MessagePlan,
    ResolvedField,
    enum_name,
    enum_value_name,
    enum_value_number,
    field_description,
    field_json_name,
)
from ..type_mapping import SCALAR_TYPES
from .base import FormatEmitter

HEADER = "// TypeScript definitions generated from protobuf annotations\n// DO NOT EDIT\n\n"

_STRING_LIKE = frozenset(
    {
        "string",
        "bytes",
        "google.protobuf.StringValue",
        "google.protobuf.BytesValue",
        "google.protobuf.Duration",
    }
)
_BOOLEAN_LIKE = frozenset({"bool", "google.protobuf.BoolValue"})
_NUMBER_LIKE = (SCALAR_TYPES - {"string", "bool", "bytes"}) | {
    "google.protobuf.FloatValue",
    "google.protobuf.DoubleValue",
    "google.protobuf.Int32Value",
    "google.protobuf.Int64Value",
    "google.protobuf.UInt32Value",
    "google.protobuf.UInt64Value",
}

# Well-known protobuf types with no direct TypeScript counterpart
_SPECIAL_TYPES = {
    "google.protobuf.Timestamp": "string | Date",
    "google.protobuf.Any": "any",
    "google.protobuf.Struct": "Record<string, any>",
    "google.protobuf.Value": "any",
    "google.protobuf.ListValue": "any[]",
    "google.protobuf.Empty": "Record<string, never>",
}


def ts_proto_type(proto_type: str) -> str:
    """TypeScript type for a protobuf type name."""
    if proto_type in _STRING_LIKE:
        return "string"
    if proto_type in _BOOLEAN_LIKE:
        return "boolean"
    if proto_type in _NUMBER_LIKE:
        return "number"
    if proto_type in _SPECIAL_TYPES:
        return _SPECIAL_TYPES[proto_type]
    return proto_type.rpartition(".")[2]


def _array_of(element: str) -> str:
    return f"({element})[]" if " | " in element else f"{element}[]"


class TypeScriptEmitter(FormatEmitter):
    """Emit interfaces, enums and aliases for one generation unit."""

    FORMAT = OutputFormat.TYPESCRIPT
    EXTENSION = ".ts"

    def emit(self, ctx: GenerationContext, config: ProtoConfig) -> str:
        view = self.build_view(ctx, config)
        self.mapper = view.resolver.mapper
        parts = [HEADER]
        for enum in view.enums:
            parts.append(self._enum(enum))
        for template in view.templates:
            parts.append(self._template(template, ctx))
        for plan in view.plans:
            parts.append(self._message(plan, ctx))
        return "".join(parts).rstrip("\n") + "\n"

    def ts_type(self, expr: TypeExpr, type_params: tuple[str, ...] | list[str] = ()) -> str:
        """Translate a host type expression, recursing through generics."""
        if expr.is_byte_sequence:
            return "string"
        if expr.kind == TypeKind.POINTER:
            return self.ts_type(expr.elem, type_params)
        if expr.kind == TypeKind.SEQUENCE:
            return _array_of(self.ts_type(expr.elem, type_params))
        if expr.kind == TypeKind.MAP:
            return f"Record<string, {self.ts_type(expr.value, type_params)}>"
        if expr.kind == TypeKind.GENERIC:
            args = ", ".join(self.ts_type(arg, type_params) for arg in expr.args)
            return f"{expr.name}<{args}>"
        if not expr.package and expr.name in type_params:
            return expr.name
        return ts_proto_type(self.mapper.proto_type(expr))

    @staticmethod
    def _comment(description: str, indent: str = "") -> str:
        return f"{indent}/** {description} */\n" if description else ""

    def _enum(self, enum: EnumType) -> str:
        out = self._comment(description_of(enum.annotations) or enum.doc)
        out += f"export enum {enum_name(enum)} {{\n"
        for value in enum.values:
            out += self._comment(description_of(value.annotations) or value.doc, "  ")
            out += f"  {enum_value_name(value)} = {enum_value_number(value)},\n"
        return out + "}\n\n"

    def _template(self, template: CompositeType, ctx: GenerationContext) -> str:
        out = self._comment(description_of(template.annotations) or template.doc)
        out += f"export interface {template.name}<{', '.join(template.type_params)}> {{\n"
        for f in self.template_fields(template, ctx):
            out += self._comment(field_description(f), "  ")
            marker = "?" if f.type.kind == TypeKind.POINTER else ""
            out += f"  {field_json_name(f, ctx)}{marker}: {self.ts_type(f.type, template.type_params)};\n"
        return out + "}\n\n"

    def _message(self, plan: MessagePlan, ctx: GenerationContext) -> str:
        out = self._comment(plan.description)
        composite = plan.composite
        if composite.is_alias and composite.alias_target:
            target = self.ts_type(TypeExpr.generic(composite.alias_target, composite.alias_type_args))
            return out + f"export type {plan.name} = {target};\n\n"

        out += f"export interface {plan.name} {{\n"
        for resolved in plan.fields:
            out += self._comment(resolved.description, "  ")
            marker = "?" if resolved.optional or resolved.nullable else ""
            out += f"  {field_json_name(resolved.field, ctx)}{marker}: {self._field_type(resolved)};\n"
        return out + "}\n\n"

    def _field_type(self, resolved: ResolvedField) -> str:
        expr = resolved.field.type
        if resolved.shape == FieldShape.MAP:
            if expr.kind == TypeKind.MAP:
                return f"Record<string, {self.ts_type(expr.value)}>"
            return f"Record<string, {ts_proto_type(resolved.map_value)}>"

        if resolved.proto_type == self.mapper.proto_type(expr):
            ts = self.ts_type(expr)
        else:
            ts = ts_proto_type(resolved.proto_type)
            if expr.kind == TypeKind.SEQUENCE and not expr.is_byte_sequence:
                ts = _array_of(ts)
        if resolved.shape == FieldShape.REPEATED and not ts.endswith("[]"):
            ts = _array_of(ts)
        return ts
