"""
Markdown documentation emitter.
"""

from __future__ import annotations

import re

from ..annotations import description_of
from ..config import OutputFormat, ProtoConfig
from ..ir import GenerationContext, TypeExpr
from ..resolver import FieldShape, MessagePlan, ResolvedField, RpcSpec, enum_name, enum_value_name, enum_value_number
from .base import EmitterView, FormatEmitter

_ANCHOR_STRIP = re.compile(r"[^a-z0-9 _-]")


def anchor(title: str) -> str:
    """GitHub-style heading anchor."""
    return _ANCHOR_STRIP.sub("", title.lower()).replace(" ", "-")


def cell(text: str) -> str:
    """Escape text for a single table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


class MarkdownEmitter(FormatEmitter):
    """Emit reference documentation for one generation unit."""

    FORMAT = OutputFormat.MARKDOWN
    EXTENSION = ".md"

    def emit(self, ctx: GenerationContext, config: ProtoConfig) -> str:
        view = self.build_view(ctx, config)
        lines: list[str] = [
            f"# {view.title} Protocol Buffer Documentation",
            "",
            "Generated from annotated source types.",
            "",
        ]
        lines.extend(self._table_of_contents(view))

        if view.plans:
            lines.extend(["## Messages", ""])
            for plan in view.plans:
                lines.extend(self._message_section(plan))
        if view.enums:
            lines.extend(["## Enums", ""])
            for enum in view.enums:
                lines.extend(self._enum_section(enum))
        if view.services:
            lines.extend(["## Services", ""])
            for service in view.services:
                lines.append(f"### {service.name}")
                lines.append("")
                if service.description:
                    lines.extend([service.description, ""])
                lines.append("| Method | Input | Output | Description |")
                lines.append("|--------|-------|--------|-------------|")
                for rpc in service.rpcs:
                    lines.append(self._rpc_row(rpc))
                lines.append("")

        return "\n".join(lines).rstrip("\n") + "\n"

    @staticmethod
    def _table_of_contents(view: EmitterView) -> list[str]:
        sections = [
            ("Messages", [plan.name for plan in view.plans]),
            ("Enums", [enum_name(enum) for enum in view.enums]),
            ("Services", [service.name for service in view.services]),
        ]
        lines = ["## Table of Contents", ""]
        for title, names in sections:
            if not names:
                continue
            lines.append(f"- [{title}](#{anchor(title)})")
            lines.extend(f"  - [{name}](#{anchor(name)})" for name in names)
        lines.append("")
        return lines

    def _message_section(self, plan: MessagePlan) -> list[str]:
        lines = [f"### {plan.name}", ""]
        if plan.description:
            lines.extend([plan.description, ""])
        composite = plan.composite
        if composite.is_alias and composite.alias_target:
            target = TypeExpr.generic(composite.alias_target, composite.alias_type_args)
            lines.extend([f"Type alias for `{target}`.", ""])
        if plan.fields:
            lines.append("| Field | Type | Description |")
            lines.append("|-------|------|-------------|")
            for resolved in plan.fields:
                lines.append(f"| `{resolved.name}` | `{self._field_type(resolved)}` | {cell(resolved.description)} |")
            lines.append("")
        return lines

    @staticmethod
    def _field_type(resolved: ResolvedField) -> str:
        if resolved.shape == FieldShape.MAP:
            return f"map<{resolved.map_key}, {resolved.map_value}>"
        if resolved.shape == FieldShape.REPEATED:
            return f"repeated {resolved.proto_type}"
        if resolved.shape == FieldShape.OPTIONAL:
            return f"optional {resolved.proto_type}"
        return resolved.proto_type

    @staticmethod
    def _enum_section(enum) -> list[str]:
        lines = [f"### {enum_name(enum)}", ""]
        description = description_of(enum.annotations) or enum.doc
        if description:
            lines.extend([description, ""])
        lines.append("| Name | Value | Description |")
        lines.append("|------|-------|-------------|")
        for value in enum.values:
            value_description = description_of(value.annotations) or value.doc
            lines.append(f"| `{enum_value_name(value)}` | {enum_value_number(value)} | {cell(value_description)} |")
        lines.append("")
        return lines

    @staticmethod
    def _rpc_row(rpc: RpcSpec) -> str:
        input_type = f"stream {rpc.input_type}" if rpc.client_streaming else rpc.input_type
        output_type = f"stream {rpc.output_type}" if rpc.server_streaming else rpc.output_type
        return f"| {rpc.name} | `{input_type}` | `{output_type}` | {cell(rpc.description)} |"
