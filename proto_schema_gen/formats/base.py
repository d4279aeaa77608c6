"""
Base class for additional output formats.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..config import OutputFormat, ProtoConfig
from ..generator import SchemaGenerator
from ..ir import CompositeType, EnumType, Field, GenerationContext
from ..resolver import (
    Inclusion,
    MessagePlan,
    MessageResolver,
    ServiceSpec,
    field_for_message,
    is_message_candidate,
    is_type_skipped,
    resolve_inclusion,
    resolve_services,
)


@dataclass
class EmitterView:
    """What every format emitter reads for one generation unit.

    Built from the same resolver decisions as the .proto output so that all
    formats agree on inclusion, shape and naming.
    """

    package: str
    plans: list[MessagePlan]
    templates: list[CompositeType]
    enums: list[EnumType]
    services: list[ServiceSpec]
    resolver: MessageResolver

    @property
    def title(self) -> str:
        return self.package or "generated"


class FormatEmitter(ABC):
    """Abstract base class for format emitters."""

    # Format handled by the emitter
    FORMAT: OutputFormat

    # Extension replacing .proto in the output file name
    EXTENSION: str = ""

    @abstractmethod
    def emit(self, ctx: GenerationContext, config: ProtoConfig) -> str:
        """
        Render one generation unit.

        Args:
            ctx: Generation context for the unit
            config: Generator configuration

        Returns:
            The rendered document
        """

    def build_view(self, ctx: GenerationContext, config: ProtoConfig) -> EmitterView:
        generator = SchemaGenerator(ctx, config, validate=False)
        resolver = generator.resolver
        return EmitterView(
            package=generator.package_name(),
            plans=generator.message_plans(),
            templates=[c for c in ctx.composites if c.is_generic and not is_type_skipped(c.annotations)],
            enums=[e for e in ctx.enums if not is_type_skipped(e.annotations)],
            services=resolve_services(ctx, resolver.mapper) if config.generate_service else [],
            resolver=resolver,
        )

    @staticmethod
    def template_fields(template: CompositeType, ctx: GenerationContext) -> list[Field]:
        """Fields a generic template keeps under its own name."""
        return [
            field_for_message(f, template.name)
            for f in template.fields
            if resolve_inclusion(f, template.name, template, ctx) == Inclusion.KEEP
        ]

    @staticmethod
    def alias_templates(view: EmitterView, ctx: GenerationContext) -> list[CompositeType]:
        """Generic templates referenced by alias messages of the unit but declared elsewhere."""
        found: list[CompositeType] = []
        for plan in view.plans:
            if not plan.composite.is_alias or not is_message_candidate(plan.composite):
                continue
            template = ctx.find_composite(plan.composite.alias_target)
            if template is not None and template not in view.templates and template not in found:
                found.append(template)
        return found
