"""
Generic alias resolution.

An alias instantiation such as ``type UserPage = Page[User]`` binds the type
parameters of the ``Page`` template to concrete arguments. The binding is
computed once, from the alias declaration, and every consumer (schema
generator, format emitters, stub synthesizer) reads fields through
:func:`resolved_fields` so they all see the same concrete types.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .ir import CompositeType, Field, GenerationContext, TypeExpr, TypeKind


@dataclass
class AliasBinding:
    """Type parameter bindings of one alias instantiation."""

    alias: CompositeType
    template: CompositeType | None
    bindings: dict[str, TypeExpr] = field(default_factory=dict)


def resolve_alias(composite: CompositeType, ctx: GenerationContext) -> AliasBinding | None:
    """Resolve the bindings of an alias instantiation.

    Returns:
        The binding, or None when ``composite`` is not an alias instantiation
    """
    if not composite.is_alias or not composite.alias_target:
        return None

    template = ctx.find_composite(composite.alias_target)
    if template is None:
        ctx.logger.warning("Generic template %s for alias %s not found", composite.alias_target, composite.name)
        return AliasBinding(alias=composite, template=None)

    if len(template.type_params) != len(composite.alias_type_args):
        ctx.logger.warning(
            "Alias %s binds %d type argument(s) but %s declares %d type parameter(s)",
            composite.name,
            len(composite.alias_type_args),
            template.name,
            len(template.type_params),
        )
    bindings = dict(zip(template.type_params, composite.alias_type_args))
    return AliasBinding(alias=composite, template=template, bindings=bindings)


def substitute(expr: TypeExpr, bindings: dict[str, TypeExpr]) -> TypeExpr:
    """Replace type parameters through every wrapper shape of ``expr``."""
    if not bindings:
        return expr
    if expr.kind == TypeKind.NAMED:
        if not expr.package and expr.name in bindings:
            return bindings[expr.name]
        return expr
    if expr.kind in (TypeKind.POINTER, TypeKind.SEQUENCE):
        return replace(expr, elem=substitute(expr.elem, bindings))
    if expr.kind == TypeKind.MAP:
        return replace(expr, key=substitute(expr.key, bindings), value=substitute(expr.value, bindings))
    if expr.kind == TypeKind.GENERIC:
        return replace(expr, args=tuple(substitute(arg, bindings) for arg in expr.args))
    return expr


def resolved_fields(composite: CompositeType, ctx: GenerationContext) -> list[Field]:
    """Return the fields of ``composite`` with generic bindings applied.

    For an alias the template's fields are used unless the alias declares
    its own.
    """
    binding = resolve_alias(composite, ctx)
    if binding is None:
        return list(composite.fields)

    source = composite.fields
    if not source and binding.template is not None:
        source = binding.template.fields
    return [replace(f, type=substitute(f.type, binding.bindings)) for f in source]
