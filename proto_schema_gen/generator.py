"""
Protobuf schema generator.

Walks one generation unit of the IR and emits a ``.proto`` file: syntax,
package, options, imports, then messages, enums and services.
"""

from __future__ import annotations

from .annotations import description_of, find_annotations
from .config import ProtoConfig
from .ir import EnumType, GenerationContext
from .resolver import (
    FieldShape,
    MessagePlan,
    MessageResolver,
    ResolvedField,
    ServiceSpec,
    enum_allows_alias,
    enum_name,
    enum_value_name,
    enum_value_number,
    is_message_candidate,
    is_type_skipped,
    resolve_services,
)
from .validator import SchemaValidator

# Options written by dedicated config keys, in addition to config.options
_WELL_KNOWN_OPTIONS = ("go_package", "java_package", "java_outer_classname")

# String-valued file options a `package` annotation may set.
_PACKAGE_OPTION_KEYS = frozenset(
    _WELL_KNOWN_OPTIONS
    + (
        "optimize_for",
        "csharp_namespace",
        "objc_class_prefix",
        "php_namespace",
        "php_metadata_namespace",
        "ruby_package",
        "swift_prefix",
    )
)


class SchemaGenerator:
    """Generate the protobuf IDL for one generation unit.

    Args:
        ctx: Generation context for the unit
        config: Generator configuration
        validate: Whether to run the validator first
    """

    def __init__(self, ctx: GenerationContext, config: ProtoConfig, validate: bool = True):
        self.ctx = ctx
        self.config = config
        self.validate = validate
        self.resolver = MessageResolver(ctx, config)
        self.mapper = self.resolver.mapper

    def generate(self) -> str:
        """
        Generate the .proto content.

        Returns:
            The IDL text

        Raises:
            ValidationError: If validation finds error-severity findings
        """
        if self.validate:
            SchemaValidator(self.ctx, self.config, self.resolver).check()

        plans = self.message_plans()
        services = resolve_services(self.ctx, self.mapper) if self.config.generate_service else []

        parts: list[str] = [f'syntax = "{self.config.syntax}";\n\n']

        package = self.package_name()
        if package:
            parts.append(f"package {package};\n\n")

        parts.append(self._render_options())
        parts.append(self._render_imports(plans, services))

        for plan in plans:
            parts.append(self._render_message(plan))
        for enum in self.ctx.enums:
            if not is_type_skipped(enum.annotations):
                parts.append(self._render_enum(enum))
        for service in services:
            parts.append(self._render_service(service))

        return "".join(parts)

    def message_plans(self) -> list[MessagePlan]:
        """Resolved plans for every emitted message, in declaration order."""
        plans: list[MessagePlan] = []
        for composite in self.ctx.composites:
            if is_message_candidate(composite):
                plans.extend(self.resolver.plans(composite))
        return plans

    def package_name(self) -> str:
        """Config package, else a ``package`` annotation, else the first type's package."""
        if self.config.package:
            return self.config.package
        for ann in find_annotations(self.ctx.level_annotations(), "package"):
            name = ann.get_string("name")
            if name:
                return name
        if self.ctx.composites and self.ctx.composites[0].package:
            return self.ctx.composites[0].package
        return ""

    def file_options(self) -> tuple[str, dict[str, str]]:
        """Return ``(optimize_for, other options)``; later sources override earlier ones."""
        optimize_for = self.config.optimize_for
        options: dict[str, str] = {}
        for key in _WELL_KNOWN_OPTIONS:
            value = getattr(self.config, key)
            if value:
                options[key] = value
        options.update(self.config.options)

        for ann in self.ctx.level_annotations():
            if ann.matches("package"):
                for key in ann.params:
                    value = ann.get_string(key)
                    if key in _PACKAGE_OPTION_KEYS and value:
                        options[key] = value
            elif ann.matches("option"):
                name = ann.get_string("name")
                value = ann.get_string("value")
                if name and value is not None:
                    options[name] = value

        if "optimize_for" in options:
            optimize_for = options.pop("optimize_for")
        return optimize_for, options

    def imports(self, plans: list[MessagePlan], services: list[ServiceSpec]) -> list[str]:
        """Sorted, de-duplicated import paths for the unit."""
        imports: set[str] = set(self.config.custom_imports)
        for ann in find_annotations(self.ctx.level_annotations(), "import"):
            path = ann.get_string("path")
            if path:
                imports.add(path)

        referenced: list[tuple[str, str]] = []
        for plan in plans:
            for resolved in plan.fields:
                referenced.extend(self._field_references(resolved))
        for service in services:
            for rpc in service.rpcs:
                referenced.append((rpc.input_type, ""))
                referenced.append((rpc.output_type, ""))

        for proto_type, host_name in referenced:
            well_known = self.mapper.import_for(proto_type, host_name)
            if well_known:
                imports.add(well_known)
                continue
            owner = self.ctx.type_files.get(proto_type)
            if owner and owner != self.ctx.current_file:
                imports.add(owner)
        return sorted(imports)

    def _field_references(self, resolved: ResolvedField) -> list[tuple[str, str]]:
        if resolved.shape == FieldShape.MAP:
            value_host = ""
            if resolved.field.type.value is not None:
                value_host = resolved.field.type.value.unwrap().qualified_name
            return [(resolved.map_value, value_host)]
        return [(resolved.proto_type, resolved.field.type.unwrap().qualified_name)]

    def _render_options(self) -> str:
        optimize_for, options = self.file_options()
        lines: list[str] = []
        if optimize_for:
            lines.append(f"option optimize_for = {optimize_for};\n")
        for key in sorted(options):
            lines.append(f'option {key} = "{options[key]}";\n')
        if lines:
            lines.append("\n")
        return "".join(lines)

    def _render_imports(self, plans: list[MessagePlan], services: list[ServiceSpec]) -> str:
        imports = self.imports(plans, services)
        if not imports:
            return ""
        return "".join(f'import "{path}";\n' for path in imports) + "\n"

    def _render_message(self, plan: MessagePlan) -> str:
        lines: list[str] = []
        if plan.description:
            lines.append(f"// {plan.description}")
        lines.append(f"message {plan.name} {{")
        for resolved in plan.fields:
            lines.extend(self.render_field(resolved))
        if plan.reserved_numbers:
            lines.append(f"  reserved {', '.join(plan.reserved_ranges)};")
        if plan.reserved_names:
            quoted = ", ".join(f'"{name}"' for name in plan.reserved_names)
            lines.append(f"  reserved {quoted};")
        lines.append("}")
        return "\n".join(lines) + "\n\n"

    def render_field(self, resolved: ResolvedField) -> list[str]:
        """Render one field as its comment line (if any) and declaration line."""
        lines: list[str] = []
        if resolved.description:
            lines.append(f"  // {resolved.description}")

        if resolved.shape == FieldShape.MAP:
            declaration = f"map<{resolved.map_key}, {resolved.map_value}> {resolved.name} = {resolved.number}"
        else:
            words: list[str] = []
            if resolved.shape == FieldShape.REPEATED:
                words.append("repeated")
            elif resolved.shape == FieldShape.OPTIONAL and self.config.syntax == "proto3":
                words.append("optional")
            words.extend([resolved.proto_type, resolved.name])
            declaration = f"{' '.join(words)} = {resolved.number}"

        if resolved.options:
            declaration += f" [{', '.join(resolved.options)}]"
        lines.append(f"  {declaration};")
        return lines

    def _render_enum(self, enum: EnumType) -> str:
        lines: list[str] = []
        description = description_of(enum.annotations) or enum.doc
        if description:
            lines.append(f"// {description}")
        lines.append(f"enum {enum_name(enum)} {{")
        if enum_allows_alias(enum):
            lines.append("  option allow_alias = true;")
        for value in enum.values:
            value_description = description_of(value.annotations) or value.doc
            if value_description:
                lines.append(f"  // {value_description}")
            lines.append(f"  {enum_value_name(value)} = {enum_value_number(value)};")
        lines.append("}")
        return "\n".join(lines) + "\n\n"

    def _render_service(self, service: ServiceSpec) -> str:
        lines: list[str] = []
        if service.description:
            lines.append(f"// {service.description}")
        lines.append(f"service {service.name} {{")
        for rpc in service.rpcs:
            if rpc.description:
                lines.append(f"  // {rpc.description}")
            lines.append(f"  {rpc.render()}")
        lines.append("}")
        return "\n".join(lines) + "\n\n"
