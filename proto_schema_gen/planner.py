"""
Multi-file planning.

Partitions the IR into generation units according to the configured
strategy and drives the schema generator (and the additional format
emitters) once per unit. Every strategy goes through the same driver; only
the partition-key function differs.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field

from .annotations import first_string
from .config import GenerationStrategy, OutputFormat, ProtoConfig
from .errors import GenerationError, ValidationError
from .formats import get_emitter
from .generator import SchemaGenerator
from .ir import CompositeType, EnumType, GeneratedFile, GeneratedOutput, GenerationContext, ServiceContract
from .resolver import enum_name, message_names

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

_METADATA_KEYS = {
    GenerationStrategy.FOLLOW: "source_file",
    GenerationStrategy.PACKAGE: "package",
    GenerationStrategy.NAMESPACE: "namespace",
}


def resolve_file_name(pattern: str, schema_name: str, name: str, format_name: str = "proto") -> str:
    """Expand ``{schema_name}``, ``{name}`` and ``{format}`` in an output file pattern."""
    pattern = pattern or "{schema_name}.proto"
    return pattern.replace("{schema_name}", schema_name).replace("{name}", name).replace("{format}", format_name)


def format_file_name(proto_path: str, pattern: str, group_name: str, format_name: str, extension: str) -> str:
    """Derive the file name of an additional format from its unit's .proto file.

    If the pattern contains ``{format}`` it is expanded with the format name;
    otherwise the .proto extension of ``proto_path`` is swapped for the
    format's extension.
    """
    if "{format}" in pattern:
        expanded = resolve_file_name(pattern, group_name, group_name, format_name)
        return _strip_proto_extension(expanded) + extension
    return _strip_proto_extension(proto_path) + extension


def _strip_proto_extension(path: str) -> str:
    return path[: -len(".proto")] if path.endswith(".proto") else posixpath.splitext(path)[0]


def partition_key(strategy: GenerationStrategy, item: CompositeType | EnumType | ServiceContract, fallback: str) -> str:
    """Group key of one IR item under a strategy.

    Args:
        strategy: Partitioning strategy
        item: Composite, enum or service
        fallback: Key used when the item carries no value for the strategy

    Returns:
        The group key
    """
    if strategy == GenerationStrategy.FOLLOW:
        return item.source_file or fallback
    if strategy == GenerationStrategy.PACKAGE:
        return item.package or fallback
    if strategy == GenerationStrategy.NAMESPACE:
        return first_string(item.annotations, ("namespace",), "name") or item.namespace or DEFAULT_NAMESPACE
    return fallback


def group_base_name(strategy: GenerationStrategy, key: str) -> str:
    """Name substituted for ``{schema_name}``/``{name}`` for a group."""
    if strategy == GenerationStrategy.FOLLOW:
        return posixpath.splitext(posixpath.basename(key.replace("\\", "/")))[0]
    if strategy == GenerationStrategy.PACKAGE:
        return key.rstrip("/").rpartition("/")[2]
    return key


@dataclass
class FileGroup:
    """Types generated together into one file."""

    key: str
    file_name: str
    base_name: str
    composites: list[CompositeType] = field(default_factory=list)
    enums: list[EnumType] = field(default_factory=list)
    services: list[ServiceContract] = field(default_factory=list)


class MultiFilePlanner:
    """Drive generation over the configured partitioning strategy.

    A failing group aborts the whole run: validation errors propagate as they
    are, any other failure is raised as a GenerationError naming the group.
    """

    def __init__(self, ctx: GenerationContext, config: ProtoConfig):
        self.ctx = ctx
        self.config = config
        self.strategy = config.generation_strategy

    def partition(self) -> list[FileGroup]:
        """Build the partition map, keeping groups in first-seen order.

        Raises:
            GenerationError: If two groups resolve to the same output file
        """
        groups: dict[str, FileGroup] = {}
        file_owners: dict[str, str] = {}
        fallback = self.config.schema_name

        def group_for(item) -> FileGroup:
            key = partition_key(self.strategy, item, fallback)
            if key not in groups:
                base_name = group_base_name(self.strategy, key)
                file_name = resolve_file_name(self.config.output_file_name, base_name, base_name)
                if file_name in file_owners:
                    raise GenerationError(
                        f"groups '{file_owners[file_name]}' and '{key}' both map to output file '{file_name}'"
                    )
                file_owners[file_name] = key
                groups[key] = FileGroup(key=key, file_name=file_name, base_name=base_name)
            return groups[key]

        for composite in self.ctx.composites:
            group_for(composite).composites.append(composite)
        for enum in self.ctx.enums:
            group_for(enum).enums.append(enum)
        for service in self.ctx.services:
            group_for(service).services.append(service)

        if not groups:
            base_name = self.config.schema_name
            file_name = resolve_file_name(self.config.output_file_name, base_name, base_name)
            groups[fallback] = FileGroup(key=fallback, file_name=file_name, base_name=base_name)
        return list(groups.values())

    def register_types(self, groups: list[FileGroup]) -> dict[str, str]:
        """First pass: map every emitted type name to the file that defines it."""
        type_files: dict[str, str] = {}
        for group in groups:
            for composite in group.composites:
                type_files.setdefault(composite.name, group.file_name)
                for name in message_names(composite):
                    type_files.setdefault(name, group.file_name)
            for enum in group.enums:
                type_files.setdefault(enum.name, group.file_name)
                type_files.setdefault(enum_name(enum), group.file_name)
        return type_files

    def generate(self) -> GeneratedOutput:
        """
        Generate every unit, including additional output formats.

        Returns:
            The generated files, .proto files first within each group

        Raises:
            ValidationError: If a unit fails validation
            GenerationError: If a unit fails for any other reason, or two units
                resolve to the same output file
        """
        groups = self.partition()
        multi_file = self.strategy != GenerationStrategy.SINGLE
        type_files = self.register_types(groups) if multi_file else {}
        output = GeneratedOutput(multi_file=multi_file)
        path_owners: dict[str, str] = {}

        for group in groups:
            if multi_file:
                sub_ctx = self.ctx.subcontext(group.composites, group.enums, group.services, group.file_name)
                sub_ctx.type_files = type_files
            else:
                sub_ctx = self.ctx
            try:
                generated_files = self._generate_group(group, sub_ctx)
            except ValidationError:
                logger.error("Validation failed for group '%s'", group.key)
                raise
            except Exception as e:
                raise GenerationError(f"failed to generate group '{group.key}': {e}") from e

            for generated in generated_files:
                if generated.path in path_owners:
                    raise GenerationError(
                        f"groups '{path_owners[generated.path]}' and '{group.key}' both map to output file '{generated.path}'"
                    )
                path_owners[generated.path] = group.key
                output.add(generated)

        logger.info("Generated %d file(s) using the %s strategy", len(output.files), self.strategy.value)
        return output

    def _generate_group(self, group: FileGroup, ctx: GenerationContext) -> list[GeneratedFile]:
        metadata = {"strategy": self.strategy.value, "group": group.key}
        if self.strategy in _METADATA_KEYS:
            metadata[_METADATA_KEYS[self.strategy]] = group.key

        content = SchemaGenerator(ctx, self.config).generate()
        files = [GeneratedFile(group.file_name, content, {**metadata, "format": OutputFormat.PROTO.value})]

        for output_format in self.config.output_formats:
            if output_format == OutputFormat.PROTO:
                continue
            emitter = get_emitter(output_format)
            path = format_file_name(
                group.file_name,
                self.config.output_file_name,
                group.base_name,
                output_format.value,
                emitter.EXTENSION,
            )
            try:
                format_content = emitter.emit(ctx, self.config)
            except Exception as e:
                raise GenerationError(f"{output_format.value} output failed: {e}") from e
            files.append(GeneratedFile(path, format_content, {**metadata, "format": output_format.value}))
        return files
