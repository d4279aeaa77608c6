"""
Configuration for the protobuf schema generator.

Configuration is a tree of dataclasses that can be built from a plain
dictionary (as loaded from JSON or YAML) and serialized back.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .errors import ConfigError


class GenerationStrategy(str, Enum):
    """How the IR is partitioned into output files."""

    SINGLE = "single"  # Default: one file for the whole IR
    FOLLOW = "follow"  # One file per originating source file
    PACKAGE = "package"  # One file per package
    NAMESPACE = "namespace"  # One file per namespace annotation


class OutputFormat(str, Enum):
    """Artifact formats that can be emitted for one IR."""

    PROTO = "proto"
    JSON_SCHEMA = "json-schema"
    MARKDOWN = "markdown"
    TYPESCRIPT = "typescript"

    @staticmethod
    def parse(value: str) -> OutputFormat:
        aliases = {
            "json_schema": OutputFormat.JSON_SCHEMA,
            "jsonschema": OutputFormat.JSON_SCHEMA,
            "md": OutputFormat.MARKDOWN,
            "ts": OutputFormat.TYPESCRIPT,
        }
        lowered = value.strip().lower()
        if lowered in aliases:
            return aliases[lowered]
        try:
            return OutputFormat(lowered)
        except ValueError:
            raise ConfigError(f"Unsupported output format: {value}") from None


class TemplateSource(str, Enum):
    """Where stub templates are loaded from."""

    EMBEDDED = "embedded"  # Templates shipped inside the package
    FILESYSTEM = "filesystem"  # Templates under template_base_path, falling back to embedded


@dataclass
class KnownType:
    """A host type with a fixed protobuf type and the import that defines it."""

    type: str
    import_path: str = ""


@dataclass
class TemplateConfig:
    """Template selection for stub generation."""

    template_source: TemplateSource = TemplateSource.EMBEDDED
    template_base_path: str = ""

    # One template per generated artifact
    types_template: str = "types.py.jinja2"
    adapter_template: str = "adapter.py.jinja2"
    client_template: str = "client.py.jinja2"
    bridge_template: str = "bridge.py.jinja2"
    registration_template: str = "registration.py.jinja2"


@dataclass
class StubConfig:
    """Configuration for adapter/conversion stub generation.

    Attributes:
        enabled: Whether stubs are generated at all
        output_dir: Directory the stub modules are written to
        module_path: Python module holding the domain types and services
        protobuf_package: Python module generated by protoc (``*_pb2``)
        protobuf_alias: Alias the protobuf module is imported under
        grpc_package: Python module generated by the gRPC plugin (``*_pb2_grpc``)
        grpc_alias: Alias the gRPC module is imported under
        streaming_support: Whether streaming RPCs get adapter methods
        registration_helpers: Whether registration.py is generated
        protoc_program: Program used for the protoc delegate request
        templates: Template selection
    """

    enabled: bool = False
    output_dir: str = "generated/adapter"
    module_path: str = ""
    protobuf_package: str = ""
    protobuf_alias: str = "pb"
    grpc_package: str = ""
    grpc_alias: str = "pb_grpc"
    streaming_support: bool = True
    registration_helpers: bool = True
    protoc_program: str = "protoc"
    templates: TemplateConfig = field(default_factory=TemplateConfig)

    @staticmethod
    def from_dict(d: dict) -> StubConfig:
        """Create a stub config from a dictionary."""
        config = StubConfig()
        for k, v in d.items():
            if k == "templates" and isinstance(v, dict):
                templates = TemplateConfig()
                for tk, tv in v.items():
                    if tk == "template_source":
                        templates.template_source = _parse_enum(TemplateSource, tv, tk)
                    elif hasattr(templates, tk):
                        setattr(templates, tk, tv)
                config.templates = templates
            elif hasattr(config, k):
                setattr(config, k, v)
        return config


@dataclass
class ProtoConfig:
    """Configuration options for protobuf schema generation."""

    # Output directory and file naming
    output: str = ""
    output_file_name: str = "{schema_name}.proto"
    schema_name: str = "schema"

    # Formats emitted next to the .proto file
    output_formats: list[OutputFormat] = field(default_factory=lambda: [OutputFormat.PROTO])

    # Multi-file partitioning
    generation_strategy: GenerationStrategy = GenerationStrategy.SINGLE

    # File header
    syntax: str = "proto3"
    package: str = ""
    go_package: str = ""
    java_package: str = ""
    java_outer_classname: str = ""
    optimize_for: str = ""  # Written unquoted (SPEED, CODE_SIZE, LITE_RUNTIME)

    # Extra file options, written as option key = "value";
    options: dict[str, str] = field(default_factory=dict)

    # Whether service blocks are generated
    generate_service: bool = True

    # First number handed out by the per-message auto-numbering counter
    start_field_number: int = 1

    # Imports always added to every generated file
    custom_imports: list[str] = field(default_factory=list)

    # Host type -> protobuf type overrides
    type_mappings: dict[str, str] = field(default_factory=dict)

    # Host type -> (protobuf type, import) table used for well-known type imports
    known_types: dict[str, KnownType] = field(default_factory=dict)

    # Adapter stub generation
    generate_stubs: StubConfig = field(default_factory=StubConfig)

    @staticmethod
    def from_dict(d: dict) -> ProtoConfig:
        """Create a config from a dictionary.

        Unknown keys are ignored. ``strategy`` is accepted as a deprecated
        alias of ``generation_strategy``.

        Raises:
            ConfigError: If an enum-valued option has an unknown value
        """
        config = ProtoConfig()
        for k, v in d.items():
            if k in ("generation_strategy", "strategy"):
                if k == "strategy" and "generation_strategy" in d:
                    continue
                config.generation_strategy = _parse_enum(GenerationStrategy, v, k)
            elif k == "output_formats":
                formats = [v] if isinstance(v, str) else list(v or [])
                config.output_formats = [OutputFormat.parse(str(f)) for f in formats]
            elif k == "java_outer_class":
                config.java_outer_classname = v
            elif k == "known_types" and isinstance(v, dict):
                config.known_types = {
                    name: KnownType(type=entry["type"], import_path=entry.get("import", entry.get("import_path", "")))
                    if isinstance(entry, dict)
                    else KnownType(type=str(entry))
                    for name, entry in v.items()
                }
            elif k == "generate_stubs" and isinstance(v, dict):
                config.generate_stubs = StubConfig.from_dict(v)
            elif hasattr(config, k):
                setattr(config, k, v)
        if not isinstance(config.start_field_number, int) or config.start_field_number < 1:
            raise ConfigError(f"start_field_number must be a positive integer, got {config.start_field_number!r}")
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        result = asdict(self, dict_factory=_enum_values)
        result["known_types"] = {
            name: {"type": entry.type, "import": entry.import_path} for name, entry in self.known_types.items()
        }
        return result


def _parse_enum(enum_cls: type[Enum], value: Any, key: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid value for {key}: {value!r} (expected one of: {choices})") from None


def _enum_values(items: list[tuple[str, Any]]) -> dict:
    def convert(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return {k: convert(v) for k, v in items}
