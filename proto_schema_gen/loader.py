"""
Loading of IR and configuration documents.

Both the structural model and the generator configuration are read from
JSON or YAML files. The IR document layout mirrors the dataclasses in
:mod:`proto_schema_gen.ir`; type expressions are written in the textual
notation understood by :func:`proto_schema_gen.ir.parse_type_expr`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .annotations import Annotation
from .config import ProtoConfig
from .errors import ConfigError
from .ir import (
    CompositeType,
    EnumType,
    EnumValue,
    Field,
    Function,
    GenerationContext,
    Method,
    Parameter,
    ServiceContract,
    TypeExpr,
    parse_type_expr,
)

_YAML_SUFFIXES = (".yaml", ".yml")


def load_document(path: str | Path) -> dict[str, Any]:
    """
    Read a JSON or YAML mapping, chosen by file suffix.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() in _YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid document {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top level of {path}")
    return data


def load_config(path: str | Path) -> ProtoConfig:
    """Load a generator config, accepting a ``plugins: {protobuf: {...}}`` section."""
    return config_from_dict(load_document(path))


def config_from_dict(data: dict[str, Any]) -> ProtoConfig:
    plugins = data.get("plugins")
    if isinstance(plugins, dict) and isinstance(plugins.get("protobuf"), dict):
        data = plugins["protobuf"]
    return ProtoConfig.from_dict(data)


def load_context(path: str | Path) -> GenerationContext:
    """Load an IR document into a generation context."""
    return context_from_dict(load_document(path))


def context_from_dict(data: dict[str, Any]) -> GenerationContext:
    """
    Build a generation context from a plain IR document.

    Raises:
        ConfigError: If a required key is missing or a type expression is invalid
    """
    try:
        composites = [_composite(entry) for entry in data.get("composites", data.get("types", [])) or []]
        return GenerationContext(
            composites=composites,
            enums=[_enum(entry) for entry in data.get("enums", []) or []],
            services=[_service(entry) for entry in data.get("services", []) or []],
            functions=[_function(entry) for entry in data.get("functions", []) or []],
            all_composites=composites,
            file_annotations=_annotation_map(data.get("file_annotations")),
            package_annotations=_annotation_map(data.get("package_annotations")),
            tag_name=data.get("tag_name", "proto"),
        )
    except KeyError as e:
        raise ConfigError(f"Missing required key in IR document: {e}") from e


def _type(text: Any) -> TypeExpr:
    try:
        return parse_type_expr(str(text))
    except ValueError as e:
        raise ConfigError(str(e)) from e


def _annotations(entries: Any) -> list[Annotation]:
    annotations: list[Annotation] = []
    for entry in entries or []:
        if isinstance(entry, str):
            annotations.append(Annotation(name=entry))
        else:
            annotations.append(Annotation.from_dict(entry))
    return annotations


def _annotation_map(data: Any) -> dict[str, list[Annotation]]:
    return {str(key): _annotations(entries) for key, entries in (data or {}).items()}


def _field(entry: dict[str, Any]) -> Field:
    return Field(
        name=entry["name"],
        type=_type(entry["type"]),
        tag=entry.get("tag", ""),
        annotations=_annotations(entry.get("annotations")),
        embedded=entry.get("embedded", False),
        doc=entry.get("doc", ""),
        exported=entry.get("exported", True),
    )


def _composite(entry: dict[str, Any]) -> CompositeType:
    alias_target = entry.get("alias_target", entry.get("alias_of", ""))
    return CompositeType(
        name=entry["name"],
        package=entry.get("package", ""),
        namespace=entry.get("namespace", ""),
        source_file=entry.get("source_file", ""),
        fields=[_field(f) for f in entry.get("fields", []) or []],
        annotations=_annotations(entry.get("annotations")),
        doc=entry.get("doc", ""),
        type_params=list(entry.get("type_params", []) or []),
        is_alias=entry.get("is_alias", bool(alias_target)),
        alias_target=alias_target,
        alias_type_args=[_type(arg) for arg in entry.get("alias_type_args", entry.get("alias_args", [])) or []],
    )


def _enum(entry: dict[str, Any]) -> EnumType:
    values: list[EnumValue] = []
    for index, value in enumerate(entry.get("values", []) or []):
        if isinstance(value, str):
            values.append(EnumValue(name=value, index=index))
        else:
            values.append(
                EnumValue(
                    name=value["name"],
                    index=value.get("index", index),
                    annotations=_annotations(value.get("annotations")),
                    doc=value.get("doc", ""),
                )
            )
    return EnumType(
        name=entry["name"],
        values=values,
        annotations=_annotations(entry.get("annotations")),
        package=entry.get("package", ""),
        namespace=entry.get("namespace", ""),
        source_file=entry.get("source_file", ""),
        doc=entry.get("doc", ""),
    )


def _parameters(entries: Any) -> list[Parameter]:
    return [Parameter(name=entry.get("name", ""), type=_type(entry["type"])) for entry in entries or []]


def _method(entry: dict[str, Any]) -> Method:
    return Method(
        name=entry["name"],
        params=_parameters(entry.get("params")),
        results=_parameters(entry.get("results")),
        annotations=_annotations(entry.get("annotations")),
        doc=entry.get("doc", ""),
    )


def _service(entry: dict[str, Any]) -> ServiceContract:
    return ServiceContract(
        name=entry["name"],
        methods=[_method(m) for m in entry.get("methods", []) or []],
        annotations=_annotations(entry.get("annotations")),
        package=entry.get("package", ""),
        namespace=entry.get("namespace", ""),
        source_file=entry.get("source_file", ""),
        doc=entry.get("doc", ""),
    )


def _function(entry: dict[str, Any]) -> Function:
    return Function(
        name=entry["name"],
        receiver=entry.get("receiver", ""),
        params=_parameters(entry.get("params")),
        results=_parameters(entry.get("results")),
        annotations=_annotations(entry.get("annotations")),
        doc=entry.get("doc", ""),
    )
