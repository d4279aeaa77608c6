"""
Additional output formats generated next to the .proto schema.
"""

from __future__ import annotations

from ..config import OutputFormat
from ..errors import ConfigError, GenerationError
from .base import EmitterView, FormatEmitter
from .json_schema import JsonSchemaEmitter
from .markdown import MarkdownEmitter
from .typescript import TypeScriptEmitter

EMITTERS: dict[OutputFormat, type[FormatEmitter]] = {
    OutputFormat.JSON_SCHEMA: JsonSchemaEmitter,
    OutputFormat.MARKDOWN: MarkdownEmitter,
    OutputFormat.TYPESCRIPT: TypeScriptEmitter,
}


def get_emitter(output_format: OutputFormat | str) -> FormatEmitter:
    """
    Return the emitter for an additional output format.

    Raises:
        GenerationError: If the format is unknown or has no emitter
    """
    try:
        fmt = output_format if isinstance(output_format, OutputFormat) else OutputFormat.parse(output_format)
    except ConfigError as e:
        raise GenerationError(str(e)) from e
    if fmt not in EMITTERS:
        raise GenerationError(f"No emitter for output format: {fmt.value}")
    return EMITTERS[fmt]()


__all__ = [
    "EMITTERS",
    "EmitterView",
    "FormatEmitter",
    "JsonSchemaEmitter",
    "MarkdownEmitter",
    "TypeScriptEmitter",
    "get_emitter",
]
