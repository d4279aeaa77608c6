"""Protobuf Schema Generator

A Python package for generating protocol buffer schemas from an annotated
structural model. Also emits JSON Schema, Markdown and TypeScript views of
the same model, and Python adapter stubs between domain types and the
protoc-generated modules.
"""

__version__ = "0.3.0"

from .config import GenerationStrategy, OutputFormat, ProtoConfig, StubConfig, TemplateConfig
from .errors import ConfigError, ExternalToolError, GenerationError, ProtoSchemaGenError, ValidationError
from .generator import SchemaGenerator
from .ir import GeneratedFile, GeneratedOutput, GenerationContext
from .loader import load_config, load_context
from .planner import MultiFilePlanner
from .stubs import StubSynthesizer
from .validator import SchemaValidator
from .writer import AtomicWriter

__all__ = [
    "SchemaGenerator",
    "SchemaValidator",
    "MultiFilePlanner",
    "StubSynthesizer",
    "ProtoConfig",
    "StubConfig",
    "TemplateConfig",
    "GenerationStrategy",
    "OutputFormat",
    "GenerationContext",
    "GeneratedFile",
    "GeneratedOutput",
    "AtomicWriter",
    "load_config",
    "load_context",
    "ProtoSchemaGenError",
    "ConfigError",
    "ValidationError",
    "GenerationError",
    "ExternalToolError",
]
