"""
Adapter stub synthesis and protoc delegation.
"""

from __future__ import annotations

from .analysis import (
    ConversionKind,
    FieldInfo,
    MapConversion,
    MethodInfo,
    ServiceInfo,
    StubAnalyzer,
    TemplateData,
    TypeInfo,
)
from .protoc import ProtocRequest, build_protoc_request, discover_proto_files, run_protoc
from .synthesizer import StubSynthesizer, is_effectively_empty
from .template_manager import TemplateManager

__all__ = [
    "ConversionKind",
    "FieldInfo",
    "MapConversion",
    "MethodInfo",
    "ProtocRequest",
    "ServiceInfo",
    "StubAnalyzer",
    "StubSynthesizer",
    "TemplateData",
    "TemplateManager",
    "TypeInfo",
    "build_protoc_request",
    "discover_proto_files",
    "is_effectively_empty",
    "run_protoc",
]
