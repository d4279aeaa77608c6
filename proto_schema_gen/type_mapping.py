"""
Mapping from host type expressions to protobuf types.
"""

from __future__ import annotations

from .config import ProtoConfig
from .ir import GenerationContext, TypeExpr, TypeKind
from .utils import snake_to_pascal_case

EMPTY_TYPE = "google.protobuf.Empty"

# Built-in host type -> protobuf type table
DEFAULT_TYPE_MAP: dict[str, str] = {
    "string": "string",
    "str": "string",
    "int": "int32",
    "int8": "int32",
    "int16": "int32",
    "int32": "int32",
    "int64": "int64",
    "uint": "uint32",
    "uint8": "uint32",
    "uint16": "uint32",
    "uint32": "uint32",
    "uint64": "uint64",
    "bool": "bool",
    "float32": "float",
    "float64": "double",
    "float": "double",
    "bytes": "bytes",
    "time.Time": "google.protobuf.Timestamp",
    "datetime.datetime": "google.protobuf.Timestamp",
    "time.Duration": "google.protobuf.Duration",
    "datetime.timedelta": "google.protobuf.Duration",
    "any": "google.protobuf.Any",
    "interface{}": "google.protobuf.Any",
    "typing.Any": "google.protobuf.Any",
    "wrapperspb.StringValue": "google.protobuf.StringValue",
    "wrapperspb.Int32Value": "google.protobuf.Int32Value",
    "wrapperspb.Int64Value": "google.protobuf.Int64Value",
    "wrapperspb.UInt32Value": "google.protobuf.UInt32Value",
    "wrapperspb.UInt64Value": "google.protobuf.UInt64Value",
    "wrapperspb.FloatValue": "google.protobuf.FloatValue",
    "wrapperspb.DoubleValue": "google.protobuf.DoubleValue",
    "wrapperspb.BoolValue": "google.protobuf.BoolValue",
    "wrapperspb.BytesValue": "google.protobuf.BytesValue",
    "structpb.Struct": "google.protobuf.Struct",
    "structpb.Value": "google.protobuf.Value",
    "structpb.ListValue": "google.protobuf.ListValue",
    "emptypb.Empty": EMPTY_TYPE,
}

# Well-known protobuf type -> defining import
WELL_KNOWN_IMPORTS: dict[str, str] = {
    "google.protobuf.Timestamp": "google/protobuf/timestamp.proto",
    "google.protobuf.Duration": "google/protobuf/duration.proto",
    "google.protobuf.Any": "google/protobuf/any.proto",
    "google.protobuf.Empty": "google/protobuf/empty.proto",
    "google.protobuf.Struct": "google/protobuf/struct.proto",
    "google.protobuf.Value": "google/protobuf/struct.proto",
    "google.protobuf.ListValue": "google/protobuf/struct.proto",
    "google.protobuf.StringValue": "google/protobuf/wrappers.proto",
    "google.protobuf.Int32Value": "google/protobuf/wrappers.proto",
    "google.protobuf.Int64Value": "google/protobuf/wrappers.proto",
    "google.protobuf.UInt32Value": "google/protobuf/wrappers.proto",
    "google.protobuf.UInt64Value": "google/protobuf/wrappers.proto",
    "google.protobuf.FloatValue": "google/protobuf/wrappers.proto",
    "google.protobuf.DoubleValue": "google/protobuf/wrappers.proto",
    "google.protobuf.BoolValue": "google/protobuf/wrappers.proto",
    "google.protobuf.BytesValue": "google/protobuf/wrappers.proto",
}

# Scalar types protobuf accepts as map keys
VALID_MAP_KEYS = frozenset(
    {
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "bool",
        "string",
    }
)

SCALAR_TYPES = VALID_MAP_KEYS | {"double", "float", "bytes"}


class TypeMapper:
    """Translate host type expressions into protobuf type names.

    Lookup order: configured ``type_mappings``, configured ``known_types``,
    the built-in table, and finally the bare type name (a message reference).
    Generic instantiations used directly as field types resolve to the alias
    declared for them, if any.
    """

    def __init__(self, config: ProtoConfig, ctx: GenerationContext | None = None):
        self.config = config
        self._alias_names: dict[str, str] = {}
        if ctx is not None:
            for composite in ctx.all_composites:
                if composite.is_alias and composite.alias_target:
                    reference = TypeExpr.generic(composite.alias_target, composite.alias_type_args)
                    self._alias_names.setdefault(str(reference), composite.name)

    def map_name(self, qualified_name: str) -> str:
        """Map a single (possibly package-qualified) type name."""
        if qualified_name in self.config.type_mappings:
            return self.config.type_mappings[qualified_name]
        if qualified_name in self.config.known_types:
            return self.config.known_types[qualified_name].type
        if qualified_name in DEFAULT_TYPE_MAP:
            return DEFAULT_TYPE_MAP[qualified_name]
        return qualified_name.rpartition(".")[2]

    def proto_type(self, expr: TypeExpr) -> str:
        """Map a type expression, looking through pointer and sequence wrappers.

        Repeated/optional keywords are decided by the resolver, not here.
        """
        if expr.is_byte_sequence:
            return "bytes"
        if expr.kind in (TypeKind.POINTER, TypeKind.SEQUENCE):
            return self.proto_type(expr.elem)
        if expr.kind == TypeKind.GENERIC:
            return self._generic_name(expr)
        if expr.kind == TypeKind.MAP:
            return f"map<{self.proto_type(expr.key)}, {self.proto_type(expr.value)}>"
        return self.map_name(expr.qualified_name)

    def import_for(self, proto_type: str, host_name: str = "") -> str:
        """Return the import defining ``proto_type``, or an empty string."""
        known = self.config.known_types.get(host_name)
        if known is not None and known.import_path:
            return known.import_path
        return WELL_KNOWN_IMPORTS.get(proto_type, "")

    def _generic_name(self, expr: TypeExpr) -> str:
        alias = self._alias_names.get(str(expr))
        if alias:
            return alias
        arg_names = "".join(snake_to_pascal_case(self.proto_type(arg).rpartition(".")[2]) for arg in expr.args)
        return f"{expr.name}{arg_names}"
