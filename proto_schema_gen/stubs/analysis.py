"""
Template data for stub synthesis.

Turns the IR and the resolver's message plans into the flat descriptors the
stub templates read. Every artifact template receives the same
:class:`TemplateData`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import ProtoConfig
from ..ir import GenerationContext, Method, TypeExpr
from ..resolver import (
    FieldShape,
    MessagePlan,
    MessageResolver,
    ResolvedField,
    RpcSpec,
    ServiceSpec,
    domain_params,
    domain_results,
    enum_name,
    is_context_param,
    is_message_candidate,
    is_type_skipped,
    message_names,
    resolve_services,
)
from ..type_mapping import EMPTY_TYPE, SCALAR_TYPES
from ..utils import sanitize_type_name, to_snake_case

TIMESTAMP = "google.protobuf.Timestamp"
DURATION = "google.protobuf.Duration"


class ConversionKind:
    """How a value crosses the domain/protobuf boundary."""

    SCALAR = "scalar"
    OPTIONAL_SCALAR = "optional_scalar"
    MESSAGE = "message"
    OPTIONAL_MESSAGE = "optional_message"
    ENUM = "enum"
    OPTIONAL_ENUM = "optional_enum"
    REPEATED_SCALAR = "repeated_scalar"
    REPEATED_MESSAGE = "repeated_message"
    REPEATED_ENUM = "repeated_enum"
    MAP = "map"
    TIMESTAMP = "timestamp"
    DURATION = "duration"
    REPEATED_TIMESTAMP = "repeated_timestamp"
    REPEATED_DURATION = "repeated_duration"
    RAW_MESSAGE = "raw_message"  # Message type with no generated helpers (well-known or external)


@dataclass
class MapConversion:
    """Helpers for one distinct ``map<K, V>`` shape."""

    key_type: str
    value_type: str
    value_kind: str  # scalar, message, enum, timestamp, duration or raw_message
    value_helper: str = ""

    @property
    def suffix(self) -> str:
        return f"{sanitize_type_name(self.key_type)}_{sanitize_type_name(self.value_type)}"

    @property
    def to_proto_name(self) -> str:
        return f"convert_map_to_proto_{self.suffix}"

    @property
    def from_proto_name(self) -> str:
        return f"convert_map_from_proto_{self.suffix}"


@dataclass
class FieldInfo:
    """One converted field.

    Attributes:
        attr: Attribute name on the domain object
        proto_name: Field name on the protobuf message
        kind: Conversion kind (see ConversionKind)
        helper: Snake-case base name of the referenced message or enum helpers
        pointer_name: Sanitized type name used by the pointer helpers
        map: Map conversion for MAP fields
    """

    attr: str
    proto_name: str
    kind: str
    helper: str = ""
    pointer_name: str = ""
    map: MapConversion | None = None

    @property
    def is_message(self) -> bool:
        return self.kind in (ConversionKind.MESSAGE, ConversionKind.OPTIONAL_MESSAGE)


@dataclass
class TypeInfo:
    """A message or enum with conversion helpers."""

    name: str
    proto_name: str
    domain_name: str
    is_enum: bool = False
    fields: list[FieldInfo] = field(default_factory=list)

    @property
    def snake(self) -> str:
        return to_snake_case(self.name)

    @property
    def pointer_name(self) -> str:
        return sanitize_type_name(self.name)


@dataclass
class MethodInfo:
    """One RPC as seen by the adapter, client and bridge templates."""

    name: str
    domain_name: str
    input_proto: str
    output_proto: str
    input_domain: str = ""
    output_domain: str = ""
    input_helper: str = ""
    output_helper: str = ""
    client_streaming: bool = False
    server_streaming: bool = False
    has_context: bool = False
    has_input: bool = True
    has_output: bool = True

    @property
    def streaming(self) -> bool:
        return self.client_streaming or self.server_streaming


@dataclass
class ServiceInfo:
    name: str
    domain_name: str
    methods: list[MethodInfo] = field(default_factory=list)

    @property
    def snake(self) -> str:
        return to_snake_case(self.name)

    @property
    def streaming_methods(self) -> list[MethodInfo]:
        return [m for m in self.methods if m.streaming]


@dataclass
class TemplateData:
    """Context shared by every stub template."""

    module_path: str
    protobuf_package: str
    protobuf_alias: str
    grpc_package: str
    grpc_alias: str
    command_line: str = ""
    types: list[TypeInfo] = field(default_factory=list)
    enums: list[TypeInfo] = field(default_factory=list)
    services: list[ServiceInfo] = field(default_factory=list)
    map_conversions: list[MapConversion] = field(default_factory=list)
    streaming_support: bool = True

    @property
    def uses_empty(self) -> bool:
        return any(not m.has_output or not m.has_input for s in self.services for m in s.methods)

    def to_dict(self) -> dict:
        return {
            "module_path": self.module_path,
            "protobuf_package": self.protobuf_package,
            "protobuf_alias": self.protobuf_alias,
            "grpc_package": self.grpc_package,
            "grpc_alias": self.grpc_alias,
            "command_line": self.command_line,
            "types": self.types,
            "enums": self.enums,
            "services": self.services,
            "map_conversions": self.map_conversions,
            "streaming_support": self.streaming_support,
            "uses_empty": self.uses_empty,
        }


class StubAnalyzer:
    """Build :class:`TemplateData` from the IR.

    Field decisions come from the shared :class:`MessageResolver`, and
    generic aliases are read through the same alias resolution as the schema
    generator.
    """

    def __init__(self, ctx: GenerationContext, config: ProtoConfig, command_line: str = ""):
        self.ctx = ctx
        self.config = config
        self.stub_config = config.generate_stubs
        self.command_line = command_line
        self.resolver = MessageResolver(ctx, config)
        self.mapper = self.resolver.mapper
        self._message_names: set[str] = set()
        self._enum_names: dict[str, str] = {}
        self._maps: dict[str, MapConversion] = {}

    def analyze(self) -> TemplateData:
        stubs = self.stub_config
        self._message_names = {
            name for composite in self.ctx.all_composites if is_message_candidate(composite) for name in message_names(composite)
        }
        self._enum_names = {}
        for enum in self.ctx.enums:
            if not is_type_skipped(enum.annotations):
                self._enum_names[enum.name] = enum_name(enum)
                self._enum_names[enum_name(enum)] = enum_name(enum)
        self._maps = {}

        data = TemplateData(
            module_path=stubs.module_path,
            protobuf_package=stubs.protobuf_package,
            protobuf_alias=stubs.protobuf_alias,
            grpc_package=stubs.grpc_package,
            grpc_alias=stubs.grpc_alias,
            command_line=self.command_line,
            streaming_support=stubs.streaming_support,
        )
        for composite in self.ctx.composites:
            if is_message_candidate(composite):
                data.types.extend(self._type_info(plan) for plan in self.resolver.plans(composite))
        for enum in self.ctx.enums:
            if not is_type_skipped(enum.annotations):
                name = enum_name(enum)
                data.enums.append(TypeInfo(name=name, proto_name=name, domain_name=enum.name, is_enum=True))
        if self.config.generate_service:
            data.services = [self._service_info(service) for service in resolve_services(self.ctx, self.mapper)]
        data.map_conversions = list(self._maps.values())
        return data

    def _type_info(self, plan: MessagePlan) -> TypeInfo:
        return TypeInfo(
            name=plan.name,
            proto_name=plan.name,
            domain_name=plan.composite.name,
            fields=[self._field_info(resolved) for resolved in plan.fields],
        )

    def leaf_kind(self, proto_type: str) -> str:
        """Conversion kind of a single (non-repeated, non-optional) value."""
        if proto_type == TIMESTAMP:
            return ConversionKind.TIMESTAMP
        if proto_type == DURATION:
            return ConversionKind.DURATION
        if proto_type in SCALAR_TYPES:
            return ConversionKind.SCALAR
        if proto_type in self._enum_names:
            return ConversionKind.ENUM
        if proto_type in self._message_names:
            return ConversionKind.MESSAGE
        return ConversionKind.RAW_MESSAGE

    def _helper_name(self, proto_type: str) -> str:
        return to_snake_case(self._enum_names.get(proto_type, proto_type))

    def _field_info(self, resolved: ResolvedField) -> FieldInfo:
        info = FieldInfo(attr=resolved.field.name, proto_name=resolved.name, kind=ConversionKind.SCALAR)

        if resolved.shape == FieldShape.MAP:
            info.kind = ConversionKind.MAP
            info.map = self._map_conversion(resolved.map_key, resolved.map_value)
            return info

        proto_type = resolved.proto_type
        leaf = self.leaf_kind(proto_type)
        if leaf in (ConversionKind.MESSAGE, ConversionKind.ENUM):
            info.helper = self._helper_name(proto_type)
            info.pointer_name = sanitize_type_name(proto_type)

        if resolved.shape == FieldShape.REPEATED:
            info.kind = {
                ConversionKind.MESSAGE: ConversionKind.REPEATED_MESSAGE,
                ConversionKind.ENUM: ConversionKind.REPEATED_ENUM,
                ConversionKind.TIMESTAMP: ConversionKind.REPEATED_TIMESTAMP,
                ConversionKind.DURATION: ConversionKind.REPEATED_DURATION,
            }.get(leaf, ConversionKind.REPEATED_SCALAR)
        elif resolved.shape == FieldShape.OPTIONAL:
            info.kind = {
                ConversionKind.MESSAGE: ConversionKind.OPTIONAL_MESSAGE,
                ConversionKind.ENUM: ConversionKind.OPTIONAL_ENUM,
                ConversionKind.SCALAR: ConversionKind.OPTIONAL_SCALAR,
            }.get(leaf, leaf)
        else:
            info.kind = leaf
        return info

    def _map_conversion(self, key_type: str, value_type: str) -> MapConversion:
        value_kind = self.leaf_kind(value_type)
        helper = self._helper_name(value_type) if value_kind in (ConversionKind.MESSAGE, ConversionKind.ENUM) else ""
        conversion = MapConversion(key_type=key_type, value_type=value_type, value_kind=value_kind, value_helper=helper)
        return self._maps.setdefault(conversion.suffix, conversion)

    def _service_info(self, service: ServiceSpec) -> ServiceInfo:
        info = ServiceInfo(name=service.name, domain_name=service.source_name)
        for rpc in service.rpcs:
            if (rpc.client_streaming or rpc.server_streaming) and not self.stub_config.streaming_support:
                continue
            info.methods.append(self._method_info(rpc))
        return info

    def _method_info(self, rpc: RpcSpec) -> MethodInfo:
        method: Method | None = rpc.method
        params = domain_params(method.params) if method is not None else []
        results = domain_results(method.results) if method is not None else []
        info = MethodInfo(
            name=rpc.name,
            domain_name=method.name if method is not None else to_snake_case(rpc.name),
            input_proto=rpc.input_type,
            output_proto=rpc.output_type,
            input_domain=self._domain_name(params[0].type) if params else "",
            output_domain=self._domain_name(results[0].type) if results else "",
            client_streaming=rpc.client_streaming,
            server_streaming=rpc.server_streaming,
            has_context=method is not None and any(is_context_param(p) for p in method.params),
            has_input=rpc.input_type != EMPTY_TYPE,
            has_output=rpc.output_type != EMPTY_TYPE,
        )
        if self.leaf_kind(rpc.input_type) == ConversionKind.MESSAGE:
            info.input_helper = self._helper_name(rpc.input_type)
        if self.leaf_kind(rpc.output_type) == ConversionKind.MESSAGE:
            info.output_helper = self._helper_name(rpc.output_type)
        return info

    @staticmethod
    def _domain_name(expr: TypeExpr) -> str:
        return expr.unwrap().name
