"""
Field and message resolution.

Pure decision functions called per (field, target message name) pair:
inclusion, numbering, wire shape, naming and reserved-number bookkeeping.
Every consumer (validator, schema generator, format emitters, stub
synthesizer) goes through :class:`MessageResolver` so that they all make the
same decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from .annotations import Annotation, description_of, find_annotation, find_annotations, first_string
from .config import ProtoConfig
from .generics import resolved_fields
from .ir import (
    CompositeType,
    EnumType,
    EnumValue,
    Field,
    Function,
    GenerationContext,
    Method,
    Parameter,
    TypeKind,
)
from .type_mapping import EMPTY_TYPE, VALID_MAP_KEYS, TypeMapper
from .utils import to_screaming_snake_case, to_snake_case

MIN_FIELD_NUMBER = 1
MAX_FIELD_NUMBER = 536_870_911
RESERVED_BAND = range(19000, 20000)

_SKIP = ("ignore", "skip", "omit")
_CONTEXT_TYPES = frozenset({"context.Context", "grpc.ServicerContext"})
_ERROR_TYPES = frozenset({"error", "Exception"})


class Inclusion(str, Enum):
    """Outcome of the inclusion decision for one field in one message."""

    KEEP = "keep"
    DROP = "drop"
    DROP_AND_RESERVE = "drop_and_reserve"


class FieldShape(str, Enum):
    """Wire shape of an included field."""

    SCALAR = "scalar"
    REPEATED = "repeated"
    OPTIONAL = "optional"
    MAP = "map"
    UNSUPPORTED = "unsupported"  # Native map with a key type protobuf does not accept


def compact_reserved_ranges(numbers: list[int]) -> list[str]:
    """Compact sorted reserved numbers into textual ranges.

    Runs of one number give ``"N"``, runs of two give ``"N, M"`` and longer
    runs give ``"N to M"``:

        [1, 2, 3, 5, 7, 8, 9] -> ["1 to 3", "5", "7 to 9"]
    """
    if not numbers:
        return []

    ranges: list[str] = []
    start = end = numbers[0]

    def flush() -> None:
        if start == end:
            ranges.append(f"{start}")
        elif end == start + 1:
            ranges.append(f"{start}, {end}")
        else:
            ranges.append(f"{start} to {end}")

    for number in numbers[1:]:
        if number == end:
            continue
        if number == end + 1:
            end = number
            continue
        flush()
        start = end = number
    flush()
    return ranges


def parse_reserved_numbers(values: list[str]) -> list[int]:
    """Parse ``["6-10", "15", "20 to 22"]`` style entries into numbers."""
    numbers: list[int] = []
    for value in values:
        text = value.strip()
        if not text:
            continue
        for separator in (" to ", "-"):
            if separator in text:
                low, _, high = text.partition(separator)
                try:
                    numbers.extend(range(int(low), int(high) + 1))
                except ValueError:
                    pass
                break
        else:
            try:
                numbers.append(int(text))
            except ValueError:
                pass
    return numbers


# -- Type level ---------------------------------------------------------------


def is_type_skipped(annotations: list[Annotation]) -> bool:
    return find_annotation(annotations, "ignore", "skip") is not None


def is_service_flagged(annotations: list[Annotation]) -> bool:
    return find_annotation(annotations, "service") is not None


def is_message_candidate(composite: CompositeType) -> bool:
    """Whether a composite type is emitted as one or more messages."""
    if composite.is_generic or is_type_skipped(composite.annotations):
        return False
    return find_annotation(composite.annotations, "service", "enum") is None


def message_names(composite: CompositeType) -> list[str]:
    """Resolved message names, one per ``message`` annotation.

    An annotation with an empty name uses the default name: the first
    ``message`` annotation's name, else the type name.
    """
    message_anns = find_annotations(composite.annotations, "message")
    default = default_message_name(composite)
    if not message_anns:
        return [default]
    return [ann.get_string("name") or default for ann in message_anns]


def default_message_name(composite: CompositeType) -> str:
    first = find_annotation(composite.annotations, "message")
    if first is not None and first.get_string("name"):
        return first.get_string("name")
    return composite.name


def message_description(composite: CompositeType, message_name: str) -> str:
    for ann in find_annotations(composite.annotations, "message"):
        name = ann.get_string("name") or ""
        if name == message_name or (not name and composite.name == message_name):
            description = ann.get_string("description")
            if description:
                return description
    return description_of(composite.annotations) or composite.doc


def _message_annotation_applies(ann: Annotation, composite: CompositeType, message_name: str) -> bool:
    name = ann.get_string("name") or ""
    return not name or name == message_name


def reserves_all(composite: CompositeType, message_name: str) -> bool:
    """Whether every skipped field of this message is reserved.

    Set by ``message(reserved=...)`` on the matching message annotation, or by
    a type-level ``reserved`` annotation that declares neither numbers nor
    names.
    """
    for ann in find_annotations(composite.annotations, "message"):
        if not _message_annotation_applies(ann, composite, message_name):
            continue
        if ann.has("reserved"):
            return ann.param_selects("reserved", message_name)
    for ann in find_annotations(composite.annotations, "reserved"):
        if ann.has("numbers") or ann.has("names"):
            continue
        if ann.applies_to(message_name, default=True):
            return True
    return False


def declared_reservations(composite: CompositeType, message_name: str) -> tuple[list[int], list[str]]:
    """Numbers and names declared by type-level ``reserved`` annotations."""
    numbers: list[int] = []
    names: list[str] = []
    for ann in find_annotations(composite.annotations, "reserved"):
        if not ann.applies_to(message_name, default=True):
            continue
        numbers.extend(parse_reserved_numbers(ann.get_list("numbers") or []))
        for name in ann.get_list("names") or []:
            if name not in names:
                names.append(name)
    return numbers, names


# -- Field level --------------------------------------------------------------


def field_scoped_out(f: Field, message_name: str) -> bool:
    """Whether the field's ``for``-scoped ``field`` annotations all exclude this message."""
    scoped = [ann for ann in find_annotations(f.annotations, "field") if ann.has("for")]
    return bool(scoped) and not any(ann.applies_to(message_name, default=True) for ann in scoped)


def field_for_message(f: Field, message_name: str) -> Field:
    """The field as seen by one message: ``field`` annotations scoped to other messages are removed."""
    annotations = [ann for ann in f.annotations if not ann.matches("field") or ann.applies_to(message_name, default=True)]
    if len(annotations) == len(f.annotations):
        return f
    return replace(f, annotations=annotations)


def resolve_inclusion(
    f: Field,
    message_name: str,
    composite: CompositeType,
    ctx: GenerationContext,
) -> Inclusion:
    """Decide whether a field is kept, dropped, or dropped and reserved in a message.

    Mechanisms, evaluated in a fixed order:
    unexported fields and ``-`` tags are dropped; a field whose
    ``field(for=...)`` annotations all name other messages is removed without
    reservation; an
    ``ignore``/``skip``/``omit`` annotation scoped to the message drops it;
    an ``include`` annotation not scoped to the message drops it; the
    ``field`` annotation's ``ignore``/``omit``/``include`` sub-parameters drop
    it. Drops from the last three become reserving when the field's
    ``reserved`` parameter selects the message or the message reserves all
    skipped fields.

    Args:
        f: Field to decide on
        message_name: Target message name
        composite: Owning composite type
        ctx: Generation context (for the field-tag accessor)

    Returns:
        The inclusion decision
    """
    if not f.is_exported or ctx.tag_of(f).ignored:
        return Inclusion.DROP
    if field_scoped_out(f, message_name):
        return Inclusion.DROP

    field_anns = find_annotations(field_for_message(f, message_name).annotations, "field")
    skip_anns = find_annotations(f.annotations, *_SKIP)

    reserve = any(ann.param_selects("reserved", message_name) for ann in field_anns + skip_anns)

    dropped = any(ann.applies_to(message_name, default=True) for ann in skip_anns)
    if not dropped:
        dropped = any(not ann.applies_to(message_name, default=False) for ann in find_annotations(f.annotations, "include"))
    if not dropped:
        for ann in field_anns:
            if ann.param_selects("ignore", message_name) or ann.param_selects("omit", message_name):
                dropped = True
                break
            if ann.has("include") and not ann.param_selects("include", message_name):
                dropped = True
                break

    if not dropped:
        return Inclusion.KEEP
    if reserve or reserves_all(composite, message_name):
        return Inclusion.DROP_AND_RESERVE
    return Inclusion.DROP


def explicit_number(f: Field, ctx: GenerationContext) -> int | None:
    """Explicit annotation number (``field`` or ``map``), else the tag-embedded number."""
    for ann in find_annotations(f.annotations, "field", "map"):
        number = ann.get_int("number")
        if number is not None and number > 0:
            return number
    return ctx.tag_of(f).number


def field_name(f: Field, ctx: GenerationContext) -> str:
    """Explicit name override, else the tag name, else lower_snake of the identifier."""
    override = first_string(f.annotations, ("field",), "name")
    if override:
        return override
    tag = ctx.tag_of(f)
    if tag.name:
        return tag.name
    return to_snake_case(f.name)


def field_json_name(f: Field, ctx: GenerationContext) -> str:
    """Name used by JSON-facing formats: ``json_name`` when set, else the field name."""
    return first_string(f.annotations, ("field",), "json_name") or ctx.tag_of(f).options.get("json_name") or field_name(f, ctx)


def field_description(f: Field) -> str:
    return description_of(f.annotations) or f.doc


def _field_flag(f: Field, param: str) -> bool:
    return any(ann.get_bool(param) for ann in find_annotations(f.annotations, "field"))


def field_options(f: Field, ctx: GenerationContext) -> list[str]:
    """Field options rendered inside ``[...]``."""
    options: list[str] = []

    def add(option: str) -> None:
        key = option.partition(" =")[0]
        if not any(existing.partition(" =")[0] == key for existing in options):
            options.append(option)

    for ann in f.annotations:
        if ann.matches("field"):
            if ann.get_bool("packed"):
                add("packed = true")
            if ann.get_bool("deprecated"):
                add("deprecated = true")
            json_name = ann.get_string("json_name")
            if json_name:
                add(f'json_name = "{json_name}"')
        elif ann.matches("option"):
            name = ann.get_string("name")
            value = ann.get_string("value")
            if name and value is not None:
                add(f"{name} = {_option_literal(value)}")

    tag = ctx.tag_of(f)
    if tag.options.get("json_name"):
        add(f'json_name = "{tag.options["json_name"]}"')
    if tag.options.get("packed") == "true":
        add("packed = true")
    if tag.options.get("deprecated") == "true":
        add("deprecated = true")
    return options


def _option_literal(value: str) -> str:
    if value in ("true", "false"):
        return value
    try:
        int(value)
    except ValueError:
        return f'"{value}"'
    return value


# -- Enums ----------------------------------------------------------------


def enum_name(e: EnumType) -> str:
    return first_string(e.annotations, ("enum",), "name") or e.name


def enum_allows_alias(e: EnumType) -> bool:
    return any(ann.get_bool("allow_alias") for ann in find_annotations(e.annotations, "enum"))


def enum_value_number(v: EnumValue) -> int:
    """Index-based default, overridden by ``enumvalue(number=...)``."""
    for ann in find_annotations(v.annotations, "enumvalue"):
        number = ann.get_int("number")
        if number is not None:
            return number
    return v.index


def enum_value_name(v: EnumValue) -> str:
    return first_string(v.annotations, ("enumvalue",), "name") or to_screaming_snake_case(v.name)


# -- Services ---------------------------------------------------------------


@dataclass
class RpcSpec:
    """Resolved RPC signature."""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    description: str = ""
    method: Method | None = None

    def render(self) -> str:
        client = "stream " if self.client_streaming else ""
        server = "stream " if self.server_streaming else ""
        return f"rpc {self.name}({client}{self.input_type}) returns ({server}{self.output_type});"


@dataclass
class ServiceSpec:
    """A service resolved from a contract or a service-flagged composite type."""

    name: str
    source_name: str
    rpcs: list[RpcSpec] = field(default_factory=list)
    description: str = ""
    from_composite: bool = False


def is_context_param(param: Parameter) -> bool:
    return param.type.unwrap().qualified_name in _CONTEXT_TYPES


def domain_params(params: list[Parameter]) -> list[Parameter]:
    """Parameters that carry data, without context parameters."""
    return [p for p in params if not is_context_param(p)]


def domain_results(results: list[Parameter]) -> list[Parameter]:
    """Results that carry data, without error results."""
    return [r for r in results if r.type.unwrap().qualified_name not in _ERROR_TYPES]


def resolve_rpc(method: Method, mapper: TypeMapper) -> RpcSpec:
    """Resolve an RPC from explicit annotations first, then the method signature."""
    params = domain_params(method.params)
    results = domain_results(method.results)
    spec = RpcSpec(
        name=method.name,
        input_type=mapper.proto_type(params[0].type) if params else EMPTY_TYPE,
        output_type=mapper.proto_type(results[0].type) if results else EMPTY_TYPE,
        description=method.doc,
        method=method,
    )
    for ann in find_annotations(method.annotations, "rpc"):
        spec.name = ann.get_string("name") or spec.name
        spec.input_type = ann.get_string("input") or spec.input_type
        spec.output_type = ann.get_string("output") or spec.output_type
        spec.client_streaming = spec.client_streaming or bool(ann.get_bool("client_streaming"))
        spec.server_streaming = spec.server_streaming or bool(ann.get_bool("server_streaming"))
        spec.description = ann.get_string("description") or spec.description
    return spec


def receiver_methods(composite: CompositeType, functions: list[Function]) -> list[Method]:
    """RPC methods of a service-flagged composite, matched by receiver type name."""
    return [
        fn.as_method()
        for fn in functions
        if fn.receiver == composite.name and find_annotation(fn.annotations, "rpc") is not None
    ]


def resolve_services(ctx: GenerationContext, mapper: TypeMapper) -> list[ServiceSpec]:
    """Annotated service contracts followed by service-flagged composite types."""
    services: list[ServiceSpec] = []
    for contract in ctx.services:
        if not is_service_flagged(contract.annotations):
            continue
        services.append(_service_spec(contract.name, contract.annotations, contract.methods, contract.doc, mapper, False))
    for composite in ctx.composites:
        if not is_service_flagged(composite.annotations):
            continue
        methods = receiver_methods(composite, ctx.functions)
        services.append(_service_spec(composite.name, composite.annotations, methods, composite.doc, mapper, True))
    return services


def _service_spec(
    source_name: str,
    annotations: list[Annotation],
    methods: list[Method],
    doc: str,
    mapper: TypeMapper,
    from_composite: bool,
) -> ServiceSpec:
    return ServiceSpec(
        name=first_string(annotations, ("service",), "name") or source_name,
        source_name=source_name,
        rpcs=[resolve_rpc(m, mapper) for m in methods],
        description=description_of(annotations) or doc,
        from_composite=from_composite,
    )


# -- Messages ---------------------------------------------------------------


@dataclass
class ResolvedField:
    """One active field of one message."""

    field: Field
    name: str
    number: int
    proto_type: str
    shape: FieldShape
    explicit_number: bool = False
    map_key: str = ""
    map_value: str = ""
    options: list[str] = field(default_factory=list)
    description: str = ""

    @property
    def repeated(self) -> bool:
        return self.shape == FieldShape.REPEATED

    @property
    def optional(self) -> bool:
        return self.shape == FieldShape.OPTIONAL

    @property
    def nullable(self) -> bool:
        return self.field.type.kind == TypeKind.POINTER


@dataclass
class MessagePlan:
    """Everything needed to emit one message."""

    name: str
    composite: CompositeType
    description: str = ""
    fields: list[ResolvedField] = field(default_factory=list)
    reserved_numbers: list[int] = field(default_factory=list)
    reserved_names: list[str] = field(default_factory=list)
    unsupported: list[Field] = field(default_factory=list)

    @property
    def reserved_ranges(self) -> list[str]:
        return compact_reserved_ranges(self.reserved_numbers)


class MessageResolver:
    """Apply the per-field decisions to whole messages."""

    def __init__(self, ctx: GenerationContext, config: ProtoConfig, mapper: TypeMapper | None = None):
        self.ctx = ctx
        self.config = config
        self.mapper = mapper or TypeMapper(config, ctx)

    def plans(self, composite: CompositeType) -> list[MessagePlan]:
        """One plan per resolved message name of a composite type."""
        return [self.plan(composite, name) for name in message_names(composite)]

    def plan(self, composite: CompositeType, message_name: str) -> MessagePlan:
        """Resolve every field of ``composite`` for one target message.

        The auto-numbering counter is shared across the whole message and
        advances for every kept or reserved field without an explicit number,
        so a reserved field keeps the number it would have had.
        """
        numbers, names = declared_reservations(composite, message_name)
        reserved = set(numbers)
        plan = MessagePlan(
            name=message_name,
            composite=composite,
            description=message_description(composite, message_name),
            reserved_names=names,
        )

        counter = self.config.start_field_number
        for f in resolved_fields(composite, self.ctx):
            decision = resolve_inclusion(f, message_name, composite, self.ctx)
            if decision == Inclusion.DROP:
                continue
            f = field_for_message(f, message_name)

            shape = self.shape(f)
            if decision == Inclusion.KEEP and shape == FieldShape.UNSUPPORTED:
                plan.unsupported.append(f)
                continue

            number = explicit_number(f, self.ctx)
            is_explicit = number is not None
            if number is None:
                number = counter
                counter += 1

            if decision == Inclusion.DROP_AND_RESERVE:
                reserved.add(number)
                continue

            resolved = ResolvedField(
                field=f,
                name=field_name(f, self.ctx),
                number=number,
                proto_type=self.proto_type(f),
                shape=shape,
                explicit_number=is_explicit,
                options=field_options(f, self.ctx),
                description=field_description(f),
            )
            if shape == FieldShape.MAP:
                resolved.map_key, resolved.map_value = self.map_types(f)
            plan.fields.append(resolved)

        plan.reserved_numbers = sorted(reserved)
        return plan

    def shape(self, f: Field) -> FieldShape:
        """Decide the wire shape of a field."""
        if self._map_annotation(f) is not None:
            return FieldShape.MAP
        if f.type.kind == TypeKind.MAP:
            if self.mapper.proto_type(f.type.key) in VALID_MAP_KEYS:
                return FieldShape.MAP
            return FieldShape.UNSUPPORTED
        if _field_flag(f, "repeated") or (f.type.kind == TypeKind.SEQUENCE and not f.type.is_byte_sequence):
            return FieldShape.REPEATED
        if _field_flag(f, "optional") or f.type.kind == TypeKind.POINTER:
            return FieldShape.OPTIONAL
        return FieldShape.SCALAR

    def proto_type(self, f: Field) -> str:
        """Explicit ``field.type``, else the tag ``type=``, else the mapped declared type."""
        override = first_string(f.annotations, ("field",), "type")
        if override:
            return override
        tag = self.ctx.tag_of(f)
        if tag.type:
            return tag.type
        return self.mapper.proto_type(f.type)

    def map_types(self, f: Field) -> tuple[str, str]:
        ann = self._map_annotation(f)
        if ann is not None:
            return ann.get_string("key"), ann.get_string("value")
        return self.mapper.proto_type(f.type.key), self.mapper.proto_type(f.type.value)

    @staticmethod
    def _map_annotation(f: Field) -> Annotation | None:
        for ann in find_annotations(f.annotations, "map"):
            if ann.get_string("key") and ann.get_string("value"):
                return ann
        return None
