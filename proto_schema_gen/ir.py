"""
Structural model (IR) consumed by the generator.

The IR is passive data supplied by an upstream parser (or by the document
loader in :mod:`proto_schema_gen.loader`). It describes composite types,
fields, enumerations, service contracts and free functions, each carrying
annotations. A single generation pass treats it as immutable input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .annotations import Annotation, TagInfo

logger = logging.getLogger("proto_schema_gen")

# Go-style struct tag: key:"value" pairs separated by spaces
_TAG_PAIR = re.compile(r'(\w+):"([^"]*)"')


class TypeKind(str, Enum):
    """Kind of type expression."""

    NAMED = "named"
    POINTER = "pointer"
    SEQUENCE = "sequence"
    MAP = "map"
    GENERIC = "generic"


@dataclass(frozen=True)
class TypeExpr:
    """A structural type expression.

    Attributes:
        kind: Shape of the expression
        name: Type name for NAMED/GENERIC (``User``, ``Time``, ``Page``)
        package: Optional qualifier for NAMED (``time`` in ``time.Time``)
        elem: Element type for POINTER/SEQUENCE
        key: Key type for MAP
        value: Value type for MAP
        args: Type arguments for GENERIC
    """

    kind: TypeKind
    name: str = ""
    package: str = ""
    elem: TypeExpr | None = None
    key: TypeExpr | None = None
    value: TypeExpr | None = None
    args: tuple[TypeExpr, ...] = ()

    @staticmethod
    def named(name: str, package: str = "") -> TypeExpr:
        return TypeExpr(TypeKind.NAMED, name=name, package=package)

    @staticmethod
    def pointer(elem: TypeExpr) -> TypeExpr:
        return TypeExpr(TypeKind.POINTER, elem=elem)

    @staticmethod
    def sequence(elem: TypeExpr) -> TypeExpr:
        return TypeExpr(TypeKind.SEQUENCE, elem=elem)

    @staticmethod
    def mapping(key: TypeExpr, value: TypeExpr) -> TypeExpr:
        return TypeExpr(TypeKind.MAP, key=key, value=value)

    @staticmethod
    def generic(name: str, args: list[TypeExpr]) -> TypeExpr:
        return TypeExpr(TypeKind.GENERIC, name=name, args=tuple(args))

    @property
    def qualified_name(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name

    @property
    def is_byte_sequence(self) -> bool:
        return self.kind == TypeKind.SEQUENCE and self.elem.kind == TypeKind.NAMED and self.elem.name in ("byte", "uint8")

    def unwrap(self) -> TypeExpr:
        """Strip pointer and sequence wrappers down to the innermost type."""
        expr = self
        while expr.kind in (TypeKind.POINTER, TypeKind.SEQUENCE) and not expr.is_byte_sequence:
            expr = expr.elem
        return expr

    def __str__(self) -> str:
        if self.kind == TypeKind.POINTER:
            return f"*{self.elem}"
        if self.kind == TypeKind.SEQUENCE:
            return f"[]{self.elem}"
        if self.kind == TypeKind.MAP:
            return f"map[{self.key}]{self.value}"
        if self.kind == TypeKind.GENERIC:
            return f"{self.name}[{', '.join(str(a) for a in self.args)}]"
        return self.qualified_name


class _TypeParser:
    """Recursive-descent parser for the textual type notation."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> TypeExpr:
        expr = self._parse_expr()
        self._skip_ws()
        if self.pos != len(self.text):
            raise ValueError(f"Unexpected trailing input in type expression: {self.text!r}")
        return expr

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _startswith(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def _expect(self, token: str) -> None:
        self._skip_ws()
        if not self._startswith(token):
            raise ValueError(f"Expected {token!r} at position {self.pos} in type expression {self.text!r}")
        self.pos += len(token)

    def _parse_expr(self) -> TypeExpr:
        self._skip_ws()
        if self._startswith("*"):
            self.pos += 1
            return TypeExpr.pointer(self._parse_expr())
        if self._startswith("[]"):
            self.pos += 2
            return TypeExpr.sequence(self._parse_expr())
        if self._startswith("map["):
            self.pos += 4
            key = self._parse_expr()
            self._expect("]")
            return TypeExpr.mapping(key, self._parse_expr())
        if self._startswith("interface{}"):
            self.pos += len("interface{}")
            return TypeExpr.named("interface{}")

        ident = self._parse_ident()
        self._skip_ws()
        if self._startswith("["):
            self.pos += 1
            args = [self._parse_expr()]
            self._skip_ws()
            while self._startswith(","):
                self.pos += 1
                args.append(self._parse_expr())
                self._skip_ws()
            self._expect("]")
            return TypeExpr.generic(ident, args)
        if "." in ident:
            package, _, name = ident.rpartition(".")
            return TypeExpr.named(name, package)
        return TypeExpr.named(ident)

    def _parse_ident(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] in "_."):
            self.pos += 1
        if start == self.pos:
            raise ValueError(f"Expected a type name at position {start} in type expression {self.text!r}")
        return self.text[start : self.pos]


def parse_type_expr(text: str) -> TypeExpr:
    """Parse the textual notation: ``*T``, ``[]T``, ``map[K]V``, ``pkg.T``, ``Base[A, B]``.

    Raises:
        ValueError: If the text is not a valid type expression
    """
    return _TypeParser(text).parse()


@dataclass
class Field:
    """A field of a composite type."""

    name: str
    type: TypeExpr
    tag: str = ""
    annotations: list[Annotation] = field(default_factory=list)
    embedded: bool = False
    doc: str = ""
    exported: bool = True

    @property
    def is_exported(self) -> bool:
        return self.exported and bool(self.name) and not self.name.startswith("_")


@dataclass
class CompositeType:
    """A struct-like record type.

    Attributes:
        name: Declared type name
        package: Originating package
        namespace: Originating namespace (empty when not declared)
        source_file: Originating source file
        fields: Ordered field list
        annotations: Type-level annotations
        doc: Leading documentation comment
        type_params: Type parameter names; non-empty for generic templates
        is_alias: Whether this type is an alias instantiation of a generic template
        alias_target: Name of the generic template the alias instantiates
        alias_type_args: Concrete type arguments bound by the alias
    """

    name: str
    package: str = ""
    namespace: str = ""
    source_file: str = ""
    fields: list[Field] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    doc: str = ""
    type_params: list[str] = field(default_factory=list)
    is_alias: bool = False
    alias_target: str = ""
    alias_type_args: list[TypeExpr] = field(default_factory=list)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_params)


@dataclass
class EnumValue:
    name: str
    index: int
    annotations: list[Annotation] = field(default_factory=list)
    doc: str = ""


@dataclass
class EnumType:
    name: str
    values: list[EnumValue] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    package: str = ""
    namespace: str = ""
    source_file: str = ""
    doc: str = ""


@dataclass
class Parameter:
    """A named, typed method parameter or result."""

    name: str
    type: TypeExpr


@dataclass
class Method:
    name: str
    params: list[Parameter] = field(default_factory=list)
    results: list[Parameter] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    doc: str = ""


@dataclass
class ServiceContract:
    name: str
    methods: list[Method] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    package: str = ""
    namespace: str = ""
    source_file: str = ""
    doc: str = ""


@dataclass
class Function:
    """A free function or method; ``receiver`` names the receiver type for methods."""

    name: str
    receiver: str = ""
    params: list[Parameter] = field(default_factory=list)
    results: list[Parameter] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    doc: str = ""

    def as_method(self) -> Method:
        return Method(
            name=self.name,
            params=list(self.params),
            results=list(self.results),
            annotations=list(self.annotations),
            doc=self.doc,
        )


@dataclass
class GenerationContext:
    """Everything one generation pass reads.

    ``all_composites`` also holds generic templates, which are not emitted
    themselves but are needed to resolve alias instantiations. ``functions``
    is always the complete function list, even inside a multi-file group.
    """

    composites: list[CompositeType] = field(default_factory=list)
    enums: list[EnumType] = field(default_factory=list)
    services: list[ServiceContract] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    all_composites: list[CompositeType] = field(default_factory=list)
    file_annotations: dict[str, list[Annotation]] = field(default_factory=dict)
    package_annotations: dict[str, list[Annotation]] = field(default_factory=dict)
    tag_name: str = "proto"
    logger: logging.Logger = field(default_factory=lambda: logger)
    current_file: str = ""
    type_files: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.all_composites:
            self.all_composites = list(self.composites)

    def tag_of(self, f: Field) -> TagInfo:
        """Field-tag accessor: parse the configured tag key out of the raw tag string."""
        raw = f.tag or ""
        pairs = _TAG_PAIR.findall(raw)
        if pairs:
            raw = next((value for key, value in pairs if key == self.tag_name), "")
        return TagInfo.parse(raw)

    def find_composite(self, name: str) -> CompositeType | None:
        for composite in self.all_composites:
            if composite.name == name:
                return composite
        return None

    def level_annotations(self) -> list[Annotation]:
        """File-level then package-level annotations, in a stable order."""
        result: list[Annotation] = []
        for key in sorted(self.package_annotations):
            result.extend(self.package_annotations[key])
        for key in sorted(self.file_annotations):
            result.extend(self.file_annotations[key])
        return result

    def subcontext(
        self,
        composites: list[CompositeType],
        enums: list[EnumType],
        services: list[ServiceContract],
        current_file: str,
    ) -> GenerationContext:
        """Restrict to one group while keeping the full function and template lists."""
        return replace(
            self,
            composites=list(composites),
            enums=list(enums),
            services=list(services),
            current_file=current_file,
        )


@dataclass
class GeneratedFile:
    path: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GeneratedOutput:
    files: list[GeneratedFile] = field(default_factory=list)
    multi_file: bool = False

    def add(self, generated: GeneratedFile) -> None:
        self.files.append(generated)

    def paths(self) -> list[str]:
        return [f.path for f in self.files]
