"""
Annotation model for the structural IR.

Annotations are dynamically-typed parameter bags attached to types, fields,
enum values and methods. Parameter values are stored as a tagged union
(absent / bool / string / string-list) and read through typed accessors that
fail closed: a missing or mismatched parameter yields ``None``, never an
exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Values that select "every message" when used as a scope
_ALL_SCOPES = frozenset({"", "*", "true"})


class ValueKind(str, Enum):
    """Discriminator for annotation parameter values."""

    ABSENT = "absent"
    BOOL = "bool"
    STRING = "string"
    LIST = "list"


@dataclass(frozen=True)
class ParamValue:
    """A single annotation parameter value."""

    kind: ValueKind = ValueKind.ABSENT
    raw: bool | str | tuple[str, ...] | None = None

    @staticmethod
    def from_raw(value: Any) -> ParamValue:
        """Build a value from a loosely-typed document value (JSON/YAML)."""
        if value is None:
            return ParamValue()
        if isinstance(value, bool):
            return ParamValue(ValueKind.BOOL, value)
        if isinstance(value, (list, tuple)):
            return ParamValue(ValueKind.LIST, tuple(str(v) for v in value))
        return ParamValue(ValueKind.STRING, str(value))

    def as_string(self) -> str | None:
        if self.kind == ValueKind.STRING:
            return self.raw
        if self.kind == ValueKind.BOOL:
            return "true" if self.raw else "false"
        if self.kind == ValueKind.ABSENT:
            return ""
        return None

    def as_bool(self) -> bool | None:
        if self.kind == ValueKind.BOOL:
            return self.raw
        if self.kind == ValueKind.STRING:
            lowered = self.raw.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        return None

    def as_int(self) -> int | None:
        if self.kind != ValueKind.STRING:
            return None
        try:
            return int(self.raw.strip())
        except ValueError:
            return None

    def as_list(self) -> list[str] | None:
        """Return the value as a list of strings.

        Strings are split on commas and may be wrapped in brackets, so
        ``"[A, 'B']"`` and ``"A,B"`` both yield ``["A", "B"]``.
        """
        if self.kind == ValueKind.LIST:
            return list(self.raw)
        if self.kind == ValueKind.STRING:
            text = self.raw.strip()
            if text.startswith("[") and text.endswith("]"):
                text = text[1:-1]
            items = [item.strip().strip("\"'") for item in text.split(",")]
            return [item for item in items if item]
        return None

    def selects(self, name: str) -> bool:
        """Check whether this value, used as a message scope, selects ``name``.

        ``True``, an empty value, ``"*"`` and ``"true"`` select every message;
        ``False`` and ``"false"`` select none; a string or list selects the
        messages it names.
        """
        if self.kind == ValueKind.ABSENT:
            return True
        if self.kind == ValueKind.BOOL:
            return bool(self.raw)
        if self.kind == ValueKind.STRING:
            text = self.raw.strip()
            if text in _ALL_SCOPES:
                return True
            if text == "false":
                return False
        names = self.as_list() or []
        return name in names or "*" in names


@dataclass
class Annotation:
    """A named annotation with ordered parameters.

    Attributes:
        name: Annotation name as written, e.g. ``proto.message`` or ``field``
        params: Ordered mapping of parameter name to value
    """

    name: str
    params: dict[str, ParamValue] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Annotation:
        params = {str(k): ParamValue.from_raw(v) for k, v in (data.get("params") or {}).items()}
        return Annotation(name=data["name"], params=params)

    @staticmethod
    def of(name: str, /, **params: Any) -> Annotation:
        """Convenience constructor: ``Annotation.of("field", number="3")``."""
        return Annotation(name=name, params={k: ParamValue.from_raw(v) for k, v in params.items()})

    def matches(self, *names: str) -> bool:
        """Case-insensitive match on the bare name or a ``.name`` suffix."""
        lowered = self.name.lower()
        return any(lowered == n or lowered.endswith("." + n) for n in names)

    def has(self, param: str) -> bool:
        return param in self.params

    def get(self, param: str) -> ParamValue | None:
        return self.params.get(param)

    def get_string(self, param: str) -> str | None:
        value = self.params.get(param)
        return value.as_string() if value is not None else None

    def get_bool(self, param: str) -> bool | None:
        value = self.params.get(param)
        return value.as_bool() if value is not None else None

    def get_int(self, param: str) -> int | None:
        value = self.params.get(param)
        return value.as_int() if value is not None else None

    def get_list(self, param: str) -> list[str] | None:
        value = self.params.get(param)
        return value.as_list() if value is not None else None

    def param_selects(self, param: str, message_name: str) -> bool:
        """Whether ``param`` is present and its value selects ``message_name``."""
        value = self.params.get(param)
        return value is not None and value.selects(message_name)

    def applies_to(self, message_name: str, default: bool) -> bool:
        """Evaluate the ``for`` scope of this annotation.

        Args:
            message_name: Target message name
            default: Result when the annotation carries no ``for`` parameter

        Returns:
            True if the annotation applies to the message
        """
        scope = self.params.get("for")
        if scope is None:
            return default
        return scope.selects(message_name)


def find_annotations(annotations: list[Annotation], *names: str) -> list[Annotation]:
    """Return every annotation matching one of ``names`` in declaration order."""
    return [ann for ann in annotations if ann.matches(*names)]


def find_annotation(annotations: list[Annotation], *names: str) -> Annotation | None:
    """Return the first annotation matching one of ``names``."""
    for ann in annotations:
        if ann.matches(*names):
            return ann
    return None


def first_string(annotations: list[Annotation], names: tuple[str, ...], param: str) -> str | None:
    """Return the first non-empty ``param`` among annotations matching ``names``."""
    for ann in find_annotations(annotations, *names):
        value = ann.get_string(param)
        if value:
            return value
    return None


def description_of(annotations: list[Annotation]) -> str:
    """Return the first ``description`` parameter found on any annotation."""
    for ann in annotations:
        value = ann.get_string("description")
        if value:
            return value
    for ann in find_annotations(annotations, "description", "doc", "documentation"):
        value = ann.get_string("value")
        if value:
            return value
    return ""


@dataclass(frozen=True)
class TagInfo:
    """Parsed form of a field's structured tag string.

    The first comma-separated segment is the name; ``key=value`` segments
    carry the number, type and field options. A tag of exactly ``-`` marks
    the field as ignored.
    """

    name: str = ""
    ignored: bool = False
    number: int | None = None
    type: str = ""
    options: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def parse(tag: str) -> TagInfo:
        tag = (tag or "").strip()
        if not tag:
            return TagInfo()
        if tag == "-":
            return TagInfo(ignored=True)

        parts = [part.strip() for part in tag.split(",")]
        name = parts[0] if "=" not in parts[0] else ""
        number = None
        type_name = ""
        options: dict[str, str] = {}
        for part in parts:
            if "=" not in part:
                continue
            key, _, value = part.partition("=")
            key = key.strip()
            value = value.strip()
            if key == "number":
                try:
                    parsed = int(value)
                except ValueError:
                    continue
                if parsed > 0:
                    number = parsed
            elif key == "type":
                type_name = value
            else:
                options[key] = value
        return TagInfo(name=name, number=number, type=type_name, options=options)
