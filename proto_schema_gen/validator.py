"""
Pre-generation validation of the structural model.

Checks the derived schema for duplicate names and numbers, reserved number
reuse and out-of-range field numbers. Findings carry a severity; only
error-severity findings block generation.
"""

from __future__ import annotations

from .config import ProtoConfig
from .errors import Finding, Severity, ValidationError
from .ir import CompositeType, GenerationContext
from .resolver import (
    MAX_FIELD_NUMBER,
    MIN_FIELD_NUMBER,
    RESERVED_BAND,
    MessageResolver,
    enum_allows_alias,
    enum_name,
    enum_value_name,
    enum_value_number,
    is_message_candidate,
    is_type_skipped,
    message_names,
    resolve_services,
)


class SchemaValidator:
    """Validate one generation unit.

    Message numbering is checked on the same resolved plans the generator
    emits, so auto-assigned numbers that collide with explicit ones are
    reported too.
    """

    def __init__(self, ctx: GenerationContext, config: ProtoConfig, resolver: MessageResolver | None = None):
        self.ctx = ctx
        self.config = config
        self.resolver = resolver or MessageResolver(ctx, config)

    def validate(self) -> list[Finding]:
        """Run every check and return all findings in discovery order."""
        findings: list[Finding] = []
        findings.extend(self._check_messages())
        findings.extend(self._check_enums())
        findings.extend(self._check_services())
        return findings

    def check(self) -> list[Finding]:
        """Validate, log findings, and raise if any finding is an error.

        Returns:
            The non-blocking findings

        Raises:
            ValidationError: If at least one finding has error severity
        """
        findings = self.validate()
        has_errors = any(f.severity == Severity.ERROR for f in findings)
        for finding in findings:
            if has_errors or finding.severity == Severity.WARNING:
                self.ctx.logger.warning("%s", finding)
            else:
                self.ctx.logger.info("%s", finding)
        if has_errors:
            raise ValidationError(findings)
        return findings

    def _check_messages(self) -> list[Finding]:
        findings: list[Finding] = []
        seen_names: set[str] = set()

        for composite in self.ctx.composites:
            if not is_message_candidate(composite):
                continue
            for name in message_names(composite):
                if name in seen_names:
                    findings.append(
                        Finding(Severity.ERROR, f"struct {composite.name}", f"duplicate message name: {name}")
                    )
                seen_names.add(name)
                findings.extend(self._check_message_fields(composite, name))
        return findings

    def _check_message_fields(self, composite: CompositeType, message_name: str) -> list[Finding]:
        plan = self.resolver.plan(composite, message_name)
        reserved = set(plan.reserved_numbers)
        owners: dict[int, str] = {}
        findings: list[Finding] = []

        for unsupported in plan.unsupported:
            findings.append(
                Finding(
                    Severity.WARNING,
                    f"message {message_name}, field {unsupported.name}",
                    f"map key type '{unsupported.type.key}' is not a valid protobuf map key; field skipped",
                )
            )

        for resolved in plan.fields:
            location = f"message {message_name}, field {resolved.field.name}"
            number = resolved.number
            if number in owners:
                findings.append(
                    Finding(
                        Severity.ERROR,
                        location,
                        f"duplicate field number {number} (also used by field '{owners[number]}')",
                    )
                )
            else:
                owners[number] = resolved.field.name
            if number in reserved:
                findings.append(Finding(Severity.ERROR, location, f"field number {number} is reserved"))
            if number < MIN_FIELD_NUMBER or number > MAX_FIELD_NUMBER:
                findings.append(
                    Finding(
                        Severity.ERROR,
                        location,
                        f"field number {number} is out of valid range ({MIN_FIELD_NUMBER}-{MAX_FIELD_NUMBER})",
                    )
                )
            if number in RESERVED_BAND:
                findings.append(
                    Finding(Severity.ERROR, location, f"field number {number} is in reserved range 19000-19999")
                )

        if not plan.fields:
            findings.append(Finding(Severity.INFO, f"message {message_name}", "message has no fields"))
        return findings

    def _check_enums(self) -> list[Finding]:
        findings: list[Finding] = []
        seen_names: set[str] = set()

        for enum in self.ctx.enums:
            if is_type_skipped(enum.annotations):
                continue
            name = enum_name(enum)
            if name in seen_names:
                findings.append(Finding(Severity.ERROR, f"enum {enum.name}", f"duplicate enum name: {name}"))
            seen_names.add(name)

            severity = Severity.WARNING if enum_allows_alias(enum) else Severity.ERROR
            owners: dict[int, str] = {}
            for value in enum.values:
                number = enum_value_number(value)
                if number in owners:
                    findings.append(
                        Finding(
                            severity,
                            f"enum {name}, value {enum_value_name(value)}",
                            f"duplicate enum value number {number} (also used by value '{owners[number]}')",
                        )
                    )
                else:
                    owners[number] = enum_value_name(value)
        return findings

    def _check_services(self) -> list[Finding]:
        findings: list[Finding] = []
        seen_names: set[str] = set()
        for service in resolve_services(self.ctx, self.resolver.mapper):
            if service.name in seen_names:
                kind = "struct" if service.from_composite else "interface"
                findings.append(
                    Finding(Severity.ERROR, f"{kind} {service.source_name}", f"duplicate service name: {service.name}")
                )
            seen_names.add(service.name)
        return findings
