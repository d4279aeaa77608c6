"""
Error taxonomy for schema generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Severity of a validation finding. Only ERROR blocks generation."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Finding:
    """A single validation finding.

    Attributes:
        severity: How serious the finding is
        location: Where it was found, e.g. ``message User, field Email``
        message: Human-readable description
    """

    severity: Severity
    location: str
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.location}: {self.message}"


class ProtoSchemaGenError(Exception):
    """Base class for all errors raised by the generator."""

    pass


class ConfigError(ProtoSchemaGenError):
    """Raised when a configuration or IR document cannot be loaded.

    This can happen when:
    - The document is not valid JSON or YAML
    - A required key is missing
    - A type expression cannot be parsed
    - An enum-valued option has an unknown value
    """

    pass


class ValidationError(ProtoSchemaGenError):
    """Raised when pre-generation validation finds error-severity findings.

    All findings (including warnings) are kept on the exception so callers can
    report them together.
    """

    def __init__(self, findings: list[Finding]):
        self.findings = list(findings)
        self.errors = [f for f in self.findings if f.severity == Severity.ERROR]
        super().__init__(f"validation failed with {len(self.errors)} error(s)")


class GenerationError(ProtoSchemaGenError):
    """Raised when a generation unit cannot be produced.

    This can happen when:
    - A template is missing or fails to render
    - An output format is unknown or fails
    - A multi-file group fails (the whole run is aborted)
    """

    pass


class ExternalToolError(ProtoSchemaGenError):
    """Raised when the external protocol compiler fails.

    The captured output is kept so it can be shown to the user; the call is
    never retried.
    """

    def __init__(self, message: str, returncode: int | None = None, output: str = ""):
        self.returncode = returncode
        self.output = output
        detail = f"{message} (exit code {returncode})" if returncode is not None else message
        if output:
            detail = f"{detail}\n{output.rstrip()}"
        super().__init__(detail)
