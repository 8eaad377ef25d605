"""Diagnostics and pipeline errors for Inkwell.

Per-document problems are captured as data (Diagnostic records attached to a
document or to the run) so that one malformed file never aborts a batch.
Configuration-level problems are raised as PipelineError subclasses and halt
the run before a site model is produced.

Key classes:
- Severity: info, warning, error, fatal.
- DiagnosticCode: stable identifiers for every reported problem.
- Diagnostic: a single report entry.
- PipelineError: base class for fatal errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class DiagnosticCode(str, Enum):
    MALFORMED_FRONT_MATTER = "MalformedFrontMatter"
    INVALID_ENCODING = "InvalidEncoding"
    DATE_AMBIGUOUS = "DateAmbiguous"
    DUPLICATE_PERMALINK = "DuplicatePermalink"
    MISSING_LAYOUT = "MissingLayout"
    LAYOUT_CYCLE = "LayoutCycle"
    UNREADABLE_SOURCE = "UnreadableSource"
    UNREADABLE_REGISTRY = "UnreadableRegistry"
    INVALID_CONFIG = "InvalidConfig"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Diagnostic:
    """A single entry of the diagnostics report.

    Attributes:
        severity: How serious the problem is.
        code: Stable problem identifier.
        message: Human-readable description.
        document_path: Source file the problem belongs to, or None for run-level entries.
    """

    severity: Severity
    code: DiagnosticCode
    message: str
    document_path: Path | None = None

    @classmethod
    def warning(
        cls, code: DiagnosticCode, message: str, path: Path | None = None
    ) -> Diagnostic:
        return cls(Severity.WARNING, code, message, path)

    @classmethod
    def error(
        cls, code: DiagnosticCode, message: str, path: Path | None = None
    ) -> Diagnostic:
        return cls(Severity.ERROR, code, message, path)

    @classmethod
    def info(
        cls, code: DiagnosticCode, message: str, path: Path | None = None
    ) -> Diagnostic:
        return cls(Severity.INFO, code, message, path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "document_path": (
                self.document_path.as_posix() if self.document_path else None
            ),
            "code": self.code.value,
            "message": self.message,
        }

    def __str__(self) -> str:
        where = f"{self.document_path.as_posix()}: " if self.document_path else ""
        return f"[{self.severity.value}] {where}{self.code.value}: {self.message}"


class PipelineError(Exception):
    """Fatal error that aborts a pipeline run.

    Attributes:
        code: Diagnostic code describing the failure.
        message: Human-readable error message.
        source_path: File that triggered the error, when known.
    """

    code = DiagnosticCode.INVALID_CONFIG

    def __init__(self, message: str, source_path: Path | None = None):
        self.message = message
        self.source_path = source_path
        super().__init__(f"{source_path}: {message}" if source_path else message)

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(Severity.FATAL, self.code, self.message, self.source_path)


class ConfigError(PipelineError):
    """Invalid site configuration."""

    code = DiagnosticCode.INVALID_CONFIG


class LayoutRegistryError(PipelineError):
    """The template registry could not be read."""

    code = DiagnosticCode.UNREADABLE_REGISTRY


class LayoutCycleError(PipelineError):
    """Layout inheritance loops back on itself.

    Attributes:
        chain: Layout names along the cycle, ending with the repeated name.
    """

    code = DiagnosticCode.LAYOUT_CYCLE

    def __init__(self, chain: list[str]):
        self.chain = tuple(chain)
        super().__init__(f"Layout inheritance cycle: {' -> '.join(self.chain)}")
