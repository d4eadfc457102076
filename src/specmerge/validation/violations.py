"""
specmerge.validation.violations - Violation records shared by the validators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Severity(Enum):
    """Severity level for violations."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Violation:
    """
    A rule violation found while validating a plan or a spec document.

    Attributes:
        rule: Name of the violated rule (e.g., "plan.duplicate_added")
        message: Human-readable description of the violation
        severity: Severity level
        section: Delta section or document part involved
        requirement: Requirement name involved, if any
        details: Additional context about the violation
    """

    rule: str
    message: str
    severity: Severity = Severity.ERROR
    section: Optional[str] = None
    requirement: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule": self.rule,
            "level": self.severity.value.upper(),
            "message": self.message,
        }
        if self.section:
            data["section"] = self.section
        if self.requirement:
            data["requirement"] = self.requirement
        if self.details:
            data["details"] = self.details
        return data

    def __str__(self) -> str:
        prefix = {
            Severity.ERROR: "✗ ERROR",
            Severity.WARNING: "⚠ WARNING",
            Severity.INFO: "ℹ INFO",
        }.get(self.severity, "?")
        return f"{prefix} [{self.rule}] {self.message}"


@dataclass
class ValidationReport:
    """
    Outcome of validating one item (a change's deltas or a spec document).

    Attributes:
        name: Capability or change the report belongs to
        violations: Every violation found, in discovery order
        strict: When True, warnings also make the report invalid
    """

    name: str
    violations: list[Violation] = field(default_factory=list)
    strict: bool = False

    @property
    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == Severity.WARNING]

    @property
    def infos(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == Severity.INFO]

    @property
    def valid(self) -> bool:
        if self.strict:
            return not self.errors and not self.warnings
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "valid": self.valid,
            "issues": [v.to_dict() for v in self.violations],
            "summary": {
                "errors": len(self.errors),
                "warnings": len(self.warnings),
                "info": len(self.infos),
            },
        }
