"""
specmerge.errors - Error taxonomy for the merge engine.

- ParseError: a section or header is present but cannot be parsed
- ValidationError: a well-formed plan or document violates an invariant
- WriteError: a merged spec cannot be written during commit
- ConflictError: batch-level abort across several capabilities
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from specmerge.validation.violations import Violation


class SpecMergeError(Exception):
    """Base class for every error raised by specmerge.

    Attributes:
        capability: Capability the error belongs to, once known
        section: Delta section involved (e.g. "MODIFIED")
        requirement: Requirement name involved
    """

    def __init__(
        self,
        message: str,
        capability: Optional[str] = None,
        section: Optional[str] = None,
        requirement: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.capability = capability
        self.section = section
        self.requirement = requirement

    def describe(self) -> str:
        """Return the message prefixed with the capability name when known."""
        if self.capability and not self.message.startswith(f"{self.capability}:"):
            return f"{self.capability}: {self.message}"
        return self.message

    def __str__(self) -> str:
        return self.describe()


class ParseError(SpecMergeError):
    """Malformed section or header structure."""


class ValidationError(SpecMergeError):
    """A plan or document violates an invariant.

    Carries every violation found so callers can report them all.
    """

    def __init__(
        self,
        message: str,
        violations: Optional[list["Violation"]] = None,
        capability: Optional[str] = None,
        section: Optional[str] = None,
        requirement: Optional[str] = None,
    ):
        super().__init__(message, capability, section, requirement)
        self.violations = list(violations or [])

    @classmethod
    def from_violations(
        cls, violations: list["Violation"], capability: Optional[str] = None
    ) -> "ValidationError":
        first = violations[0]
        if len(violations) == 1:
            message = first.message
        else:
            message = "\n".join(v.message for v in violations)
        return cls(
            message,
            violations=violations,
            capability=capability,
            section=first.section,
            requirement=first.requirement,
        )


class WriteError(SpecMergeError):
    """A merged spec could not be written during commit."""


class ConflictError(SpecMergeError):
    """A batch was aborted because at least one capability failed.

    Attributes:
        failures: Capability name -> the error that failed it
        invalidated: Capabilities that were valid on their own but are
            not written because another capability failed
    """

    def __init__(
        self,
        failures: dict[str, SpecMergeError],
        invalidated: Optional[list[str]] = None,
    ):
        self.failures = dict(failures)
        self.invalidated = list(invalidated or [])
        lines = [err.describe() for err in self.failures.values()]
        if self.invalidated:
            lines.append(
                "Not applied because of the failures above: " + ", ".join(self.invalidated)
            )
        super().__init__("\n".join(lines), capability=next(iter(self.failures), None))

    def describe(self) -> str:
        # Each line already names its capability.
        return self.message
