"""Content validation - Validate requirement blocks and rebuilt specs.

Rules applied to every requirement block (ADDED / MODIFIED deltas, and
every block of a rebuilt spec):
- requirement text must exist (first non-blank, non-metadata body line)
- requirement text must contain a normative keyword (SHALL, MUST, ...)
- at least one scenario (``####`` header) must be present

Rebuilt specs additionally need a Purpose section and a Requirements
section with at least one requirement. A brief Purpose and an overly
long requirement text are reported as warnings/info only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from specmerge.core.blocks import parse_spec_document
from specmerge.core.models import DeltaPlan, RequirementBlock
from specmerge.core.patterns import DEFAULT_VOCABULARY, HeaderVocabulary
from specmerge.errors import ParseError
from specmerge.validation.violations import Severity, ValidationReport, Violation

PURPOSE_HEADER_RE = re.compile(r"^##\s+(?:Purpose|目的)\s*$", re.MULTILINE)
NEXT_SECTION_RE = re.compile(r"^#{1,2}\s", re.MULTILINE)

GUIDE_SCENARIO_FORMAT = (
    "Scenarios must use level-4 headers. Convert bullet lists to:\n"
    "#### Scenario: Short name\n- **WHEN** ...\n- **THEN** ...\n- **AND** ..."
)
GUIDE_MISSING_SPEC_SECTIONS = (
    'Expected headers: "## Purpose" and "## Requirements". Example:\n'
    "## Purpose\n[brief purpose]\n\n## Requirements\n"
    "### Requirement: Clear requirement statement\nUsers SHALL ...\n\n"
    "#### Scenario: Descriptive name\n- **WHEN** ...\n- **THEN** ..."
)


@dataclass
class ContentRulesConfig:
    """Thresholds for content validation.

    Attributes:
        strict: Treat warnings as failures
        min_purpose_length: Purpose text shorter than this is a warning
        max_requirement_text_length: Longer requirement text is reported as info
        min_why_length: Shortest acceptable proposal Why section
        max_why_length: Longest acceptable proposal Why section
    """

    strict: bool = False
    min_purpose_length: int = 50
    max_requirement_text_length: int = 500
    min_why_length: int = 50
    max_why_length: int = 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentRulesConfig":
        """Create ContentRulesConfig from the [validation] config section."""
        return cls(
            strict=data.get("strict", False),
            min_purpose_length=data.get("min_purpose_length", 50),
            max_requirement_text_length=data.get("max_requirement_text_length", 500),
            min_why_length=data.get("min_why_length", 50),
            max_why_length=data.get("max_why_length", 1000),
        )


def validate_requirement_block(
    block: RequirementBlock,
    label: str = "Requirement",
    vocabulary: Optional[HeaderVocabulary] = None,
    rules: Optional[ContentRulesConfig] = None,
) -> list[Violation]:
    """Validate one requirement block.

    Args:
        block: The block to check
        label: Prefix used in messages (e.g. "ADDED", "MODIFIED")
        vocabulary: Header vocabulary providing the normative keywords
        rules: Thresholds; only the text-length limit is used here

    Returns:
        List of Violation objects (empty if valid)
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    rules = rules or ContentRulesConfig()
    violations: list[Violation] = []
    section = label if label in ("ADDED", "MODIFIED") else None

    text = block.requirement_text
    if not text:
        violations.append(
            Violation(
                rule="content.missing_text",
                message=f'{label} "{block.name}" is missing requirement text',
                section=section,
                requirement=block.name,
            )
        )
    elif not vocab.contains_normative(text):
        keywords = ", ".join(vocab.normative)
        violations.append(
            Violation(
                rule="content.missing_normative",
                message=f'{label} "{block.name}" must contain one of: {keywords}',
                section=section,
                requirement=block.name,
            )
        )
    elif len(text) > rules.max_requirement_text_length:
        violations.append(
            Violation(
                rule="content.text_too_long",
                message=(
                    f'{label} "{block.name}" text is too long '
                    f"(>{rules.max_requirement_text_length} characters). Consider splitting it."
                ),
                severity=Severity.INFO,
                section=section,
                requirement=block.name,
            )
        )

    if block.scenario_count < 1:
        violations.append(
            Violation(
                rule="content.missing_scenario",
                message=f'{label} "{block.name}" must include at least one scenario. '
                + GUIDE_SCENARIO_FORMAT,
                section=section,
                requirement=block.name,
            )
        )

    return violations


def validate_delta_blocks(
    plan: DeltaPlan,
    vocabulary: Optional[HeaderVocabulary] = None,
    rules: Optional[ContentRulesConfig] = None,
) -> list[Violation]:
    """Check the block contract for every ADDED and MODIFIED entry of *plan*."""
    violations: list[Violation] = []
    for block in plan.added:
        violations.extend(validate_requirement_block(block, "ADDED", vocabulary, rules))
    for block in plan.modified:
        violations.extend(validate_requirement_block(block, "MODIFIED", vocabulary, rules))
    return violations


def section_text(content: str, header_re: re.Pattern) -> Optional[str]:
    """Return the stripped body under the header *header_re* matches, or None."""
    match = header_re.search(content)
    if not match:
        return None
    rest = content[match.end() :]
    next_match = NEXT_SECTION_RE.search(rest)
    body = rest[: next_match.start()] if next_match else rest
    return body.strip()


def validate_spec_content(
    name: str,
    content: str,
    vocabulary: Optional[HeaderVocabulary] = None,
    rules: Optional[ContentRulesConfig] = None,
) -> ValidationReport:
    """Validate a full spec document held in memory.

    Used on rebuilt documents before anything is written to disk.

    Args:
        name: Capability name, used in the report
        content: Markdown text of the spec
        vocabulary: Header vocabulary
        rules: Content thresholds

    Returns:
        ValidationReport for the document
    """
    rules = rules or ContentRulesConfig()
    report = ValidationReport(name=name, strict=rules.strict)

    purpose = section_text(content, PURPOSE_HEADER_RE)
    if purpose is None:
        report.violations.append(
            Violation(
                rule="content.missing_purpose",
                message=f"{name}: spec must have a Purpose section. {GUIDE_MISSING_SPEC_SECTIONS}",
                section="Purpose",
            )
        )
    elif len(purpose) < rules.min_purpose_length:
        report.violations.append(
            Violation(
                rule="content.purpose_too_brief",
                message=(
                    f"{name}: Purpose section is too brief "
                    f"(less than {rules.min_purpose_length} characters)"
                ),
                severity=Severity.WARNING,
                section="Purpose",
            )
        )

    try:
        doc = parse_spec_document(content, vocabulary)
    except ParseError as e:
        report.violations.append(
            Violation(
                rule="content.missing_requirements",
                message=f"{name}: {e.message}. {GUIDE_MISSING_SPEC_SECTIONS}",
                section="Requirements",
            )
        )
        return report

    if not doc.body_blocks:
        report.violations.append(
            Violation(
                rule="content.no_requirements",
                message=f"{name}: spec must have at least one requirement",
                section="Requirements",
            )
        )

    for block in doc.body_blocks:
        report.violations.extend(
            validate_requirement_block(block, "Requirement", vocabulary, rules)
        )

    return report
