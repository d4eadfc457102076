"""Proposal validation - Check a change's proposal.md before archiving.

A proposal needs a Why section of reasonable length and a non-empty
What Changes section. Findings are advisory: every violation is a
warning and never blocks an archive.
"""

from __future__ import annotations

import re
from typing import Optional

from specmerge.validation.content import ContentRulesConfig, section_text
from specmerge.validation.violations import Severity, ValidationReport, Violation

WHY_HEADER_RE = re.compile(r"^##\s+(?:Why|为什么)\s*$", re.MULTILINE)
WHAT_CHANGES_HEADER_RE = re.compile(r"^##\s+(?:What\s+Changes|变更内容)\s*$", re.MULTILINE)

GUIDE_MISSING_CHANGE_SECTIONS = (
    'Expected headers: "## Why" and "## What Changes". '
    "Record spec deltas under specs/ using delta headers."
)


def _warning(rule: str, message: str, section: str) -> Violation:
    return Violation(rule=rule, message=message, severity=Severity.WARNING, section=section)


def validate_proposal(
    name: str,
    content: str,
    rules: Optional[ContentRulesConfig] = None,
) -> ValidationReport:
    """Validate the text of a change proposal.

    Args:
        name: Change name, used in the report
        content: Markdown text of proposal.md
        rules: Thresholds for the Why section length

    Returns:
        ValidationReport whose violations are all warnings
    """
    rules = rules or ContentRulesConfig()
    report = ValidationReport(name=name)

    why = section_text(content, WHY_HEADER_RE)
    if why is None:
        report.violations.append(
            _warning(
                "proposal.missing_why",
                f"Change must have a Why section. {GUIDE_MISSING_CHANGE_SECTIONS}",
                "Why",
            )
        )
    elif len(why) < rules.min_why_length:
        report.violations.append(
            _warning(
                "proposal.why_too_short",
                f"Why section must be at least {rules.min_why_length} characters",
                "Why",
            )
        )
    elif len(why) > rules.max_why_length:
        report.violations.append(
            _warning(
                "proposal.why_too_long",
                f"Why section should not exceed {rules.max_why_length} characters",
                "Why",
            )
        )

    what = section_text(content, WHAT_CHANGES_HEADER_RE)
    if what is None:
        report.violations.append(
            _warning(
                "proposal.missing_what_changes",
                f"Change must have a What Changes section. {GUIDE_MISSING_CHANGE_SECTIONS}",
                "What Changes",
            )
        )
    elif not what:
        report.violations.append(
            _warning(
                "proposal.empty_what_changes",
                "What Changes section cannot be empty",
                "What Changes",
            )
        )

    return report
