"""
specmerge.validation - Plan and content validators
"""

from specmerge.validation.violations import Severity, ValidationReport, Violation
from specmerge.validation.plan import find_plan_issues, validate_plan
from specmerge.validation.content import (
    ContentRulesConfig,
    validate_delta_blocks,
    validate_requirement_block,
    validate_spec_content,
)
from specmerge.validation.proposal import validate_proposal

__all__ = [
    "ContentRulesConfig",
    "Severity",
    "ValidationReport",
    "Violation",
    "find_plan_issues",
    "validate_delta_blocks",
    "validate_plan",
    "validate_proposal",
    "validate_requirement_block",
    "validate_spec_content",
]
