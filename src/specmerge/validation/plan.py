"""Plan validation - Check a DeltaPlan for internal consistency.

Pure checks, no I/O. Runs before any document is read or written:
- Duplicates within ADDED, MODIFIED, REMOVED, or RENAMED (FROM / TO)
- Cross-section conflicts (MODIFIED+REMOVED, MODIFIED+ADDED, ADDED+REMOVED)
- Rename interactions (MODIFIED must use the new name, ADDED must not
  collide with a rename target, REMOVED must not touch a renamed name)
- New capabilities accept ADDED only
- A plan with zero operations is rejected unless the caller opts out
"""

from __future__ import annotations

from typing import Optional

from specmerge.core.models import DeltaPlan
from specmerge.core.patterns import normalize_requirement_name
from specmerge.errors import ValidationError
from specmerge.validation.violations import Violation


def _first_seen(names: list[str], keys: list[str]) -> dict[str, str]:
    """Map each key to the first display name that produced it."""
    seen: dict[str, str] = {}
    for name, key in zip(names, keys):
        seen.setdefault(key, name)
    return seen


def _duplicates(
    names: list[str], keys: list[str], rule: str, section: str, label: str
) -> list[Violation]:
    violations: list[Violation] = []
    counted: set[str] = set()
    reported: set[str] = set()
    for name, key in zip(names, keys):
        if key in counted and key not in reported:
            reported.add(key)
            violations.append(
                Violation(
                    rule=rule,
                    message=f'Duplicate requirement in {label}: "{name}"',
                    section=section,
                    requirement=name,
                )
            )
        counted.add(key)
    return violations


def find_plan_issues(
    plan: DeltaPlan, target_exists: bool = True, require_operations: bool = True
) -> list[Violation]:
    """Collect every structural violation in *plan*.

    Args:
        plan: Parsed delta plan
        target_exists: Whether the capability's spec already exists
        require_operations: Report a plan with zero operations

    Returns:
        List of violations (empty if the plan is consistent)
    """
    violations: list[Violation] = []

    total = plan.total_operations()
    if total == 0:
        if not require_operations:
            return []
        sections = plan.section_presence.names()
        if sections:
            listed = ", ".join(f"## {s} Requirements" for s in sections)
            message = (
                f"Delta sections {listed} were found, but no requirement entries were "
                'parsed. Each section needs at least one "### Requirement:" block '
                "(REMOVED may use a bullet list)."
            )
            rule = "plan.empty_sections"
        else:
            message = (
                'No delta sections found. Add a header such as "## ADDED Requirements" '
                "or move non-delta notes outside specs/."
            )
            rule = "plan.no_deltas"
        return [Violation(rule=rule, message=message)]

    added_names = [b.name for b in plan.added]
    added_keys = [b.key for b in plan.added]
    modified_names = [b.name for b in plan.modified]
    modified_keys = [b.key for b in plan.modified]
    removed_keys = [normalize_requirement_name(n) for n in plan.removed]
    from_names = [r.from_name for r in plan.renamed]
    from_keys = [r.from_key for r in plan.renamed]
    to_names = [r.to_name for r in plan.renamed]
    to_keys = [r.to_key for r in plan.renamed]

    violations += _duplicates(
        added_names, added_keys, "plan.duplicate_added", "ADDED", "ADDED Requirements"
    )
    violations += _duplicates(
        modified_names,
        modified_keys,
        "plan.duplicate_modified",
        "MODIFIED",
        "MODIFIED Requirements",
    )
    violations += _duplicates(
        plan.removed, removed_keys, "plan.duplicate_removed", "REMOVED", "REMOVED Requirements"
    )
    violations += _duplicates(
        from_names, from_keys, "plan.duplicate_rename_from", "RENAMED", "RENAMED FROM"
    )
    violations += _duplicates(
        to_names, to_keys, "plan.duplicate_rename_to", "RENAMED", "RENAMED TO"
    )

    added = _first_seen(added_names, added_keys)
    modified = _first_seen(modified_names, modified_keys)
    removed = _first_seen(plan.removed, removed_keys)

    for key, name in modified.items():
        if key in removed:
            violations.append(
                Violation(
                    rule="plan.conflict_modified_removed",
                    message=f'Requirement present in both MODIFIED and REMOVED: "{name}"',
                    section="MODIFIED",
                    requirement=name,
                )
            )
        if key in added:
            violations.append(
                Violation(
                    rule="plan.conflict_modified_added",
                    message=f'Requirement present in both MODIFIED and ADDED: "{name}"',
                    section="MODIFIED",
                    requirement=name,
                )
            )
    for key, name in added.items():
        if key in removed:
            violations.append(
                Violation(
                    rule="plan.conflict_added_removed",
                    message=f'Requirement present in both ADDED and REMOVED: "{name}"',
                    section="ADDED",
                    requirement=name,
                )
            )

    for pair in plan.renamed:
        if pair.from_key in modified:
            violations.append(
                Violation(
                    rule="plan.modified_uses_old_name",
                    message=(
                        "MODIFIED must reference the NEW header when a rename exists: "
                        f'use "{pair.to_name}" instead of "{pair.from_name}"'
                    ),
                    section="MODIFIED",
                    requirement=pair.from_name,
                )
            )
        if pair.to_key in added:
            violations.append(
                Violation(
                    rule="plan.rename_target_added",
                    message=f'RENAMED TO collides with an ADDED requirement: "{pair.to_name}"',
                    section="RENAMED",
                    requirement=pair.to_name,
                )
            )
        for key, name in ((pair.from_key, pair.from_name), (pair.to_key, pair.to_name)):
            if key in removed:
                violations.append(
                    Violation(
                        rule="plan.rename_removed",
                        message=f'Requirement present in both RENAMED and REMOVED: "{name}"',
                        section="RENAMED",
                        requirement=name,
                    )
                )

    if not target_exists:
        forbidden = [
            kind
            for kind, entries in (
                ("MODIFIED", plan.modified),
                ("REMOVED", plan.removed),
                ("RENAMED", plan.renamed),
            )
            if entries
        ]
        if forbidden:
            violations.append(
                Violation(
                    rule="plan.new_spec_non_added",
                    message=(
                        "target spec does not exist; only ADDED requirements are allowed "
                        "for new specs. MODIFIED, REMOVED and RENAMED operations require "
                        f"an existing spec (found: {', '.join(forbidden)})."
                    ),
                    section=forbidden[0],
                )
            )

    return violations


def validate_plan(
    plan: DeltaPlan,
    target_exists: bool = True,
    capability: Optional[str] = None,
    require_operations: bool = True,
) -> None:
    """Raise if *plan* has any structural violation.

    Raises:
        ValidationError: Carrying every violation found
    """
    violations = find_plan_issues(
        plan, target_exists=target_exists, require_operations=require_operations
    )
    if violations:
        raise ValidationError.from_violations(violations, capability=capability)
