"""
specmerge.commands.validate - Validate a change's delta specs.

Parses every delta document of the change and reports plan and
delta-block violations. Nothing is merged or written.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from specmerge.archive import find_spec_updates, read_spec_text
from specmerge.config import get_config_value
from specmerge.commands.common import load_configuration, project_root
from specmerge.core.delta import parse_delta_spec
from specmerge.core.patterns import HeaderVocabulary
from specmerge.errors import ParseError
from specmerge.validation.content import ContentRulesConfig, validate_delta_blocks
from specmerge.validation.plan import find_plan_issues
from specmerge.validation.violations import ValidationReport, Violation


def run(args: argparse.Namespace) -> int:
    """
    Run the validate command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for validation errors)
    """
    loaded = load_configuration(args)
    if loaded is None:
        return 1
    config, config_path = loaded
    root = project_root(args, config, config_path)

    change_dir = root / get_config_value(config, "directories.changes", "changes") / args.change
    if not change_dir.is_dir():
        print(f"Error: Change '{args.change}' not found", file=sys.stderr)
        return 1
    specs_dir = root / get_config_value(config, "directories.specs", "specs")

    reports = validate_change(
        change_dir,
        specs_dir,
        config,
        strict=args.strict or get_config_value(config, "validation.strict", False),
    )

    if args.json:
        print(json.dumps([r.to_dict() for r in reports], indent=2, ensure_ascii=False))
        return 0 if all(r.valid for r in reports) else 1

    if not reports:
        print(f"No delta specs found in change '{args.change}'.", file=sys.stderr)
        return 1

    for report in reports:
        if report.violations and not args.quiet:
            print(f"{report.name}:")
            for violation in report.violations:
                print(f"  {violation}")
            print()

    invalid = [r for r in reports if not r.valid]
    if not args.quiet:
        print("─" * 60)
        print(f"✓ {len(reports) - len(invalid)}/{len(reports)} capabilities valid")
        if invalid:
            print(f"❌ {', '.join(r.name for r in invalid)}")

    return 1 if invalid else 0


def validate_change(
    change_dir: Path,
    specs_dir: Path,
    config: Dict[str, Any],
    strict: bool = False,
) -> List[ValidationReport]:
    """Build one report per capability delta in *change_dir*."""
    vocabulary = HeaderVocabulary.from_config(config.get("keywords", {}))
    rules = ContentRulesConfig.from_dict(config.get("validation", {}))
    spec_filename = get_config_value(config, "archive.spec_filename", "spec.md")

    reports: List[ValidationReport] = []
    for update in find_spec_updates(change_dir, specs_dir, spec_filename):
        report = ValidationReport(name=update.capability, strict=strict)
        try:
            source_text = read_spec_text(update.source, update.capability)
            plan = parse_delta_spec(source_text, vocabulary)
        except ParseError as e:
            report.violations.append(
                Violation(
                    rule="parse.error",
                    message=e.message,
                    section=e.section,
                    requirement=e.requirement,
                )
            )
        else:
            report.violations.extend(find_plan_issues(plan, target_exists=update.exists))
            report.violations.extend(validate_delta_blocks(plan, vocabulary, rules))
        reports.append(report)
    return reports
