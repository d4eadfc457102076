"""
specmerge.commands.archive_cmd - Archive a change.

Applies the change's delta specs (all or nothing) and moves the change
directory into the archive.
"""

import argparse
import json
import sys

from specmerge.archive import ArchiveResult, archive_change
from specmerge.commands.common import load_configuration, project_root


def run(args: argparse.Namespace) -> int:
    """
    Run the archive command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    loaded = load_configuration(args)
    if loaded is None:
        return 1
    config, config_path = loaded
    root = project_root(args, config, config_path)

    result = archive_change(
        root,
        args.change,
        config=config,
        skip_specs=args.skip_specs,
        validate=not args.no_validate,
        allow_incomplete=args.yes,
        dry_run=args.dry_run,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 0 if result.success else 1

    if not args.quiet:
        print_proposal_warnings(result)

    if not result.success:
        print_spec_outcomes(result, quiet=args.quiet)
        print(result.message, file=sys.stderr)
        return 1

    if not args.quiet:
        print(f"Task status: {result.tasks}")
        print_spec_outcomes(result)
        if result.dry_run:
            print("(dry run - no files were changed)")
        print(result.message)
    return 0


def print_proposal_warnings(result: ArchiveResult) -> None:
    """Print advisory proposal.md findings; they never block the archive."""
    if result.proposal is None or not result.proposal.violations:
        return
    print("Proposal warnings in proposal.md (non-blocking):")
    for violation in result.proposal.violations:
        print(f"  {violation}")


def print_spec_outcomes(result: ArchiveResult, quiet: bool = False) -> None:
    """Print one line per capability plus the batch totals."""
    if result.specs is None:
        if not quiet:
            print("Skipping spec updates (--skip-specs).")
        return
    if not result.specs.outcomes:
        if not quiet:
            print("No spec deltas found.")
        return

    for outcome in result.specs.outcomes:
        if outcome.error is not None:
            print(f"  ✗ {outcome.capability}", file=sys.stderr)
            continue
        if quiet:
            continue
        counts = outcome.prepared.counts.summary() if outcome.prepared else ""
        print(f"  ✓ {outcome.capability} ({outcome.update.status}): {counts}")
        if outcome.report is not None:
            for violation in outcome.report.warnings + outcome.report.infos:
                print(f"      {violation}")

    if result.specs.success and not quiet:
        print(f"Totals: {result.specs.totals.summary()}")
