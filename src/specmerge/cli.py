"""
specmerge.cli - Command-line interface.

Main entry point for the specmerge CLI tool.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from specmerge import __version__
from specmerge.commands import archive_cmd, config_cmd, plan_cmd, validate


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="specmerge",
        description="Apply requirement deltas to capability specs and archive changes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  specmerge validate add-2fa          # Check a change's deltas without merging
  specmerge archive add-2fa           # Apply deltas and archive the change
  specmerge archive add-2fa --dry-run # Show what would change
  specmerge plan changes/add-2fa/specs/auth/spec.md

Layout (relative to project.root, default "openspec"):
  specs/<capability>/spec.md                  # Main specs
  changes/<change>/specs/<capability>/spec.md # Delta documents
  changes/archive/YYYY-MM-DD-<change>/        # Archived changes

For detailed command help: specmerge <command> --help
        """,
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"specmerge {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Override project root (directory holding specs/ and changes/)",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # archive command
    archive_parser = subparsers.add_parser(
        "archive",
        help="Apply a change's spec deltas and move it to the archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
All capabilities touched by the change are merged and validated before
anything is written. If any capability fails, no spec file is modified
and the change stays where it is.
""",
    )
    archive_parser.add_argument("change", help="Name of the change directory")
    archive_parser.add_argument(
        "--skip-specs",
        action="store_true",
        help="Archive without applying spec deltas",
    )
    archive_parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip content validation of rebuilt specs (plan checks still run)",
    )
    archive_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing or moving anything",
    )
    archive_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Archive even if tasks.md has unchecked tasks",
    )
    archive_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output result as JSON",
    )

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a change's delta specs without merging",
    )
    validate_parser.add_argument("change", help="Name of the change directory")
    validate_parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as failures",
    )
    validate_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output reports as JSON",
    )

    # plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the parsed operations of one delta document",
    )
    plan_parser.add_argument("delta_file", type=Path, help="Path to a delta spec.md")
    plan_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output plan as JSON",
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Inspect configuration",
    )
    config_subparsers = config_parser.add_subparsers(dest="config_action")
    config_show = config_subparsers.add_parser("show", help="Show effective configuration")
    config_show.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    config_subparsers.add_parser("path", help="Show config file location")

    # version command
    subparsers.add_parser("version", help="Show version")

    return parser


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the specmerge logger for console output."""
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logger = logging.getLogger("specmerge")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install specmerge[completion]
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.verbose, args.quiet)

    try:
        if args.command == "archive":
            return archive_cmd.run(args)
        elif args.command == "validate":
            return validate.run(args)
        elif args.command == "plan":
            return plan_cmd.run(args)
        elif args.command == "config":
            return config_cmd.run(args)
        elif args.command == "version":
            return version_command(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def version_command(args: argparse.Namespace) -> int:
    """Handle version command."""
    print(f"specmerge {__version__}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
