"""
specmerge.commands.plan_cmd - Show the parsed operations of a delta document.
"""

import argparse
import json
import sys

from specmerge.commands.common import load_configuration
from specmerge.core.delta import has_delta_sections, parse_delta_spec
from specmerge.core.patterns import HeaderVocabulary


def run(args: argparse.Namespace) -> int:
    """Run the plan command."""
    loaded = load_configuration(args)
    if loaded is None:
        return 1
    config, _ = loaded

    if not args.delta_file.is_file():
        print(f"Error: File not found: {args.delta_file}", file=sys.stderr)
        return 1

    vocabulary = HeaderVocabulary.from_config(config.get("keywords", {}))
    content = args.delta_file.read_text(encoding="utf-8")
    if not has_delta_sections(content, vocabulary):
        print(f"No delta sections found in {args.delta_file}", file=sys.stderr)
        return 1
    plan = parse_delta_spec(content, vocabulary)

    if args.json:
        print(json.dumps(plan.to_dict(), indent=2, ensure_ascii=False))
        return 0

    sections = plan.section_presence.names()
    print(f"Sections: {', '.join(sections) if sections else '(none)'}")
    for pair in plan.renamed:
        print(f"  → {pair.from_name} -> {pair.to_name}")
    for name in plan.removed:
        print(f"  - {name}")
    for block in plan.modified:
        print(f"  ~ {block.name}")
    for block in plan.added:
        print(f"  + {block.name}")
    print(f"{plan.total_operations()} operation(s)")
    return 0
