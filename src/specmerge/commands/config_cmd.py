"""
specmerge.commands.config_cmd - Inspect configuration.
"""

import argparse
import json
import sys

import tomlkit

from specmerge.commands.common import load_configuration


def run(args: argparse.Namespace) -> int:
    """Run the config command."""
    action = getattr(args, "config_action", None)
    if action is None:
        print("Usage: specmerge config {show,path}", file=sys.stderr)
        return 1

    loaded = load_configuration(args)
    if loaded is None:
        return 1
    config, config_path = loaded

    if action == "path":
        if config_path is None:
            print("No .specmerge.toml found (using defaults)")
        else:
            print(config_path)
        return 0

    if args.json:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(tomlkit.dumps(config), end="")
    return 0
