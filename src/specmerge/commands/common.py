"""
specmerge.commands.common - Configuration and project root lookup for commands.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from specmerge.config import find_config_file, load_config, resolve_root


def load_configuration(
    args: argparse.Namespace,
) -> Optional[Tuple[Dict[str, Any], Optional[Path]]]:
    """Load configuration from --config, a discovered file, or defaults.

    Returns:
        (config, config_path) or None if the config file could not be loaded
    """
    config_path = args.config if args.config else find_config_file(Path.cwd())
    try:
        return load_config(config_path), config_path
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def project_root(
    args: argparse.Namespace, config: Dict[str, Any], config_path: Optional[Path]
) -> Path:
    """Return --root if given, otherwise the configured project root."""
    if getattr(args, "root", None):
        return Path(args.root)
    return resolve_root(config, config_path, Path.cwd())
