"""
specmerge.config - Configuration loading and defaults

Configuration lives in ``.specmerge.toml``, found by walking up from the
working directory. Values are deep-merged over DEFAULT_CONFIG, then
``SPECMERGE_<SECTION>_<KEY>`` environment variables are applied.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Optional

import tomlkit
from tomlkit import TOMLDocument

from specmerge.config.defaults import DEFAULT_CONFIG

CONFIG_FILENAME = ".specmerge.toml"
ENV_PREFIX = "SPECMERGE_"

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "find_config_file",
    "get_config_value",
    "load_config",
    "merge_configs",
    "parse_toml",
    "parse_toml_document",
    "resolve_root",
]


def parse_toml_document(content: str) -> TOMLDocument:
    """Parse TOML text, keeping formatting for round-trip edits."""
    return tomlkit.parse(content)


def parse_toml(content: str) -> dict[str, Any]:
    """Parse TOML text into plain Python dicts and lists."""
    return parse_toml_document(content).unwrap()


def find_config_file(start: Path) -> Optional[Path]:
    """Find .specmerge.toml in *start* or any parent directory.

    Args:
        start: Directory to start searching from

    Returns:
        Path to the config file, or None if not found
    """
    current = Path(start).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def merge_configs(defaults: dict[str, Any], user: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge *user* over *defaults* without mutating either."""
    merged = copy.deepcopy(defaults)
    for key, value in user.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _try_parse_env_value(value: str) -> Any:
    """Parse an environment value into bool, int, JSON list/object, or string.

    Malformed JSON falls back to the raw string.
    """
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    stripped = value.strip()
    if stripped.isdigit():
        return int(stripped)
    if stripped.startswith(("[", "{")):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply SPECMERGE_<SECTION>_<KEY> variables to known sections.

    The section is matched against the existing top-level keys, so
    ``SPECMERGE_MERGE_RENAME_HEADER_STYLE`` sets ``merge.rename_header_style``.
    """
    for env_key, raw in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        remainder = env_key[len(ENV_PREFIX) :].lower()
        for section in sorted(config, key=len, reverse=True):
            prefix = f"{section}_"
            if remainder.startswith(prefix) and isinstance(config[section], dict):
                key = remainder[len(prefix) :]
                if key:
                    config[section][key] = _try_parse_env_value(raw)
                break
    return config


def load_config(config_path: Optional[Path] = None) -> dict[str, Any]:
    """Load configuration from *config_path* merged over the defaults.

    Args:
        config_path: Path to a .specmerge.toml file, or None for defaults only

    Returns:
        Effective configuration dictionary

    Raises:
        FileNotFoundError: If *config_path* is given but does not exist
        tomlkit.exceptions.ParseError: If the file is not valid TOML
    """
    user: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        user = parse_toml(path.read_text(encoding="utf-8"))
    return _apply_env_overrides(merge_configs(DEFAULT_CONFIG, user))


def get_config_value(config: dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    """Look up a dot-notation key such as ``merge.rename_header_style``."""
    node: Any = config
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def resolve_root(config: dict[str, Any], config_path: Optional[Path], cwd: Path) -> Path:
    """Resolve the project root (holding specs/ and changes/).

    A relative ``project.root`` is taken relative to the config file's
    directory, or to *cwd* when running on defaults.
    """
    root = Path(get_config_value(config, "project.root", "openspec"))
    if root.is_absolute():
        return root
    base = config_path.parent if config_path is not None else cwd
    return base / root
