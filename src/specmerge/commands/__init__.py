"""
specmerge.commands - CLI command implementations
"""

__all__ = [
    "archive_cmd",
    "common",
    "config_cmd",
    "plan_cmd",
    "validate",
]
