"""
specmerge - Delta-spec merge engine

Applies change proposals written as ADDED / MODIFIED / REMOVED / RENAMED
requirement deltas to capability specifications, then archives the change.
Every capability touched by a change is merged and validated in memory
before any file is written, so a change lands completely or not at all.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("specmerge")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__license__ = "MIT"

from specmerge.archive import ArchiveResult, SpecUpdateResult, apply_spec_updates, archive_change
from specmerge.core.delta import parse_delta_spec
from specmerge.core.merge import build_updated_spec, merge
from specmerge.core.models import ChangeCounts, DeltaPlan, RequirementBlock, SpecDocument
from specmerge.errors import (
    ConflictError,
    ParseError,
    SpecMergeError,
    ValidationError,
    WriteError,
)

__all__ = [
    "__version__",
    "ArchiveResult",
    "ChangeCounts",
    "ConflictError",
    "DeltaPlan",
    "ParseError",
    "RequirementBlock",
    "SpecDocument",
    "SpecMergeError",
    "SpecUpdateResult",
    "ValidationError",
    "WriteError",
    "apply_spec_updates",
    "archive_change",
    "build_updated_spec",
    "merge",
    "parse_delta_spec",
]
