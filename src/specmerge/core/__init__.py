"""
specmerge.core - Parsing, delta planning and merging
"""

from specmerge.core.blocks import (
    parse_requirement_blocks,
    parse_spec_document,
    render_spec_document,
)
from specmerge.core.delta import has_delta_sections, parse_delta_spec
from specmerge.core.merge import build_skeleton, build_updated_spec, merge
from specmerge.core.models import (
    ChangeCounts,
    DeltaPlan,
    MergeResult,
    RenamePair,
    RequirementBlock,
    SectionPresence,
    SpecDocument,
)
from specmerge.core.patterns import (
    DEFAULT_VOCABULARY,
    HeaderVocabulary,
    normalize_requirement_name,
)

__all__ = [
    "ChangeCounts",
    "DEFAULT_VOCABULARY",
    "DeltaPlan",
    "HeaderVocabulary",
    "MergeResult",
    "RenamePair",
    "RequirementBlock",
    "SectionPresence",
    "SpecDocument",
    "build_skeleton",
    "build_updated_spec",
    "has_delta_sections",
    "merge",
    "normalize_requirement_name",
    "parse_delta_spec",
    "parse_requirement_blocks",
    "parse_spec_document",
    "render_spec_document",
]
