"""
specmerge.core.merge - Fold a DeltaPlan into a target spec.

Operations apply in a fixed order: RENAMED -> REMOVED -> MODIFIED -> ADDED.
Requirement blocks live in an insertion-ordered dict keyed by normalized
name, so surviving blocks keep their original slot (renames swap the key
in place, modifications replace the value in place) and ADDED blocks are
appended in plan order.
"""

from __future__ import annotations

import logging
from typing import Optional

from specmerge.core.blocks import parse_spec_document, render_spec_document
from specmerge.core.models import (
    ChangeCounts,
    DeltaPlan,
    MergeResult,
    RenamePair,
    RequirementBlock,
    SpecDocument,
)
from specmerge.core.patterns import (
    DEFAULT_VOCABULARY,
    HeaderVocabulary,
    normalize_requirement_name,
)
from specmerge.errors import SpecMergeError, ValidationError
from specmerge.validation.plan import validate_plan

logger = logging.getLogger(__name__)

RENAME_STYLES = ("preserve", "delta")


def build_skeleton(
    capability: str,
    change_name: str,
    localized: bool = False,
    vocabulary: Optional[HeaderVocabulary] = None,
) -> str:
    """Return the minimal document used when a capability has no spec yet."""
    vocab = vocabulary or DEFAULT_VOCABULARY
    return (
        f"# {capability} Specification\n\n"
        "## Purpose\n"
        f"TBD - created by archiving change {change_name}. Update Purpose after archive.\n\n"
        f"{vocab.requirements_header_line(localized)}\n"
    )


def _rename_block(
    block: RequirementBlock,
    pair: RenamePair,
    style: str,
    vocab: HeaderVocabulary,
) -> RequirementBlock:
    """Rewrite only the header line of *block* to carry the new name."""
    source = block.header_line
    if style == "delta" and pair.to_header:
        source = pair.to_header
    match = vocab.match_requirement_header(source)
    prefix = match.group("prefix") if match else "### Requirement: "
    header_line = f"{prefix}{pair.to_name}"

    body = block.raw.split("\n")[1:]
    raw = "\n".join([header_line, *body])
    return RequirementBlock(name=pair.to_name, header_line=header_line, raw=raw)


def _index_blocks(doc: SpecDocument) -> dict[str, RequirementBlock]:
    blocks: dict[str, RequirementBlock] = {}
    for block in doc.body_blocks:
        if block.key in blocks:
            raise ValidationError(
                f'Duplicate requirement in target spec: "{block.name}"',
                section="Requirements",
                requirement=block.name,
            )
        blocks[block.key] = block
    return blocks


def merge(
    plan: DeltaPlan,
    base: Optional[SpecDocument],
    capability: str = "",
    change_name: str = "",
    vocabulary: Optional[HeaderVocabulary] = None,
    rename_header_style: str = "preserve",
    require_operations: bool = False,
) -> MergeResult:
    """Apply *plan* to *base* and rebuild the document text.

    Args:
        plan: Parsed delta plan
        base: Existing target spec, or None for a new capability
        capability: Capability name (skeleton title, error messages)
        change_name: Originating change (skeleton Purpose text)
        vocabulary: Header vocabulary
        rename_header_style: "preserve" keeps the base header keyword on
            rename, "delta" takes the keyword from the RENAMED TO line
        require_operations: Reject a plan with zero operations. When False
            an empty plan returns the base document re-rendered

    Returns:
        MergeResult with the rebuilt markdown and per-kind counts

    Raises:
        ValidationError: If the plan is inconsistent or does not fit the base
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    if rename_header_style not in RENAME_STYLES:
        raise ValueError(
            f"rename_header_style must be one of {RENAME_STYLES}, got {rename_header_style!r}"
        )

    validate_plan(
        plan,
        target_exists=base is not None,
        capability=capability or None,
        require_operations=require_operations,
    )

    if base is None:
        base = parse_spec_document(
            build_skeleton(capability, change_name, plan.localized, vocab), vocab
        )

    blocks = _index_blocks(base)

    for pair in plan.renamed:
        if pair.from_key not in blocks:
            raise ValidationError(
                f'RENAMED failed for "{pair.from_name}" - source not found',
                section="RENAMED",
                requirement=pair.from_name,
            )
        if pair.to_key != pair.from_key and pair.to_key in blocks:
            raise ValidationError(
                f'RENAMED failed for "{pair.from_name}" - target "{pair.to_name}" already exists',
                section="RENAMED",
                requirement=pair.to_name,
            )
        renamed = _rename_block(blocks[pair.from_key], pair, rename_header_style, vocab)
        # Swap the key without moving the slot
        blocks = {
            (pair.to_key if key == pair.from_key else key): (
                renamed if key == pair.from_key else block
            )
            for key, block in blocks.items()
        }

    for name in plan.removed:
        key = normalize_requirement_name(name)
        if key not in blocks:
            raise ValidationError(
                f'REMOVED failed for "{name}" - not found',
                section="REMOVED",
                requirement=name,
            )
        del blocks[key]

    for block in plan.modified:
        if block.key not in blocks:
            raise ValidationError(
                f'MODIFIED failed for "{block.name}" - not found',
                section="MODIFIED",
                requirement=block.name,
            )
        # The raw text is what gets written, so its header must agree with the key
        header_match = vocab.match_requirement_header(block.raw.split("\n", 1)[0])
        if header_match is None or (
            normalize_requirement_name(header_match.group("name")) != block.key
        ):
            raise ValidationError(
                f'MODIFIED failed for "{block.name}" - header does not match the requirement',
                section="MODIFIED",
                requirement=block.name,
            )
        blocks[block.key] = block

    for block in plan.added:
        if block.key in blocks:
            raise ValidationError(
                f'ADDED failed for "{block.name}" - already exists',
                section="ADDED",
                requirement=block.name,
            )
        blocks[block.key] = block

    rebuilt = render_spec_document(
        SpecDocument(
            preamble=base.preamble,
            header_line=base.header_line,
            body_blocks=list(blocks.values()),
            after=base.after,
            intro=base.intro,
        )
    )
    counts = ChangeCounts(
        added=len(plan.added),
        modified=len(plan.modified),
        removed=len(plan.removed),
        renamed=len(plan.renamed),
    )
    logger.debug("Merged %s: %s", capability or "spec", counts.summary())
    return MergeResult(rebuilt=rebuilt, counts=counts)


def build_updated_spec(
    plan: DeltaPlan,
    base_content: Optional[str],
    capability: str,
    change_name: str,
    vocabulary: Optional[HeaderVocabulary] = None,
    rename_header_style: str = "preserve",
    require_operations: bool = True,
) -> MergeResult:
    """Parse *base_content* (if any) and merge *plan* into it.

    Unlike merge(), a plan with zero operations is rejected by default.
    Every SpecMergeError raised here carries *capability*.
    """
    try:
        base = parse_spec_document(base_content, vocabulary) if base_content is not None else None
        return merge(
            plan,
            base,
            capability=capability,
            change_name=change_name,
            vocabulary=vocabulary,
            rename_header_style=rename_header_style,
            require_operations=require_operations,
        )
    except SpecMergeError as e:
        if e.capability is None:
            e.capability = capability
        raise
