"""
specmerge.core.delta - Delta plan builder.

Scans a delta document for ADDED / MODIFIED / REMOVED / RENAMED
Requirements sections (English or localized titles, any order) and
turns them into a DeltaPlan. Unrecognized sections are commentary.

Section formats::

    ## ADDED Requirements          full requirement blocks
    ## MODIFIED Requirements       full requirement blocks
    ## REMOVED Requirements        blocks, bare headers, or bullet items
    ## RENAMED Requirements
    - FROM: `### Requirement: Old`
    - TO: `### Requirement: New`
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from specmerge.core.blocks import parse_requirement_blocks, split_lines
from specmerge.core.models import DeltaPlan, RenamePair
from specmerge.core.patterns import (
    DEFAULT_VOCABULARY,
    TOP_LEVEL_HEADER_RE,
    HeaderVocabulary,
    fenced_line_mask,
)
from specmerge.errors import ParseError

logger = logging.getLogger(__name__)

BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-*+]\s+)?")
RENAME_LINE_RE = re.compile(
    r"^\s*(?:[-*+]\s+)?(?P<label>FROM|TO)\s*[:：]\s*(?P<value>.+?)\s*$",
    re.IGNORECASE,
)


def _unwrap_header(text: str) -> str:
    """Strip a bullet marker and surrounding back-quotes from a header reference."""
    text = BULLET_PREFIX_RE.sub("", text, count=1).strip()
    if len(text) >= 2 and text.startswith("`") and text.endswith("`"):
        text = text.strip("`").strip()
    return text


def has_delta_sections(content: str, vocabulary: Optional[HeaderVocabulary] = None) -> bool:
    """Return True if *content* contains at least one delta section header."""
    vocab = vocabulary or DEFAULT_VOCABULARY
    lines = split_lines(content)
    mask = fenced_line_mask(lines)
    return any(not fenced and vocab.match_section(line) for line, fenced in zip(lines, mask))


def _collect_sections(
    lines: list[str], mask: list[bool], vocab: HeaderVocabulary
) -> tuple[dict[str, list[tuple[list[str], list[bool]]]], bool]:
    """Group section bodies by delta kind.

    A kind may appear more than once; each occurrence is kept separately.
    """
    sections: dict[str, list[tuple[list[str], list[bool]]]] = {}
    localized = False
    kind: Optional[str] = None
    body: list[str] = []
    body_mask: list[bool] = []

    def flush() -> None:
        if kind is not None:
            sections.setdefault(kind, []).append((body, body_mask))

    for line, fenced in zip(lines, mask):
        if not fenced and TOP_LEVEL_HEADER_RE.match(line):
            flush()
            matched = vocab.match_section(line)
            if matched:
                kind, is_localized = matched
                localized = localized or is_localized
            else:
                kind = None
            body, body_mask = [], []
            continue
        body.append(line)
        body_mask.append(fenced)
    flush()

    return sections, localized


def _parse_removed(
    lines: list[str], mask: list[bool], vocab: HeaderVocabulary
) -> list[str]:
    names: list[str] = []
    for line, fenced in zip(lines, mask):
        if fenced or not line.strip():
            continue
        match = vocab.match_requirement_header(_unwrap_header(line))
        if match:
            names.append(match.group("name").strip())
    return names


def _parse_renamed(
    lines: list[str], mask: list[bool], vocab: HeaderVocabulary
) -> list[RenamePair]:
    pairs: list[RenamePair] = []
    pending: Optional[tuple[str, str]] = None

    for line, fenced in zip(lines, mask):
        if fenced:
            continue
        match = RENAME_LINE_RE.match(line)
        if not match:
            continue
        label = match.group("label").upper()
        header = _unwrap_header(match.group("value"))
        header_match = vocab.match_requirement_header(header)
        if not header_match:
            raise ParseError(
                f"RENAMED {label} must reference a requirement header: {line.strip()!r}",
                section="RENAMED",
            )
        name = header_match.group("name").strip()

        if label == "FROM":
            if pending is not None:
                raise ParseError(
                    f"RENAMED FROM without a matching TO: {pending[1]!r}",
                    section="RENAMED",
                    requirement=pending[0],
                )
            pending = (name, header)
        else:
            if pending is None:
                raise ParseError(
                    f"RENAMED TO without a preceding FROM: {header!r}",
                    section="RENAMED",
                    requirement=name,
                )
            pairs.append(
                RenamePair(
                    from_name=pending[0],
                    to_name=name,
                    from_header=pending[1],
                    to_header=header,
                )
            )
            pending = None

    if pending is not None:
        raise ParseError(
            f"RENAMED FROM without a matching TO: {pending[1]!r}",
            section="RENAMED",
            requirement=pending[0],
        )
    return pairs


def parse_delta_spec(
    content: str,
    vocabulary: Optional[HeaderVocabulary] = None,
) -> DeltaPlan:
    """Parse a delta document into a DeltaPlan.

    A document without any delta section yields an empty plan rather than
    an error; the plan validator decides whether that is acceptable.

    Args:
        content: Markdown text of the delta document
        vocabulary: Header vocabulary (defaults to English + localized)

    Returns:
        DeltaPlan with the parsed operations and section presence

    Raises:
        ParseError: If a RENAMED section contains malformed FROM/TO pairs
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    lines = split_lines(content)
    mask = fenced_line_mask(lines)
    sections, localized = _collect_sections(lines, mask, vocab)

    plan = DeltaPlan(localized=localized)
    for kind, bodies in sections.items():
        setattr(plan.section_presence, kind, True)
        for body, body_mask in bodies:
            if kind == "added":
                plan.added.extend(parse_requirement_blocks(body, vocab, body_mask)[1])
            elif kind == "modified":
                plan.modified.extend(parse_requirement_blocks(body, vocab, body_mask)[1])
            elif kind == "removed":
                plan.removed.extend(_parse_removed(body, body_mask, vocab))
            elif kind == "renamed":
                plan.renamed.extend(_parse_renamed(body, body_mask, vocab))

    logger.debug(
        "Delta plan: %d added, %d modified, %d removed, %d renamed",
        len(plan.added),
        len(plan.modified),
        len(plan.removed),
        len(plan.renamed),
    )
    return plan
