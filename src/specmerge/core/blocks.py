"""
specmerge.core.blocks - Requirement block parser.

Splits a spec-shaped markdown document into the text before the
Requirements section, the section header, the ordered requirement
blocks, and whatever follows the section.

A block starts at a ``### Requirement: <name>`` header (or its localized
form) and runs until the next requirement header or the end of the
section. Scenario sub-blocks (``####``) stay embedded in the block text.
"""

from __future__ import annotations

import logging
from typing import Optional

from specmerge.core.models import RequirementBlock, SpecDocument
from specmerge.core.patterns import (
    BLANK_LINE_CLEANUP_RE,
    DEFAULT_VOCABULARY,
    TOP_LEVEL_HEADER_RE,
    HeaderVocabulary,
    fenced_line_mask,
)
from specmerge.errors import ParseError

logger = logging.getLogger(__name__)


def split_lines(content: str) -> list[str]:
    """Split text into lines with platform line endings normalized."""
    return content.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def parse_requirement_blocks(
    lines: list[str],
    vocabulary: Optional[HeaderVocabulary] = None,
    fenced: Optional[list[bool]] = None,
) -> tuple[str, list[RequirementBlock]]:
    """Partition section lines into leading text and requirement blocks.

    Args:
        lines: Lines of one section, without its own header
        vocabulary: Header vocabulary (defaults to English + localized)
        fenced: Precomputed fenced-code mask for *lines*

    Returns:
        Tuple of (intro text before the first block, blocks in order)
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    mask = fenced if fenced is not None else fenced_line_mask(lines)

    intro: list[str] = []
    blocks: list[RequirementBlock] = []
    current: Optional[tuple[str, str, list[str]]] = None

    def close() -> None:
        if current is None:
            return
        name, header_line, block_lines = current
        raw = "\n".join(_trim_blank_edges(block_lines))
        blocks.append(RequirementBlock(name=name, header_line=header_line, raw=raw))

    for line, in_fence in zip(lines, mask):
        match = None if in_fence else vocab.match_requirement_header(line)
        if match:
            close()
            current = (match.group("name").strip(), line.rstrip(), [line.rstrip()])
        elif current is None:
            intro.append(line)
        else:
            current[2].append(line)
    close()

    return "\n".join(_trim_blank_edges(intro)), blocks


def find_requirements_section(
    lines: list[str],
    vocabulary: Optional[HeaderVocabulary] = None,
    fenced: Optional[list[bool]] = None,
) -> Optional[tuple[int, int]]:
    """Locate the Requirements section.

    Returns:
        (header index, end index exclusive) or None when no header exists
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    mask = fenced if fenced is not None else fenced_line_mask(lines)

    header_idx = None
    for i, line in enumerate(lines):
        if not mask[i] and vocab.is_requirements_header(line):
            header_idx = i
            break
    if header_idx is None:
        return None

    end = len(lines)
    for j in range(header_idx + 1, len(lines)):
        if not mask[j] and TOP_LEVEL_HEADER_RE.match(lines[j]):
            end = j
            break
    return header_idx, end


def parse_spec_document(
    content: str,
    vocabulary: Optional[HeaderVocabulary] = None,
) -> SpecDocument:
    """Parse a full spec document.

    Args:
        content: Markdown text of the spec
        vocabulary: Header vocabulary (defaults to English + localized)

    Returns:
        SpecDocument with preamble, header line, blocks and trailing text

    Raises:
        ParseError: If the document has no Requirements section header
    """
    vocab = vocabulary or DEFAULT_VOCABULARY
    lines = split_lines(content)
    mask = fenced_line_mask(lines)

    bounds = find_requirements_section(lines, vocab, mask)
    if bounds is None:
        expected = " or ".join(vocab.requirements_header_line(i > 0) for i in range(2))
        raise ParseError(f"No Requirements section found (expected {expected})")
    header_idx, end = bounds

    intro, blocks = parse_requirement_blocks(
        lines[header_idx + 1 : end], vocab, mask[header_idx + 1 : end]
    )
    logger.debug("Parsed %d requirement block(s)", len(blocks))

    return SpecDocument(
        preamble="\n".join(lines[:header_idx]),
        header_line=lines[header_idx].rstrip(),
        body_blocks=blocks,
        after="\n".join(lines[end:]),
        intro=intro,
    )


def render_spec_document(doc: SpecDocument) -> str:
    """Reassemble a SpecDocument into markdown.

    Parts are separated by one blank line, runs of blank lines are
    collapsed, and the result ends with a single newline.
    """
    chunks: list[str] = []
    preamble = doc.preamble.strip("\n").rstrip()
    if preamble:
        chunks.append(preamble)
    chunks.append(doc.header_line)
    if doc.intro.strip():
        chunks.append(doc.intro.strip("\n").rstrip())
    chunks.extend(block.raw.rstrip() for block in doc.body_blocks)
    after = doc.after.strip("\n").rstrip()
    if after:
        chunks.append(after)

    text = "\n\n".join(chunks)
    return BLANK_LINE_CLEANUP_RE.sub("\n\n", text).rstrip("\n") + "\n"
