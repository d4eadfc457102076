"""
specmerge.core.models - Core data models for specs and deltas.

Provides dataclasses for requirement blocks, parsed delta plans,
spec documents and merge results.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from specmerge.core.patterns import normalize_requirement_name

SCENARIO_HEADER_RE = re.compile(r"^####\s+", re.MULTILINE)
METADATA_LINE_RE = re.compile(r"^\*\*[^*]+\*\*:")


@dataclass
class RequirementBlock:
    """
    A named unit of normative text.

    Attributes:
        name: Display name as written after the header keyword
        header_line: Literal header line, kept verbatim
        raw: Full block text from the header line up to the next sibling
            header (exclusive), including embedded scenarios
    """

    name: str
    header_line: str
    raw: str

    @property
    def key(self) -> str:
        """Normalized name used for every lookup and duplicate check."""
        return normalize_requirement_name(self.name)

    @property
    def scenario_count(self) -> int:
        return len(SCENARIO_HEADER_RE.findall(self.raw))

    @property
    def requirement_text(self) -> Optional[str]:
        """
        First substantial body line.

        Skips the header line, blank lines and metadata lines such as
        ``**ID**: REQ-1``; stops at the first scenario header.
        """
        for line in self.raw.split("\n")[1:]:
            if SCENARIO_HEADER_RE.match(line):
                break
            stripped = line.strip()
            if not stripped or METADATA_LINE_RE.match(stripped):
                continue
            return stripped
        return None

    def __str__(self) -> str:
        return self.header_line.strip()


@dataclass
class RenamePair:
    """A FROM/TO pair from a RENAMED section."""

    from_name: str
    to_name: str
    from_header: str = ""
    to_header: str = ""

    @property
    def from_key(self) -> str:
        return normalize_requirement_name(self.from_name)

    @property
    def to_key(self) -> str:
        return normalize_requirement_name(self.to_name)


@dataclass
class SectionPresence:
    """Which delta section headers appeared, regardless of their entries."""

    added: bool = False
    modified: bool = False
    removed: bool = False
    renamed: bool = False

    def any(self) -> bool:
        return self.added or self.modified or self.removed or self.renamed

    def names(self) -> list[str]:
        """Section kinds present, in canonical order."""
        return [
            kind
            for kind, present in (
                ("ADDED", self.added),
                ("MODIFIED", self.modified),
                ("REMOVED", self.removed),
                ("RENAMED", self.renamed),
            )
            if present
        ]


@dataclass
class DeltaPlan:
    """
    The parsed intent of one delta document.

    Attributes:
        added: Blocks to insert
        modified: Blocks replacing existing ones wholesale
        removed: Names of requirements to delete
        renamed: FROM/TO pairs
        section_presence: Which section headers were seen at all
        localized: True when any section header used the localized keywords
    """

    added: list[RequirementBlock] = field(default_factory=list)
    modified: list[RequirementBlock] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    renamed: list[RenamePair] = field(default_factory=list)
    section_presence: SectionPresence = field(default_factory=SectionPresence)
    localized: bool = False

    def total_operations(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed) + len(self.renamed)

    def to_dict(self) -> dict:
        return {
            "added": [b.name for b in self.added],
            "modified": [b.name for b in self.modified],
            "removed": list(self.removed),
            "renamed": [{"from": r.from_name, "to": r.to_name} for r in self.renamed],
            "sections": self.section_presence.names(),
        }


@dataclass
class SpecDocument:
    """
    A target specification split around its Requirements section.

    Attributes:
        preamble: Everything before the Requirements header
        header_line: The Requirements header, verbatim
        intro: Free text between the header and the first requirement
        body_blocks: Requirement blocks in document order
        after: Trailing content from the next top-level section onward
    """

    preamble: str
    header_line: str
    body_blocks: list[RequirementBlock] = field(default_factory=list)
    after: str = ""
    intro: str = ""

    def names(self) -> list[str]:
        return [b.name for b in self.body_blocks]


@dataclass
class ChangeCounts:
    """Number of applied operations per kind."""

    added: int = 0
    modified: int = 0
    removed: int = 0
    renamed: int = 0

    def __add__(self, other: "ChangeCounts") -> "ChangeCounts":
        return ChangeCounts(
            added=self.added + other.added,
            modified=self.modified + other.modified,
            removed=self.removed + other.removed,
            renamed=self.renamed + other.renamed,
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "modified": self.modified,
            "removed": self.removed,
            "renamed": self.renamed,
        }

    def summary(self) -> str:
        return (
            f"+ {self.added} added, ~ {self.modified} modified, "
            f"- {self.removed} removed, → {self.renamed} renamed"
        )


@dataclass
class MergeResult:
    """Rebuilt document text and the counts that produced it."""

    rebuilt: str
    counts: ChangeCounts
