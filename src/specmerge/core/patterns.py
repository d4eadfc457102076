"""
specmerge.core.patterns - Header vocabulary and name normalization.

Every structural header the engine recognizes comes in two equivalent
spellings: the English keyword and its localized (Chinese) counterpart.
Both are accepted interchangeably within one document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

# Collapse runs of 3+ newlines (2+ blank lines) to a single blank line
BLANK_LINE_CLEANUP_RE = re.compile(r"\n{3,}")

# Any first- or second-level header ends a section
TOP_LEVEL_HEADER_RE = re.compile(r"^#{1,2}\s")

FENCE_RE = re.compile(r"^\s*(```|~~~)")

DELTA_KINDS = ("added", "modified", "removed", "renamed")


def normalize_requirement_name(name: str) -> str:
    """Return the lookup key for a requirement name.

    Leading/trailing whitespace is trimmed, internal whitespace runs
    collapse to one space, and case is folded.

    >>> normalize_requirement_name("  Important   Rule ")
    'important rule'
    """
    return " ".join(name.split()).casefold()


def fenced_line_mask(lines: list[str]) -> list[bool]:
    """Return, per line, whether it sits inside a fenced code block.

    Fence delimiter lines themselves are reported as fenced.
    """
    mask: list[bool] = []
    fence: Optional[str] = None
    for line in lines:
        match = FENCE_RE.match(line)
        if fence is None:
            if match:
                fence = match.group(1)
                mask.append(True)
            else:
                mask.append(False)
        else:
            mask.append(True)
            if match and match.group(1) == fence:
                fence = None
    return mask


def _alternation(words: list[str]) -> str:
    # Longest first so "重命名需求" wins over any shorter prefix
    ordered = sorted(words, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(part) for part in w.split()) for w in ordered)


def _keyword_pattern(word: str) -> str:
    if re.fullmatch(r"\w+", word, re.ASCII):
        return rf"\b{re.escape(word)}\b"
    return re.escape(word)


@dataclass
class HeaderVocabulary:
    """
    Compiled header patterns for one keyword configuration.

    The first entry of each list is the English spelling; any later entry
    counts as localized.

    Attributes:
        requirements_headers: Titles of the Requirements section
        requirement_keywords: Keywords introducing a requirement header
        section_titles: Delta kind -> accepted section titles
        normative: Imperative markers required in requirement text
    """

    requirements_headers: list[str] = field(default_factory=lambda: ["Requirements", "需求"])
    requirement_keywords: list[str] = field(default_factory=lambda: ["Requirement", "需求"])
    section_titles: dict[str, list[str]] = field(
        default_factory=lambda: {
            "added": ["ADDED Requirements", "新增需求"],
            "modified": ["MODIFIED Requirements", "修改需求"],
            "removed": ["REMOVED Requirements", "移除需求"],
            "renamed": ["RENAMED Requirements", "重命名需求"],
        }
    )
    normative: list[str] = field(default_factory=lambda: ["SHALL", "MUST", "必须", "禁止"])

    def __post_init__(self) -> None:
        self.requirements_header_re = re.compile(
            rf"^##\s+(?P<title>{_alternation(self.requirements_headers)})\s*$"
        )
        self.requirement_header_re = re.compile(
            rf"^(?P<prefix>###\s*(?P<keyword>{_alternation(self.requirement_keywords)})"
            rf"\s*[:：]\s*)(?P<name>\S.*?)\s*$"
        )
        all_titles = [t for titles in self.section_titles.values() for t in titles]
        self.section_header_re = re.compile(
            rf"^##\s+(?P<title>{_alternation(all_titles)})\s*$",
            re.IGNORECASE,
        )
        self.normative_re = re.compile("|".join(_keyword_pattern(w) for w in self.normative))
        self._title_lookup: dict[str, tuple[str, bool]] = {}
        for kind, titles in self.section_titles.items():
            for index, title in enumerate(titles):
                self._title_lookup[self._title_key(title)] = (kind, index > 0)

    @classmethod
    def from_config(cls, config: Optional[dict[str, Any]]) -> "HeaderVocabulary":
        """Create a vocabulary from the [keywords] config section."""
        if not config:
            return cls()
        data = config.get("keywords", config)
        defaults = cls()
        return cls(
            requirements_headers=data.get(
                "requirements_headers", defaults.requirements_headers
            ),
            requirement_keywords=data.get(
                "requirement_keywords", defaults.requirement_keywords
            ),
            section_titles={
                kind: data.get(kind, defaults.section_titles[kind]) for kind in DELTA_KINDS
            },
            normative=data.get("normative", defaults.normative),
        )

    @staticmethod
    def _title_key(title: str) -> str:
        return " ".join(title.split()).casefold()

    def match_requirement_header(self, line: str) -> Optional[re.Match]:
        return self.requirement_header_re.match(line)

    def is_requirements_header(self, line: str) -> bool:
        return self.requirements_header_re.match(line) is not None

    def match_section(self, line: str) -> Optional[tuple[str, bool]]:
        """Return (kind, localized) when *line* is a delta section header."""
        match = self.section_header_re.match(line)
        if not match:
            return None
        return self._title_lookup.get(self._title_key(match.group("title")))

    def contains_normative(self, text: str) -> bool:
        return self.normative_re.search(text) is not None

    def requirements_header_line(self, localized: bool = False) -> str:
        titles = self.requirements_headers
        title = titles[1] if localized and len(titles) > 1 else titles[0]
        return f"## {title}"


DEFAULT_VOCABULARY = HeaderVocabulary()
