"""Tests for specmerge.core.blocks - the requirement block parser."""

import pytest

from specmerge.core.blocks import (
    parse_requirement_blocks,
    parse_spec_document,
    render_spec_document,
    split_lines,
)
from specmerge.errors import ParseError
from tests.spec_helpers import make_requirement, make_spec

SPEC_WITH_TRAILER = """# auth Specification

## Purpose
Authentication and session handling for the web application.

## Requirements
Intro text that belongs to no requirement.

### Requirement: User Login
**ID**: AUTH-1
The system SHALL authenticate users with email and password.

#### Scenario: Valid credentials
- **WHEN** a user submits valid credentials
- **THEN** a session is created

#### Scenario: Invalid credentials
- **WHEN** a user submits a wrong password
- **THEN** an error is shown

### Requirement: Session Timeout
The system SHALL expire idle sessions.

```markdown
### Requirement: Not A Real Header
```

#### Scenario: Idle session
- **WHEN** a session is idle
- **THEN** it is invalidated

## Notes
Free-form notes after the requirements.
"""

LOCALIZED_SPEC = """# 认证 规范

## 目的
认证与会话管理。

## 需求

### 需求：用户登录
系统必须验证用户身份。

#### 场景：成功登录
- **当** 用户提交正确的凭据
- **则** 创建会话
"""


class TestParseSpecDocument:
    """Tests for parse_spec_document()."""

    def test_blocks_in_document_order(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert doc.names() == ["User Login", "Session Timeout"]

    def test_header_line_kept_verbatim(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert doc.header_line == "## Requirements"
        assert doc.body_blocks[0].header_line == "### Requirement: User Login"

    def test_scenarios_stay_embedded(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        login = doc.body_blocks[0]
        assert login.scenario_count == 2
        assert "#### Scenario: Invalid credentials" in login.raw

    def test_requirement_text_skips_metadata(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert doc.body_blocks[0].requirement_text == (
            "The system SHALL authenticate users with email and password."
        )

    def test_fenced_header_is_not_a_block(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert "Not A Real Header" not in doc.names()
        assert "### Requirement: Not A Real Header" in doc.body_blocks[1].raw

    def test_section_ends_at_next_top_level_header(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert doc.after.startswith("## Notes")
        assert "Notes" not in doc.body_blocks[-1].raw

    def test_intro_and_preamble(self):
        doc = parse_spec_document(SPEC_WITH_TRAILER)
        assert doc.intro == "Intro text that belongs to no requirement."
        assert doc.preamble.startswith("# auth Specification")
        assert "## Purpose" in doc.preamble

    def test_localized_document(self):
        doc = parse_spec_document(LOCALIZED_SPEC)
        assert doc.header_line == "## 需求"
        assert doc.names() == ["用户登录"]
        assert doc.body_blocks[0].requirement_text == "系统必须验证用户身份。"

    def test_missing_requirements_section(self):
        with pytest.raises(ParseError, match="No Requirements section found"):
            parse_spec_document("# Title\n\n## Purpose\nSomething.\n")

    def test_empty_requirements_section_parses(self):
        doc = parse_spec_document(make_spec("empty"))
        assert doc.body_blocks == []

    def test_crlf_line_endings(self):
        content = make_spec("auth", make_requirement("Login")).replace("\n", "\r\n")
        doc = parse_spec_document(content)
        assert doc.names() == ["Login"]
        assert "\r" not in doc.body_blocks[0].raw


class TestRenderSpecDocument:
    """Tests for render_spec_document()."""

    def test_round_trip_canonical_document(self):
        content = make_spec("auth", make_requirement("Login"), make_requirement("Logout"))
        assert render_spec_document(parse_spec_document(content)) == content

    def test_round_trip_keeps_trailing_sections(self):
        rendered = render_spec_document(parse_spec_document(SPEC_WITH_TRAILER))
        assert rendered.endswith("## Notes\nFree-form notes after the requirements.\n")
        assert rendered.index("### Requirement: Session Timeout") < rendered.index("## Notes")

    def test_collapses_blank_line_runs(self):
        content = make_spec("auth", make_requirement("Login")).replace(
            "## Requirements\n", "## Requirements\n\n\n\n"
        )
        rendered = render_spec_document(parse_spec_document(content))
        assert "\n\n\n" not in rendered
        assert rendered.endswith("\n") and not rendered.endswith("\n\n")

    def test_round_trip_is_stable(self):
        once = render_spec_document(parse_spec_document(SPEC_WITH_TRAILER))
        assert render_spec_document(parse_spec_document(once)) == once


class TestParseRequirementBlocks:
    """Tests for parse_requirement_blocks()."""

    def test_block_runs_until_next_requirement_header(self):
        lines = split_lines(
            make_requirement("One") + "\n\n### Other heading\nmore\n\n" + make_requirement("Two")
        )
        intro, blocks = parse_requirement_blocks(lines)
        assert intro == ""
        assert [b.name for b in blocks] == ["One", "Two"]
        assert "### Other heading" in blocks[0].raw

    def test_mixed_languages(self):
        localized = make_requirement("登出", text="系统必须注销。", keyword="需求")
        lines = split_lines(make_requirement("Login") + "\n\n" + localized)
        _, blocks = parse_requirement_blocks(lines)
        assert [b.name for b in blocks] == ["Login", "登出"]
