"""Tests for specmerge.validation.proposal - advisory proposal checks."""

from specmerge.validation.content import ContentRulesConfig
from specmerge.validation.proposal import validate_proposal
from specmerge.validation.violations import Severity
from tests.spec_helpers import make_proposal


def rules(report) -> list:
    return [v.rule for v in report.violations]


class TestValidateProposal:
    """Tests for validate_proposal()."""

    def test_complete_proposal(self):
        report = validate_proposal("add-sessions", make_proposal())
        assert report.violations == []
        assert report.valid

    def test_missing_sections(self):
        report = validate_proposal("add-sessions", "# Proposal\n\nSome notes.\n")
        assert rules(report) == ["proposal.missing_why", "proposal.missing_what_changes"]
        assert 'Expected headers: "## Why" and "## What Changes"' in report.violations[0].message

    def test_why_too_short(self):
        report = validate_proposal("c", make_proposal(why="Because."))
        assert rules(report) == ["proposal.why_too_short"]
        assert "at least 50 characters" in report.violations[0].message

    def test_why_too_long(self):
        report = validate_proposal("c", make_proposal(why="x" * 1001))
        assert rules(report) == ["proposal.why_too_long"]

    def test_thresholds_from_config(self):
        limits = ContentRulesConfig.from_dict({"min_why_length": 5, "max_why_length": 10})
        assert validate_proposal("c", make_proposal(why="Because."), limits).violations == []

    def test_empty_what_changes(self):
        report = validate_proposal("c", make_proposal(what_changes=""))
        assert rules(report) == ["proposal.empty_what_changes"]

    def test_subsections_belong_to_what_changes(self):
        content = make_proposal(what_changes="### Specs\n- auth")
        assert validate_proposal("c", content).violations == []

    def test_localized_headers(self):
        content = (
            "# 提案\n\n## 为什么\n"
            + "用户需要在所有设备上可靠地管理会话。" * 3
            + "\n\n## 变更内容\n- 新增会话需求\n"
        )
        assert validate_proposal("c", content).violations == []

    def test_findings_never_invalidate(self):
        report = validate_proposal("c", "")
        assert report.violations
        assert all(v.severity == Severity.WARNING for v in report.violations)
        assert report.valid
