"""Tests for specmerge.archive - the two-phase spec update and change archiving."""

from datetime import date

import pytest

from specmerge.archive import (
    MergeSettings,
    apply_spec_updates,
    archive_change,
    find_spec_updates,
    get_task_progress,
    list_active_changes,
)
from specmerge.config import load_config
from specmerge.core.blocks import parse_spec_document
from specmerge.errors import ConflictError, ValidationError, WriteError
from tests.spec_helpers import (
    make_delta,
    make_proposal,
    make_requirement,
    make_spec,
    snapshot,
    write_project,
)

AUTH = make_spec("auth", make_requirement("Login"), make_requirement("Logout"))
BILLING = make_spec("billing", make_requirement("Invoice"))

VALID_AUTH_DELTA = make_delta(
    added=(make_requirement("Two Factor"),),
    modified=(make_requirement("Logout", "The system SHALL log users out everywhere."),),
)
INVALID_BILLING_DELTA = make_delta(removed=("Refund",))


class TestFindSpecUpdates:
    """Tests for find_spec_updates()."""

    def test_discovers_capabilities(self, tmp_path):
        search = make_delta(added=(make_requirement("Q"),))
        changes = {"c1": {"auth": VALID_AUTH_DELTA, "search": search}}
        write_project(tmp_path, {"auth": AUTH}, changes)
        updates = find_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert [u.capability for u in updates] == ["auth", "search"]
        assert [u.status for u in updates] == ["update", "create"]
        assert updates[1].target == tmp_path / "specs" / "search" / "spec.md"

    def test_no_specs_directory(self, tmp_path):
        (tmp_path / "change").mkdir()
        assert find_spec_updates(tmp_path / "change", tmp_path / "specs") == []

    def test_directory_without_delta_skipped(self, tmp_path):
        write_project(tmp_path, {}, {"c1": {}})
        (tmp_path / "changes" / "c1" / "specs" / "empty").mkdir(parents=True)
        assert find_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs") == []


class TestApplySpecUpdates:
    """Tests for apply_spec_updates()."""

    def test_commits_all_capabilities(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH, "billing": BILLING},
            {
                "c1": {
                    "auth": VALID_AUTH_DELTA,
                    "billing": make_delta(renamed=(("Invoice", "Invoice Generation"),)),
                }
            },
        )
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert result.success
        assert result.phase == "commit"
        assert result.totals.as_dict() == {"added": 1, "modified": 1, "removed": 0, "renamed": 1}
        assert len(result.written) == 2

        auth = parse_spec_document((tmp_path / "specs" / "auth" / "spec.md").read_text())
        assert auth.names() == ["Login", "Logout", "Two Factor"]
        billing = parse_spec_document((tmp_path / "specs" / "billing" / "spec.md").read_text())
        assert billing.names() == ["Invoice Generation"]

    def test_atomic_when_one_capability_fails(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH, "billing": BILLING},
            {"c1": {"auth": VALID_AUTH_DELTA, "billing": INVALID_BILLING_DELTA}},
        )
        before = snapshot(tmp_path)

        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.phase == "prepare"
        assert snapshot(tmp_path) == before
        assert result.written == []

    def test_atomic_when_a_target_cannot_be_written(self, tmp_path):
        changes = {
            "c1": {
                "auth": VALID_AUTH_DELTA,
                "zeta": make_delta(added=(make_requirement("Search"),)),
            }
        }
        write_project(tmp_path, {"auth": AUTH}, changes)
        (tmp_path / "specs" / "zeta").write_text("not a directory\n", encoding="utf-8")
        before = snapshot(tmp_path)

        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.phase == "commit"
        assert list(result.error.failures) == ["zeta"]
        assert isinstance(result.error.failures["zeta"], WriteError)
        assert result.error.invalidated == ["auth"]
        assert result.written == []
        assert snapshot(tmp_path) == before

    def test_replaced_files_restored_when_a_later_swap_fails(self, tmp_path):
        changes = {
            "c1": {
                "auth": VALID_AUTH_DELTA,
                "billing": make_delta(added=(make_requirement("Invoice"),)),
            }
        }
        write_project(tmp_path, {"auth": AUTH}, changes)
        # The billing target path is taken by a directory
        blocked = tmp_path / "specs" / "billing" / "spec.md"
        blocked.mkdir(parents=True)
        (blocked / "notes.txt").write_text("keep\n", encoding="utf-8")
        before = snapshot(tmp_path)

        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.phase == "commit"
        assert "billing: Cannot write" in result.message
        assert snapshot(tmp_path) == before
        assert (tmp_path / "specs" / "auth" / "spec.md").read_text() == AUTH

    def test_empty_delta_rejected(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": "Notes only.\n"}})
        before = snapshot(tmp_path)

        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.phase == "prepare"
        assert "No delta sections found" in result.message
        assert snapshot(tmp_path) == before

    def test_conflict_error_names_failures_and_invalidated(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH, "billing": BILLING},
            {"c1": {"auth": VALID_AUTH_DELTA, "billing": INVALID_BILLING_DELTA}},
        )
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        error = result.error
        assert isinstance(error, ConflictError)
        assert list(error.failures) == ["billing"]
        assert isinstance(error.failures["billing"], ValidationError)
        assert error.invalidated == ["auth"]
        assert 'billing: REMOVED failed for "Refund" - not found' in error.message
        assert "Not applied because of the failures above: auth" in error.message

    def test_every_failure_reported(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH, "billing": BILLING},
            {
                "c1": {
                    "auth": make_delta(removed=("Nope",)),
                    "billing": INVALID_BILLING_DELTA,
                }
            },
        )
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")
        assert sorted(result.error.failures) == ["auth", "billing"]
        assert result.error.invalidated == []

    def test_new_capability_rejects_non_added(self, tmp_path):
        write_project(tmp_path, {}, {"c1": {"search": make_delta(removed=("Query",))}})
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert "only ADDED requirements are allowed" in result.message
        assert not (tmp_path / "specs" / "search").exists()

    def test_new_capability_created_from_skeleton(self, tmp_path):
        write_project(
            tmp_path, {}, {"add-search": {"search": make_delta(added=(make_requirement("Query"),))}}
        )
        result = apply_spec_updates(tmp_path / "changes" / "add-search", tmp_path / "specs")

        assert result.success
        content = (tmp_path / "specs" / "search" / "spec.md").read_text()
        assert content.startswith("# search Specification")
        assert "created by archiving change add-search" in content
        assert result.outcomes[0].update.status == "create"

    def test_content_validation_blocks_commit(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH},
            {"c1": {"auth": make_delta(added=(make_requirement("Weak", "Users may log in."),))}},
        )
        before = snapshot(tmp_path)
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.phase == "validate"
        assert "must contain one of" in result.message
        assert snapshot(tmp_path) == before

    def test_validation_can_be_skipped(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH},
            {"c1": {"auth": make_delta(added=(make_requirement("Weak", "Users may log in."),))}},
        )
        result = apply_spec_updates(
            tmp_path / "changes" / "c1", tmp_path / "specs", validate=False
        )
        assert result.success

    def test_rebuilt_spec_checked_as_a_whole(self, tmp_path):
        broken = make_spec(
            "auth", make_requirement("Login"), make_requirement("Old", scenario=False)
        )
        write_project(
            tmp_path,
            {"auth": broken},
            {"c1": {"auth": make_delta(added=(make_requirement("New"),))}},
        )
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")

        assert not result.success
        assert result.outcomes[0].report is not None
        assert [v.requirement for v in result.outcomes[0].report.errors] == ["Old"]

    def test_dry_run_writes_nothing(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        before = snapshot(tmp_path)
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs", dry_run=True)

        assert result.success
        assert result.phase == "dry-run"
        assert result.totals.added == 1
        assert snapshot(tmp_path) == before

    def test_no_deltas_is_success(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {}})
        result = apply_spec_updates(tmp_path / "changes" / "c1", tmp_path / "specs")
        assert result.success
        assert result.phase == "discover"
        assert result.outcomes == []

    def test_rename_style_from_config(self, tmp_path):
        base = make_spec("auth", make_requirement("登录", text="系统必须登录。", keyword="需求"))
        write_project(
            tmp_path, {"auth": base}, {"c1": {"auth": make_delta(renamed=(("登录", "账户登录"),))}}
        )
        config = load_config()
        config["merge"]["rename_header_style"] = "delta"

        result = apply_spec_updates(
            tmp_path / "changes" / "c1",
            tmp_path / "specs",
            settings=MergeSettings.from_config(config),
        )
        assert result.success
        content = (tmp_path / "specs" / "auth" / "spec.md").read_text(encoding="utf-8")
        assert "### Requirement: 账户登录" in content


class TestTaskProgress:
    """Tests for get_task_progress()."""

    def test_counts_checkboxes(self, tmp_path):
        (tmp_path / "tasks.md").write_text(
            "## 1. Build\n- [x] 1.1 Parser\n- [X] 1.2 Merge\n- [ ] 1.3 Docs\n  * [ ] nested\n"
        )
        progress = get_task_progress(tmp_path)
        assert (progress.completed, progress.total, progress.incomplete) == (2, 4, 2)
        assert str(progress) == "2/4 tasks"

    def test_missing_file(self, tmp_path):
        assert str(get_task_progress(tmp_path)) == "No tasks"


class TestArchiveChange:
    """Tests for archive_change()."""

    TODAY = date(2025, 1, 15)

    def test_applies_specs_and_moves_change(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"add-2fa": {"auth": VALID_AUTH_DELTA}})
        result = archive_change(tmp_path, "add-2fa", today=self.TODAY)

        assert result.success
        archived = tmp_path / "changes" / "archive" / "2025-01-15-add-2fa"
        assert result.archive_path == archived
        assert archived.is_dir()
        assert (archived / "specs" / "auth" / "spec.md").is_file()
        assert not (tmp_path / "changes" / "add-2fa").exists()
        assert result.specs.totals.added == 1
        assert "Two Factor" in (tmp_path / "specs" / "auth" / "spec.md").read_text()

    def test_failure_leaves_everything_in_place(self, tmp_path):
        write_project(
            tmp_path,
            {"auth": AUTH, "billing": BILLING},
            {"c1": {"auth": VALID_AUTH_DELTA, "billing": INVALID_BILLING_DELTA}},
        )
        before = snapshot(tmp_path)
        result = archive_change(tmp_path, "c1", today=self.TODAY)

        assert not result.success
        assert "No files were changed" in result.message
        assert snapshot(tmp_path) == before
        assert not (tmp_path / "changes" / "archive").exists()

    def test_proposal_warnings_do_not_block(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        (tmp_path / "changes" / "c1" / "proposal.md").write_text(
            make_proposal(why="Too short."), encoding="utf-8"
        )
        result = archive_change(tmp_path, "c1", today=self.TODAY)

        assert result.success
        assert [v.rule for v in result.proposal.violations] == ["proposal.why_too_short"]
        assert result.to_dict()["proposal"]["issues"][0]["level"] == "WARNING"

    def test_clean_proposal(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        (tmp_path / "changes" / "c1" / "proposal.md").write_text(make_proposal(), encoding="utf-8")
        result = archive_change(tmp_path, "c1", today=self.TODAY)
        assert result.proposal.violations == []

    def test_proposal_check_follows_validation(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        result = archive_change(tmp_path, "c1", validate=False, today=self.TODAY)
        assert result.success
        assert result.proposal is None

    def test_missing_proposal_is_skipped(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        (tmp_path / "changes" / "c1" / "proposal.md").unlink()
        result = archive_change(tmp_path, "c1", today=self.TODAY)
        assert result.success
        assert result.proposal is None

    def test_skip_specs(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": INVALID_BILLING_DELTA}})
        result = archive_change(tmp_path, "c1", skip_specs=True, today=self.TODAY)

        assert result.success
        assert result.specs is None
        assert (tmp_path / "specs" / "auth" / "spec.md").read_text() == AUTH

    def test_incomplete_tasks_block_archive(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        (tmp_path / "changes" / "c1" / "tasks.md").write_text("- [x] done\n- [ ] pending\n")
        before = snapshot(tmp_path)

        result = archive_change(tmp_path, "c1", today=self.TODAY)
        assert not result.success
        assert "1 incomplete task(s)" in result.message
        assert snapshot(tmp_path) == before

        assert archive_change(tmp_path, "c1", allow_incomplete=True, today=self.TODAY).success

    def test_dry_run(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        before = snapshot(tmp_path)
        result = archive_change(tmp_path, "c1", dry_run=True, today=self.TODAY)

        assert result.success
        assert result.dry_run
        assert "would be archived" in result.message
        assert snapshot(tmp_path) == before

    def test_missing_change(self, tmp_path):
        write_project(tmp_path, {}, {})
        with pytest.raises(FileNotFoundError, match="Change 'nope' not found"):
            archive_change(tmp_path, "nope")

    def test_missing_changes_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="No changes directory"):
            archive_change(tmp_path, "c1")

    def test_existing_archive_checked_before_writing(self, tmp_path):
        write_project(tmp_path, {"auth": AUTH}, {"c1": {"auth": VALID_AUTH_DELTA}})
        (tmp_path / "changes" / "archive" / "2025-01-15-c1").mkdir(parents=True)
        before = snapshot(tmp_path)

        with pytest.raises(FileExistsError, match="already exists"):
            archive_change(tmp_path, "c1", today=self.TODAY)
        assert snapshot(tmp_path) == before

    def test_custom_directories_from_config(self, tmp_path):
        config = load_config()
        config["directories"]["specs"] = "capabilities"
        config["archive"]["date_format"] = "%Y%m%d"
        (tmp_path / "capabilities" / "auth").mkdir(parents=True)
        (tmp_path / "capabilities" / "auth" / "spec.md").write_text(AUTH)
        write_project(tmp_path, {}, {"c1": {"auth": VALID_AUTH_DELTA}})

        result = archive_change(tmp_path, "c1", config=config, today=self.TODAY)
        assert result.success
        assert result.archive_path.name == "20250115-c1"
        assert "Two Factor" in (tmp_path / "capabilities" / "auth" / "spec.md").read_text()


class TestListActiveChanges:
    """Tests for list_active_changes()."""

    def test_excludes_archive(self, tmp_path):
        write_project(tmp_path, {}, {"b": {}, "a": {}})
        (tmp_path / "changes" / "archive").mkdir()
        assert list_active_changes(tmp_path / "changes") == ["a", "b"]
