"""
specmerge.archive - Apply a change's delta specs and archive the change.

Spec updates follow a two-phase protocol over every capability touched
by the change::

    DISCOVER -> PREPARE(all) -> VALIDATE(all) -> COMMIT(all) | ABORT

Nothing is written until every capability has been merged and validated
in memory. A failure in any capability aborts the whole batch and leaves
every file exactly as it was.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional

from specmerge.config import get_config_value
from specmerge.core.delta import parse_delta_spec
from specmerge.core.merge import build_updated_spec
from specmerge.core.models import ChangeCounts, DeltaPlan
from specmerge.core.patterns import HeaderVocabulary
from specmerge.errors import (
    ConflictError,
    ParseError,
    SpecMergeError,
    ValidationError,
    WriteError,
)
from specmerge.validation.content import (
    ContentRulesConfig,
    validate_delta_blocks,
    validate_spec_content,
)
from specmerge.validation.proposal import validate_proposal
from specmerge.validation.violations import Severity, ValidationReport, Violation

logger = logging.getLogger(__name__)

TASK_LINE_RE = re.compile(r"^\s*[-*]\s+\[(?P<mark>[ xX])\]", re.MULTILINE)


# ---------------------------------------------------------------------------
# Settings and result types
# ---------------------------------------------------------------------------


@dataclass
class MergeSettings:
    """Engine settings derived from configuration.

    Attributes:
        vocabulary: Compiled header vocabulary
        rename_header_style: "preserve" or "delta"
        content_rules: Thresholds for content validation
        spec_filename: File name of a capability spec inside its directory
    """

    vocabulary: HeaderVocabulary = field(default_factory=HeaderVocabulary)
    rename_header_style: str = "preserve"
    content_rules: ContentRulesConfig = field(default_factory=ContentRulesConfig)
    spec_filename: str = "spec.md"

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "MergeSettings":
        return cls(
            vocabulary=HeaderVocabulary.from_config(config.get("keywords", {})),
            rename_header_style=get_config_value(
                config, "merge.rename_header_style", "preserve"
            ),
            content_rules=ContentRulesConfig.from_dict(config.get("validation", {})),
            spec_filename=get_config_value(config, "archive.spec_filename", "spec.md"),
        )


@dataclass
class SpecUpdate:
    """
    One capability touched by a change.

    Attributes:
        capability: Capability name (directory name)
        source: Delta document inside the change
        target: Main spec file the delta applies to
        exists: Whether the target existed at discovery time
    """

    capability: str
    source: Path
    target: Path
    exists: bool

    @property
    def status(self) -> str:
        return "update" if self.exists else "create"


@dataclass
class PreparedUpdate:
    """In-memory merge result for one capability, not yet written."""

    update: SpecUpdate
    plan: DeltaPlan
    rebuilt: str
    counts: ChangeCounts


@dataclass
class CapabilityOutcome:
    """
    Per-capability result of a spec update run.

    Attributes:
        update: The discovered update
        prepared: Merge result when preparation succeeded
        report: Content validation report, when validation ran
        error: Error that failed this capability, if any
    """

    update: SpecUpdate
    prepared: Optional[PreparedUpdate] = None
    report: Optional[ValidationReport] = None
    error: Optional[SpecMergeError] = None

    @property
    def capability(self) -> str:
        return self.update.capability

    @property
    def ok(self) -> bool:
        return self.error is None and self.prepared is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "capability": self.capability,
            "status": self.update.status,
            "target": str(self.update.target),
        }
        if self.prepared is not None:
            data["counts"] = self.prepared.counts.as_dict()
        if self.report is not None:
            data["issues"] = [v.to_dict() for v in self.report.violations]
        if self.error is not None:
            data["error"] = self.error.describe()
        return data


@dataclass
class SpecUpdateResult:
    """
    Outcome of applying every delta spec of one change.

    Attributes:
        success: True if the batch was committed (or would be, on dry run)
        phase: Last phase reached: "discover", "prepare", "validate",
            "commit" or "dry-run"
        outcomes: Per-capability outcomes in discovery order
        totals: Aggregated counts of the committed (or planned) batch
        error: ConflictError describing the abort, if any
        written: Files written during commit
    """

    success: bool
    phase: str
    outcomes: list[CapabilityOutcome] = field(default_factory=list)
    totals: ChangeCounts = field(default_factory=ChangeCounts)
    error: Optional[ConflictError] = None
    written: list[Path] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.describe()
        return f"Totals: {self.totals.summary()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "phase": self.phase,
            "capabilities": [o.to_dict() for o in self.outcomes],
            "totals": self.totals.as_dict(),
            "error": self.error.describe() if self.error else None,
            "written": [str(p) for p in self.written],
        }


@dataclass
class TaskProgress:
    """Checkbox progress of a change's tasks.md."""

    total: int = 0
    completed: int = 0

    @property
    def incomplete(self) -> int:
        return max(self.total - self.completed, 0)

    def __str__(self) -> str:
        if self.total == 0:
            return "No tasks"
        if self.incomplete == 0:
            return "✓ Complete"
        return f"{self.completed}/{self.total} tasks"


@dataclass
class ArchiveResult:
    """
    Outcome of archiving a change.

    Attributes:
        success: True if the change was archived (or would be, on dry run)
        change_name: Name of the change
        message: Description of the result
        archive_path: Where the change was (or would be) moved
        specs: Spec update result, unless spec updates were skipped
        tasks: Task progress found in tasks.md
        dry_run: True if nothing was written or moved
        proposal: Advisory proposal.md report, when validation ran
    """

    success: bool
    change_name: str
    message: str
    archive_path: Optional[Path] = None
    specs: Optional[SpecUpdateResult] = None
    tasks: TaskProgress = field(default_factory=TaskProgress)
    dry_run: bool = False
    proposal: Optional[ValidationReport] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "change": self.change_name,
            "message": self.message,
            "archive_path": str(self.archive_path) if self.archive_path else None,
            "specs": self.specs.to_dict() if self.specs else None,
            "tasks": {"total": self.tasks.total, "completed": self.tasks.completed},
            "dry_run": self.dry_run,
            "proposal": self.proposal.to_dict() if self.proposal else None,
        }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


def find_spec_updates(
    change_dir: Path, main_specs_dir: Path, spec_filename: str = "spec.md"
) -> list[SpecUpdate]:
    """Discover every capability delta under ``<change>/specs``.

    Returns:
        SpecUpdate per capability directory holding a delta document,
        sorted by capability name
    """
    specs_dir = Path(change_dir) / "specs"
    if not specs_dir.is_dir():
        return []

    updates: list[SpecUpdate] = []
    for child in sorted(specs_dir.iterdir()):
        source = child / spec_filename
        if not child.is_dir() or not source.is_file():
            continue
        target = Path(main_specs_dir) / child.name / spec_filename
        updates.append(
            SpecUpdate(capability=child.name, source=source, target=target, exists=target.is_file())
        )
        logger.debug("Discovered %s (%s)", child.name, updates[-1].status)
    return updates


def read_spec_text(path: Path, capability: str) -> str:
    """Read a spec or delta document, reporting failures as ParseError."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read {path}: {e}", capability=capability) from e


def prepare_spec_update(
    update: SpecUpdate, change_name: str, settings: MergeSettings
) -> PreparedUpdate:
    """Parse, validate and merge one capability entirely in memory.

    Raises:
        SpecMergeError: If the delta cannot be applied
    """
    try:
        source_text = read_spec_text(update.source, update.capability)
        plan = parse_delta_spec(source_text, settings.vocabulary)
    except SpecMergeError as e:
        if e.capability is None:
            e.capability = update.capability
        raise
    base_content = read_spec_text(update.target, update.capability) if update.exists else None
    result = build_updated_spec(
        plan,
        base_content,
        capability=update.capability,
        change_name=change_name,
        vocabulary=settings.vocabulary,
        rename_header_style=settings.rename_header_style,
    )
    return PreparedUpdate(update=update, plan=plan, rebuilt=result.rebuilt, counts=result.counts)


def prepare_spec_updates(
    updates: list[SpecUpdate], change_name: str, settings: MergeSettings
) -> list[CapabilityOutcome]:
    """Prepare every update, recording each failure instead of stopping."""
    outcomes = [CapabilityOutcome(update=u) for u in updates]
    for outcome in outcomes:
        try:
            outcome.prepared = prepare_spec_update(outcome.update, change_name, settings)
        except SpecMergeError as e:
            logger.debug("Prepare failed for %s: %s", outcome.capability, e)
            outcome.error = e
    return outcomes


def validate_prepared(prepared: PreparedUpdate, settings: MergeSettings) -> ValidationReport:
    """Run the delta block contract and rebuilt-content validation."""
    report = validate_spec_content(
        prepared.update.capability,
        prepared.rebuilt,
        settings.vocabulary,
        settings.content_rules,
    )
    delta_violations = validate_delta_blocks(
        prepared.plan, settings.vocabulary, settings.content_rules
    )
    report.violations = delta_violations + report.violations
    return report


def _abort(outcomes: list[CapabilityOutcome]) -> ConflictError:
    failures = {o.capability: o.error for o in outcomes if o.error is not None}
    invalidated = [o.capability for o in outcomes if o.error is None]
    return ConflictError(failures, invalidated)


def _stage(path: Path, content: bytes) -> Path:
    """Write *content* to a temporary file beside *path* and return it."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


def _commit(prepared: list[PreparedUpdate]) -> list[Path]:
    """Write every rebuilt spec, or none of them.

    All temporary files are staged first and only then swapped into place.
    If staging or any swap fails, already-replaced targets get their
    original bytes back, new targets and created directories are removed.

    Raises:
        WriteError: Naming the capability whose target could not be written
    """
    created_dirs: list[Path] = []
    staged: list[tuple[PreparedUpdate, Path]] = []
    replaced: list[tuple[Path, Optional[bytes]]] = []
    current: Optional[PreparedUpdate] = None
    try:
        for current in prepared:
            target = current.update.target
            for parent in reversed(target.parents):
                if not parent.exists():
                    parent.mkdir()
                    created_dirs.append(parent)
            staged.append((current, _stage(target, current.rebuilt.encode("utf-8"))))

        for current, tmp_path in staged:
            target = current.update.target
            original = target.read_bytes() if target.is_file() else None
            os.replace(tmp_path, target)
            replaced.append((target, original))
    except OSError as e:
        logger.debug("Commit failed, rolling back %d file(s)", len(replaced))
        for target, original in reversed(replaced):
            if original is None:
                target.unlink(missing_ok=True)
            else:
                os.replace(_stage(target, original), target)
        for _, tmp_path in staged:
            tmp_path.unlink(missing_ok=True)
        for directory in reversed(created_dirs):
            with contextlib.suppress(OSError):
                directory.rmdir()
        capability = current.update.capability if current else None
        target = current.update.target if current else None
        raise WriteError(f"Cannot write {target}: {e}", capability=capability) from e

    return [p.update.target for p in prepared]


def apply_spec_updates(
    change_dir: Path,
    main_specs_dir: Path,
    change_name: Optional[str] = None,
    settings: Optional[MergeSettings] = None,
    validate: bool = True,
    dry_run: bool = False,
) -> SpecUpdateResult:
    """Apply every delta spec of a change with all-or-nothing semantics.

    Args:
        change_dir: Directory of the change
        main_specs_dir: Directory holding one folder per capability
        change_name: Change name for new-spec skeletons (defaults to the
            change directory name)
        settings: Engine settings (defaults when None)
        validate: Run content validation before committing
        dry_run: Stop before writing anything

    Returns:
        SpecUpdateResult; on abort ``error`` is a ConflictError and no
        file has been touched
    """
    settings = settings or MergeSettings()
    change_name = change_name or Path(change_dir).name

    updates = find_spec_updates(change_dir, main_specs_dir, settings.spec_filename)
    if not updates:
        return SpecUpdateResult(success=True, phase="discover")

    outcomes = prepare_spec_updates(updates, change_name, settings)
    if any(o.error for o in outcomes):
        return SpecUpdateResult(
            success=False, phase="prepare", outcomes=outcomes, error=_abort(outcomes)
        )

    if validate:
        for outcome in outcomes:
            outcome.report = validate_prepared(outcome.prepared, settings)
            if not outcome.report.valid:
                failing = outcome.report.errors or outcome.report.warnings
                outcome.error = ValidationError.from_violations(
                    failing, capability=outcome.capability
                )
        if any(o.error for o in outcomes):
            return SpecUpdateResult(
                success=False, phase="validate", outcomes=outcomes, error=_abort(outcomes)
            )

    totals = ChangeCounts()
    for outcome in outcomes:
        totals = totals + outcome.prepared.counts

    if dry_run:
        return SpecUpdateResult(success=True, phase="dry-run", outcomes=outcomes, totals=totals)

    try:
        written = _commit([o.prepared for o in outcomes])
    except WriteError as e:
        for outcome in outcomes:
            if outcome.capability == e.capability:
                outcome.error = e
        return SpecUpdateResult(
            success=False, phase="commit", outcomes=outcomes, error=_abort(outcomes)
        )
    for outcome in outcomes:
        logger.debug("Wrote %s: %s", outcome.update.target, outcome.prepared.counts.summary())

    return SpecUpdateResult(
        success=True, phase="commit", outcomes=outcomes, totals=totals, written=written
    )


# ---------------------------------------------------------------------------
# Change archiving
# ---------------------------------------------------------------------------


def check_proposal(
    change_dir: Path, change_name: str, rules: Optional[ContentRulesConfig] = None
) -> Optional[ValidationReport]:
    """Validate ``<change>/proposal.md`` when present.

    The report is advisory; an unreadable file becomes a warning too.
    """
    proposal_file = Path(change_dir) / "proposal.md"
    if not proposal_file.is_file():
        return None
    try:
        content = read_spec_text(proposal_file, change_name)
    except ParseError as e:
        return ValidationReport(
            name=change_name,
            violations=[
                Violation(rule="proposal.unreadable", message=e.message, severity=Severity.WARNING)
            ],
        )
    return validate_proposal(change_name, content, rules)


def get_task_progress(change_dir: Path) -> TaskProgress:
    """Count checkbox tasks in ``<change>/tasks.md``."""
    tasks_file = Path(change_dir) / "tasks.md"
    if not tasks_file.is_file():
        return TaskProgress()
    marks = [m.group("mark") for m in TASK_LINE_RE.finditer(tasks_file.read_text(encoding="utf-8"))]
    return TaskProgress(total=len(marks), completed=sum(1 for m in marks if m in "xX"))


def list_active_changes(changes_dir: Path, archive_dir_name: str = "archive") -> list[str]:
    """Return the names of change directories, excluding the archive."""
    changes_dir = Path(changes_dir)
    if not changes_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in changes_dir.iterdir()
        if entry.is_dir() and entry.name != archive_dir_name
    )


def archive_change(
    root: Path,
    change_name: str,
    config: Optional[dict[str, Any]] = None,
    skip_specs: bool = False,
    validate: bool = True,
    allow_incomplete: bool = False,
    dry_run: bool = False,
    today: Optional[date] = None,
) -> ArchiveResult:
    """Apply a change's spec deltas and move it into the archive.

    Args:
        root: Project root holding ``specs/`` and ``changes/``
        change_name: Name of the change directory
        config: Effective configuration (defaults when None)
        skip_specs: Archive without applying spec deltas
        validate: Run content validation before committing spec updates, and
            the advisory proposal.md check
        allow_incomplete: Proceed even if tasks.md has unchecked tasks
        dry_run: Report what would happen without writing or moving
        today: Date used for the archive directory prefix

    Returns:
        ArchiveResult describing the outcome

    Raises:
        FileNotFoundError: If the changes directory or the change is missing
        FileExistsError: If the archive target already exists
    """
    config = config or {}
    root = Path(root)
    changes_dir = root / get_config_value(config, "directories.changes", "changes")
    specs_dir = root / get_config_value(config, "directories.specs", "specs")
    archive_dir = changes_dir / get_config_value(config, "archive.archive_dir", "archive")
    date_format = get_config_value(config, "archive.date_format", "%Y-%m-%d")

    if not changes_dir.is_dir():
        raise FileNotFoundError(f"No changes directory found at {changes_dir}")
    change_dir = changes_dir / change_name
    if not change_dir.is_dir() or change_dir.resolve() == archive_dir.resolve():
        raise FileNotFoundError(f"Change '{change_name}' not found")

    archive_name = f"{(today or date.today()).strftime(date_format)}-{change_name}"
    archive_path = archive_dir / archive_name
    if archive_path.exists():
        raise FileExistsError(f"Archive '{archive_name}' already exists")

    settings = MergeSettings.from_config(config)
    proposal = check_proposal(change_dir, change_name, settings.content_rules) if validate else None
    if proposal is not None and proposal.violations:
        logger.info("%d proposal warning(s) for %s", len(proposal.violations), change_name)

    tasks = get_task_progress(change_dir)
    if tasks.incomplete and not allow_incomplete:
        return ArchiveResult(
            success=False,
            change_name=change_name,
            message=(
                f"{tasks.incomplete} incomplete task(s) found in {change_name}/tasks.md. "
                "Complete them or pass --yes to archive anyway."
            ),
            tasks=tasks,
            proposal=proposal,
            dry_run=dry_run,
        )

    specs: Optional[SpecUpdateResult] = None
    if not skip_specs:
        specs = apply_spec_updates(
            change_dir,
            specs_dir,
            change_name=change_name,
            settings=settings,
            validate=validate,
            dry_run=dry_run,
        )
        if not specs.success:
            return ArchiveResult(
                success=False,
                change_name=change_name,
                message=f"{specs.message}\nAborted. No files were changed.",
                specs=specs,
                tasks=tasks,
                proposal=proposal,
                dry_run=dry_run,
            )

    if dry_run:
        return ArchiveResult(
            success=True,
            change_name=change_name,
            message=f"Change '{change_name}' would be archived as '{archive_name}'.",
            archive_path=archive_path,
            specs=specs,
            tasks=tasks,
            dry_run=True,
            proposal=proposal,
        )

    archive_dir.mkdir(parents=True, exist_ok=True)
    shutil.move(str(change_dir), str(archive_path))
    logger.info("Archived %s to %s", change_name, archive_path)

    return ArchiveResult(
        success=True,
        change_name=change_name,
        message=f"Change '{change_name}' archived as '{archive_name}'.",
        archive_path=archive_path,
        specs=specs,
        tasks=tasks,
        proposal=proposal,
    )
