"""Data models for multi-diff comparison runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class OutputMode(StrEnum):
    """Output format for rendering results."""

    rich = "rich"
    json = "json"
    tui = "tui"


class RunState(StrEnum):
    """Lifecycle state of a diff run."""

    idle = "idle"
    running = "running"
    completed = "completed"
    superseded = "superseded"
    cancelled = "cancelled"
    failed = "failed"
    unmatched = "unmatched"


@dataclass(frozen=True)
class Workspace:
    """A named root directory that holds a copy of the project."""

    name: str
    path: Path


@dataclass(frozen=True)
class DiffGroup:
    """An ordered set of workspaces compared against each other."""

    name: str
    workspaces: tuple[Workspace, ...]
    ignore_whitespace: bool = False


@dataclass(frozen=True)
class DiffCounts:
    """Line counts present on only one side after minimal alignment."""

    added: int = 0
    removed: int = 0

    def __post_init__(self) -> None:
        if self.added < 0 or self.removed < 0:
            msg = f"Line counts must be non-negative, got +{self.added}/-{self.removed}"
            raise ValueError(msg)

    @property
    def total(self) -> int:
        """Total number of changed lines."""
        return self.added + self.removed

    def swapped(self) -> DiffCounts:
        """Return the counts as seen from the opposite direction."""
        return DiffCounts(added=self.removed, removed=self.added)


@dataclass(frozen=True)
class ComparisonRequest:
    """One pairwise comparison: the reference against a single workspace."""

    reference_path: Path
    target_root: Path
    target_relative_path: Path
    label: str
    ignore_whitespace: bool = False
    reference_content: str | None = None

    @property
    def target_path(self) -> Path:
        """Full path of the file being compared against the reference."""
        return self.target_root / self.target_relative_path


@dataclass(frozen=True)
class ComparisonResult:
    """Summary of one comparison.

    A result with ``exists=False`` always carries zero counts: absence is
    not a diff.
    """

    label: str
    counts: DiffCounts
    target_path: Path
    exists: bool
    target_root: Path
    total_changed_lines: int = field(init=False)

    def __post_init__(self) -> None:
        if not self.exists and self.counts.total:
            msg = f"Missing file cannot carry line counts: {self.target_path}"
            raise ValueError(msg)
        object.__setattr__(self, "total_changed_lines", self.counts.total)

    @classmethod
    def missing(cls, label: str, target_path: Path, target_root: Path) -> ComparisonResult:
        """Build a result for a target file that does not exist."""
        return cls(
            label=label,
            counts=DiffCounts(),
            target_path=target_path,
            exists=False,
            target_root=target_root,
        )

    @classmethod
    def unchanged(cls, label: str, target_path: Path, target_root: Path) -> ComparisonResult:
        """Build a zero-diff result for an existing target file."""
        return cls(
            label=label,
            counts=DiffCounts(),
            target_path=target_path,
            exists=True,
            target_root=target_root,
        )


@dataclass(frozen=True)
class RunOutcome:
    """What a single diff run yields to the presentation layer."""

    run_id: int
    state: RunState
    reference_path: Path | None
    group: DiffGroup | None = None
    workspace: Workspace | None = None
    results: tuple[ComparisonResult, ...] = ()
