"""Textual TUI application for browsing ranked diff results."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.widgets import Footer, Header

from multi_diff.core.coordinator import RunCoordinator
from multi_diff.core.models import RunState
from multi_diff.tui.widgets.results_table import ResultsTable
from multi_diff.tui.widgets.status_bar import StatusBar

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from multi_diff.core.coordinator import PoolFactory
    from multi_diff.core.models import DiffGroup, RunOutcome


class MultiDiffApp(App[None]):
    """Interactive TUI showing a reference file ranked against its workspaces.

    Every refresh is a new coordinator run; a refresh started while another
    is in flight supersedes it. The coordinator publishes only the newest
    run, straight into the table, and reports failed runs as notifications.
    With ``watch_interval`` the app re-runs periodically while idle, so
    summaries follow file changes.  Unchanged pairs come from the cache.
    """

    CSS_PATH = "styles/app.tcss"
    TITLE = "multi-diff"

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("c", "cancel", "Cancel"),
    ]

    def __init__(
        self,
        groups: Sequence[DiffGroup],
        *,
        reference: Path | None = None,
        group: DiffGroup | None = None,
        pool_factory: PoolFactory | None = None,
        pool_size: int | None = None,
        watch_interval: float | None = None,
    ) -> None:
        super().__init__()
        self.coordinator = RunCoordinator(
            groups,
            pool_factory=pool_factory,
            pool_size=pool_size,
            publisher=self.show_outcome,
            notifier=self._notify_failure,
        )
        self._reference = reference
        self._group = group
        self._watch_interval = watch_interval
        self.outcome: RunOutcome | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield ResultsTable()
        yield StatusBar()
        yield Footer()

    def on_mount(self) -> None:
        """Start the first run and, if requested, the watch timer."""
        self.action_refresh()
        if self._watch_interval:
            self.set_interval(self._watch_interval, self._on_watch_tick)

    def action_refresh(self) -> None:
        """Start a new run against the current reference."""
        self.query_one(StatusBar).show_loading()
        self.run_worker(self._run_diff(), group="diff")

    def action_cancel(self) -> None:
        """Cancel the run in progress."""
        self.coordinator.cancel()

    def _on_watch_tick(self) -> None:
        if self.coordinator.state != RunState.running:
            self.action_refresh()

    async def _run_diff(self) -> None:
        await self.coordinator.run(group=self._group, reference=self._reference)

    def _notify_failure(self, message: str) -> None:
        self.notify(message, severity="error")

    def show_outcome(self, outcome: RunOutcome) -> None:
        """Display a published outcome."""
        self.outcome = outcome
        self._reference = outcome.reference_path
        if outcome.group is not None:
            self._group = outcome.group
        self.query_one(ResultsTable).show_outcome(outcome)
        self.query_one(StatusBar).show_outcome(outcome)
        if outcome.state == RunState.unmatched:
            self.notify("No matching group for current file.", severity="warning")
