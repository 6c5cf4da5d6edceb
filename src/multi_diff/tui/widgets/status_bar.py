"""Status bar widget showing the reference file and run state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.widgets import Static

from multi_diff.core.models import RunState

if TYPE_CHECKING:
    from multi_diff.core.models import RunOutcome


class StatusBar(Static):
    """Bottom bar displaying the reference, matched group, and run summary."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: $boost;
        color: $text;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__("Loading diffs...")
        self.last_content: str = "Loading diffs..."

    def show_loading(self) -> None:
        """Indicate that a run is in progress."""
        self._set("Loading diffs...")

    def show_outcome(self, outcome: RunOutcome) -> None:
        """Summarize a published outcome."""
        name = outcome.reference_path.name if outcome.reference_path else "-"
        if outcome.state == RunState.unmatched:
            self._set(f"{name} | [yellow]File is not in a diff group[/yellow]")
            return
        if outcome.state == RunState.failed:
            self._set(f"{name} | [red]diff failed[/red]")
            return

        missing = sum(1 for r in outcome.results if not r.exists)
        changed = sum(1 for r in outcome.results if r.exists and r.total_changed_lines)
        group = outcome.group.name if outcome.group else "-"
        workspace = outcome.workspace.name if outcome.workspace else "-"
        self._set(
            f"{workspace} / {name} | group: {group} | "
            f"[yellow]{changed} modified[/yellow] [red]{missing} missing[/red] "
            f"| run {outcome.run_id}"
        )

    def _set(self, content: str) -> None:
        self.last_content = content
        self.update(content)
