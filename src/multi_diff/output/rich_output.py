"""Rich console renderer (default output mode)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from multi_diff.core.models import RunState

if TYPE_CHECKING:
    from multi_diff.core.models import ComparisonResult, RunOutcome


MISSING_STYLE = ("yellow", "File Missing")
IDENTICAL_STYLE = ("dim", "identical")
MODIFIED_STYLE = ("", "modified")


def result_style(result: ComparisonResult) -> tuple[str, str]:
    """Return (rich_style, status_label) for a comparison result.

    Shared by the console table and the TUI results table.
    """
    if not result.exists:
        return MISSING_STYLE
    if result.total_changed_lines == 0:
        return IDENTICAL_STYLE
    return MODIFIED_STYLE


class RichRenderer:
    """Renders run outcomes as a ranked table.

    Columns: workspace, added, removed, total, status.  Rows keep the
    coordinator's order: existing files by ascending total changed lines,
    then missing files.

    Row styles:
    - Missing: yellow, "File Missing"
    - Identical: dim
    - Modified: default
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize with an optional Rich console.

        Args:
            console: Rich Console instance. Defaults to Console() if None.
        """
        self._console = console or Console()

    def render(self, outcome: RunOutcome) -> None:
        """Render the outcome according to its state."""
        if outcome.state == RunState.unmatched:
            self._console.print(
                f"[yellow]No matching group for[/yellow] [bold]{outcome.reference_path}[/bold]"
            )
        elif outcome.state == RunState.failed:
            self._console.print("[red]An error occurred while processing the diff.[/red]")
        elif outcome.state == RunState.completed:
            self._console.print(self._build_table(outcome))
        else:
            self._console.print(f"[dim]Run {outcome.run_id} {outcome.state.value}[/dim]")

    def render_summary(self, outcome: RunOutcome) -> None:
        """Render a one-line summary of the outcome."""
        existing = [r for r in outcome.results if r.exists]
        missing = len(outcome.results) - len(existing)
        changed = sum(1 for r in existing if r.total_changed_lines)
        self._console.print(
            f"[bold]{len(outcome.results)}[/bold] workspaces compared: "
            f"[yellow]{changed} modified[/yellow], "
            f"[dim]{len(existing) - changed} identical[/dim], "
            f"[red]{missing} missing[/red]"
        )

    @staticmethod
    def _title(outcome: RunOutcome) -> str:
        """Build the table title from the matched workspace and reference."""
        name = outcome.reference_path.name if outcome.reference_path else ""
        parts = []
        if outcome.workspace is not None:
            parts.append(outcome.workspace.name)
        parts.append(f"[ {name} ]")
        if outcome.group is not None:
            parts.append(f"(group: {outcome.group.name})")
        return " ".join(parts)

    def _build_table(self, outcome: RunOutcome) -> Table:
        """Build the ranked results table."""
        table = Table(title=self._title(outcome), title_style="bold")
        table.add_column("Workspace", style="bold", no_wrap=True)
        table.add_column("Added", justify="right", style="green")
        table.add_column("Removed", justify="right", style="red")
        table.add_column("Total", justify="right")
        table.add_column("Status", justify="center")

        for result in outcome.results:
            style, status = result_style(result)
            if result.exists:
                added, removed = str(result.counts.added), str(result.counts.removed)
                total = str(result.total_changed_lines)
            else:
                added = removed = total = "-"
            table.add_row(result.label, added, removed, total, status, style=style or None)

        return table
