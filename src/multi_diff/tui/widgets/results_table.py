"""Table widget listing ranked comparison results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.text import Text
from textual.widgets import DataTable

from multi_diff.output.rich_output import result_style

if TYPE_CHECKING:
    from multi_diff.core.models import ComparisonResult, RunOutcome

COLUMNS = ("Workspace", "Added", "Removed", "Total", "Status")


class ResultsTable(DataTable[Text]):
    """DataTable of one run's results, in the coordinator's ranked order."""

    DEFAULT_CSS = """
    ResultsTable {
        height: 1fr;
    }
    """

    def __init__(self) -> None:
        super().__init__(cursor_type="row", zebra_stripes=True)
        self.results: tuple[ComparisonResult, ...] = ()

    def on_mount(self) -> None:
        """Create the fixed columns."""
        self.add_columns(*COLUMNS)

    def show_outcome(self, outcome: RunOutcome) -> None:
        """Replace the rows with the outcome's results."""
        self.clear()
        self.results = outcome.results
        for index, result in enumerate(outcome.results):
            style, status = result_style(result)
            if result.exists:
                cells = (
                    result.label,
                    str(result.counts.added),
                    str(result.counts.removed),
                    str(result.total_changed_lines),
                    status,
                )
            else:
                cells = (result.label, "-", "-", "-", status)
            self.add_row(*(Text(cell, style=style) for cell in cells), key=str(index))
