"""TUI widgets for result display."""

from multi_diff.tui.widgets.results_table import ResultsTable
from multi_diff.tui.widgets.status_bar import StatusBar

__all__ = ["ResultsTable", "StatusBar"]
