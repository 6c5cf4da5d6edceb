"""Tests for multi_diff.output.rich_output."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

from rich.console import Console

from multi_diff.core.models import ComparisonResult, DiffCounts, DiffGroup, RunOutcome, RunState, Workspace
from multi_diff.output.base import Renderer
from multi_diff.output.rich_output import IDENTICAL_STYLE, MISSING_STYLE, MODIFIED_STYLE, RichRenderer, result_style

ALPHA = Workspace("alpha", Path("/ws/alpha"))


def _make_outcome(state: RunState = RunState.completed) -> RunOutcome:
    """Helper to build a completed outcome with one result of each kind."""
    group = DiffGroup(name="sample", workspaces=(ALPHA,))
    results = (
        ComparisonResult.unchanged("beta", Path("/ws/beta/app.py"), Path("/ws/beta")),
        ComparisonResult(
            label="gamma",
            counts=DiffCounts(added=3, removed=2),
            target_path=Path("/ws/gamma/app.py"),
            exists=True,
            target_root=Path("/ws/gamma"),
        ),
        ComparisonResult.missing("delta", Path("/ws/delta/app.py"), Path("/ws/delta")),
    )
    return RunOutcome(
        run_id=3,
        state=state,
        reference_path=Path("/ws/alpha/app.py"),
        group=group,
        workspace=ALPHA,
        results=results if state == RunState.completed else (),
    )


def _renderer() -> RichRenderer:
    return RichRenderer(console=Console(file=StringIO(), width=120))


def _capture(renderer: RichRenderer) -> str:
    """Return everything the renderer has written so far."""
    file = renderer._console.file
    assert isinstance(file, StringIO)
    return file.getvalue()


class TestRichRendererInit:
    """Verify RichRenderer constructor."""

    def test_default_console(self) -> None:
        assert RichRenderer()._console is not None

    def test_custom_console(self) -> None:
        console = Console(file=StringIO())
        assert RichRenderer(console=console)._console is console

    def test_satisfies_protocol(self) -> None:
        assert isinstance(_renderer(), Renderer)


class TestRichRendererTable:
    """Verify the ranked results table."""

    def test_title_names_workspace_file_and_group(self) -> None:
        r = _renderer()
        r.render(_make_outcome())
        output = _capture(r)
        assert "alpha [ app.py ] (group: sample)" in output

    def test_rows_keep_order(self) -> None:
        r = _renderer()
        r.render(_make_outcome())
        output = _capture(r)
        assert output.index("beta") < output.index("gamma") < output.index("delta")

    def test_statuses(self) -> None:
        r = _renderer()
        r.render(_make_outcome())
        output = _capture(r)
        assert "identical" in output
        assert "modified" in output
        assert "File Missing" in output

    def test_counts_shown(self) -> None:
        r = _renderer()
        r.render(_make_outcome())
        gamma_line = next(line for line in _capture(r).splitlines() if "gamma" in line)
        assert "3" in gamma_line
        assert "2" in gamma_line
        assert "5" in gamma_line

    def test_missing_row_has_no_counts(self) -> None:
        r = _renderer()
        r.render(_make_outcome())
        delta_line = next(line for line in _capture(r).splitlines() if "delta" in line)
        assert "-" in delta_line
        assert "0" not in delta_line


class TestRichRendererStates:
    """Verify rendering of non-completed outcomes."""

    def test_unmatched(self) -> None:
        r = _renderer()
        r.render(RunOutcome(run_id=1, state=RunState.unmatched, reference_path=Path("/x/app.py")))
        output = _capture(r)
        assert "No matching group for" in output
        assert "app.py" in output

    def test_failed(self) -> None:
        r = _renderer()
        r.render(_make_outcome(RunState.failed))
        assert "An error occurred while processing the diff." in _capture(r)

    def test_cancelled(self) -> None:
        r = _renderer()
        r.render(RunOutcome(run_id=4, state=RunState.cancelled, reference_path=None))
        assert "Run 4 cancelled" in _capture(r)


class TestRichRendererSummary:
    """Verify the one-line summary."""

    def test_summary_counts(self) -> None:
        r = _renderer()
        r.render_summary(_make_outcome())
        output = _capture(r)
        assert "3 workspaces compared" in output
        assert "1 modified" in output
        assert "1 identical" in output
        assert "1 missing" in output


class TestResultStyle:
    """Verify the row style shared with the TUI table."""

    def test_each_kind_of_result(self) -> None:
        beta, gamma, delta = _make_outcome().results
        assert result_style(beta) == IDENTICAL_STYLE
        assert result_style(gamma) == MODIFIED_STYLE
        assert result_style(delta) == MISSING_STYLE

    def test_tui_table_uses_same_styles(self) -> None:
        from multi_diff.tui.widgets import results_table

        assert results_table.result_style is result_style
