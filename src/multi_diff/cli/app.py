"""CLI entry point for multi-diff."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from multi_diff.core.config import discover_config, group_by_name, load_config
from multi_diff.core.coordinator import RunCoordinator
from multi_diff.core.errors import ConfigError
from multi_diff.core.filtering import EligibilityFilter
from multi_diff.core.models import OutputMode, RunState
from multi_diff.core.paths import clean_path
from multi_diff.output.rich_output import RichRenderer

if TYPE_CHECKING:
    from multi_diff.core.models import DiffGroup
    from multi_diff.output.base import Renderer

app = typer.Typer(
    name="multi-diff",
    help="Compare a file against the same file in several workspaces.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from multi_diff import __version__

        typer.echo(f"multi-diff {__version__}")
        raise typer.Exit()


def _configure_logging(*, verbose: bool) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _parse_output_mode(value: str) -> OutputMode:
    """Parse output string to OutputMode enum."""
    try:
        return OutputMode(value)
    except ValueError:
        valid = ", ".join(o.value for o in OutputMode)
        msg = f"Invalid output mode '{value}'. Choose from: {valid}"
        raise typer.BadParameter(msg) from None


def _load_groups(config: Path | None, *, ignore_whitespace: bool) -> tuple[DiffGroup, ...]:
    """Load groups from an explicit or discovered configuration file."""
    config_path = config or discover_config()
    if config_path is None:
        msg = "No configuration file found (.multi-diff.toml or .multi-diff.json). Use --config to specify one."
        raise ConfigError(msg)
    groups = load_config(config_path)
    if ignore_whitespace:
        groups = tuple(dataclasses.replace(g, ignore_whitespace=True) for g in groups)
    return groups


def _get_renderer(output_mode: OutputMode) -> Renderer:
    """Get the appropriate renderer for a non-interactive output mode.

    Args:
        output_mode: The output mode to use.

    Returns:
        A renderer instance.

    Raises:
        NotImplementedError: If the output mode has no renderer.
    """
    if output_mode == OutputMode.rich:
        return RichRenderer()
    if output_mode == OutputMode.json:
        from multi_diff.output.json_output import JsonRenderer

        return JsonRenderer()

    msg = f"Output mode '{output_mode}' has no renderer"
    raise NotImplementedError(msg)


@app.command()
def main(
    reference: Annotated[
        Path,
        typer.Argument(help="Reference file compared against every workspace of its group."),
    ],
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Diff group to use instead of matching by path."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file (.toml or .json)."),
    ] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help="Output mode: rich, json, or tui."),
    ] = "rich",
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-w", help="Maximum number of worker processes."),
    ] = None,
    ignore_whitespace: Annotated[
        bool,
        typer.Option("--ignore-whitespace", help="Treat whitespace-only line changes as unchanged."),
    ] = False,
    watch: Annotated[
        float | None,
        typer.Option("--watch", help="TUI only: re-run every N seconds while idle."),
    ] = None,
    summary: Annotated[
        bool,
        typer.Option("--summary", help="Also print a one-line summary (rich output)."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging on stderr."),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Rank line differences of REFERENCE across the workspaces of its group.

    Workspaces missing the file are listed last.
    """
    _configure_logging(verbose=verbose)

    try:
        output_mode = _parse_output_mode(output)
        groups = _load_groups(config, ignore_whitespace=ignore_whitespace)
        chosen = group_by_name(groups, group) if group else None

        reference = clean_path(reference.expanduser().absolute())
        if not reference.exists():
            msg = f"Reference file does not exist: {reference}"
            raise FileNotFoundError(msg)
        if not EligibilityFilter().is_eligible(reference):
            msg = f"Reference is not an eligible text file (binary, excluded, or too large): {reference}"
            raise ValueError(msg)

        # TUI runs its own event loop and its own coordinator
        if output_mode == OutputMode.tui:
            from multi_diff.tui import MultiDiffApp

            MultiDiffApp(
                groups,
                reference=reference,
                group=chosen,
                pool_size=workers,
                watch_interval=watch,
            ).run()
            return

        renderer = _get_renderer(output_mode)
        coordinator = RunCoordinator(groups, pool_size=workers, publisher=renderer.render)
        outcome = asyncio.run(coordinator.run(group=chosen, reference=reference))
        if summary and isinstance(renderer, RichRenderer) and outcome.state == RunState.completed:
            renderer.render_summary(outcome)
        if outcome.state in (RunState.unmatched, RunState.failed):
            raise typer.Exit(code=1)

    except (ConfigError, FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from None
    except NotImplementedError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
