"""Renderer protocol for run outcomes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from multi_diff.core.models import RunOutcome


@runtime_checkable
class Renderer(Protocol):
    """Protocol for rendering run outcomes.

    Implementations must provide a render method that takes a RunOutcome
    and writes output to the appropriate destination (console, file, etc.).
    """

    def render(self, outcome: RunOutcome) -> None:
        """Render the run outcome."""
        ...
