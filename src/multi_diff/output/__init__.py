"""Public API for multi_diff.output."""

from __future__ import annotations

from multi_diff.output.base import Renderer
from multi_diff.output.json_output import JsonRenderer
from multi_diff.output.rich_output import RichRenderer

__all__ = [
    "JsonRenderer",
    "Renderer",
    "RichRenderer",
]
