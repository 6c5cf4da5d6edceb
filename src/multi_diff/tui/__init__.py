"""Textual TUI for browsing ranked diff results."""

from multi_diff.tui.app import MultiDiffApp

__all__ = ["MultiDiffApp"]
