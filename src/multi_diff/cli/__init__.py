"""Command-line interface for multi-diff."""
