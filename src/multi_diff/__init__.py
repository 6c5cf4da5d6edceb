"""multi-diff: rank a file's line differences across several workspaces."""

__version__ = "0.1.0"
