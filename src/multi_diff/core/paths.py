"""Path identity helpers shared by the cache and the coordinator."""

from __future__ import annotations

import os
import sys
from pathlib import Path

_CASE_INSENSITIVE_PLATFORMS = ("win32", "darwin")


def is_case_insensitive_fs() -> bool:
    """Return True on platforms whose default filesystem ignores case."""
    return sys.platform in _CASE_INSENSITIVE_PLATFORMS


def normalize_path(path: Path | str) -> str:
    """Return the comparison form of a path.

    Lower-cased only on case-insensitive filesystems.
    """
    text = str(path)
    return text.lower() if is_case_insensitive_fs() else text


def clean_path(path: Path | str) -> Path:
    """Collapse ``.`` and ``..`` segments and redundant separators.

    Purely lexical: symlinks are left alone, so a cleaned workspace root
    still prefixes a cleaned reference inside it.
    """
    return Path(os.path.normpath(path))


def same_path(left: Path | str, right: Path | str) -> bool:
    """Check whether two paths name the same file by string identity."""
    return normalize_path(left) == normalize_path(right)
