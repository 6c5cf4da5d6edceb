"""Reference-file eligibility: skip oversized, excluded, and binary-like files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pathspec import GitIgnoreSpec

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_MAX_BYTES = 2 * 1024 * 1024
DEFAULT_SAMPLE_BYTES = 512
DEFAULT_MAX_SUSPICIOUS_RATIO = 0.3

BINARY_PATTERNS: tuple[str, ...] = tuple(
    f"*.{ext}"
    for ext in (
        "png", "jpg", "jpeg", "gif", "bmp", "ico", "webp",
        "mp3", "wav", "flac", "mp4", "avi", "mov", "mkv",
        "zip", "rar", "7z", "gz", "bz2", "xz", "tar",
        "exe", "dll", "so", "dylib", "pdf",
    )
)  # fmt: skip

# Tab, LF, CR.
_TEXT_CONTROL_BYTES = frozenset({9, 10, 13})


@dataclass(frozen=True)
class EligibilityConfig:
    """Immutable rules deciding whether a file may serve as a reference.

    Checks run in order: regular file -> size -> exclude patterns -> content
    sample.
    """

    max_bytes: int = DEFAULT_MAX_BYTES
    exclude_patterns: tuple[str, ...] = BINARY_PATTERNS
    sample_bytes: int = DEFAULT_SAMPLE_BYTES
    max_suspicious_ratio: float = DEFAULT_MAX_SUSPICIOUS_RATIO


class EligibilityFilter:
    """Decides whether a candidate reference file is safe to diff."""

    def __init__(self, config: EligibilityConfig | None = None) -> None:
        """Initialize with optional rules. Defaults to EligibilityConfig()."""
        self._config = config or EligibilityConfig()
        # Pattern matching is case-insensitive, like the extension check it replaces.
        self._spec = GitIgnoreSpec.from_lines(p.lower() for p in self._config.exclude_patterns)

    def is_eligible(self, path: Path) -> bool:
        """Return True if ``path`` is a regular, small, text-like file."""
        try:
            if not path.is_file():
                return False
            if path.stat().st_size > self._config.max_bytes:
                return False
            if self._is_excluded(path):
                return False
            return not self._looks_binary(path)
        except OSError:
            return False

    def _is_excluded(self, path: Path) -> bool:
        """Check the file name against the exclude patterns."""
        return self._spec.match_file(path.name.lower())

    def _looks_binary(self, path: Path) -> bool:
        """Sample the head of the file for NUL bytes or too many non-ASCII bytes."""
        with path.open("rb") as f:
            sample = f.read(self._config.sample_bytes)
        if not sample:
            return False
        if b"\x00" in sample:
            return True
        suspicious = sum(1 for byte in sample if not (32 <= byte <= 126 or byte in _TEXT_CONTROL_BYTES))
        return suspicious / len(sample) > self._config.max_suspicious_ratio
