"""In-memory LRU cache of comparison results keyed on file identity and mtime."""

from __future__ import annotations

import dataclasses
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from multi_diff.core.models import ComparisonResult
from multi_diff.core.paths import normalize_path

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CACHE_KEY_VERSION = "v1"
DEFAULT_MAX_ENTRIES = 1000
MISSING_MTIME = -1


@dataclass(frozen=True)
class CacheKeyParts:
    """Identity of one directed comparison.

    ``base_mtime`` and ``compare_mtime`` are nanosecond modification times,
    or ``MISSING_MTIME`` when the file could not be stat'ed.  A new mtime
    yields a new key, so stale entries are never hit and simply age out.
    """

    base_path: Path
    base_mtime: int
    compare_path: Path
    compare_mtime: int
    ignore_whitespace: bool = False

    def key(self) -> str:
        """Deterministic string key for this comparison direction."""
        iw = 1 if self.ignore_whitespace else 0
        return (
            f"{CACHE_KEY_VERSION}|iw:{iw}"
            f"|b:{normalize_path(self.base_path)}|bm:{self.base_mtime}"
            f"|c:{normalize_path(self.compare_path)}|cm:{self.compare_mtime}"
        )

    def reversed(self) -> CacheKeyParts:
        """Return the same pair with base and compare swapped."""
        return CacheKeyParts(
            base_path=self.compare_path,
            base_mtime=self.compare_mtime,
            compare_path=self.base_path,
            compare_mtime=self.base_mtime,
            ignore_whitespace=self.ignore_whitespace,
        )


@dataclass(frozen=True)
class CacheEntry:
    """A stored result together with the request shape that produced it."""

    key: str
    parts: CacheKeyParts
    result: ComparisonResult


class ResultCache:
    """Bounded least-recently-used store of comparison results.

    Lookups also try the reverse direction: a pair compared as (a, b) serves
    a later (b, a) request with the counts swapped.  Only the direct key is
    ever written.

    The cache has a single writer (the run coordinator) and performs no
    locking.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize an empty cache.

        Args:
            max_entries: Capacity before least-recently-used eviction.

        Raises:
            ValueError: If max_entries is not positive.
        """
        if max_entries < 1:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def max_entries(self) -> int:
        """Configured capacity."""
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, parts: object) -> bool:
        if not isinstance(parts, CacheKeyParts):
            return False
        return parts.key() in self._entries

    def get(
        self,
        parts: CacheKeyParts,
        *,
        label: str | None = None,
        target_root: Path | None = None,
    ) -> ComparisonResult | None:
        """Look up a result for the given comparison.

        Args:
            parts: Key of the requested comparison.
            label: Label to place on a reverse-derived result.
            target_root: Workspace root to place on a reverse-derived result.

        Returns:
            A copy of the cached result, a result derived from the reverse
            entry, or None on a miss.
        """
        key = parts.key()
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
            logger.debug("Cache hit: %s", key)
            return dataclasses.replace(entry.result)

        reverse_key = parts.reversed().key()
        entry = self._entries.get(reverse_key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None

        self._entries.move_to_end(reverse_key)
        logger.debug("Reverse cache hit: %s", reverse_key)
        cached = entry.result
        return ComparisonResult(
            label=label if label is not None else cached.label,
            counts=cached.counts.swapped(),
            target_path=parts.compare_path,
            exists=parts.compare_mtime != MISSING_MTIME,
            target_root=target_root if target_root is not None else parts.compare_path.parent,
        )

    def set(self, parts: CacheKeyParts, result: ComparisonResult) -> None:
        """Store a result under the direct key and enforce the capacity bound."""
        key = parts.key()
        self._entries[key] = CacheEntry(key=key, parts=parts, result=dataclasses.replace(result))
        self._entries.move_to_end(key)
        self._evict()

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def _evict(self) -> None:
        """Remove least-recently-used entries until within capacity."""
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache evict: %s", evicted)
