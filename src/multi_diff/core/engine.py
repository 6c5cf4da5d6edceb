"""Line-difference counting engine.

Counts how many lines exist only on one side of a minimal alignment of two
texts, without building an edit script.  The core is the O(N*D) greedy
forward search from Myers' "An O(ND) Difference Algorithm and Its
Variations", run on integer tokens after the common prefix and suffix have
been trimmed away.

Whitespace-insensitive mode collapses every whitespace run to a single space
and strips line ends before comparing.  Two lines that differ only in
whitespace therefore count as unchanged, even where a character-level diff
would still report them.  This is a counting approximation and is kept
deliberately.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from multi_diff.core.errors import DiffInvariantError
from multi_diff.core.models import DiffCounts

if TYPE_CHECKING:
    from collections.abc import Sequence

_LINE_BREAKS = re.compile(r"\r\n|[\r\u2028\u2029]")


def split_lines(text: str) -> list[str]:
    """Split text into lines after normalizing line endings.

    CRLF, lone CR, and the Unicode line/paragraph separators all become a
    single break.  Empty text yields no lines, and a trailing break does not
    produce an extra empty line.
    """
    if not text:
        return []
    lines = _LINE_BREAKS.sub("\n", text).split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def normalize_whitespace(line: str) -> str:
    """Collapse whitespace runs to one space and strip both ends."""
    return " ".join(line.split())


def compute_counts(
    base_text: str,
    compare_text: str,
    ignore_whitespace: bool = False,
) -> DiffCounts:
    """Count lines removed from ``base_text`` and added in ``compare_text``.

    Args:
        base_text: Left-hand text.
        compare_text: Right-hand text.
        ignore_whitespace: Treat lines differing only in whitespace as equal.

    Returns:
        DiffCounts where ``removed`` are base-only lines and ``added`` are
        compare-only lines.

    Raises:
        DiffInvariantError: If the derived counts are impossible.
    """
    if not ignore_whitespace and base_text == compare_text:
        return DiffCounts()

    base_lines = split_lines(base_text)
    compare_lines = split_lines(compare_text)

    if ignore_whitespace:
        base_lines = [normalize_whitespace(line) for line in base_lines]
        compare_lines = [normalize_whitespace(line) for line in compare_lines]

    if base_lines == compare_lines:
        return DiffCounts()

    start, base_end, compare_end = _trim_common(base_lines, compare_lines)
    base_core = base_lines[start:base_end]
    compare_core = compare_lines[start:compare_end]

    n = len(base_core)
    m = len(compare_core)
    if n == 0 or m == 0:
        return DiffCounts(added=m, removed=n)

    base_tokens, compare_tokens = _tokenize(base_core, compare_core)
    distance = edit_distance(base_tokens, compare_tokens)

    common_twice = n + m - distance
    if common_twice < 0 or common_twice % 2:
        msg = f"Edit distance {distance} is inconsistent with lengths {n} and {m}"
        raise DiffInvariantError(msg)

    lcs = common_twice // 2
    removed = n - lcs
    added = m - lcs
    if removed < 0 or added < 0:
        msg = f"Negative line count: +{added}/-{removed}"
        raise DiffInvariantError(msg)
    return DiffCounts(added=added, removed=removed)


def _trim_common(base: Sequence[str], compare: Sequence[str]) -> tuple[int, int, int]:
    """Return (start, base_end, compare_end) bounding the differing core."""
    start = 0
    limit = min(len(base), len(compare))
    while start < limit and base[start] == compare[start]:
        start += 1

    base_end = len(base)
    compare_end = len(compare)
    while base_end > start and compare_end > start and base[base_end - 1] == compare[compare_end - 1]:
        base_end -= 1
        compare_end -= 1

    return start, base_end, compare_end


def _tokenize(base: Sequence[str], compare: Sequence[str]) -> tuple[list[int], list[int]]:
    """Map lines to small integers through one dictionary shared by both sides."""
    table: dict[str, int] = {}
    base_tokens = [table.setdefault(line, len(table)) for line in base]
    compare_tokens = [table.setdefault(line, len(table)) for line in compare]
    return base_tokens, compare_tokens


def edit_distance(a: Sequence[int], b: Sequence[int]) -> int:
    """Minimum number of insertions plus deletions turning ``a`` into ``b``.

    Greedy forward search over diagonals.  ``frontier[offset + k]`` holds the
    furthest x reached on diagonal ``k = x - y`` with the current number of
    edits.
    """
    n = len(a)
    m = len(b)
    max_d = n + m
    if max_d == 0:
        return 0

    offset = max_d + 1
    frontier = [0] * (2 * max_d + 3)

    for d in range(max_d + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and frontier[offset + k - 1] < frontier[offset + k + 1]):
                x = frontier[offset + k + 1]
            else:
                x = frontier[offset + k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            frontier[offset + k] = x
            if x >= n and y >= m:
                return d

    msg = f"Edit search exhausted without reaching ({n}, {m})"
    raise DiffInvariantError(msg)
