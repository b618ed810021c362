"""Line-based diff of two texts using a longest-common-subsequence table."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class DiffKind(Enum):
    """How a diff line relates the old and new text."""

    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffLine:
    """One line of a computed diff."""

    kind: DiffKind
    text: str


_COLOURS = {DiffKind.ADDED: 34, DiffKind.REMOVED: 196, DiffKind.CONTEXT: 245}
_PREFIXES = {DiffKind.ADDED: "+ ", DiffKind.REMOVED: "- ", DiffKind.CONTEXT: "  "}


def split_trimmed(text: str) -> list[str]:
    """Split text into lines, dropping the empty line after a final newline."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def compute_diff(old_text: str, new_text: str) -> list[DiffLine]:
    """Return the line diff that turns ``old_text`` into ``new_text``."""
    old = split_trimmed(old_text)
    new = split_trimmed(new_text)
    m, n = len(old), len(new)

    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i, old_line in enumerate(old, start=1):
        row, prev = table[i], table[i - 1]
        for j, new_line in enumerate(new, start=1):
            if old_line == new_line:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])

    result: list[DiffLine] = []
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old[i - 1] == new[j - 1]:
            result.append(DiffLine(DiffKind.CONTEXT, old[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            result.append(DiffLine(DiffKind.ADDED, new[j - 1]))
            j -= 1
        else:
            result.append(DiffLine(DiffKind.REMOVED, old[i - 1]))
            i -= 1

    result.reverse()
    return result


def render_diff_line(line: DiffLine) -> str:
    """Render a diff line with its prefix in a terminal colour."""
    return f"\x1b[38;5;{_COLOURS[line.kind]}m{_PREFIXES[line.kind]}{line.text}\x1b[0m"


def diff_stats(lines: Iterable[DiffLine]) -> tuple[int, int]:
    """Return the number of added and removed lines."""
    added = removed = 0
    for line in lines:
        if line.kind is DiffKind.ADDED:
            added += 1
        elif line.kind is DiffKind.REMOVED:
            removed += 1
    return added, removed