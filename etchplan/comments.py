"""Add and remove review comments inside a plan file's task sections."""

from __future__ import annotations

import os
import re

from .serializer import (
    PlanEditError,
    _is_heading,
    _read_lines,
    _starts_with_any,
    _write_lines,
    task_id_patterns,
)

_COMMENT_START_RE = re.compile(r"^>\s*💬\s*(.+)$")
_COMMENT_CONT_RE = re.compile(r"^>\s*(.+)$")


def build_comment_lines(comment: str) -> list[str]:
    """Format a comment as blockquote lines, the first carrying the speech icon."""
    first, *rest = comment.split("\n")
    return [f"> 💬 {first}", *(f"> {line}" for line in rest)]


def add_comment(path: str | os.PathLike[str], task_id: str, comment: str) -> None:
    """Insert a comment at the end of the given task's section."""
    lines = _read_lines(path)
    patterns = task_id_patterns(task_id)

    in_task = False
    insert_idx = len(lines)
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not in_task:
            if _starts_with_any(trimmed, patterns):
                in_task = True
            continue
        if _is_heading(trimmed):
            insert_idx = i
            break
        insert_idx = i + 1

    if not in_task:
        raise PlanEditError(f"task {task_id} not found in {path}")

    lines[insert_idx:insert_idx] = ["", *build_comment_lines(comment)]
    _write_lines(path, lines)


def delete_comment(path: str | os.PathLike[str], task_id: str, comment_text: str) -> None:
    """Remove the comment whose full text matches, within the given task."""
    lines = _read_lines(path)
    patterns = task_id_patterns(task_id)

    in_task = False
    span: tuple[int, int] | None = None
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not in_task:
            if _starts_with_any(trimmed, patterns):
                in_task = True
            continue
        if _is_heading(trimmed):
            break

        match = _COMMENT_START_RE.match(trimmed)
        if not match:
            continue

        parts = [match.group(1).strip()]
        end = i + 1
        while end < len(lines):
            next_trimmed = lines[end].strip()
            cont = _COMMENT_CONT_RE.match(next_trimmed)
            if not cont or _COMMENT_START_RE.match(next_trimmed):
                break
            parts.append(cont.group(1).strip())
            end += 1

        if "\n".join(parts) == comment_text:
            start = i
            if start > 0 and not lines[start - 1].strip():
                start -= 1
            span = (start, end)
            break

    if span is None:
        raise PlanEditError(f"comment not found in task {task_id}")

    del lines[span[0] : span[1]]
    _write_lines(path, lines)