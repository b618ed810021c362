"""Render a plan as styled terminal lines, with helpers for the review screen."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .model import Feature, Plan, Status
from .serializer import _status_text
from .status import _as_status

_RESET = "\x1b[0m"
_HR_MAX = 60
_TOP_HINTS = "j/k:scroll  n/p:task  c:comment  a:apply  /:search  q:quit "

_TASK_COLOURS = {
    Status.COMPLETED: 34,
    Status.IN_PROGRESS: 220,
    Status.PENDING: 245,
    Status.FAILED: 196,
    Status.BLOCKED: 208,
}


def _style(
    text: str,
    *,
    fg: int | None = None,
    bg: int | None = None,
    bold: bool = False,
    padding: int = 0,
) -> str:
    """Wrap text in 256-colour terminal escape codes."""
    codes = []
    if bold:
        codes.append("1")
    if fg is not None:
        codes.append(f"38;5;{fg}")
    if bg is not None:
        codes.append(f"48;5;{bg}")
    pad = " " * padding
    body = f"{pad}{text}{pad}"
    if not codes:
        return body
    return f"\x1b[{';'.join(codes)}m{body}{_RESET}"


def _visible_width(text: str) -> int:
    return len(strip_ansi(text))


def _bar(content: str, width: int) -> str:
    """Render a full-width status bar."""
    body = f" {content} "
    fill = max(0, width - _visible_width(body))
    return _style(body + " " * fill, fg=252, bg=236)


def _hint(text: str) -> str:
    return _style(text, fg=243)


@dataclass(frozen=True)
class LineEntry:
    """A rendered line and the feature and task it belongs to (-1 for none)."""

    text: str
    feature_index: int = -1
    task_index: int = -1


def wrap_text(text: str, width: int) -> list[str]:
    """Word-wrap each paragraph of text to the given width (80 if not positive)."""
    if width <= 0:
        width = 80
    result: list[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            result.append("")
            continue
        line = words[0]
        for word in words[1:]:
            if len(line) + 1 + len(word) > width:
                result.append(line)
                line = word
            else:
                line += " " + word
        result.append(line)
    return result


def feature_counts(feature: Feature) -> str:
    """Return a ``(done/total)`` count of the feature's completed tasks."""
    done = sum(1 for t in feature.tasks if _as_status(t.status) == Status.COMPLETED)
    return f"({done}/{len(feature.tasks)})"


def render_plan(plan: Plan, width: int) -> list[LineEntry]:
    """Build the styled lines of a plan, each tagged with its feature and task."""
    lines: list[LineEntry] = []
    fi, ti = -1, -1

    def add(text: str) -> None:
        lines.append(LineEntry(text, fi, ti))

    add(_style(f"# {plan.title}", fg=255, bold=True))
    add("")

    if plan.overview:
        for line in wrap_text(plan.overview, width - 2):
            add(_style(line, fg=250))
        add("")

    for fi, feature in enumerate(plan.features):
        ti = -1
        heading = f"## Feature {feature.number}: {feature.title}  {feature_counts(feature)}"
        add(_style(heading, fg=39, bold=True))
        if feature.overview:
            for line in wrap_text(feature.overview, width - 2):
                add(_style(line, fg=250))
        add("")

        for ti, task in enumerate(feature.tasks):
            status = _as_status(task.status)
            status_word = _status_text(task.status) if task.status else ""
            heading = f"### Task {task.full_id()}: {task.title}  {status.icon()} {status_word}"
            add(_style(heading, fg=_TASK_COLOURS[status], bold=True))

            if task.complexity:
                add(_style("  Complexity: ", fg=243) + _style(_status_text(task.complexity), fg=252))
            if task.files:
                add(_style("  Files: ", fg=243) + _style(", ".join(task.files), fg=252))
            if task.depends_on:
                add(_style("  Depends on: ", fg=243) + _style(", ".join(task.depends_on), fg=252))

            if task.description:
                add("")
                for line in wrap_text(task.description, width - 4):
                    add(_style("  " + line, fg=250))

            if task.criteria:
                add("")
                add(_style("  Acceptance Criteria:", bold=True))
                for criterion in task.criteria:
                    if criterion.is_met:
                        add(_style(f"  [x] {criterion.description}", fg=34))
                    else:
                        add(_style(f"  [ ] {criterion.description}", fg=245))

            for comment in task.comments:
                add("")
                for line in wrap_text(comment, width - 6):
                    add(_style("> " + line, fg=0, bg=178, padding=1))

            add("")

            if ti < len(feature.tasks) - 1:
                add(_style("─" * min(width - 2, _HR_MAX), fg=240))
                add("")

        if fi < len(plan.features) - 1:
            ti = -1
            add(_style("━" * min(width - 2, _HR_MAX), fg=240))
            add("")

    return lines


def render_top_bar(plan: Plan, width: int) -> str:
    """Render the top bar with the plan title, task counts and key hints."""
    tasks = [t for f in plan.features for t in f.tasks]
    done = sum(1 for t in tasks if _as_status(t.status) == Status.COMPLETED)
    left = f" {plan.title}  [{done}/{len(tasks)} tasks]"
    right = _hint(_TOP_HINTS)
    gap = max(1, width - _visible_width(left) - _visible_width(right))
    return _bar(left + " " * gap + right, width)


def collect_comments(plan: Plan) -> list[str]:
    """Return every review comment in the plan, prefixed with its task ID."""
    return [
        f"[Task {task.full_id()}] {comment}"
        for feature in plan.features
        for task in feature.tasks
        for comment in task.comments
    ]


def backup_plan(path: str | os.PathLike[str], now: datetime | None = None) -> str:
    """Copy the plan file to a timestamped backup and return the backup path."""
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    backup_path = f"{os.fspath(path)}.bak.{stamp}"
    Path(backup_path).write_bytes(Path(path).read_bytes())
    return backup_path


def restore_backup(backup_path: str | os.PathLike[str], orig_path: str | os.PathLike[str]) -> None:
    """Copy a backup file back over the original plan file."""
    Path(orig_path).write_bytes(Path(backup_path).read_bytes())


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences from text."""
    out = []
    in_escape = False
    for ch in text:
        if ch == "\x1b":
            in_escape = True
            continue
        if in_escape:
            if ("a" <= ch <= "z") or ("A" <= ch <= "Z"):
                in_escape = False
            continue
        out.append(ch)
    return "".join(out)


def is_comment_line(text: str) -> bool:
    """Return True if a rendered line shows a review comment."""
    return strip_ansi(text).strip().startswith("> ")


def find_comment_for_line(line_text: str, comments: list[str]) -> int | None:
    """Return the index of the comment whose first line a rendered line shows."""
    trimmed = strip_ansi(line_text).strip()
    if trimmed.startswith("> 💬 "):
        content = trimmed[len("> 💬 "):]
    elif trimmed.startswith("> "):
        content = trimmed[len("> "):]
    else:
        content = trimmed
    content = content.strip()

    for i, comment in enumerate(comments):
        if comment.split("\n")[0].strip() == content:
            return i
    return None


def highlight_search(line: str, query: str) -> str:
    """Highlight every case-insensitive occurrence of the query in the line."""
    if not query:
        return line
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    return pattern.sub(lambda m: _style(m.group(0), fg=0, bg=220), line)