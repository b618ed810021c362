"""Session progress files: creation, parsing and targeted in-place edits."""

from __future__ import annotations

import glob
import logging
import os
import re
from datetime import datetime
from pathlib import Path

from .model import Criterion, Plan, SessionProgress, Task
from .serializer import _read_lines, _write_lines

PROGRESS_DIR = Path(".etch") / "progress"
MAX_CREATE_ATTEMPTS = 100

_log = logging.getLogger(__name__)
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)", re.ASCII)


class ProgressError(Exception):
    """Raised when a progress file cannot be created, found or edited."""


def _scan_int(text: str) -> int | None:
    """Read a leading decimal integer, as a ``%d`` scan would."""
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else None


def _session_number_from_name(path: str) -> int | None:
    stem = os.path.basename(path)
    if stem.endswith(".md"):
        stem = stem[: -len(".md")]
    parts = stem.split("--")
    if len(parts) < 3:
        return None
    return _scan_int(parts[-1])


def _task_glob(directory: str | os.PathLike[str], plan_slug: str, task_id: str) -> list[str]:
    pattern = os.path.join(
        glob.escape(os.fspath(directory)),
        f"{glob.escape(plan_slug)}--task-{glob.escape(task_id)}--*.md",
    )
    return sorted(glob.glob(pattern))


def format_filename(plan_slug: str, task_id: str, session: int) -> str:
    """Return the progress file name for a plan, task and session number."""
    return f"{plan_slug}--task-{task_id}--{session:03d}.md"


def next_session_number(directory: str | os.PathLike[str], plan_slug: str, task_id: str) -> int:
    """Return one more than the highest existing session number for the task."""
    numbers = (
        _session_number_from_name(path)
        for path in _task_glob(directory, plan_slug, task_id)
    )
    return max((n for n in numbers if n is not None and n > 0), default=0) + 1


def render_template(plan: Plan, task: Task, session: int, started: str) -> str:
    """Render a fresh progress file for a session."""
    task_id = task.full_id()
    criteria = "".join(
        f"- [{'x' if c.is_met else ' '}] {c.description}\n" for c in task.criteria
    )
    return (
        f"# Session: Task {task_id} – {task.title}\n"
        f"**Plan:** {plan.slug}\n"
        f"**Task:** {task_id}\n"
        f"**Session:** {session:03d}\n"
        f"**Started:** {started}\n"
        "**Status:** pending\n"
        "\n## Changes Made\n<!-- List files created or modified -->\n"
        "\n## Acceptance Criteria Updates\n"
        f"{criteria}"
        "\n## Decisions & Notes\n<!-- Design decisions, important context for future sessions -->\n"
        "\n## Blockers\n<!-- Anything blocking progress -->\n"
        "\n## Next\n<!-- What still needs to happen -->\n"
    )


def write_session(root_dir: str | os.PathLike[str], plan: Plan, task: Task) -> str:
    """Create the next progress file for a task and return its path.

    Creation is exclusive, so a file that appears concurrently is skipped and
    the following session number is tried instead.
    """
    directory = Path(root_dir) / PROGRESS_DIR
    directory.mkdir(parents=True, exist_ok=True)

    task_id = task.full_id()
    number = next_session_number(directory, plan.slug, task_id)
    started = datetime.now().strftime("%Y-%m-%d %H:%M")

    for _ in range(MAX_CREATE_ATTEMPTS):
        path = directory / format_filename(plan.slug, task_id, number)
        content = render_template(plan, task, number, started)
        try:
            with open(path, "x", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except FileExistsError:
            number += 1
            continue
        return str(path)

    raise ProgressError(
        f"failed to create progress file after {MAX_CREATE_ATTEMPTS} attempts"
    )


def strip_comments(text: str) -> str:
    """Drop lines that are entirely HTML comments and trim the result."""
    kept = [
        line
        for line in text.split("\n")
        if not (line.strip().startswith("<!--") and line.strip().endswith("-->"))
    ]
    return "\n".join(kept).strip()


def parse_list_items(text: str) -> list[str]:
    """Return bullet items, ignoring checkboxes and HTML comments."""
    items = []
    for line in text.split("\n"):
        line = line.strip()
        if not line.startswith("- "):
            continue
        item = line[2:]
        if item.startswith("[") or item.startswith("<!--"):
            continue
        items.append(item)
    return items


def parse_criteria(text: str) -> list[Criterion]:
    """Return the checkbox items in a block of text."""
    criteria = []
    for line in text.split("\n"):
        line = line.strip()
        if line.startswith("- [x] "):
            criteria.append(Criterion(line[len("- [x] "):], True))
        elif line.startswith("- [ ] "):
            criteria.append(Criterion(line[len("- [ ] "):], False))
    return criteria


_METADATA = {
    "**Task:**": "task_id",
    "**Status:**": "status",
    "**Started:**": "started",
}


def parse_progress_file(path: str | os.PathLike[str], plan_slug: str) -> SessionProgress:
    """Parse one progress file; raise ProgressError if it names no task."""
    with open(path, encoding="utf-8", newline="") as fh:
        data = fh.read()

    lines = data.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    progress = SessionProgress(plan_slug=plan_slug)
    section = ""
    body: list[str] = []

    def flush() -> None:
        raw = "".join(f"{line}\n" for line in body)
        text = strip_comments(raw.strip())
        if section == "changes made":
            progress.changes_made = parse_list_items(raw)
        elif section == "acceptance criteria updates":
            progress.criteria_updates = parse_criteria(raw)
        elif section == "decisions & notes":
            progress.decisions = text
        elif section == "blockers":
            progress.blockers = text
        elif section == "next":
            progress.next_steps = text
        body.clear()

    for line in lines:
        line = line.removesuffix("\r")

        field_name = next(
            (name for prefix, name in _METADATA.items() if line.startswith(prefix)),
            None,
        )
        if field_name is not None:
            prefix = next(p for p, n in _METADATA.items() if n == field_name)
            setattr(progress, field_name, line[len(prefix):].strip())
            continue
        if line.startswith("**Session:**"):
            number = _scan_int(line[len("**Session:**"):].strip())
            if number is not None:
                progress.session_number = number
            continue

        if line.startswith("## "):
            flush()
            section = line[3:].lower()
            continue

        if section:
            body.append(line)
    flush()

    if not progress.task_id:
        raise ProgressError("missing task ID")
    return progress


def read_all(root_dir: str | os.PathLike[str], plan_slug: str) -> dict[str, list[SessionProgress]]:
    """Read every progress file of a plan, grouped by task ID.

    Sessions within a task are ordered by session number. Files that cannot
    be parsed are skipped with a warning.
    """
    directory = Path(root_dir) / PROGRESS_DIR
    pattern = os.path.join(glob.escape(str(directory)), f"{glob.escape(plan_slug)}--*.md")

    result: dict[str, list[SessionProgress]] = {}
    for path in sorted(glob.glob(pattern)):
        try:
            progress = parse_progress_file(path, plan_slug)
        except (ProgressError, OSError, UnicodeDecodeError) as exc:
            _log.warning("skipping progress file %s: %s", os.path.basename(path), exc)
            continue
        result.setdefault(progress.task_id, []).append(progress)

    for sessions in result.values():
        sessions.sort(key=lambda s: s.session_number)
    return result


def find_latest_session_path(
    root_dir: str | os.PathLike[str], plan_slug: str, task_id: str
) -> tuple[str, int]:
    """Return the path and number of the task's highest-numbered session."""
    matches = _task_glob(Path(root_dir) / PROGRESS_DIR, plan_slug, task_id)
    if not matches:
        raise ProgressError(f"no session file found for task {task_id}")

    best_path, best_num = "", 0
    for path in matches:
        number = _session_number_from_name(path)
        if number is not None and number > best_num:
            best_path, best_num = path, number

    if not best_path:
        raise ProgressError(f"no valid session file found for task {task_id}")
    return best_path, best_num


def append_to_section(path: str | os.PathLike[str], section_name: str, content: str) -> None:
    """Add a line at the end of a named section, before its trailing blank lines."""
    lines = _read_lines(path)
    header = f"## {section_name}"

    section_idx = next((i for i, line in enumerate(lines) if line.strip() == header), None)
    if section_idx is None:
        raise ProgressError(
            f"section {section_name!r} not found in {os.path.basename(path)}"
        )

    insert_idx = section_idx + 1
    while insert_idx < len(lines) and not lines[insert_idx].strip().startswith("## "):
        insert_idx += 1
    while insert_idx > section_idx + 1 and not lines[insert_idx - 1].strip():
        insert_idx -= 1

    lines.insert(insert_idx, content)
    _write_lines(path, lines)


def update_criterion(path: str | os.PathLike[str], criterion_text: str) -> None:
    """Check the first unchecked criterion whose text matches exactly."""
    lines = _read_lines(path)
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if trimmed.startswith("- [ ] ") and trimmed[len("- [ ] "):] == criterion_text:
            lines[i] = line.replace("- [ ] ", "- [x] ", 1)
            break
    else:
        raise ProgressError(f"criterion {criterion_text!r} not found in progress file")
    _write_lines(path, lines)


def update_status(path: str | os.PathLike[str], new_status: str) -> None:
    """Replace the ``**Status:**`` line of a progress file."""
    lines = _read_lines(path)
    for i, line in enumerate(lines):
        if line.startswith("**Status:**"):
            lines[i] = f"**Status:** {new_status}"
            break
    else:
        raise ProgressError(f"no **Status:** line found in {os.path.basename(path)}")
    _write_lines(path, lines)