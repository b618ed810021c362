"""Render plans to markdown and make targeted in-place edits to plan files."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from enum import Enum

from .model import Plan, Status


class PlanEditError(Exception):
    """Raised when a targeted edit cannot find what it should change."""


_TASK_LINE_RE = re.compile(
    r"^(### Task \d+(?:\.\d+[a-z]?)?:\s*.+?)\s*\[(\w+)\]\s*$", re.ASCII
)
_CRITERION_LINE_RE = re.compile(r"^(- \[)([ x])(\] .+)$")
_PLAN_HEADING_RE = re.compile(r"^(#\s+Plan:\s*.+?)(?:\s*\[(\w+)\])?\s*$", re.ASCII)
_PRIORITY_LINE_RE = re.compile(r"^\*\*Priority:\*\*\s*\d+\s*$", re.ASCII)


def _status_text(status: Status | str) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def _read_lines(path: str | os.PathLike[str]) -> list[str]:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read().split("\n")


def _write_lines(path: str | os.PathLike[str], lines: list[str]) -> None:
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write("\n".join(lines))


def _starts_with_any(text: str, prefixes: Iterable[str]) -> bool:
    return any(text.startswith(p) for p in prefixes)


def _is_heading(trimmed: str) -> bool:
    return trimmed.startswith("### ") or trimmed.startswith("## ")


def serialize(plan: Plan) -> str:
    """Render a plan as markdown.

    A plan with a single feature omits the feature heading and numbers its
    tasks without the feature prefix.
    """
    parts = ["# Plan: ", plan.title]
    if plan.status:
        parts.append(f" [{_status_text(plan.status)}]")
    parts.append("\n")

    if plan.priority > 0:
        parts.append(f"**Priority:** {plan.priority}\n")

    if plan.overview:
        parts.append(f"\n## Overview\n\n{plan.overview}\n")

    single_feature = len(plan.features) == 1

    for feature in plan.features:
        if not single_feature:
            parts.append(f"\n---\n\n## Feature {feature.number}: {feature.title}\n")
            if feature.overview:
                parts.append(f"\n### Overview\n{feature.overview}\n")

        for task in feature.tasks:
            task_id = (
                f"{task.task_number}{task.suffix}" if single_feature else task.full_id()
            )
            parts.append(f"\n### Task {task_id}: {task.title}")
            if task.status:
                parts.append(f" [{_status_text(task.status)}]")
            parts.append("\n")

            if task.complexity:
                parts.append(f"**Complexity:** {_status_text(task.complexity)}\n")
            if task.files:
                parts.append(f"**Files:** {', '.join(task.files)}\n")
            if task.depends_on:
                parts.append(f"**Depends on:** {', '.join(task.depends_on)}\n")

            if task.description:
                parts.append(f"\n{task.description}\n")

            for comment in task.comments:
                first, *rest = comment.split("\n")
                parts.append(f"\n> 💬 {first}\n")
                parts.extend(f"> {line}\n" for line in rest)

            if task.criteria:
                parts.append("\n**Acceptance Criteria:**\n")
                for criterion in task.criteria:
                    box = "- [x] " if criterion.is_met else "- [ ] "
                    parts.append(f"{box}{criterion.description}\n")

    return "".join(parts)


def task_id_patterns(task_id: str) -> list[str]:
    """Return the heading prefixes that identify a task.

    IDs in feature 1 also match the short form used by single-feature plans.
    """
    patterns = [f"### Task {task_id}:"]
    if task_id.startswith("1."):
        patterns.append(f"### Task {task_id[2:]}:")
    return patterns


def update_task_status(
    path: str | os.PathLike[str], task_id: str, new_status: Status | str
) -> None:
    """Change the status tag on a task heading, leaving everything else intact."""
    lines = _read_lines(path)
    patterns = task_id_patterns(task_id)

    for i, line in enumerate(lines):
        if not _starts_with_any(line.strip(), patterns):
            continue
        match = _TASK_LINE_RE.match(line)
        if match:
            lines[i] = line[: match.start(2)] + _status_text(new_status) + line[match.end(2) :]
            break
    else:
        raise PlanEditError(f"task {task_id} not found in {path}")

    _write_lines(path, lines)


def update_criterion(
    path: str | os.PathLike[str], task_id: str, criterion_text: str, met: bool
) -> None:
    """Set the checkbox of a task's criterion matched by its exact text."""
    lines = _read_lines(path)
    patterns = task_id_patterns(task_id)
    in_task = False

    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not in_task:
            if _starts_with_any(trimmed, patterns):
                in_task = True
            continue
        if _is_heading(trimmed):
            break
        match = _CRITERION_LINE_RE.match(line)
        if match and match.group(3)[2:].strip() == criterion_text:
            lines[i] = match.group(1) + ("x" if met else " ") + match.group(3)
            _write_lines(path, lines)
            return

    raise PlanEditError(f"criterion {criterion_text!r} not found in task {task_id}")


def update_plan_status(path: str | os.PathLike[str], new_status: Status | str) -> None:
    """Set or replace the status tag on the plan heading line."""
    lines = _read_lines(path)

    for i, line in enumerate(lines):
        match = _PLAN_HEADING_RE.match(line)
        if match:
            lines[i] = f"{match.group(1)} [{_status_text(new_status)}]"
            break
    else:
        raise PlanEditError(f"plan heading not found in {path}")

    _write_lines(path, lines)


def update_plan_priority(path: str | os.PathLike[str], new_priority: int) -> None:
    """Replace, insert or remove the priority line below the plan heading.

    A priority of zero removes the line.
    """
    lines = _read_lines(path)

    plan_idx = next(
        (i for i, line in enumerate(lines) if line.startswith("# Plan:")), None
    )
    if plan_idx is None:
        raise PlanEditError(
            f"no # Plan: heading found in {path}; ensure the file is a valid etch plan"
        )

    priority_idx = None
    for i in range(plan_idx + 1, len(lines)):
        if lines[i].startswith("## "):
            break
        if _PRIORITY_LINE_RE.match(lines[i]):
            priority_idx = i

    new_line = f"**Priority:** {new_priority}"
    if new_priority > 0:
        if priority_idx is not None:
            lines[priority_idx] = new_line
        else:
            lines.insert(plan_idx + 1, new_line)
    elif new_priority == 0 and priority_idx is not None:
        del lines[priority_idx]

    _write_lines(path, lines)