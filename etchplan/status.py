"""Reconcile session progress into plans and render plan status reports."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .model import Criterion, Plan, SessionProgress, Status, Task
from .progress import read_all
from .serializer import update_criterion, update_plan_status, update_task_status

_DEP_ID_RE = re.compile(r"(\d+\.\d+[a-z]?)", re.ASCII)
_DEP_BARE_ID_RE = re.compile(r"(?:^|\D)(\d+[a-z]?)(?:\D|$)", re.ASCII)

_PLAN_SEPARATOR = "\n" + "─" * 40 + "\n\n"

_PROGRESS_STATUS = {
    "completed": Status.COMPLETED,
    "partial": Status.IN_PROGRESS,
    "in_progress": Status.IN_PROGRESS,
    "failed": Status.FAILED,
    "blocked": Status.BLOCKED,
}


def _as_status(value: Status | str | None) -> Status:
    """Treat a missing status as pending."""
    return Status.PENDING if not value else Status(value)


@dataclass
class TaskStatus:
    """Reconciled status of a single task."""

    id: str = ""
    title: str = ""
    status: Status = Status.PENDING
    depends_on: list[str] = field(default_factory=list)
    is_blocked: bool = False
    session_count: int = 0
    last_outcome: str = ""
    criteria: list[Criterion] = field(default_factory=list)
    last_decisions: str = ""
    last_next: str = ""

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping, leaving out empty optional fields."""
        data: dict = {"id": self.id, "title": self.title, "status": str(self.status)}
        if self.depends_on:
            data["depends_on"] = list(self.depends_on)
        if self.is_blocked:
            data["is_blocked"] = True
        data["session_count"] = self.session_count
        if self.last_outcome:
            data["last_outcome"] = self.last_outcome
        if self.criteria:
            data["criteria"] = [
                {"description": c.description, "is_met": c.is_met} for c in self.criteria
            ]
        if self.last_decisions:
            data["last_decisions"] = self.last_decisions
        if self.last_next:
            data["last_next"] = self.last_next
        return data


@dataclass
class FeatureStatus:
    """Status summary of a feature."""

    number: int = 0
    title: str = ""
    tasks: list[TaskStatus] = field(default_factory=list)
    completed_tasks: int = 0
    total_tasks: int = 0

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping."""
        return {
            "number": self.number,
            "title": self.title,
            "tasks": [t.to_dict() for t in self.tasks],
            "completed_tasks": self.completed_tasks,
            "total_tasks": self.total_tasks,
        }


@dataclass
class PlanStatus:
    """Reconciled status of a whole plan."""

    title: str = ""
    slug: str = ""
    file_path: str = ""
    priority: int = 0
    plan_completed: bool = False
    features: list[FeatureStatus] = field(default_factory=list)
    completed_tasks: int = 0
    total_tasks: int = 0

    def is_active(self) -> bool:
        """Return True unless every task of the plan is completed."""
        return self.completed_tasks < self.total_tasks

    def percentage(self) -> int:
        """Return the completion percentage, rounded down."""
        if self.total_tasks == 0:
            return 0
        return self.completed_tasks * 100 // self.total_tasks

    def to_dict(self) -> dict:
        """Return a JSON-ready mapping."""
        return {
            "title": self.title,
            "slug": self.slug,
            "file_path": self.file_path,
            "priority": self.priority,
            "plan_completed": self.plan_completed,
            "features": [f.to_dict() for f in self.features],
            "completed_tasks": self.completed_tasks,
            "total_tasks": self.total_tasks,
        }


def map_progress_status(progress_status: str) -> Status:
    """Translate a progress-file status word into a plan status."""
    return _PROGRESS_STATUS.get(progress_status, Status.PENDING)


def _merge_criteria(path: str, task: Task, sessions: Sequence[SessionProgress]) -> None:
    """Check every plan criterion that any session has marked as met."""
    for session in sessions:
        for update in session.criteria_updates:
            if not update.is_met:
                continue
            for criterion in task.criteria:
                if criterion.description == update.description and not criterion.is_met:
                    criterion.is_met = True
                    update_criterion(path, task.full_id(), update.description, True)


def reconcile(
    plan: Plan, progress_map: Mapping[str, Sequence[SessionProgress]]
) -> PlanStatus:
    """Merge session progress into a plan, updating its file, and report status.

    The latest session decides each task's status; a criterion checked in any
    session is checked in the plan. A plan whose tasks are all completed is
    marked completed.
    """
    plan_status = PlanStatus(
        title=plan.title,
        slug=plan.slug,
        file_path=plan.file_path,
        priority=plan.priority,
    )

    for feature in plan.features:
        feature_status = FeatureStatus(
            number=feature.number, title=feature.title, total_tasks=len(feature.tasks)
        )
        for task in feature.tasks:
            task_id = task.full_id()
            sessions = progress_map.get(task_id, [])
            current = _as_status(task.status)
            task_status = TaskStatus(
                id=task_id,
                title=task.title,
                status=current,
                depends_on=task.depends_on,
                session_count=len(sessions),
                criteria=task.criteria,
            )

            if sessions:
                latest = sessions[-1]
                new_status = map_progress_status(latest.status)
                if new_status != current:
                    update_task_status(plan.file_path, task_id, new_status)
                    task.status = new_status
                    task_status.status = new_status
                task_status.last_outcome = latest.status
                _merge_criteria(plan.file_path, task, sessions)
                task_status.last_decisions = latest.decisions
                task_status.last_next = latest.next_steps

            if task_status.status == Status.COMPLETED:
                feature_status.completed_tasks += 1
            feature_status.tasks.append(task_status)

        plan_status.features.append(feature_status)

    plan_status.completed_tasks = sum(f.completed_tasks for f in plan_status.features)
    plan_status.total_tasks = sum(f.total_tasks for f in plan_status.features)

    resolve_blocked(plan_status)

    if plan_status.total_tasks > 0 and plan_status.completed_tasks == plan_status.total_tasks:
        plan_status.plan_completed = True
        if plan.status != Status.COMPLETED:
            plan.status = Status.COMPLETED
            update_plan_status(plan.file_path, Status.COMPLETED)
    elif plan.status == Status.COMPLETED:
        plan_status.plan_completed = True

    return plan_status


def reconcile_all(
    root_dir: str | os.PathLike[str], plans: Iterable[Plan], plan_filter: str = ""
) -> list[PlanStatus]:
    """Reconcile each plan (or only the one whose slug matches the filter)."""
    return [
        reconcile(plan, read_all(root_dir, plan.slug))
        for plan in plans
        if not plan_filter or plan.slug == plan_filter
    ]


def extract_dep_id(dep: str) -> str:
    """Return a task ID such as ``1.2`` found in a dependency string, or ''."""
    match = _DEP_ID_RE.search(dep)
    return match.group(0) if match else ""


def extract_bare_dep_id(dep: str) -> str:
    """Return a bare task number as a feature-1 ID (``Task 2`` gives ``1.2``), or ''."""
    match = _DEP_BARE_ID_RE.search(dep)
    return f"1.{match.group(1)}" if match else ""


def resolve_blocked(plan_status: PlanStatus) -> None:
    """Mark pending tasks whose dependencies are not all completed as blocked."""
    statuses = {t.id: t.status for f in plan_status.features for t in f.tasks}
    single_feature = len(plan_status.features) == 1

    for feature in plan_status.features:
        for task in feature.tasks:
            if task.status != Status.PENDING or not task.depends_on:
                continue
            for dep in task.depends_on:
                dep_id = extract_dep_id(dep)
                if not dep_id and single_feature:
                    dep_id = extract_bare_dep_id(dep)
                if not dep_id:
                    continue
                if dep_id in statuses and statuses[dep_id] != Status.COMPLETED:
                    task.is_blocked = True
                    break


def filter_active(plans: Iterable[PlanStatus]) -> list[PlanStatus]:
    """Return the plans that still have unfinished tasks."""
    return [p for p in plans if p.is_active()]


def progress_bar(pct: int) -> str:
    """Return a ten-cell bar such as ``[████░░░░░░] 45%``."""
    filled = min(pct // 10, 10)
    return f"[{'█' * filled}{'░' * (10 - filled)}] {pct}%"


def feature_icon(feature: FeatureStatus) -> str:
    """Return the icon summarising a feature's progress."""
    if feature.total_tasks > 0 and feature.completed_tasks == feature.total_tasks:
        return Status.COMPLETED.icon()
    if feature.completed_tasks > 0:
        return Status.IN_PROGRESS.icon()
    for task in feature.tasks:
        status = _as_status(task.status)
        if status in (Status.IN_PROGRESS, Status.FAILED, Status.BLOCKED):
            return status.icon()
    return Status.PENDING.icon()


def task_icon(task: TaskStatus) -> str:
    """Return a task's icon, showing blocked pending tasks as blocked."""
    if task.is_blocked:
        return Status.BLOCKED.icon()
    return _as_status(task.status).icon()


def _plan_header(plan: PlanStatus) -> str:
    priority_tag = f"[{plan.priority}]" if plan.priority > 0 else "[ ]"
    plan_icon = "✓" if plan.plan_completed else "📋"
    return f"{plan_icon} {priority_tag} {plan.title}  {progress_bar(plan.percentage())}\n"


def _feature_line(feature: FeatureStatus) -> str:
    return (
        f"{feature_icon(feature)} Feature {feature.number}: {feature.title} "
        f"[{feature.completed_tasks}/{feature.total_tasks} tasks]\n"
    )


def format_summary(plans: Sequence[PlanStatus]) -> str:
    """Render an overview of all plans with their features and tasks."""
    if not plans:
        return "No plans found."

    blocks = []
    for plan in plans:
        parts = [_plan_header(plan), f"  slug: {plan.slug}\n"]
        for feature in plan.features:
            parts.append("   " + _feature_line(feature))
            for task in feature.tasks:
                line = f"      {task_icon(task)} {task.id:<6} {task.title}"
                if task.session_count > 0 and task.status != Status.COMPLETED:
                    line += f" ({task.session_count} sessions, last: {task.last_outcome})"
                parts.append(line + "\n")
        blocks.append("".join(parts))
    return _PLAN_SEPARATOR.join(blocks)


def format_detailed(plan_status: PlanStatus) -> str:
    """Render one plan with criteria, dependencies and latest session notes."""
    parts = [_plan_header(plan_status), f"  slug: {plan_status.slug}\n\n"]

    for feature in plan_status.features:
        parts.append(_feature_line(feature))
        for task in feature.tasks:
            parts.append(f"\n  {task_icon(task)} {task.id:<6} {task.title}")
            if task.session_count > 0:
                parts.append(f" ({task.session_count} sessions, last: {task.last_outcome})")
            parts.append("\n")

            if task.is_blocked and task.depends_on:
                parts.append(f"    Waiting on: {', '.join(task.depends_on)}\n")
            for criterion in task.criteria:
                check = "[x]" if criterion.is_met else "[ ]"
                parts.append(f"    {check} {criterion.description}\n")
            if task.last_decisions:
                parts.append(f"    Notes: {task.last_decisions}\n")
            if task.last_next:
                parts.append(f"    Next: {task.last_next}\n")
        parts.append("\n")

    return "".join(parts)


def format_json(plans: Iterable[PlanStatus]) -> str:
    """Render plan statuses as indented JSON."""
    return json.dumps([p.to_dict() for p in plans], indent=2, ensure_ascii=False)


def sort_plan_statuses(plans: list[PlanStatus]) -> None:
    """Sort in place by priority ascending with unset (0) last, then by title."""
    plans.sort(key=lambda p: (p.priority == 0, p.priority, p.title))