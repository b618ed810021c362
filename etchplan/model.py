"""Core data types for plans, features, tasks and session progress."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Status(str, Enum):
    """Lifecycle state of a plan or task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"

    def icon(self) -> str:
        """Return the single-character display icon for this status."""
        return _ICONS[self]

    def __str__(self) -> str:
        return self.value


_ICONS = {
    Status.PENDING: "○",
    Status.IN_PROGRESS: "▶",
    Status.COMPLETED: "✓",
    Status.FAILED: "✗",
    Status.BLOCKED: "⊘",
}


class Complexity(str, Enum):
    """Rough size estimate of a task."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    def __str__(self) -> str:
        return self.value


@dataclass
class Criterion:
    """One acceptance criterion with its checkbox state."""

    description: str
    is_met: bool = False


@dataclass
class Task:
    """A unit of work inside a feature."""

    feature_number: int
    task_number: int
    suffix: str = ""
    title: str = ""
    status: Status | None = None
    complexity: Complexity | None = None
    files: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    description: str = ""
    criteria: list[Criterion] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)

    def full_id(self) -> str:
        """Return the task identifier such as ``1.2`` or ``1.3b``."""
        return f"{self.feature_number}.{self.task_number}{self.suffix}"


@dataclass
class Feature:
    """A group of related tasks."""

    number: int
    title: str = ""
    overview: str = ""
    tasks: list[Task] = field(default_factory=list)


@dataclass
class Plan:
    """A whole plan document."""

    title: str = ""
    slug: str = ""
    file_path: str = ""
    overview: str = ""
    priority: int = 0
    status: Status | None = None
    features: list[Feature] = field(default_factory=list)


@dataclass
class SessionProgress:
    """The contents of one session progress file."""

    plan_slug: str = ""
    task_id: str = ""
    session_number: int = 0
    status: str = ""
    started: str = ""
    changes_made: list[str] = field(default_factory=list)
    criteria_updates: list[Criterion] = field(default_factory=list)
    decisions: str = ""
    blockers: str = ""
    next_steps: str = ""