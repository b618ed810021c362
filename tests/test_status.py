import json
from pathlib import Path

import pytest

from etchplan.model import Complexity, Criterion, Feature, Plan, Status, Task
from etchplan.serializer import serialize
from etchplan.status import (
    FeatureStatus,
    PlanStatus,
    TaskStatus,
    extract_bare_dep_id,
    extract_dep_id,
    feature_icon,
    filter_active,
    format_detailed,
    format_json,
    format_summary,
    map_progress_status,
    progress_bar,
    reconcile,
    reconcile_all,
    resolve_blocked,
    sort_plan_statuses,
    task_icon,
)


def _install(root: Path, plan: Plan) -> Path:
    directory = root / ".etch" / "plans"
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{plan.slug}.md"
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(serialize(plan))
    plan.file_path = str(path)
    return path


def _write_progress(root, slug, task_id, session, status, criteria=()):
    directory = root / ".etch" / "progress"
    directory.mkdir(parents=True, exist_ok=True)
    text = (
        f"# Session: Task {task_id}\n"
        f"**Plan:** {slug}\n"
        f"**Task:** {task_id}\n"
        f"**Session:** {session:03d}\n"
        "**Started:** 2026-02-15\n"
        f"**Status:** {status}\n"
        "\n## Changes Made\n- some-file.go\n"
        "\n## Acceptance Criteria Updates\n"
        + "".join(f"{c}\n" for c in criteria)
        + "\n## Decisions & Notes\nSome decision\n"
        "\n## Blockers\nNone\n"
        "\n## Next\nContinue work\n"
    )
    with open(directory / f"{slug}--task-{task_id}--{session:03d}.md", "w",
              encoding="utf-8", newline="") as fh:
        fh.write(text)


def _auth_plan(slug="auth"):
    return Plan(
        title="Auth System",
        slug=slug,
        overview="Auth system for the app.",
        features=[
            Feature(1, "Token Management", "JWT tokens.", [
                Task(1, 1, title="Schema", status=Status.PENDING,
                     complexity=Complexity.SMALL, files=["db/schema.sql"],
                     description="Build the schema.",
                     criteria=[Criterion("Migration file created"), Criterion("Indexes added")]),
                Task(1, 2, title="Token gen", status=Status.PENDING,
                     complexity=Complexity.MEDIUM, files=["auth/token.go"],
                     description="Generate tokens.",
                     criteria=[Criterion("Tokens generated"), Criterion("Expiry works")]),
            ]),
            Feature(2, "Login Endpoints", "Login and registration.", [
                Task(2, 1, title="Registration", status=Status.PENDING,
                     complexity=Complexity.SMALL, files=["api/register.go"],
                     description="Register endpoint.",
                     criteria=[Criterion("Endpoint works")]),
            ]),
        ],
    )


def _dep_plan():
    return Plan(
        title="Dependency Test",
        slug="dep-test",
        overview="Plan with task dependencies.",
        features=[Feature(1, "Core", "Core tasks.", [
            Task(1, 1, title="Foundation", status=Status.PENDING,
                 criteria=[Criterion("Base done")]),
            Task(1, 2, title="Middleware", status=Status.PENDING,
                 depends_on=["Task 1.1"], criteria=[Criterion("Middleware done")]),
            Task(1, 3, title="API", status=Status.PENDING,
                 depends_on=["Task 1.1", "Task 1.2"], criteria=[Criterion("API done")]),
        ])],
    )


def _find_task(plan_status, task_id):
    for feature in plan_status.features:
        for task in feature.tasks:
            if task.id == task_id:
                return task
    return None


def test_reconcile_completed_status(tmp_path):
    plan = _auth_plan()
    path = _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "completed",
                    ["- [x] Migration file created", "- [x] Indexes added"])

    plans = reconcile_all(tmp_path, [plan], "")
    assert len(plans) == 1
    task = _find_task(plans[0], "1.1")
    assert task.status == Status.COMPLETED
    assert task.session_count == 1
    assert task.last_decisions == "Some decision"
    assert task.last_next == "Continue work"

    content = path.read_text(encoding="utf-8")
    assert "[completed]" in content
    assert "- [x] Migration file created" in content
    assert plan.features[0].tasks[0].status == Status.COMPLETED


def test_reconcile_partial_status(tmp_path):
    plan = _auth_plan()
    path = _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.2", 1, "partial",
                    ["- [x] Tokens generated", "- [ ] Expiry works"])

    plans = reconcile_all(tmp_path, [plan], "")
    task = _find_task(plans[0], "1.2")
    assert task.status == Status.IN_PROGRESS
    assert task.last_outcome == "partial"
    assert "[in_progress]" in path.read_text(encoding="utf-8")


def test_reconcile_failed_and_blocked(tmp_path):
    plan = _auth_plan()
    _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "failed")
    _write_progress(tmp_path, "auth", "2.1", 1, "blocked")

    plans = reconcile_all(tmp_path, [plan], "")
    assert _find_task(plans[0], "1.1").status == Status.FAILED
    assert _find_task(plans[0], "2.1").status == Status.BLOCKED


def test_multiple_sessions_uses_latest(tmp_path):
    plan = _auth_plan()
    _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "partial", ["- [x] Migration file created"])
    _write_progress(tmp_path, "auth", "1.1", 2, "completed",
                    ["- [x] Migration file created", "- [x] Indexes added"])

    plans = reconcile_all(tmp_path, [plan], "")
    task = _find_task(plans[0], "1.1")
    assert task.status == Status.COMPLETED
    assert task.session_count == 2


def test_criteria_merging_across_sessions(tmp_path):
    plan = _auth_plan()
    path = _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "partial",
                    ["- [x] Migration file created", "- [ ] Indexes added"])
    _write_progress(tmp_path, "auth", "1.1", 2, "completed",
                    ["- [ ] Migration file created", "- [x] Indexes added"])

    plans = reconcile_all(tmp_path, [plan], "")
    task = _find_task(plans[0], "1.1")
    assert [c.is_met for c in task.criteria] == [True, True]

    content = path.read_text(encoding="utf-8")
    assert "- [ ] Migration file created" not in content
    assert "- [ ] Indexes added" not in content


@pytest.mark.parametrize(
    "plan_status, active",
    [
        (PlanStatus(completed_tasks=0, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.PENDING)])]), True),
        (PlanStatus(completed_tasks=3, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.COMPLETED)])]), False),
        (PlanStatus(completed_tasks=0, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.IN_PROGRESS)])]), True),
        (PlanStatus(completed_tasks=0, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.FAILED)])]), True),
        (PlanStatus(completed_tasks=0, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.BLOCKED)])]), True),
        (PlanStatus(completed_tasks=1, total_tasks=3,
                    features=[FeatureStatus(tasks=[TaskStatus(status=Status.PENDING),
                                                   TaskStatus(status=Status.COMPLETED)])]), True),
    ],
)
def test_is_active(plan_status, active):
    assert plan_status.is_active() is active


def test_filter_active():
    plans = [
        PlanStatus(title="Active", completed_tasks=1, total_tasks=3),
        PlanStatus(title="Pending", completed_tasks=0, total_tasks=2),
        PlanStatus(title="Done", completed_tasks=2, total_tasks=2),
    ]
    assert [p.title for p in filter_active(plans)] == ["Active", "Pending"]


@pytest.mark.parametrize(
    "pct, expected",
    [
        (0, "[░░░░░░░░░░] 0%"),
        (50, "[█████░░░░░] 50%"),
        (100, "[██████████] 100%"),
        (33, "[███░░░░░░░] 33%"),
        (5, "[░░░░░░░░░░] 5%"),
        (10, "[█░░░░░░░░░] 10%"),
        (99, "[█████████░] 99%"),
        (150, "[██████████] 150%"),
    ],
)
def test_progress_bar(pct, expected):
    assert progress_bar(pct) == expected


def test_format_summary_separators():
    plans = [
        PlanStatus(title=f"Plan {name}", slug=f"plan-{name}", total_tasks=1, features=[
            FeatureStatus(number=1, title="F1", total_tasks=1,
                          tasks=[TaskStatus(id="1", title="T", status=Status.PENDING)])])
        for name in ("a", "b")
    ]
    output = format_summary(plans)
    assert "────" in output
    assert output.index("Plan a") < output.index("────") < output.index("Plan b")


def test_reconcile_populates_plan_totals(tmp_path):
    plan = _auth_plan()
    _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "completed",
                    ["- [x] Migration file created", "- [x] Indexes added"])

    plans = reconcile_all(tmp_path, [plan], "")
    assert plans[0].total_tasks == 3
    assert plans[0].completed_tasks == 1


def test_no_plans_graceful(tmp_path):
    plans = reconcile_all(tmp_path, [], "")
    assert plans == []
    assert format_summary(plans) == "No plans found."


def test_plan_with_no_progress(tmp_path):
    plan = _auth_plan()
    _install(tmp_path, plan)

    plans = reconcile_all(tmp_path, [plan], "")
    assert len(plans) == 1
    tasks = [t for f in plans[0].features for t in f.tasks]
    assert [t.status for t in tasks] == [Status.PENDING] * 3
    assert [t.session_count for t in tasks] == [0, 0, 0]


def test_orphaned_progress_ignored(tmp_path):
    plan = _auth_plan()
    _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "9.9", 1, "completed")

    plans = reconcile_all(tmp_path, [plan], "")
    assert len(plans) == 1
    assert [t.id for f in plans[0].features for t in f.tasks] == ["1.1", "1.2", "2.1"]


def test_plan_filter(tmp_path):
    auth = _auth_plan()
    _install(tmp_path, auth)
    other = Plan(title="API Refactor", slug="api-refactor", overview="Refactor the API.",
                 features=[Feature(1, "API Refactor", tasks=[
                     Task(1, 1, title="Migrate", status=Status.PENDING,
                          complexity=Complexity.SMALL, description="Migrate stuff.",
                          criteria=[Criterion("Done")])])])
    _install(tmp_path, other)

    plans = reconcile_all(tmp_path, [auth, other], "auth")
    assert len(plans) == 1
    assert plans[0].slug == "auth"


def test_format_summary():
    plans = [PlanStatus(
        title="Auth System", slug="auth-system", completed_tasks=3, total_tasks=5,
        features=[
            FeatureStatus(number=1, title="Token Management", completed_tasks=2, total_tasks=2,
                          tasks=[TaskStatus(id="1.1", title="Schema", status=Status.COMPLETED),
                                 TaskStatus(id="1.2", title="Token gen", status=Status.COMPLETED)]),
            FeatureStatus(number=2, title="Login Endpoints", completed_tasks=1, total_tasks=3,
                          tasks=[TaskStatus(id="2.1", title="Registration", status=Status.COMPLETED),
                                 TaskStatus(id="2.2", title="Login", status=Status.IN_PROGRESS,
                                            session_count=2, last_outcome="partial"),
                                 TaskStatus(id="2.3", title="Password", status=Status.PENDING)]),
        ],
    )]
    output = format_summary(plans)
    assert "[ ]" in output
    assert "[██████░░░░] 60%" in output
    assert "slug: auth-system" in output
    assert "✓ Feature 1" in output
    assert "▶ Feature 2" in output
    assert "[2/2 tasks]" in output
    assert "[1/3 tasks]" in output
    assert "      ▶ 2.2    Login (2 sessions, last: partial)\n" in output
    assert "○" in output


def test_format_detailed():
    plan_status = PlanStatus(
        title="Auth System", slug="auth-system", completed_tasks=1, total_tasks=1,
        features=[FeatureStatus(number=1, title="Token Management", completed_tasks=1,
                                total_tasks=1, tasks=[TaskStatus(
                                    id="1.1", title="Schema", status=Status.COMPLETED,
                                    criteria=[Criterion("Migration", True)],
                                    session_count=1, last_outcome="completed",
                                    last_decisions="Used postgres", last_next="All done")])],
    )
    output = format_detailed(plan_status)
    assert "[██████████] 100%" in output
    assert "slug: auth-system" in output
    assert "[x] Migration" in output
    assert "Notes: Used postgres" in output
    assert "Next: All done" in output


def test_format_json():
    plans = [PlanStatus(title="Auth System", slug="auth", features=[
        FeatureStatus(number=1, title="Tokens", completed_tasks=1, total_tasks=2, tasks=[
            TaskStatus(id="1.1", title="Schema", status=Status.COMPLETED, session_count=1),
            TaskStatus(id="1.2", title="Token gen", status=Status.PENDING),
        ])])]
    parsed = json.loads(format_json(plans))
    assert len(parsed) == 1
    assert parsed[0]["title"] == "Auth System"
    assert parsed[0]["features"][0]["tasks"][0]["status"] == "completed"
    assert "depends_on" not in parsed[0]["features"][0]["tasks"][1]
    assert "is_blocked" not in parsed[0]["features"][0]["tasks"][1]


def test_plan_file_preserves_other_content(tmp_path):
    plan = _auth_plan()
    path = _install(tmp_path, plan)
    original = path.read_text(encoding="utf-8")
    _write_progress(tmp_path, "auth", "1.1", 1, "completed", ["- [x] Migration file created"])

    reconcile_all(tmp_path, [plan], "")
    updated = path.read_text(encoding="utf-8")
    assert "Auth system for the app." in updated
    assert "### Task 1.2: Token gen [pending]" in updated
    assert "### Task 1.1: Schema [completed]" in updated
    assert len(original.split("\n")) == len(updated.split("\n"))


@pytest.mark.parametrize(
    "feature, icon",
    [
        (FeatureStatus(completed_tasks=3, total_tasks=3), "✓"),
        (FeatureStatus(completed_tasks=1, total_tasks=3), "▶"),
        (FeatureStatus(total_tasks=2, tasks=[TaskStatus(status=Status.IN_PROGRESS),
                                             TaskStatus(status=Status.PENDING)]), "▶"),
        (FeatureStatus(total_tasks=2, tasks=[TaskStatus(status=Status.PENDING),
                                             TaskStatus(status=Status.FAILED)]), "✗"),
        (FeatureStatus(total_tasks=2, tasks=[TaskStatus(status=Status.PENDING),
                                             TaskStatus(status=Status.PENDING)]), "○"),
    ],
)
def test_feature_icon(feature, icon):
    assert feature_icon(feature) == icon


@pytest.mark.parametrize(
    "text, expected",
    [
        ("completed", Status.COMPLETED),
        ("partial", Status.IN_PROGRESS),
        ("in_progress", Status.IN_PROGRESS),
        ("failed", Status.FAILED),
        ("blocked", Status.BLOCKED),
        ("pending", Status.PENDING),
        ("unknown", Status.PENDING),
        ("", Status.PENDING),
    ],
)
def test_map_progress_status(text, expected):
    assert map_progress_status(text) == expected


@pytest.mark.parametrize(
    "tasks, blocked",
    [
        ([TaskStatus(id="1.1"), TaskStatus(id="1.2")], {"1.1": False, "1.2": False}),
        ([TaskStatus(id="1.1"), TaskStatus(id="1.2", depends_on=["Task 1.1"])],
         {"1.1": False, "1.2": True}),
        ([TaskStatus(id="1.1", status=Status.COMPLETED),
          TaskStatus(id="1.2", depends_on=["Task 1.1"])],
         {"1.1": False, "1.2": False}),
        ([TaskStatus(id="1.1"), TaskStatus(id="1.2", depends_on=["Task 1.1"]),
          TaskStatus(id="1.3", depends_on=["Task 1.1", "Task 1.2"])],
         {"1.1": False, "1.2": True, "1.3": True}),
        ([TaskStatus(id="1.1", status=Status.COMPLETED),
          TaskStatus(id="1.2", depends_on=["Task 1.1"]),
          TaskStatus(id="1.3", depends_on=["Task 1.1", "Task 1.2"])],
         {"1.1": False, "1.2": False, "1.3": True}),
        ([TaskStatus(id="1.1", status=Status.COMPLETED),
          TaskStatus(id="1.2", status=Status.COMPLETED),
          TaskStatus(id="1.3", depends_on=["Task 1.1", "Task 1.2"])],
         {"1.1": False, "1.2": False, "1.3": False}),
        ([TaskStatus(id="1.1"),
          TaskStatus(id="1.2", status=Status.IN_PROGRESS, depends_on=["Task 1.1"])],
         {"1.1": False, "1.2": False}),
        ([TaskStatus(id="1.1"),
          TaskStatus(id="1.2", status=Status.COMPLETED, depends_on=["Task 1.1"])],
         {"1.1": False, "1.2": False}),
    ],
)
def test_resolve_blocked(tasks, blocked):
    plan_status = PlanStatus(features=[FeatureStatus(tasks=tasks)])
    resolve_blocked(plan_status)
    assert {t.id: t.is_blocked for t in plan_status.features[0].tasks} == blocked


def test_resolve_blocked_bare_ids_in_single_feature():
    plan_status = PlanStatus(features=[FeatureStatus(tasks=[
        TaskStatus(id="1.1"), TaskStatus(id="1.2", depends_on=["Task 1"])])])
    resolve_blocked(plan_status)
    assert plan_status.features[0].tasks[1].is_blocked is True


@pytest.mark.parametrize(
    "text, expected",
    [("Task 1.1", "1.1"), ("Task 1.2", "1.2"), ("Task 1.3b", "1.3b"),
     ("Task 2.10", "2.10"), ("no match here", ""), ("", "")],
)
def test_extract_dep_id(text, expected):
    assert extract_dep_id(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("Task 2", "1.2"), ("Task 3b", "1.3b"), ("none", "")],
)
def test_extract_bare_dep_id(text, expected):
    assert extract_bare_dep_id(text) == expected


def test_reconcile_with_dependencies(tmp_path):
    plan = _dep_plan()
    _install(tmp_path, plan)

    plans = reconcile_all(tmp_path, [plan], "dep-test")
    assert len(plans) == 1
    assert _find_task(plans[0], "1.1").is_blocked is False
    assert _find_task(plans[0], "1.2").is_blocked is True
    assert _find_task(plans[0], "1.3").is_blocked is True


def test_reconcile_with_dependencies_partially_met(tmp_path):
    plan = _dep_plan()
    _install(tmp_path, plan)
    _write_progress(tmp_path, "dep-test", "1.1", 1, "completed", ["- [x] Base done"])

    plans = reconcile_all(tmp_path, [plan], "dep-test")
    assert _find_task(plans[0], "1.2").is_blocked is False
    assert _find_task(plans[0], "1.3").is_blocked is True


@pytest.mark.parametrize(
    "task, icon",
    [
        (TaskStatus(status=Status.PENDING), "○"),
        (TaskStatus(status=Status.PENDING, is_blocked=True), "⊘"),
        (TaskStatus(status=Status.IN_PROGRESS), "▶"),
        (TaskStatus(status=Status.COMPLETED), "✓"),
    ],
)
def test_task_icon(task, icon):
    assert task_icon(task) == icon


def test_format_summary_blocked_icons():
    plans = [PlanStatus(title="Dep Plan", slug="dep-plan", features=[FeatureStatus(
        number=1, title="Core", total_tasks=3, tasks=[
            TaskStatus(id="1.1", title="Foundation"),
            TaskStatus(id="1.2", title="Middleware", is_blocked=True, depends_on=["Task 1.1"]),
            TaskStatus(id="1.3", title="API", is_blocked=True,
                       depends_on=["Task 1.1", "Task 1.2"]),
        ])])]
    lines = format_summary(plans).split("\n")
    foundation = next(line for line in lines if "Foundation" in line)
    middleware = next(line for line in lines if "Middleware" in line)
    api = next(line for line in lines if "1.3" in line and "API" in line)
    assert "○" in foundation
    assert "⊘" in middleware
    assert "⊘" in api


def test_format_detailed_blocked_shows_deps():
    plan_status = PlanStatus(title="Dep Plan", slug="dep-plan", features=[FeatureStatus(
        number=1, title="Core", total_tasks=2, tasks=[
            TaskStatus(id="1.1", title="Foundation"),
            TaskStatus(id="1.2", title="Middleware", is_blocked=True, depends_on=["Task 1.1"]),
        ])])
    output = format_detailed(plan_status)
    assert "Waiting on: Task 1.1" in output
    assert sum("Waiting on:" in line for line in output.split("\n")) == 1


@pytest.mark.parametrize(
    "completed, total, pct",
    [(0, 0, 0), (5, 5, 100), (0, 5, 0), (1, 3, 33), (2, 3, 66), (1, 1, 100)],
)
def test_percentage(completed, total, pct):
    assert PlanStatus(completed_tasks=completed, total_tasks=total).percentage() == pct


def test_format_detailed_multiple_deps():
    plan_status = PlanStatus(title="Multi Dep", slug="multi-dep", features=[FeatureStatus(
        number=1, title="Core", total_tasks=3, tasks=[
            TaskStatus(id="1.1", title="A"),
            TaskStatus(id="1.2", title="B"),
            TaskStatus(id="1.3", title="C", is_blocked=True,
                       depends_on=["Task 1.1", "Task 1.2"]),
        ])])
    assert "Waiting on: Task 1.1, Task 1.2" in format_detailed(plan_status)


@pytest.mark.parametrize(
    "entries, order",
    [
        ([("C", 3), ("A", 1), ("B", 2)], ["A", "B", "C"]),
        ([("No Priority", 0), ("High", 1), ("Low", 5)], ["High", "Low", "No Priority"]),
        ([("Zebra", 1), ("Apple", 1), ("Mango", 1)], ["Apple", "Mango", "Zebra"]),
        ([("Unset B", 0), ("Unset A", 0), ("Priority 2", 2), ("Priority 1", 1)],
         ["Priority 1", "Priority 2", "Unset A", "Unset B"]),
        ([("Zebra", 0), ("Apple", 0), ("Mango", 0)], ["Apple", "Mango", "Zebra"]),
    ],
)
def test_sort_plan_statuses(entries, order):
    plans = [PlanStatus(title=title, priority=priority) for title, priority in entries]
    sort_plan_statuses(plans)
    assert [p.title for p in plans] == order


def test_auto_complete_plan(tmp_path):
    plan = Plan(title="Small Plan", slug="small-plan",
                overview="A small plan with two tasks.",
                features=[Feature(1, "Core", "Core feature.", [
                    Task(1, 1, title="First", status=Status.PENDING,
                         complexity=Complexity.SMALL, files=["a.go"],
                         description="Do first thing.", criteria=[Criterion("Done")]),
                    Task(1, 2, title="Second", status=Status.PENDING,
                         complexity=Complexity.SMALL, files=["b.go"],
                         description="Do second thing.", criteria=[Criterion("Done")]),
                ])])
    path = _install(tmp_path, plan)
    _write_progress(tmp_path, "small-plan", "1.1", 1, "completed", ["- [x] Done"])
    _write_progress(tmp_path, "small-plan", "1.2", 1, "completed", ["- [x] Done"])

    plans = reconcile_all(tmp_path, [plan], "small-plan")
    assert len(plans) == 1
    assert plans[0].plan_completed is True
    assert "# Plan: Small Plan [completed]" in path.read_text(encoding="utf-8")
    assert plan.status == Status.COMPLETED


def test_auto_complete_does_not_trigger_on_partial(tmp_path):
    plan = _auth_plan()
    path = _install(tmp_path, plan)
    _write_progress(tmp_path, "auth", "1.1", 1, "completed",
                    ["- [x] Migration file created", "- [x] Indexes added"])

    plans = reconcile_all(tmp_path, [plan], "auth")
    assert plans[0].plan_completed is False
    assert "# Plan: Auth System [completed]" not in path.read_text(encoding="utf-8")


def test_previously_completed_plan_stays_completed(tmp_path):
    plan = _auth_plan()
    plan.status = Status.COMPLETED
    _install(tmp_path, plan)
    result = reconcile(plan, {})
    assert result.plan_completed is True
    assert result.completed_tasks == 0


def test_completed_plan_shows_check_icon():
    plans = [PlanStatus(title="Done Plan", slug="done-plan", plan_completed=True,
                        completed_tasks=2, total_tasks=2, features=[FeatureStatus(
                            number=1, title="F", completed_tasks=2, total_tasks=2, tasks=[
                                TaskStatus(id="1.1", title="A", status=Status.COMPLETED),
                                TaskStatus(id="1.2", title="B", status=Status.COMPLETED)])])]
    output = format_summary(plans)
    assert "✓" in output
    assert "📋" not in output


def test_priority_in_format_summary():
    def make(title, slug, priority):
        return PlanStatus(title=title, slug=slug, priority=priority, features=[FeatureStatus(
            number=1, title="F", total_tasks=1,
            tasks=[TaskStatus(id="1.1", title="T", status=Status.PENDING)])])

    output = format_summary([make("Important Plan", "important", 1),
                             make("No Priority Plan", "no-priority", 0)])
    assert "[1] Important Plan" in output
    assert "[ ] No Priority Plan" in output


def test_priority_in_format_detailed():
    plan_status = PlanStatus(title="Prioritized Plan", slug="prioritized", priority=3,
                             features=[FeatureStatus(number=1, title="F", total_tasks=1, tasks=[
                                 TaskStatus(id="1.1", title="T", status=Status.PENDING)])])
    assert "[3] Prioritized Plan" in format_detailed(plan_status)


def test_reconcile_populates_priority(tmp_path):
    plan = Plan(title="Priority Test", slug="priority-test", priority=2,
                overview="Test plan with priority.",
                features=[Feature(1, "Core", "Core feature.", [
                    Task(1, 1, title="Setup", status=Status.PENDING,
                         criteria=[Criterion("Done")])])])
    _install(tmp_path, plan)

    plans = reconcile_all(tmp_path, [plan], "priority-test")
    assert len(plans) == 1
    assert plans[0].priority == 2