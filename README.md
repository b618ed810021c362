# etchplan

`etchplan` works with implementation plans kept as Markdown files, together
with per-session progress notes kept under `.etch/progress/`.

A plan looks like this:

```markdown
# Plan: Auth System
**Priority:** 2

## Overview

Build authentication for the API.

---

## Feature 1: Token Management

### Task 1.1: Create token service [pending]
**Complexity:** medium
**Files:** token.go
**Depends on:** none

Build the token signing and verification service.

> 💬 A review comment.

**Acceptance Criteria:**
- [ ] Tokens can be signed
- [ ] Tokens can be verified
```

Plans with a single feature leave out the `## Feature` heading and number
their tasks `### Task 1:`, `### Task 2:` and so on.

## Modules

- `etchplan.model` — the data types: `Plan`, `Feature`, `Task` (with
  `full_id()`, e.g. `1.2` or `1.3b`), `Criterion`, `SessionProgress`, and the
  enums `Status` (with `icon()`) and `Complexity`.
- `etchplan.serializer` — `serialize(plan)` renders a `Plan` as Markdown.
  `update_task_status`, `update_criterion`, `update_plan_status` and
  `update_plan_priority` edit a plan file in place, changing only the line
  concerned (a priority of 0 removes the priority line). A missing task,
  criterion or heading raises `PlanEditError`. `task_id_patterns` gives the
  heading prefixes a task ID matches; IDs in feature 1 also match the short
  single-feature form.
- `etchplan.comments` — `add_comment` and `delete_comment` add and remove
  `> 💬` blockquotes at the end of a task's section; `build_comment_lines`
  formats a (possibly multi-line) comment.
- `etchplan.progress` — `write_session` creates the next numbered progress
  file for a task (`<plan>--task-<id>--NNN.md`), creating it exclusively and
  skipping numbers that already exist. `read_all` reads a plan's session
  files back, grouped by task ID and ordered by session number, skipping
  unreadable files with a logged warning. `find_latest_session_path`,
  `append_to_section`, `update_criterion` and `update_status` find and edit
  session files; failures raise `ProgressError`.
- `etchplan.status` — `reconcile(plan, progress_map)` takes the latest
  session outcome of each task and every criterion checked in any session,
  writes them into the plan file, marks pending tasks blocked by unfinished
  dependencies, and marks the plan completed when every task is done.
  `reconcile_all(root_dir, plans, plan_filter)` does this for a list of plans,
  reading their progress from `root_dir`. `format_summary`, `format_detailed`
  and `format_json` render the result; `filter_active` keeps plans with
  unfinished tasks; `sort_plan_statuses` orders by priority (unset last),
  then title.
- `etchplan.diff` — `compute_diff` produces a line diff of two texts;
  `diff_stats` counts added and removed lines; `render_diff_line` colours one
  line for a terminal.
- `etchplan.view` — `render_plan` turns a plan into ANSI-styled lines, each
  tagged with its feature and task (`LineEntry`), plus helpers for the review
  screen: `render_top_bar`, `wrap_text`, `highlight_search`, `strip_ansi`,
  `collect_comments`, `backup_plan` and `restore_backup`.
- `etchplan.review` — `ReviewModel` holds the state of an interactive plan
  reviewer: scrolling, task and feature jumps, search, adding and deleting
  comments, and sending comments to a refinement function whose result is
  shown as a diff to accept or reject. Feed it keys with `handle_key(key)`
  and draw `view()`; a key may return an effect (a callable that opens an
  editor via `open_editor` or calls the refinement function) for the caller
  to run.

## Example

```python
from etchplan.model import Status
from etchplan.serializer import update_task_status
from etchplan.progress import read_all
from etchplan.diff import compute_diff, diff_stats

update_task_status(".etch/plans/auth.md", "1.1", Status("completed"))

sessions = read_all(".", "auth")
for task_id, runs in sessions.items():
    print(task_id, [run.status for run in runs])

lines = compute_diff("a\nb\n", "a\nc\n")
print(diff_stats(lines))  # (1, 1)
```

Progress session statuses map onto task statuses as follows: `completed` →
completed, `partial` or `in_progress` → in progress, `failed` → failed,
`blocked` → blocked, anything else → pending.

## What it does not do

- It does not read plan Markdown into `Plan` objects. `reconcile` and
  `reconcile_all` take `Plan` objects you build, and `ReviewModel` reloads a
  plan after an edit only through a `loader` function you pass in.
- It has no command-line program.
- `ReviewModel` is not a full-screen terminal application: it has no event
  loop and does not read the keyboard itself. You drive it and print its
  output.
- It has no refinement service of its own; the review's refinement step calls
  whatever function you pass as `refine`.