"""Interactive review session for a plan: scrolling, search, comments and refinement."""

from __future__ import annotations

import contextlib
import os
import shlex
import subprocess
import tempfile
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from .comments import add_comment, delete_comment
from .diff import DiffLine, compute_diff, diff_stats, render_diff_line
from .model import Plan, Task
from .serializer import PlanEditError
from .view import (
    LineEntry,
    _bar,
    _hint,
    _style,
    _visible_width,
    backup_plan,
    collect_comments,
    find_comment_for_line,
    highlight_search,
    is_comment_line,
    render_plan,
    render_top_bar,
    restore_backup,
)

RefineFunc = Callable[[str, "list[str]"], str]
PlanLoader = Callable[[str], Plan]
Effect = Callable[[], None]

COMMENT_CHAR_LIMIT = 500
_PLACEHOLDER = "Type comment..."
_SPINNER_FRAME = "⣾ "
_DIFF_HINTS = "j/k:scroll  y:accept  n:reject "


class Mode(Enum):
    """The input mode of the review screen."""

    NORMAL = "normal"
    SEARCH = "search"
    COMMENT = "comment"
    CONFIRM = "confirm"
    APPLY_CONFIRM = "apply_confirm"
    LOADING = "loading"
    DIFF = "diff"


_PROMPT_MODES = {Mode.COMMENT, Mode.CONFIRM, Mode.APPLY_CONFIRM}


def open_editor(editor: str | None = None) -> str:
    """Edit a fresh temporary file in an editor and return its trimmed content.

    The editor defaults to ``$EDITOR`` and then ``vi``. Raises OSError if the
    editor cannot be started and CalledProcessError if it exits with failure.
    """
    command = editor or os.environ.get("EDITOR") or "vi"
    fd, tmp_path = tempfile.mkstemp(prefix="etch-comment-", suffix=".md")
    os.close(fd)
    try:
        subprocess.run([*shlex.split(command), tmp_path], check=True)
        return Path(tmp_path).read_text(encoding="utf-8").strip()
    finally:
        with contextlib.suppress(OSError):
            os.remove(tmp_path)


def _remove_quietly(path: str) -> None:
    with contextlib.suppress(OSError):
        os.remove(path)


class ReviewModel:
    """State and key handling of the plan review screen.

    Keys are given as strings: single characters for typed text and names
    such as ``enter``, ``esc``, ``backspace``, ``up``, ``down``, ``home`` and
    ``end``. A key may return an effect, a callable that does slow work (an
    editor or a refinement request) and feeds its result back into the model.
    """

    def __init__(
        self,
        plan: Plan,
        plan_path: str | os.PathLike[str],
        refine: RefineFunc | None = None,
        loader: PlanLoader | None = None,
    ) -> None:
        self.plan = plan
        self.plan_path = os.fspath(plan_path)
        self.refine = refine
        self.loader = loader
        self.lines: list[LineEntry] = []
        self.width = 0
        self.height = 0
        self.offset = 0
        self.cur_feature = -1
        self.cur_task = -1
        self.mode = Mode.NORMAL
        self.search_query = ""
        self.search_matches: list[int] = []
        self.search_index = 0
        self.comment_text = ""
        self.status_message = ""
        self.quit_requested = False
        self.diff_lines: list[DiffLine] = []
        self.diff_offset = 0
        self.backup_path = ""
        self.apply_comment_count = 0
        self._delete_index = -1
        self._delete_text = ""
        self._last_key_g = False
        self._old_content = ""
        self._new_content = ""

    # --- geometry -----------------------------------------------------

    def resize(self, width: int, height: int) -> None:
        """Set the screen size and re-render the plan lines."""
        self.width = width
        self.height = height
        self.lines = render_plan(self.plan, self.width)
        self._clamp_offset()
        self._update_position()

    def _view_height(self) -> int:
        h = self.height - 2
        if self.mode in _PROMPT_MODES:
            h -= 1
        return max(h, 1)

    def _diff_view_height(self) -> int:
        return max(self.height - 2, 1)

    def _clamp_offset(self) -> None:
        max_off = max(len(self.lines) - self._view_height(), 0)
        self.offset = max(0, min(self.offset, max_off))

    def _clamp_diff_offset(self) -> None:
        max_off = max(len(self.diff_lines) - self._diff_view_height(), 0)
        self.diff_offset = max(0, min(self.diff_offset, max_off))

    def _update_position(self) -> None:
        if self.offset < len(self.lines):
            entry = self.lines[self.offset]
            self.cur_feature = entry.feature_index
            self.cur_task = entry.task_index

    def _move_to(self, index: int) -> None:
        self.offset = index
        self._clamp_offset()
        self._update_position()

    # --- key dispatch -------------------------------------------------

    def handle_key(self, key: str) -> Effect | None:
        """Process one key press and return an effect to run, if any."""
        self.status_message = ""
        handlers = {
            Mode.NORMAL: self._normal_key,
            Mode.SEARCH: self._search_key,
            Mode.COMMENT: self._comment_key,
            Mode.CONFIRM: self._confirm_key,
            Mode.APPLY_CONFIRM: self._apply_confirm_key,
            Mode.LOADING: self._loading_key,
            Mode.DIFF: self._diff_key,
        }
        return handlers[self.mode](key)

    def _normal_key(self, key: str) -> Effect | None:
        view_h = self._view_height()

        if key == "g":
            if self._last_key_g:
                self.offset = 0
                self._last_key_g = False
                self._update_position()
            else:
                self._last_key_g = True
            return None
        self._last_key_g = False

        if key == "q":
            self.quit_requested = True
            return None
        if key in ("down", "j"):
            self.offset += 1
        elif key in ("up", "k"):
            self.offset -= 1
        elif key == "d":
            self.offset += view_h // 2
        elif key == "u":
            self.offset -= view_h // 2
        elif key in ("G", "end"):
            self.offset = len(self.lines) - view_h
        elif key == "home":
            self.offset = 0
        elif key == "n":
            self._jump_to_next_task()
        elif key == "p":
            self._jump_to_prev_task()
        elif key == "f":
            self._jump_to_next_feature()
        elif key in ("F", "shift+f"):
            self._jump_to_prev_feature()
        elif key == "/":
            self.mode = Mode.SEARCH
            self.search_query = ""
            self.search_matches = []
            self.search_index = 0
            return None
        elif key == "c":
            return self._enter_comment_mode()
        elif key == "C":
            return self._enter_editor_comment()
        elif key == "x":
            return self._enter_delete_mode()
        elif key == "a":
            return self._enter_apply_mode()

        self._clamp_offset()
        self._update_position()
        return None

    # --- search -------------------------------------------------------

    def _search_key(self, key: str) -> Effect | None:
        if key == "esc":
            self.mode = Mode.NORMAL
            self.search_matches = []
        elif key == "enter":
            self._execute_search()
            if self.search_matches:
                self.offset = self.search_matches[0]
                self.search_index = 0
            self.mode = Mode.NORMAL
            self._clamp_offset()
            self._update_position()
        elif key == "backspace":
            self.search_query = self.search_query[:-1]
        elif len(key) == 1:
            self.search_query += key
        return None

    def _execute_search(self) -> None:
        self.search_matches = []
        if not self.search_query:
            return
        query = self.search_query.lower()
        self.search_matches = [
            i for i, entry in enumerate(self.lines) if query in entry.text.lower()
        ]

    def _jump_to_next_search_match(self) -> None:
        if not self.search_matches:
            return
        for i, index in enumerate(self.search_matches):
            if index > self.offset:
                self.search_index = i
                self._move_to(index)
                return
        self.search_index = 0
        self._move_to(self.search_matches[0])

    # --- task and feature jumps ---------------------------------------

    def _jump_to_next_task(self) -> None:
        if self.search_matches:
            self._jump_to_next_search_match()
            return
        for i in range(self.offset + 1, len(self.lines)):
            entry, prev = self.lines[i], self.lines[i - 1]
            if entry.task_index >= 0 and (
                prev.task_index != entry.task_index
                or prev.feature_index != entry.feature_index
            ):
                self._move_to(i)
                return

    def _jump_to_prev_task(self) -> None:
        for i in range(self.offset - 1, -1, -1):
            entry = self.lines[i]
            if entry.task_index >= 0 and (
                entry.task_index != self.cur_task or entry.feature_index != self.cur_feature
            ):
                while i > 0 and (
                    self.lines[i - 1].task_index == entry.task_index
                    and self.lines[i - 1].feature_index == entry.feature_index
                ):
                    i -= 1
                self._move_to(i)
                return

    def _is_other_feature_heading(self, entry: LineEntry) -> bool:
        return (
            entry.feature_index >= 0
            and entry.feature_index != self.cur_feature
            and entry.task_index == -1
        )

    def _jump_to_next_feature(self) -> None:
        for i in range(self.offset + 1, len(self.lines)):
            if self._is_other_feature_heading(self.lines[i]):
                self._move_to(i)
                return

    def _jump_to_prev_feature(self) -> None:
        for i in range(self.offset - 1, -1, -1):
            if self._is_other_feature_heading(self.lines[i]):
                self._move_to(i)
                return

    # --- comments -----------------------------------------------------

    def _current_task(self) -> Task | None:
        if self.cur_feature < 0 or self.cur_task < 0:
            return None
        if self.cur_feature >= len(self.plan.features):
            return None
        tasks = self.plan.features[self.cur_feature].tasks
        if self.cur_task >= len(tasks):
            return None
        return tasks[self.cur_task]

    def _at_task(self) -> bool:
        if self.cur_feature < 0 or self.cur_task < 0:
            self.status_message = "Navigate to a task first"
            return False
        return True

    def _enter_comment_mode(self) -> Effect | None:
        if self._at_task():
            self.mode = Mode.COMMENT
            self.comment_text = ""
        return None

    def _enter_editor_comment(self) -> Effect | None:
        if not self._at_task():
            return None

        def run_editor() -> None:
            try:
                content = open_editor()
            except (OSError, subprocess.SubprocessError) as exc:
                self.on_editor_result(None, exc)
                return
            self.on_editor_result(content, None)

        return run_editor

    def on_editor_result(self, content: str | None, error: BaseException | None) -> None:
        """Take the outcome of an editor session and save it as a comment."""
        if error is not None:
            self.status_message = f"Editor error: {error}"
            return
        if content:
            self._save_comment(content)

    def _comment_key(self, key: str) -> Effect | None:
        if key == "esc":
            self.mode = Mode.NORMAL
            self.comment_text = ""
        elif key == "enter":
            text = self.comment_text.strip()
            if text:
                self._save_comment(text)
            self.mode = Mode.NORMAL
            self.comment_text = ""
        elif key == "backspace":
            self.comment_text = self.comment_text[:-1]
        elif len(key) == 1 and len(self.comment_text) < COMMENT_CHAR_LIMIT:
            self.comment_text += key
        return None

    def _enter_delete_mode(self) -> Effect | None:
        if not self._at_task():
            return None
        if self.offset >= len(self.lines):
            return None

        line_text = self.lines[self.offset].text
        if not is_comment_line(line_text):
            self.status_message = "Not a comment line"
            return None

        task = self._current_task()
        if task is None:
            return None

        index = find_comment_for_line(line_text, task.comments)
        if index is None:
            self.status_message = "Comment not found"
            return None

        self.mode = Mode.CONFIRM
        self._delete_index = index
        self._delete_text = task.comments[index]
        return None

    def _confirm_key(self, key: str) -> Effect | None:
        self.mode = Mode.NORMAL
        if key in ("y", "Y"):
            self._delete_comment()
        else:
            self.status_message = "Delete cancelled"
        return None

    def _save_comment(self, text: str) -> None:
        task = self._current_task()
        if task is None:
            return
        try:
            add_comment(self.plan_path, task.full_id(), text)
        except (PlanEditError, OSError) as exc:
            self.status_message = f"Save error: {exc}"
            return
        task.comments.append(text)
        self._reload_plan()
        self.status_message = "Comment added"

    def _delete_comment(self) -> None:
        task = self._current_task()
        if task is None:
            return
        try:
            delete_comment(self.plan_path, task.full_id(), self._delete_text)
        except (PlanEditError, OSError) as exc:
            self.status_message = f"Delete error: {exc}"
            return
        index = self._delete_index
        if 0 <= index < len(task.comments) and task.comments[index] == self._delete_text:
            del task.comments[index]
        self._reload_plan()
        self.status_message = "Comment deleted"

    def _reload_plan(self) -> None:
        if self.loader is not None:
            try:
                self.plan = self.loader(self.plan_path)
            except Exception as exc:  # the loader is supplied by the caller
                self.status_message = f"Reload error: {exc}"
                return
        self.lines = render_plan(self.plan, self.width)
        self._clamp_offset()
        self._update_position()

    # --- refinement ---------------------------------------------------

    def _enter_apply_mode(self) -> Effect | None:
        if self.refine is None:
            self.status_message = "Refinement not configured"
            return None
        comments = collect_comments(self.plan)
        if not comments:
            self.status_message = "No comments to send"
            return None
        self.mode = Mode.APPLY_CONFIRM
        self.apply_comment_count = len(comments)
        return None

    def _apply_confirm_key(self, key: str) -> Effect | None:
        if key not in ("y", "Y"):
            self.mode = Mode.NORMAL
            self.status_message = "Refinement cancelled"
            return None

        try:
            self._old_content = Path(self.plan_path).read_text(encoding="utf-8")
        except OSError as exc:
            self.status_message = f"Error reading plan: {exc}"
            self.mode = Mode.NORMAL
            return None

        try:
            self.backup_path = backup_plan(self.plan_path)
        except OSError as exc:
            self.status_message = f"Backup error: {exc}"
            self.mode = Mode.NORMAL
            return None

        self.mode = Mode.LOADING
        refine = self.refine
        content = self._old_content
        comments = collect_comments(self.plan)

        def run_refinement() -> None:
            try:
                new_content = refine(content, comments)
            except Exception as exc:  # any failure of the refinement service
                self.on_refinement_result(None, exc)
                return
            self.on_refinement_result(new_content, None)

        return run_refinement

    def _discard_backup(self) -> None:
        if self.backup_path:
            _remove_quietly(self.backup_path)
            self.backup_path = ""

    def on_refinement_result(
        self, new_content: str | None, error: BaseException | None
    ) -> None:
        """Take the refined plan text and show it as a diff for approval."""
        if self.mode is not Mode.LOADING:
            return
        if error is not None:
            self.mode = Mode.NORMAL
            self.status_message = f"Refinement error: {error}"
            self._discard_backup()
            return
        new_content = new_content or ""
        self.diff_lines = compute_diff(self._old_content, new_content)
        self._new_content = new_content
        self.diff_offset = 0
        self.mode = Mode.DIFF

    def _loading_key(self, key: str) -> Effect | None:
        if key == "esc":
            self.mode = Mode.NORMAL
            self.status_message = "Refinement cancelled"
            self._discard_backup()
        return None

    def _diff_key(self, key: str) -> Effect | None:
        view_h = self._diff_view_height()

        if key in ("y", "Y"):
            try:
                Path(self.plan_path).write_text(self._new_content, encoding="utf-8")
            except OSError as exc:
                self.status_message = f"Error writing plan: {exc}"
                self.mode = Mode.NORMAL
                return None
            self._reload_plan()
            self.mode = Mode.NORMAL
            added, removed = diff_stats(self.diff_lines)
            self.status_message = f"Plan updated (+{added}/-{removed} lines)"
            self._cleanup_refinement()
            return None

        if key in ("n", "N"):
            if self.backup_path:
                try:
                    restore_backup(self.backup_path, self.plan_path)
                except OSError as exc:
                    self.status_message = f"Restore error: {exc}"
                else:
                    self.status_message = "Changes rejected, plan restored"
            else:
                self.status_message = "Changes rejected"
            message = self.status_message
            self._reload_plan()
            self.status_message = message
            self.mode = Mode.NORMAL
            self._cleanup_refinement()
            return None

        if key in ("j", "down"):
            self.diff_offset += 1
        elif key in ("k", "up"):
            self.diff_offset -= 1
        elif key == "d":
            self.diff_offset += view_h // 2
        elif key == "u":
            self.diff_offset -= view_h // 2
        elif key == "G":
            self.diff_offset = len(self.diff_lines) - view_h
        elif key == "g":
            self.diff_offset = 0

        self._clamp_diff_offset()
        return None

    def _cleanup_refinement(self) -> None:
        self._discard_backup()
        self._old_content = ""
        self._new_content = ""
        self.diff_lines = []
        self.diff_offset = 0

    # --- rendering ----------------------------------------------------

    def view(self) -> str:
        """Render the whole screen."""
        if self.width == 0 or self.height == 0:
            return "Loading..."
        if self.mode is Mode.LOADING:
            return self._view_loading()
        if self.mode is Mode.DIFF:
            return self._view_diff()

        parts = [render_top_bar(self.plan, self.width), "\n"]

        view_h = self._view_height()
        visible = self.lines[self.offset : self.offset + view_h]
        for entry in visible:
            line = entry.text
            if self.search_matches and self.search_query:
                line = highlight_search(line, self.search_query)
            parts.append(line + "\n")
        parts.append("\n" * (view_h - len(visible)))

        if self.mode is Mode.COMMENT:
            parts.append(
                _style(" 💬 Comment: ", fg=178, bold=True) + self._comment_input_view() + "\n"
            )
        elif self.mode is Mode.CONFIRM:
            preview = self._delete_text
            if len(preview) > 50:
                preview = preview[:50] + "..."
            parts.append(
                _style(f' Delete comment: "{preview}"? (y/N) ', fg=196, bold=True) + "\n"
            )
        elif self.mode is Mode.APPLY_CONFIRM:
            parts.append(
                _style(
                    f" Send {self.apply_comment_count} comment(s) for refinement? (y/N) ",
                    fg=39,
                    bold=True,
                )
                + "\n"
            )

        parts.append(self.bottom_bar())
        return "".join(parts)

    def _comment_input_view(self) -> str:
        if self.comment_text:
            return self.comment_text
        return _style(_PLACEHOLDER, fg=240)

    def bottom_bar(self) -> str:
        """Render the bottom bar with the current position and mode."""
        position = ""
        if 0 <= self.cur_feature < len(self.plan.features):
            feature = self.plan.features[self.cur_feature]
            position = f" Feature {feature.number}: {feature.title}"
            if 0 <= self.cur_task < len(feature.tasks):
                task = feature.tasks[self.cur_task]
                position += f"  >  Task {task.full_id()}: {task.title}"

        mode = ""
        if self.mode is Mode.SEARCH:
            mode = f"  SEARCH: {self.search_query}"
            if self.search_matches:
                mode += f"  [{self.search_index + 1}/{len(self.search_matches)}]"
        elif self.mode is Mode.COMMENT:
            mode = "  COMMENT"
        elif self.mode is Mode.CONFIRM:
            mode = "  CONFIRM DELETE"
        elif self.mode is Mode.APPLY_CONFIRM:
            mode = "  APPLY REFINEMENT"

        if self.status_message:
            mode = "  " + self.status_message

        return _bar(position + mode, self.width)

    def _view_loading(self) -> str:
        view_h = self.height - 2
        top_pad = view_h // 2
        spinner_text = _SPINNER_FRAME + " Sending comments for AI refinement..."
        pad = max(0, (self.width - _visible_width(spinner_text)) // 2)
        return "".join(
            [
                _bar(" Refining plan...", self.width),
                "\n",
                "\n" * top_pad,
                " " * pad + spinner_text + "\n",
                "\n" * max(0, view_h - top_pad - 1),
                _bar(" ESC to cancel", self.width),
            ]
        )

    def _view_diff(self) -> str:
        added, removed = diff_stats(self.diff_lines)
        left = f" Refinement Diff  +{added} -{removed}"
        right = _hint(_DIFF_HINTS)
        gap = max(1, self.width - _visible_width(left) - _visible_width(right))
        parts = [_bar(left + " " * gap + right, self.width), "\n"]

        view_h = self._diff_view_height()
        visible = self.diff_lines[self.diff_offset : self.diff_offset + view_h]
        parts.extend(render_diff_line(line) + "\n" for line in visible)
        parts.append("\n" * (view_h - len(visible)))

        parts.append(_bar(f" Line {self.diff_offset + 1}/{len(self.diff_lines)}", self.width))
        return "".join(parts)