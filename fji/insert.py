"""Insertion of a chosen issue into the host's active document."""

import re
from collections.abc import Callable
from typing import NamedTuple, Protocol

import structlog

from fji.errors import NoActiveDocument
from fji.models import Issue
from fji.settings import FjiSettings

log = structlog.get_logger()

UNASSIGNED = "Unassigned"
NO_PARENT = "No Parent"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class Cursor(NamedTuple):
    line: int
    ch: int


class Editor(Protocol):
    def get_cursor(self) -> Cursor: ...

    def replace_range(self, text: str, cursor: Cursor) -> None: ...

    def set_cursor(self, cursor: Cursor) -> None: ...

    def focus(self) -> None: ...


class Workspace(Protocol):
    def active_editor(self) -> Editor | None: ...

    def last_active_editor(self) -> Editor | None:
        """The editor that had focus before the search panel took it."""
        ...


def issue_values(issue: Issue, base_url: str) -> dict[str, str]:
    fields = issue.fields
    return {
        "key": issue.key,
        "summary": fields.summary,
        "author": fields.assignee.display_name if fields.assignee else UNASSIGNED,
        "status": fields.status.name,
        "parent": fields.parent.summary if fields.parent else NO_PARENT,
        "url": f"{base_url}/browse/{issue.key}",
    }


def format_issue(template: str, issue: Issue, base_url: str = "") -> str:
    """Fill ``{key}``, ``{summary}``, ``{author}``, ``{status}``, ``{parent}`` and ``{url}``.

    Unknown placeholders are left as written. Values are substituted verbatim,
    so braces inside a summary are never re-expanded.
    """
    values = issue_values(issue, base_url)
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def cursor_after(start: Cursor, text: str) -> Cursor:
    """Position just past ``text`` when it is inserted at ``start``."""
    lines = text.split("\n")
    if len(lines) == 1:
        return Cursor(start.line, start.ch + len(text))
    return Cursor(start.line + len(lines) - 1, len(lines[-1]))


class IssueInserter:
    """Writes the formatted issue link at the cursor of the active editor."""

    def __init__(self, workspace: Workspace, settings: FjiSettings, notify: Callable[[str], None]) -> None:
        self._workspace = workspace
        self._settings = settings
        self._notify = notify

    def render(self, issue: Issue) -> str:
        return format_issue(self._settings.insert_format_template, issue, self._settings.base_url)

    def insert(self, issue: Issue) -> bool:
        """Insert ``issue`` and return True, or notify the user and return False."""
        try:
            editor = self._active_editor()
        except NoActiveDocument as exc:
            log.info("insert_skipped", key=issue.key, reason=str(exc))
            self._notify(str(exc))
            return False

        text = self.render(issue)
        cursor = editor.get_cursor()
        editor.replace_range(text, cursor)
        editor.set_cursor(cursor_after(cursor, text))
        editor.focus()
        log.debug("issue_inserted", key=issue.key, line=cursor.line, ch=cursor.ch)
        return True

    def _active_editor(self) -> Editor:
        editor = self._workspace.active_editor()
        if editor is None:
            editor = self._workspace.last_active_editor()
        if editor is None:
            raise NoActiveDocument("No active document to insert the issue into.")
        return editor
