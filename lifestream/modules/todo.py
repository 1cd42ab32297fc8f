"""Todo module — to-do items stored under ``<user>/todos/active|done/``.

Reports carry an action-items section (``- [ ] ...`` lines); ``sync_action_items``
turns those into todos without duplicating ones the user already has.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..core.errors import NotFoundError, ValidationError
from ..core.frontmatter import build_frontmatter, parse_frontmatter
from ..core.models import Report
from ..core.vault import check_id, user_dir
from .postprocess import extract_action_items

if TYPE_CHECKING:
    from ..core.vault import VaultEngine

logger = logging.getLogger(__name__)

ACTIVE = "active"
DONE = "done"


def _build_todo_md(todo_id: str, text: str, source: str = "") -> str:
    fields: dict[str, str] = {
        "id": todo_id,
        "created": datetime.now().isoformat(timespec="seconds"),
    }
    if source:
        fields["source"] = source
    return build_frontmatter(fields, text)


class TodoStore:
    """CRUD over todo files; completing a todo moves it from active/ to done/."""

    def __init__(self, engine: VaultEngine) -> None:
        self._engine = engine
        self._lock = threading.Lock()

    def _dir(self, user_id: str, state: str) -> str:
        return user_dir(user_id, "todos", state)

    def _read_dir(self, user_id: str, state: str) -> list[dict[str, Any]]:
        directory = self._dir(user_id, state)
        todos: list[dict[str, Any]] = []
        for name in self._engine.list_resources(directory):
            content = self._engine.read_resource(f"{directory}/{name}")
            if content is None:
                continue
            meta, body = parse_frontmatter(content)
            todos.append({
                "id": meta.get("id", name[:-3]),
                "text": body,
                "source": meta.get("source", ""),
                "created": meta.get("created", ""),
                "done": state == DONE,
            })
        todos.sort(key=lambda t: t["created"])
        return todos

    def add_todo(self, user_id: str, text: str, source: str = "") -> dict[str, Any]:
        """Create a new todo item and return it."""
        text = " ".join((text or "").split())
        if not text:
            raise ValidationError("Todo text must not be empty.")
        todo_id = uuid.uuid4().hex[:8]
        with self._lock:
            self._engine.write_resource(
                content=_build_todo_md(todo_id, text, source),
                directory=self._dir(user_id, ACTIVE),
                filename=f"{todo_id}.md",
            )
        logger.info("Todo added: %s (%s)", todo_id, source or "manual")
        return {"id": todo_id, "text": text, "source": source, "done": False}

    def list_todos(self, user_id: str, include_done: bool = False) -> list[dict[str, Any]]:
        todos = self._read_dir(user_id, ACTIVE)
        if include_done:
            todos.extend(self._read_dir(user_id, DONE))
        return todos

    def complete_todo(self, user_id: str, todo_id: str) -> None:
        filename = f"{check_id(todo_id, 'todo id')}.md"
        with self._lock:
            moved = self._engine.move_resource(
                f"{self._dir(user_id, ACTIVE)}/{filename}",
                f"{self._dir(user_id, DONE)}/{filename}",
            )
        if not moved:
            raise NotFoundError(f"Todo not found: {todo_id}")

    def remove_todo(self, user_id: str, todo_id: str) -> None:
        filename = f"{check_id(todo_id, 'todo id')}.md"
        with self._lock:
            for state in (ACTIVE, DONE):
                if self._engine.delete_resource(f"{self._dir(user_id, state)}/{filename}"):
                    return
        raise NotFoundError(f"Todo not found: {todo_id}")


def sync_action_items(report: Report, todo_store: TodoStore, user_id: str) -> list[dict[str, Any]]:
    """Add the report's action items as todos; returns the ones created.

    Items whose text already exists (active or done, case-insensitive) are
    skipped, so syncing the same report twice adds nothing.
    """
    seen = {
        t["text"].casefold()
        for t in todo_store.list_todos(user_id, include_done=True)
    }
    source = f"report:{report.id}"
    added: list[dict[str, Any]] = []
    for item in extract_action_items(report.content):
        key = " ".join(item.split()).casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        added.append(todo_store.add_todo(user_id, item, source=source))
    if added:
        logger.info("Synced %d action items from report %s", len(added), report.id)
    return added
