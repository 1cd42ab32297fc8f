"""Daily log module — journal entries stored as one JSON-lines file per local day."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import date, tzinfo
from typing import TYPE_CHECKING, Iterable

from ..core.errors import NotFoundError, ValidationError
from ..core.models import LogEntry
from ..core.vault import user_dir
from .grouping import local_day

if TYPE_CHECKING:
    from ..core.vault import VaultEngine

logger = logging.getLogger(__name__)

LOGS_DIR = "logs"
LOG_SUFFIX = ".jsonl"


class DailyLogStore:
    """Append-mostly log storage: ``<user>/logs/YYYY-MM-DD.jsonl``."""

    def __init__(self, engine: VaultEngine, tz: tzinfo | None = None) -> None:
        self._engine = engine
        self._tz = tz
        self._lock = threading.Lock()

    def _filename(self, day: date) -> str:
        return f"{day.isoformat()}{LOG_SUFFIX}"

    def append_log(
        self,
        user_id: str,
        content: str,
        tags: Iterable[str] = (),
        timestamp: int | None = None,
    ) -> LogEntry:
        """Record one entry and return it."""
        text = (content or "").strip()
        if not text:
            raise ValidationError("Log content must not be empty.")

        entry = LogEntry(
            id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000) if timestamp is None else int(timestamp),
            content=text,
            tags=tuple(t.strip() for t in tags if t and t.strip()),
        )
        day = local_day(entry.timestamp, self._tz)
        with self._lock:
            self._engine.append_resource(
                json.dumps(entry.to_dict(), ensure_ascii=False),
                directory=user_dir(user_id, LOGS_DIR),
                filename=self._filename(day),
            )
        return entry

    def get_daily_log(self, user_id: str, day: date) -> list[LogEntry]:
        """Entries of one local day, timestamp ascending."""
        rel_path = f"{user_dir(user_id, LOGS_DIR)}/{self._filename(day)}"
        content = self._engine.read_resource(rel_path)
        if not content:
            return []

        entries: list[LogEntry] = []
        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                entries.append(LogEntry.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                logger.warning("Skipping malformed log line %s:%d", rel_path, lineno)
        entries.sort(key=lambda e: e.timestamp)
        return entries

    def list_logs(self, user_id: str, start: date, end: date) -> list[LogEntry]:
        """Entries whose local day is within [start, end], timestamp ascending."""
        entries: list[LogEntry] = []
        for day in self._days(user_id):
            if start <= day <= end:
                entries.extend(self.get_daily_log(user_id, day))
        entries.sort(key=lambda e: e.timestamp)
        return entries

    def _days(self, user_id: str) -> list[date]:
        days: list[date] = []
        for name in self._engine.list_resources(user_dir(user_id, LOGS_DIR), suffix=LOG_SUFFIX):
            try:
                days.append(date.fromisoformat(name[: -len(LOG_SUFFIX)]))
            except ValueError:
                continue
        return days

    def _locate(self, user_id: str, entry_id: str, day: date | None) -> tuple[date, list[LogEntry]]:
        """Day file holding *entry_id* and that day's entries."""
        for candidate in ([day] if day is not None else self._days(user_id)):
            entries = self.get_daily_log(user_id, candidate)
            if any(e.id == entry_id for e in entries):
                return candidate, entries
        raise NotFoundError(f"Log entry not found: {entry_id}")

    def _rewrite(self, user_id: str, day: date, entries: list[LogEntry]) -> None:
        directory = user_dir(user_id, LOGS_DIR)
        if entries:
            body = "\n".join(json.dumps(e.to_dict(), ensure_ascii=False) for e in entries) + "\n"
            self._engine.write_resource(body, directory=directory, filename=self._filename(day))
        else:
            self._engine.delete_resource(f"{directory}/{self._filename(day)}")

    def update_log(
        self,
        user_id: str,
        entry_id: str,
        content: str,
        tags: Iterable[str] | None = None,
        day: date | None = None,
    ) -> LogEntry:
        """Replace an entry's content (and tags, when given); id and timestamp stay."""
        text = (content or "").strip()
        if not text:
            raise ValidationError("Log content must not be empty.")
        with self._lock:
            found_day, entries = self._locate(user_id, entry_id, day)
            i = next(i for i, e in enumerate(entries) if e.id == entry_id)
            old = entries[i]
            new_tags = old.tags if tags is None else tuple(t.strip() for t in tags if t and t.strip())
            entries[i] = replace(old, content=text, tags=new_tags)
            self._rewrite(user_id, found_day, entries)
        logger.info("Log entry %s updated", entry_id)
        return entries[i]

    def delete_log(self, user_id: str, entry_id: str, day: date | None = None) -> None:
        """Remove one entry; *day* narrows the search to one day file."""
        with self._lock:
            found_day, entries = self._locate(user_id, entry_id, day)
            self._rewrite(user_id, found_day, [e for e in entries if e.id != entry_id])
