"""Narrow read/write contracts the pipeline needs from persistence."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from .models import LogEntry, Report, ReportType


class LogStore(Protocol):
    def list_logs(self, user_id: str, start: date, end: date) -> list[LogEntry]:
        """Entries whose local day falls in [start, end], timestamp ascending."""
        ...


class ReportStore(Protocol):
    def find_by_key(
        self, user_id: str, report_type: ReportType, start: date, end: date
    ) -> Report | None: ...

    def get(self, user_id: str, report_id: str) -> Report | None: ...

    def upsert(self, user_id: str, report: Report) -> Report:
        """Insert, or replace content/created_at of the report at the same key.

        The stored id of a pre-existing key wins over ``report.id``.
        """
        ...

    def insert_if_absent(self, user_id: str, report: Report) -> Report | None:
        """Insert only if the key is free; returns None when it is taken."""
        ...

    def delete(self, user_id: str, report_id: str) -> bool: ...

    def list_reports(
        self, user_id: str, report_type: ReportType | None = None
    ) -> list[Report]: ...
