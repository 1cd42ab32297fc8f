"""Report storage — one frontmatter markdown file per (type, period) key."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from typing import TYPE_CHECKING

from ..core.frontmatter import build_frontmatter, parse_frontmatter
from ..core.models import Report, ReportType
from ..core.vault import user_dir

if TYPE_CHECKING:
    from ..core.vault import VaultEngine

logger = logging.getLogger(__name__)

REPORTS_DIR = "reports"


def report_filename(report_type: ReportType, start: date, end: date) -> str:
    """File name encoding the report key, e.g. ``WEEKLY_2026-03-02_2026-03-08.md``."""
    return f"{report_type.value}_{start.isoformat()}_{end.isoformat()}.md"


def _to_markdown(report: Report) -> str:
    fields = {
        "id": report.id,
        "type": report.type.value,
        "period_start": report.period_start.isoformat(),
        "period_end": report.period_end.isoformat(),
        "created_at": str(report.created_at),
    }
    return build_frontmatter(fields, report.content)


def _from_markdown(content: str) -> Report:
    fields, body = parse_frontmatter(content)
    return Report(
        id=fields["id"],
        type=ReportType(fields["type"]),
        period_start=date.fromisoformat(fields["period_start"]),
        period_end=date.fromisoformat(fields["period_end"]),
        content=body,
        created_at=int(fields.get("created_at") or 0),
    )


class VaultReportStore:
    """Keyed report storage with upsert semantics.

    The in-process lock makes find-then-write atomic for one process; it is
    the only guard against two writers of the same key.
    """

    def __init__(self, engine: VaultEngine) -> None:
        self._engine = engine
        self._lock = threading.Lock()

    def _read(self, rel_path: str) -> Report | None:
        content = self._engine.read_resource(rel_path)
        if not content:
            return None
        try:
            return _from_markdown(content)
        except (KeyError, ValueError):
            logger.warning("Ignoring malformed report file %s", rel_path)
            return None

    def _write(self, user_id: str, report: Report) -> None:
        self._engine.write_resource(
            content=_to_markdown(report),
            directory=user_dir(user_id, REPORTS_DIR),
            filename=report_filename(report.type, report.period_start, report.period_end),
        )

    def _iter_reports(self, user_id: str) -> list[Report]:
        directory = user_dir(user_id, REPORTS_DIR)
        reports: list[Report] = []
        for name in self._engine.list_resources(directory):
            report = self._read(f"{directory}/{name}")
            if report is not None:
                reports.append(report)
        return reports

    # -- contract -----------------------------------------------------------

    def find_by_key(
        self, user_id: str, report_type: ReportType, start: date, end: date
    ) -> Report | None:
        rel_path = f"{user_dir(user_id, REPORTS_DIR)}/{report_filename(report_type, start, end)}"
        return self._read(rel_path)

    def get(self, user_id: str, report_id: str) -> Report | None:
        for report in self._iter_reports(user_id):
            if report.id == report_id:
                return report
        return None

    def upsert(self, user_id: str, report: Report) -> Report:
        with self._lock:
            existing = self.find_by_key(user_id, report.type, report.period_start, report.period_end)
            if existing is not None and existing.id != report.id:
                report = replace(report, id=existing.id)
            self._write(user_id, report)
        return report

    def insert_if_absent(self, user_id: str, report: Report) -> Report | None:
        with self._lock:
            if self.find_by_key(user_id, report.type, report.period_start, report.period_end):
                return None
            self._write(user_id, report)
        return report

    def delete(self, user_id: str, report_id: str) -> bool:
        with self._lock:
            report = self.get(user_id, report_id)
            if report is None:
                return False
            filename = report_filename(report.type, report.period_start, report.period_end)
            return self._engine.delete_resource(f"{user_dir(user_id, REPORTS_DIR)}/{filename}")

    def list_reports(self, user_id: str, report_type: ReportType | None = None) -> list[Report]:
        """Reports of a user, newest first."""
        reports = [
            r for r in self._iter_reports(user_id)
            if report_type is None or r.type is report_type
        ]
        reports.sort(key=lambda r: r.created_at, reverse=True)
        return reports
