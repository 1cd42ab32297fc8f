"""Report service — keyed, idempotent report and cues generation.

Sits between callers (CLI, HTTP service) and the pipeline: validates the
request, honours the stored report unless regeneration is forced, fetches the
period's logs, runs the summarizer and upserts the result. A failed run never
writes anything.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..core.models import (
    Report,
    ReportType,
    parse_language,
    parse_period_date,
    parse_report_type,
)
from ..core.store import LogStore, ReportStore
from ..core.vault import check_id
from .postprocess import strip_thinking
from .summarizer import Summarizer

logger = logging.getLogger(__name__)


def _now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class GenerationRequest:
    """A validated generation request."""

    type: ReportType
    period_start: date
    period_end: date
    language: str
    period_name: str | None = None
    force: bool = False

    @classmethod
    def parse(
        cls,
        type: str | ReportType,
        period_start: str | date,
        period_end: str | date,
        language: str,
        period_name: str | None = None,
        force: bool = False,
    ) -> GenerationRequest:
        report_type = parse_report_type(type)
        start = parse_period_date(period_start, "periodStart")
        end = parse_period_date(period_end, "periodEnd")
        if start > end:
            raise ValidationError("periodStart must not be after periodEnd.")
        if report_type is ReportType.DAILY and start != end:
            raise ValidationError("Daily report must have the same periodStart and periodEnd.")
        name = (period_name or "").strip() or None
        return cls(report_type, start, end, parse_language(language), name, bool(force))

    @classmethod
    def for_cues(
        cls,
        period_start: str | date,
        period_end: str | date,
        language: str,
        period_name: str | None = None,
        type: str | ReportType | None = None,
    ) -> GenerationRequest:
        """Cues digests cover any range; *type* only picks the map-phase grouping.

        Without a type the grouping follows the range length: one day is DAILY,
        up to a week WEEKLY, up to a month MONTHLY, anything longer YEARLY.
        """
        start = parse_period_date(period_start, "periodStart")
        end = parse_period_date(period_end, "periodEnd")
        if start > end:
            raise ValidationError("periodStart must not be after periodEnd.")
        report_type = parse_report_type(type) if type else cues_grouping(start, end)
        name = (period_name or "").strip() or None
        return cls(report_type, start, end, parse_language(language), name)

    @property
    def range_text(self) -> str:
        if self.period_start == self.period_end:
            return self.period_start.isoformat()
        return f"{self.period_start.isoformat()} ~ {self.period_end.isoformat()}"


def cues_grouping(start: date, end: date) -> ReportType:
    days = (end - start).days + 1
    if days == 1:
        return ReportType.DAILY
    if days <= 7:
        return ReportType.WEEKLY
    if days <= 31:
        return ReportType.MONTHLY
    return ReportType.YEARLY


def resolve_period_name(request: GenerationRequest) -> str:
    """Caller's period name with the date range appended when it lacks it."""
    if not request.period_name:
        return request.range_text
    if request.range_text in request.period_name:
        return request.period_name
    return f"{request.period_name} ({request.range_text})"


@dataclass
class GenerationResult:
    report: Report
    created: bool  # no report existed at the key before this call
    generated: bool  # the LLM was called


class ReportService:
    """Report operations for one user over injected stores and summarizer."""

    def __init__(
        self,
        log_store: LogStore,
        report_store: ReportStore,
        summarizer: Summarizer,
        user_id: str = "local",
    ) -> None:
        self.log_store = log_store
        self.report_store = report_store
        self.summarizer = summarizer
        self.user_id = user_id

    # -- generation ---------------------------------------------------------

    def generate_report(self, request: GenerationRequest) -> GenerationResult:
        """Return the stored report for the key, or generate and upsert one."""
        existing = self.report_store.find_by_key(
            self.user_id, request.type, request.period_start, request.period_end
        )
        if existing is not None and not request.force:
            logger.info("Report %s exists for %s %s, skipping generation",
                        existing.id, request.type.value, request.range_text)
            return GenerationResult(existing, created=False, generated=False)

        logs = self.log_store.list_logs(self.user_id, request.period_start, request.period_end)
        if not logs:
            raise NotFoundError("No logs found for this period.")

        content = strip_thinking(self.summarizer.generate_report(
            request.type,
            logs,
            resolve_period_name(request),
            request.language,
            request.period_start,
            request.period_end,
        ))

        report = Report(
            id=existing.id if existing is not None else uuid.uuid4().hex,
            type=request.type,
            period_start=request.period_start,
            period_end=request.period_end,
            content=content,
            created_at=_now_millis(),
        )
        stored = self.report_store.upsert(self.user_id, report)
        logger.info("Stored %s report %s for %s", request.type.value, stored.id, request.range_text)
        return GenerationResult(stored, created=existing is None, generated=True)

    def generate_cues(self, request: GenerationRequest) -> str:
        """Standalone Cues digest for the period; not persisted."""
        logs = self.log_store.list_logs(self.user_id, request.period_start, request.period_end)
        if not logs:
            raise NotFoundError("No logs found for this period.")
        return strip_thinking(self.summarizer.generate_cues(
            logs,
            resolve_period_name(request),
            request.language,
            request.period_start,
            request.period_end,
            report_type=request.type,
        ))

    # -- CRUD ---------------------------------------------------------------

    def create_report(
        self,
        type: str | ReportType,
        period_start: str | date,
        period_end: str | date,
        content: str,
        report_id: str | None = None,
        created_at: int | None = None,
    ) -> tuple[Report, bool]:
        """Create-or-fetch: returns ``(report, created)``.

        An existing report at the key is returned unchanged. A caller-chosen
        id that already belongs to another key raises ConflictError.
        """
        report_type = parse_report_type(type)
        start = parse_period_date(period_start, "periodStart")
        end = parse_period_date(period_end, "periodEnd")
        if start > end:
            raise ValidationError("periodStart must not be after periodEnd.")
        text = strip_thinking(content or "")
        if not text:
            raise ValidationError("Report content must not be empty.")
        if report_id is not None:
            check_id(report_id, "report id")

        existing = self.report_store.find_by_key(self.user_id, report_type, start, end)
        if existing is not None:
            return existing, False

        if report_id and self.report_store.get(self.user_id, report_id) is not None:
            raise ConflictError(f"Report id {report_id} is already used by another period.")

        report = Report(
            id=report_id or uuid.uuid4().hex,
            type=report_type,
            period_start=start,
            period_end=end,
            content=text,
            created_at=_now_millis() if created_at is None else int(created_at),
        )
        inserted = self.report_store.insert_if_absent(self.user_id, report)
        if inserted is None:
            # Lost a race for the key; hand back the winner.
            winner = self.report_store.find_by_key(self.user_id, report_type, start, end)
            if winner is None:
                raise ConflictError("Report already exists or conflicts with an existing id.")
            return winner, False
        return inserted, True

    def get_report(self, report_id: str) -> Report:
        report = self.report_store.get(self.user_id, report_id)
        if report is None:
            raise NotFoundError(f"Report not found: {report_id}")
        return report

    def list_reports(self, type: str | ReportType | None = None) -> list[Report]:
        report_type = parse_report_type(type) if type else None
        return self.report_store.list_reports(self.user_id, report_type)

    def update_report(self, report_id: str, content: str) -> Report:
        """Manual edit: replace content, keep id and creation time."""
        text = strip_thinking(content or "")
        if not text:
            raise ValidationError("Report content must not be empty.")
        report = self.get_report(report_id)
        report.content = text
        return self.report_store.upsert(self.user_id, report)

    def delete_report(self, report_id: str) -> None:
        if not self.report_store.delete(self.user_id, report_id):
            raise NotFoundError(f"Report not found: {report_id}")
