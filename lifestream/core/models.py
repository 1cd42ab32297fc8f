"""Data models for log entries, reports and pipeline-internal groups."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from .errors import ValidationError

SUPPORTED_LANGUAGES = ("en", "zh")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ReportType(str, Enum):
    """Report granularity. Determines how a period is grouped for map-reduce."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_report_type(value: str | ReportType) -> ReportType:
    """Parse a report type name (case-insensitive)."""
    if isinstance(value, ReportType):
        return value
    try:
        return ReportType(str(value).strip().upper())
    except ValueError:
        choices = ", ".join(t.value for t in ReportType)
        raise ValidationError(f"Invalid report type: {value!r} (expected one of {choices})") from None


def parse_language(value: str) -> str:
    """Return *value* if it is a supported output language."""
    lang = (value or "").strip().lower()
    if lang not in SUPPORTED_LANGUAGES:
        raise ValidationError(
            f"Invalid language: {value!r} (expected one of {', '.join(SUPPORTED_LANGUAGES)})"
        )
    return lang


def parse_period_date(value: str | date, field_name: str = "date") -> date:
    """Parse a strict YYYY-MM-DD string."""
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    if not _ISO_DATE.match(text):
        raise ValidationError(f"{field_name} must be YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid calendar date: {value!r}") from None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogEntry:
    """One journal entry as read from the log store."""

    id: str
    timestamp: int  # epoch millis
    content: str
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "content": self.content,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogEntry:
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            content=str(data["content"]),
            tags=tuple(str(t) for t in data.get("tags") or ()),
        )


@dataclass
class Report:
    """A persisted report. ``id`` survives regeneration of the same key."""

    id: str
    type: ReportType
    period_start: date
    period_end: date
    content: str
    created_at: int  # epoch millis

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "content": self.content,
            "createdAt": self.created_at,
        }


@dataclass
class LogGroup:
    """A labelled slice of a period, the unit of map-phase summarization."""

    label: str
    order_key: int  # epoch millis of the group's first local midnight
    entries: list[LogEntry] = field(default_factory=list)
