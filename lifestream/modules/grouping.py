"""Period grouping — partition a period's entries by calendar semantics.

Granularity follows the report type: a daily report is one group, a weekly
report groups by day, a monthly report by 7-day windows anchored at the
period start, and a yearly report by calendar month. Days are the entry's
local calendar day.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from ..core.models import LogEntry, LogGroup, ReportType

WINDOW_DAYS = 7


def local_day(timestamp: int, tz: tzinfo | None = None) -> date:
    """Calendar day of an epoch-millis timestamp in *tz* (process-local if None)."""
    return datetime.fromtimestamp(timestamp / 1000, tz).date()


def midnight_millis(day: date, tz: tzinfo | None = None) -> int:
    """Epoch millis of local midnight at the start of *day*."""
    return int(datetime.combine(day, time.min, tzinfo=tz).timestamp() * 1000)


def _bucket_by_day(entries: list[LogEntry], tz: tzinfo | None) -> dict[date, list[LogEntry]]:
    by_day: dict[date, list[LogEntry]] = defaultdict(list)
    for entry in entries:
        by_day[local_day(entry.timestamp, tz)].append(entry)
    return by_day


def _day_groups(by_day: dict[date, list[LogEntry]], days: Iterable[date], tz: tzinfo | None) -> list[LogGroup]:
    return [
        LogGroup(label=day.isoformat(), order_key=midnight_millis(day, tz), entries=by_day[day])
        for day in sorted(days)
    ]


def _group_by_day(entries: list[LogEntry], tz: tzinfo | None) -> list[LogGroup]:
    by_day = _bucket_by_day(entries, tz)
    return _day_groups(by_day, by_day.keys(), tz)


def _group_monthly(
    entries: list[LogEntry], start: date, end: date, tz: tzinfo | None
) -> list[LogGroup]:
    by_day = _bucket_by_day(entries, tz)
    groups: list[LogGroup] = []

    window_start = start
    while window_start <= end:
        window_end = min(window_start + timedelta(days=WINDOW_DAYS - 1), end)
        window_entries: list[LogEntry] = []
        day = window_start
        while day <= window_end:
            window_entries.extend(by_day.get(day, ()))
            day += timedelta(days=1)
        if window_entries:
            groups.append(LogGroup(
                label=f"{window_start.isoformat()} ~ {window_end.isoformat()}",
                order_key=midnight_millis(window_start, tz),
                entries=window_entries,
            ))
        window_start += timedelta(days=WINDOW_DAYS)

    stray = [d for d in by_day if d < start or d > end]
    groups.extend(_day_groups(by_day, stray, tz))
    groups.sort(key=lambda g: g.order_key)
    return groups


def _group_yearly(entries: list[LogEntry], tz: tzinfo | None) -> list[LogGroup]:
    by_month: dict[tuple[int, int], list[LogEntry]] = defaultdict(list)
    for entry in entries:
        day = local_day(entry.timestamp, tz)
        by_month[(day.year, day.month)].append(entry)

    groups = [
        LogGroup(
            label=f"{year:04d}-{month:02d}",
            order_key=midnight_millis(date(year, month, 1), tz),
            entries=month_entries,
        )
        for (year, month), month_entries in by_month.items()
    ]
    groups.sort(key=lambda g: g.order_key)
    return groups


def group_logs(
    report_type: ReportType,
    entries: Iterable[LogEntry],
    period_start: date | None = None,
    period_end: date | None = None,
    tz: tzinfo | None = None,
) -> list[LogGroup]:
    """Split *entries* into labelled groups ordered by ``order_key``.

    Entries are not filtered against the period: every input entry appears in
    exactly one group, timestamp-ascending within it.
    """
    report_type = ReportType(report_type)
    ordered = sorted(entries, key=lambda e: e.timestamp)

    if period_start is None or period_end is None:
        return _group_by_day(ordered, tz)

    if report_type is ReportType.DAILY:
        if period_start == period_end:
            label = period_start.isoformat()
        else:
            label = f"{period_start.isoformat()} ~ {period_end.isoformat()}"
        return [LogGroup(label=label, order_key=midnight_millis(period_start, tz), entries=ordered)]

    if report_type is ReportType.WEEKLY:
        # One group per non-empty day. Days outside the period keep their own
        # groups instead of being dropped, so grouping stays a partition.
        return _group_by_day(ordered, tz)

    if report_type is ReportType.MONTHLY:
        return _group_monthly(ordered, period_start, period_end, tz)

    return _group_yearly(ordered, tz)
