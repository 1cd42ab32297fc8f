"""Summarizer — direct or map-reduce generation of reports and cues digests.

Small periods go to the model in one call. Larger ones are summarized group
by group (map), chunk summaries of an oversized group are merged, and the
per-group bullet lists are fed back through the direct path as synthetic log
entries (reduce). All calls run one at a time, in group order.
"""

from __future__ import annotations

import logging
from datetime import date, tzinfo
from typing import Literal

from ..core.config import PipelineConfig
from ..core.errors import NotFoundError
from ..core.llm import ChatMessage, LLMBackend
from ..core.models import LogEntry, LogGroup, ReportType
from .chunking import chunk_logs, estimate_logs_chars
from .grouping import group_logs
from .postprocess import strip_thinking
from .prompts import (
    build_chunk_summary_prompt,
    build_cues_prompt,
    build_logs_message,
    build_merge_prompt,
    build_report_prompt,
    build_segment_message,
    format_logs_for_prompt,
)

logger = logging.getLogger(__name__)

Intent = Literal["report", "cues"]

MAP_TEMPERATURE = 0.2
CUES_TEMPERATURE = 0.2


class Summarizer:
    """Turns a period's log entries into one finished Markdown artifact."""

    def __init__(
        self,
        backend: LLMBackend,
        pipeline: PipelineConfig | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.backend = backend
        self.pipeline = pipeline or PipelineConfig()
        self.tz = tz

    # -- public API ---------------------------------------------------------

    def generate(
        self,
        report_type: ReportType,
        logs: list[LogEntry],
        period_name: str,
        language: str,
        period_start: date | None = None,
        period_end: date | None = None,
        intent: Intent = "report",
    ) -> str:
        """Generate a report (or cues digest) over *logs*."""
        if not logs:
            raise NotFoundError("No logs found for this period.")

        overhead = self.pipeline.entry_overhead_chars
        total = estimate_logs_chars(logs, overhead)
        if total <= self.pipeline.direct_threshold_chars:
            logger.info("Direct %s generation: %d entries, ~%d chars", intent, len(logs), total)
            return self._generate_direct(report_type, logs, period_name, language, intent)

        groups = group_logs(report_type, logs, period_start, period_end, tz=self.tz)
        logger.info(
            "Map-reduce %s generation: %d entries, ~%d chars, %d groups",
            intent, len(logs), total, len(groups),
        )

        summarized: list[LogEntry] = []
        for group in groups:
            bullets = self._summarize_group(group, language)
            summarized.append(LogEntry(
                id=f"summary:{group.label}",
                timestamp=group.order_key,
                content=f"[{group.label}]\n{bullets}",
            ))

        return self._generate_direct(report_type, summarized, period_name, language, intent)

    def generate_report(
        self,
        report_type: ReportType,
        logs: list[LogEntry],
        period_name: str,
        language: str,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> str:
        return self.generate(report_type, logs, period_name, language, period_start, period_end)

    def generate_cues(
        self,
        logs: list[LogEntry],
        period_name: str,
        language: str,
        period_start: date | None = None,
        period_end: date | None = None,
        report_type: ReportType = ReportType.DAILY,
    ) -> str:
        """Standalone Cues digest. *report_type* only steers map-phase grouping."""
        return self.generate(
            report_type, logs, period_name, language, period_start, period_end, intent="cues"
        )

    # -- internal -----------------------------------------------------------

    def _chat(self, system: str, user: str, temperature: float | None = None) -> str:
        messages: list[ChatMessage] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        return strip_thinking(self.backend.complete(messages, temperature=temperature))

    def _generate_direct(
        self,
        report_type: ReportType,
        logs: list[LogEntry],
        period_name: str,
        language: str,
        intent: Intent,
    ) -> str:
        user = build_logs_message(logs, language, tz=self.tz)
        if intent == "cues":
            return self._chat(build_cues_prompt(period_name, language), user, CUES_TEMPERATURE)
        return self._chat(build_report_prompt(report_type, period_name, language), user)

    def _summarize_entries(self, label: str, entries: list[LogEntry], language: str) -> str:
        body = format_logs_for_prompt(entries, tz=self.tz)
        return self._chat(
            build_chunk_summary_prompt(language),
            build_segment_message(label, body, language),
            MAP_TEMPERATURE,
        )

    def _summarize_group(self, group: LogGroup, language: str) -> str:
        """One bullet list per group: one call, or one per chunk plus a merge."""
        chunks = chunk_logs(
            group.entries,
            self.pipeline.max_chars_per_call,
            self.pipeline.entry_overhead_chars,
        )
        if len(chunks) <= 1:
            return self._summarize_entries(group.label, group.entries, language)

        logger.info("Group %s split into %d chunks", group.label, len(chunks))
        partials = [
            self._summarize_entries(f"{group.label} #{i}/{len(chunks)}", chunk, language)
            for i, chunk in enumerate(chunks, start=1)
        ]
        return self._chat(
            build_merge_prompt(language),
            build_segment_message(group.label, "\n".join(partials), language, merge=True),
            MAP_TEMPERATURE,
        )
