"""Prompt templates for report, cues and map-phase summarization calls.

Everything here is a pure function of its arguments. Headings are localized
but their order and nesting never change, so the post-processor can find the
Cues block in either language.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Iterable

from ..core.models import LogEntry, ReportType

HEADINGS: dict[str, dict[str, str]] = {
    "en": {
        "cues": "Cues",
        "keywords": "Keywords",
        "questions": "Review Questions",
        "actions": "Next Actions (Executable)",
        "evidence": "Evidence (From Logs)",
        "summary": "Executive Summary",
        "achievements": "Key Achievements & Progress",
        "topics": "Topics & Themes",
        "mood": "Mood & Sentiment",
        "next_period": "Action Items for Next Period",
    },
    "zh": {
        "cues": "线索区（Cues）",
        "keywords": "关键词",
        "questions": "复盘问题",
        "actions": "下一步行动（可执行）",
        "evidence": "证据（来自日志）",
        "summary": "执行摘要",
        "achievements": "关键成就与进展",
        "topics": "话题与主题",
        "mood": "情绪与感受",
        "next_period": "下期行动建议",
    },
}

# Known phrasings of the Cues heading. Models sometimes drift from the exact
# title they were given; anything not listed here reads as "no cues".
CUES_HEADING_ALIASES: dict[str, tuple[str, ...]] = {
    "en": ("Cues", "Cues Section", "Cue Section"),
    "zh": ("线索区（Cues）", "线索区 (Cues)", "线索区", "线索", "线索（Cues）"),
}

_LANGUAGE_NAMES = {"en": "English", "zh": "Chinese (Simplified)"}

_SECTION_RULES: dict[str, dict[str, str]] = {
    "en": {
        "keywords": "- Up to 6 keywords (unordered list).",
        "questions": "1. 5-10 questions (ordered list). Questions only, no answers.",
        "actions": (
            "- [ ] 3-8 action items (task list). Each item must be executable within "
            "30-120 minutes or be the smallest next step."
        ),
        "evidence": (
            "- Evidence for the insights and actions above (unordered list). Each item MUST "
            "include a log date (at least YYYY-MM-DD) and a quoted snippet of 10-30 words "
            "from the logs. Do not fabricate."
        ),
        "summary": "A brief 2-3 sentence overview.",
        "achievements": "Bullet points of completed tasks or wins.",
        "topics": "What occupied the user's mind most?",
        "mood": "General emotional trend.",
        "next_period": (
            "Suggestions based on unfinished business or patterns. Keep them consistent with "
            "the action items in the Cues section; you may elaborate, but do not change the "
            "wording of those action items."
        ),
    },
    "zh": {
        "keywords": "- 最多 6 个关键词（无序列表）。",
        "questions": "1. 5-10 个问题（有序列表）。只写问题，不要写答案。",
        "actions": "- [ ] 3-8 条行动项（任务列表）。每条必须可执行，可在 30-120 分钟内完成或拆成最小下一步。",
        "evidence": (
            "- 为上面的洞察和行动提供证据（无序列表）。每条必须包含日志日期（至少 YYYY-MM-DD）"
            "和引号内的原文片段（10-30 字）。不要编造。"
        ),
        "summary": "2-3 句简要概述。",
        "achievements": "完成的任务或取得的进展（可用列表）。",
        "topics": "这段时间主要关注什么。",
        "mood": "整体情绪趋势。",
        "next_period": "基于未完成事务或规律给出建议。与线索区的行动项保持一致，可以展开解释，但不要改变行动项的表述。",
    },
}

CHUNK_SUMMARY_PROMPT = {
    "en": (
        "You are a precise assistant. Summarize the given logs into bullet points. "
        "Output ONLY a Markdown unordered list (each line starts with -). No extra sections. "
        "Each bullet should keep the key facts (task, result, progress). Max 8 bullets."
    ),
    "zh": (
        "你是一个严谨的助理。请把给定日志压缩成要点摘要，只输出 Markdown 无序列表（以 - 开头），"
        "不输出其他段落。每条要点尽量包含关键信息（任务/结果/进展），最多 8 条。"
    ),
}

MERGE_PROMPT = {
    "en": (
        "You are a precise assistant. Merge and deduplicate the following bullet summaries "
        "of the same period into ONE Markdown unordered list. Output ONLY the list. Max 10 bullets."
    ),
    "zh": (
        "你是一个严谨的助理。下面是同一时间段的多段要点摘要，请合并去重为一个 Markdown 无序列表"
        "（以 - 开头），不输出其他段落，最多 10 条。"
    ),
}

_NO_REASONING = "Do NOT output any <think> blocks or internal reasoning."


def _lang(language: str) -> str:
    return language if language in HEADINGS else "en"


# ---------------------------------------------------------------------------
# System instructions
# ---------------------------------------------------------------------------

def _cues_block(language: str) -> list[str]:
    h = HEADINGS[language]
    rules = _SECTION_RULES[language]
    return [
        f"## {h['cues']}",
        f"### {h['keywords']}",
        rules["keywords"],
        "",
        f"### {h['questions']}",
        rules["questions"],
        "",
        f"### {h['actions']}",
        rules["actions"],
        "",
        f"### {h['evidence']}",
        rules["evidence"],
    ]


def build_report_prompt(report_type: ReportType, period_name: str, language: str) -> str:
    """System instruction for a full report: Cues block, then narrative sections."""
    language = _lang(language)
    h = HEADINGS[language]
    rules = _SECTION_RULES[language]
    lang_name = _LANGUAGE_NAMES[language]

    lines = [
        "You are an expert personal assistant and life coach.",
        "Your task is to analyze a stream of journal logs and write a structured summary report.",
        "",
        f"The report type is: {report_type.value} ({period_name}).",
        f"Language: {lang_name}.",
        "",
        f"Structure the output in Markdown with exactly these sections, in this order "
        f"(use {lang_name} for headings and content):",
        "",
        *_cues_block(language),
        "",
    ]
    for key in ("summary", "achievements", "topics", "mood", "next_period"):
        lines += [f"## {h[key]}", rules[key], ""]
    lines += [
        "Keep the tone professional yet supportive and introspective.",
        "",
        _NO_REASONING,
    ]
    return "\n".join(lines)


def build_cues_prompt(period_name: str, language: str) -> str:
    """System instruction for a standalone Cues digest."""
    language = _lang(language)
    h = HEADINGS[language]
    lines = [
        "You are a precise assistant.",
        "Your task is to read the journal logs for the period and produce ONLY a "
        "Cornell-style cues section in Markdown.",
        "",
        f"Period: {period_name}.",
        f"Language: {_LANGUAGE_NAMES[language]}.",
        "",
        "Output MUST be valid Markdown and MUST follow this exact structure:",
        "",
        f"## {h['cues']}",
        f"### {h['keywords']}",
        "- ...",
        "",
        f"### {h['questions']}",
        "1. ...",
        "",
        f"### {h['actions']}",
        "- [ ] ...",
        "",
        f"### {h['evidence']}",
        '- YYYY-MM-DD ... "..."',
        "",
        "Rules:",
        "- Do not output any other top-level sections.",
        "- Up to 6 keywords.",
        "- Questions MUST be questions only; do not include answers.",
        "- Next actions MUST be concrete, executable within 30-120 minutes, written as - [ ] task list items.",
        "- Evidence MUST quote 10-30 words from the provided logs with a date (at least YYYY-MM-DD). "
        "Do not fabricate.",
        f"- {_NO_REASONING}",
    ]
    return "\n".join(lines)


def build_chunk_summary_prompt(language: str) -> str:
    return CHUNK_SUMMARY_PROMPT[_lang(language)]


def build_merge_prompt(language: str) -> str:
    return MERGE_PROMPT[_lang(language)]


# ---------------------------------------------------------------------------
# User messages
# ---------------------------------------------------------------------------

def format_logs_for_prompt(entries: Iterable[LogEntry], tz: tzinfo | None = None) -> str:
    """One ``[YYYY-MM-DD HH:MM] content`` line per entry.

    Dates are ISO in every language so evidence citations stay parseable.
    """
    lines: list[str] = []
    for entry in entries:
        stamp = datetime.fromtimestamp(entry.timestamp / 1000, tz).strftime("%Y-%m-%d %H:%M")
        lines.append(f"[{stamp}] {entry.content}")
    return "\n".join(lines)


def build_logs_message(entries: Iterable[LogEntry], language: str, tz: tzinfo | None = None) -> str:
    text = format_logs_for_prompt(entries, tz)
    if _lang(language) == "zh":
        return f"以下是该时间段的日志：\n\n{text}"
    return f"Here are the logs for the period:\n\n{text}"


def build_segment_message(label: str, body: str, language: str, merge: bool = False) -> str:
    """User message for a map-phase call over one group, chunk, or set of partials."""
    if _lang(language) == "zh":
        title = "要点" if merge else "日志"
        return f"分段：{label}\n\n{title}：\n{body}"
    title = "Bullets" if merge else "Logs"
    return f"Segment: {label}\n\n{title}:\n{body}"
