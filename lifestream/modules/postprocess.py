"""Post-processing of model output — reasoning removal and section extraction.

Model text is free-form, so none of these helpers raise on odd input: a
missing section is ``None`` and a report without checklist items yields ``[]``.
"""

from __future__ import annotations

import re
from typing import Iterable

from .prompts import CUES_HEADING_ALIASES

_THINK_OPEN = r"<\s*think(?:ing)?\s*>"
_THINK_CLOSE = r"<\s*/\s*think(?:ing)?\s*>"

_THINK_BLOCK = re.compile(_THINK_OPEN + r".*?" + _THINK_CLOSE, re.IGNORECASE | re.DOTALL)
_THINK_UNTERMINATED = re.compile(_THINK_OPEN + r".*", re.IGNORECASE | re.DOTALL)
_THINK_STRAY_CLOSE = re.compile(_THINK_CLOSE, re.IGNORECASE)

_H2 = re.compile(r"^##(?!#)[ \t]*(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE = re.compile(r"^[ \t]*(```|~~~)")
_ACTION_ITEM = re.compile(r"^[ \t]*- \[[ xX]\][ \t]+(.+?)[ \t]*$", re.MULTILINE)

_FULLWIDTH = str.maketrans({"（": "(", "）": ")", "：": ":"})


# ---------------------------------------------------------------------------
# Reasoning traces
# ---------------------------------------------------------------------------

def _strip_once(text: str) -> str:
    out = _THINK_BLOCK.sub("", text)
    out = _THINK_UNTERMINATED.sub("", out)
    out = _THINK_STRAY_CLOSE.sub("", out)
    return out.strip()


def strip_thinking(text: str) -> str:
    """Remove ``<think>`` reasoning blocks and dangling markers, then trim.

    An unterminated opening marker drops everything after it. Passes repeat
    until nothing changes, since removing a block can join the halves of a
    new marker.
    """
    if not text:
        return text
    out = text
    while True:
        stripped = _strip_once(out)
        if stripped == out:
            return stripped
        out = stripped


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _normalize_heading(title: str) -> str:
    title = title.translate(_FULLWIDTH).replace("*", "").rstrip(":")
    return re.sub(r"\s+", "", title).casefold()


def _h2_lines(lines: list[str]) -> list[tuple[int, str]]:
    """(index, title) of every level-2 heading outside fenced code blocks."""
    headings: list[tuple[int, str]] = []
    in_fence = False
    for i, line in enumerate(lines):
        if _FENCE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        m = _H2.match(line)
        if m:
            headings.append((i, m.group(1)))
    return headings


def _locate_section(lines: list[str], aliases: Iterable[str]) -> tuple[int, int] | None:
    wanted = {_normalize_heading(a) for a in aliases}
    headings = _h2_lines(lines)
    for pos, (idx, title) in enumerate(headings):
        if _normalize_heading(title) in wanted:
            end = headings[pos + 1][0] if pos + 1 < len(headings) else len(lines)
            return idx, end
    return None


def extract_section(markdown: str, aliases: Iterable[str]) -> str | None:
    """Return the first ``##`` section whose heading matches an alias.

    The section runs from its heading up to (excluding) the next level-2
    heading or the end of the document.
    """
    if not markdown:
        return None
    lines = markdown.splitlines()
    span = _locate_section(lines, aliases)
    if span is None:
        return None
    section = "\n".join(lines[span[0]:span[1]]).strip()
    return section or None


def _cues_aliases(language: str | None) -> tuple[str, ...]:
    if language:
        return CUES_HEADING_ALIASES.get(language, ())
    return tuple(a for group in CUES_HEADING_ALIASES.values() for a in group)


def extract_cues_section(markdown: str, language: str | None = None) -> str | None:
    """Cues section of a report, in any supported language unless one is given."""
    return extract_section(strip_thinking(markdown or ""), _cues_aliases(language))


def extract_text_before_cues(markdown: str) -> str:
    """Everything before the Cues heading (usually a title), or ``""``."""
    lines = strip_thinking(markdown or "").splitlines()
    span = _locate_section(lines, _cues_aliases(None))
    if span is None:
        return ""
    return "\n".join(lines[:span[0]]).strip()


def extract_body_after_cues(markdown: str) -> str:
    """The narrative sections following the Cues block, or ``""``."""
    lines = strip_thinking(markdown or "").splitlines()
    span = _locate_section(lines, _cues_aliases(None))
    if span is None:
        return ""
    return "\n".join(lines[span[1]:]).strip()


# ---------------------------------------------------------------------------
# Action items
# ---------------------------------------------------------------------------

def extract_action_items(markdown: str) -> list[str]:
    """Text of every ``- [ ]`` / ``- [x]`` checklist line, in document order."""
    if not markdown:
        return []
    markdown = strip_thinking(markdown)
    return [m.group(1).strip() for m in _ACTION_ITEM.finditer(markdown) if m.group(1).strip()]
