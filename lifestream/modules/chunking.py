"""Size estimation and chunking of log entries for per-call budgets."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..core.models import LogEntry

# Allowance for the "[YYYY-MM-DD HH:MM] " prefix and line break of each entry.
ENTRY_OVERHEAD_CHARS = 64


def estimate_entry_chars(entry: LogEntry, overhead: int = ENTRY_OVERHEAD_CHARS) -> int:
    return len(entry.content or "") + overhead


def estimate_logs_chars(entries: Iterable[LogEntry], overhead: int = ENTRY_OVERHEAD_CHARS) -> int:
    """Approximate prompt size of *entries*; not an exact wire size."""
    return sum(estimate_entry_chars(e, overhead) for e in entries)


def chunk_logs(
    entries: Sequence[LogEntry],
    max_chars: int,
    overhead: int = ENTRY_OVERHEAD_CHARS,
) -> list[list[LogEntry]]:
    """Greedily pack entries, in order, into chunks of at most *max_chars*.

    An entry is never split; one that alone exceeds the budget becomes a
    chunk of its own. No chunk is empty and every entry appears once.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    chunks: list[list[LogEntry]] = []
    current: list[LogEntry] = []
    current_chars = 0

    for entry in entries:
        size = estimate_entry_chars(entry, overhead)
        if current and current_chars + size > max_chars:
            chunks.append(current)
            current = []
            current_chars = 0
        current.append(entry)
        current_chars += size

    if current:
        chunks.append(current)
    return chunks
