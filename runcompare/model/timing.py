"""Execution timing events and lap boundary construction."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class TimingKind(enum.IntEnum):
    START = 0
    LAP = 1
    END = 2


@dataclass(frozen=True)
class TimingEvent:
    kind: TimingKind
    elapsed_ms: int


def resolve_run_window(
    events: list[TimingEvent],
    fallback_start_ms: int,
    fallback_end_ms: int,
) -> tuple[int, int]:
    """Return (start, end) from the first START and last END event, with fallbacks."""
    starts = [e.elapsed_ms for e in events if e.kind == TimingKind.START]
    ends = [e.elapsed_ms for e in events if e.kind == TimingKind.END]
    start = starts[0] if starts else fallback_start_ms
    end = ends[-1] if ends else fallback_end_ms
    return start, end


def build_lap_boundaries(
    events: list[TimingEvent],
    start_ms: int,
    end_ms: int,
) -> list[int] | None:
    """Build an ascending boundary list ``[start, *laps, end]``.

    Only LAP markers strictly inside (start, end) are used, deduplicated.
    Returns None when the window is empty.
    """
    if end_ms <= start_ms:
        return None

    markers = sorted(
        {
            e.elapsed_ms
            for e in events
            if e.kind == TimingKind.LAP and start_ms < e.elapsed_ms < end_ms
        }
    )
    return [start_ms, *markers, end_ms]


def format_lap_time(ms: int) -> str:
    """Format milliseconds as ``mm:ss.ff`` (hundredths)."""
    ms = abs(int(ms))
    minutes, rem = divmod(ms, 60_000)
    seconds, rem = divmod(rem, 1000)
    return f"{minutes % 100:02d}:{seconds:02d}.{rem // 10:02d}"


def format_lap_delta(delta_ms: int) -> str:
    sign = "+" if delta_ms >= 0 else "-"
    return f"Δ {sign}{format_lap_time(delta_ms)}"
