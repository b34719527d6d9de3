"""Segment planning: how much of each source lands where on the output timeline."""

from __future__ import annotations

import logging

from runcompare.model.project import SyncMode, VideoSource
from runcompare.model.timeline import Segment, SegmentPlan, SourceRange, TruncationReason

logger = logging.getLogger(__name__)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def plan_simple(
    sources: list[VideoSource],
    max_duration_ms: int | None = None,
) -> SegmentPlan:
    """One segment starting at each source's offset, as long as the shortest remainder."""
    starts = [_clamp(s.start_offset_ms, 0, s.duration_ms) for s in sources]
    remaining = [s.duration_ms - start for s, start in zip(sources, starts)]
    length = min(remaining) if remaining else 0

    plan = SegmentPlan()
    if max_duration_ms is not None and max_duration_ms < length:
        length = max_duration_ms
        plan.truncation = TruncationReason.MAX_DURATION

    if length <= 0:
        return plan

    plan.segments.append(
        Segment(
            index=0,
            ranges=tuple(SourceRange(start, start + length) for start in starts),
            target_ms=length,
            dest_start_ms=0,
        )
    )
    return plan


def plan_lap_sync(
    sources: list[VideoSource],
    max_duration_ms: int | None = None,
) -> SegmentPlan:
    """One segment per lap, each as long as the slowest source's lap.

    Planning stops at the first lap where any source's clamped range is
    empty, or before the lap that would push the output past
    ``max_duration_ms``. Laps already planned are kept in both cases.

    Raises:
        ValueError: If a source has fewer than two boundaries.
    """
    for i, source in enumerate(sources):
        if not source.has_lap_boundaries:
            raise ValueError(
                f"Lap sync needs at least two lap boundaries for every source "
                f"(source {i + 1} has {len(source.lap_boundaries_ms)})"
            )

    segment_count = min(len(s.lap_boundaries_ms) for s in sources) - 1
    plan = SegmentPlan()
    cursor = 0

    for i in range(segment_count):
        ranges = []
        for source in sources:
            bounds = source.lap_boundaries_ms
            start = _clamp(bounds[i], 0, source.duration_ms)
            end = _clamp(bounds[i + 1], 0, source.duration_ms)
            if end <= start:
                logger.info(
                    "Lap %d is empty for %s after clamping (%d..%d ms); "
                    "stopping plan at %d segment(s)",
                    i + 1, source.path, start, end, len(plan.segments),
                )
                plan.truncation = TruncationReason.INVALID_SEGMENT
                return plan
            ranges.append(SourceRange(start, end))

        target = max(r.duration_ms for r in ranges)
        if max_duration_ms is not None and cursor + target > max_duration_ms:
            logger.info(
                "Lap %d would exceed max duration (%d + %d > %d ms); "
                "stopping plan at %d segment(s)",
                i + 1, cursor, target, max_duration_ms, len(plan.segments),
            )
            plan.truncation = TruncationReason.MAX_DURATION
            return plan

        segment = Segment(index=i, ranges=tuple(ranges), target_ms=target, dest_start_ms=cursor)
        logger.debug("Segment %d: %s -> target %d ms at %d ms", i, ranges, target, cursor)
        plan.segments.append(segment)
        cursor += target

    return plan


def plan_segments(
    sources: list[VideoSource],
    sync_mode: SyncMode,
    max_duration_ms: int | None = None,
) -> SegmentPlan:
    if sync_mode is SyncMode.LAPS:
        return plan_lap_sync(sources, max_duration_ms)
    return plan_simple(sources, max_duration_ms)
