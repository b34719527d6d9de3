"""Freeze-frame padding so every source fills each segment's target duration."""

from __future__ import annotations

import logging

from runcompare.model.timeline import Lane, LanePiece, PieceKind, SegmentPlan

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_MS = 5


def freeze_sample_ms(start_ms: int, end_ms: int, backoff_ms: int = DEFAULT_BACKOFF_MS) -> int:
    """Time of the still used to pad a range: just before its end, never before its start."""
    return max(start_ms, end_ms - backoff_ms)


def build_lanes(
    plan: SegmentPlan,
    source_count: int,
    backoff_ms: int = DEFAULT_BACKOFF_MS,
) -> list[Lane]:
    """Lay out each source's real footage and freeze padding on the output timeline."""
    lanes = [Lane(source_index=i) for i in range(source_count)]

    for segment in plan.segments:
        for i, lane in enumerate(lanes):
            source_range = segment.ranges[i]
            consumed = source_range.duration_ms
            lane.pieces.append(
                LanePiece(
                    kind=PieceKind.SOURCE,
                    segment_index=segment.index,
                    source_start_ms=source_range.start_ms,
                    duration_ms=consumed,
                    dest_start_ms=segment.dest_start_ms,
                )
            )

            shortfall = segment.target_ms - consumed
            if shortfall > 0:
                sample = freeze_sample_ms(source_range.start_ms, source_range.end_ms, backoff_ms)
                logger.debug(
                    "Segment %d source %d: freeze %d ms sampled at %d ms",
                    segment.index, i, shortfall, sample,
                )
                lane.pieces.append(
                    LanePiece(
                        kind=PieceKind.FREEZE,
                        segment_index=segment.index,
                        source_start_ms=sample,
                        duration_ms=shortfall,
                        dest_start_ms=segment.dest_start_ms + consumed,
                    )
                )

    verify_lanes(plan, lanes)
    return lanes


def verify_lanes(plan: SegmentPlan, lanes: list[Lane]) -> None:
    """Check every lane covers every segment exactly, with no gaps or overlaps.

    Raises:
        ValueError: If a lane does not line up with the plan.
    """
    for lane in lanes:
        cursor = 0
        for piece in lane.pieces:
            if piece.dest_start_ms != cursor:
                raise ValueError(
                    f"Lane {lane.source_index} has a gap or overlap at {cursor} ms "
                    f"(next piece starts at {piece.dest_start_ms} ms)"
                )
            cursor = piece.dest_end_ms

        for segment in plan.segments:
            filled = sum(p.duration_ms for p in lane.pieces if p.segment_index == segment.index)
            if filled != segment.target_ms:
                raise ValueError(
                    f"Lane {lane.source_index} fills {filled} ms of segment "
                    f"{segment.index}, expected {segment.target_ms} ms"
                )

        if cursor != plan.total_ms:
            raise ValueError(
                f"Lane {lane.source_index} ends at {cursor} ms, plan ends at {plan.total_ms} ms"
            )
