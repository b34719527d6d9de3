"""Derived, per-export timeline models: segments, layout rects, lanes and overlays.

All times are integer milliseconds. Nothing here is persisted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SourceRange:
    """Half-open [start_ms, end_ms) range consumed from one source."""

    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class Segment:
    index: int
    ranges: tuple[SourceRange, ...]
    target_ms: int
    dest_start_ms: int

    @property
    def dest_end_ms(self) -> int:
        return self.dest_start_ms + self.target_ms

    def consumed_ms(self, source_index: int) -> int:
        return self.ranges[source_index].duration_ms

    def shortfall_ms(self, source_index: int) -> int:
        return self.target_ms - self.consumed_ms(source_index)


class TruncationReason(enum.Enum):
    INVALID_SEGMENT = "invalid_segment"
    MAX_DURATION = "max_duration"


@dataclass
class SegmentPlan:
    segments: list[Segment] = field(default_factory=list)
    truncation: TruncationReason | None = None

    @property
    def total_ms(self) -> int:
        return sum(s.target_ms for s in self.segments)

    @property
    def truncated(self) -> bool:
        return self.truncation is not None


@dataclass(frozen=True)
class LayoutRect:
    x: float
    y: float
    w: float
    h: float

    def scaled(self, factor: float) -> "LayoutRect":
        return LayoutRect(self.x * factor, self.y * factor, self.w * factor, self.h * factor)


@dataclass(frozen=True)
class Layout:
    canvas_width: int
    canvas_height: int
    rects: tuple[LayoutRect, ...]
    downscale: float = 1.0

    @property
    def canvas_size(self) -> tuple[int, int]:
        return self.canvas_width, self.canvas_height


class PieceKind(enum.Enum):
    SOURCE = "source"
    FREEZE = "freeze"


@dataclass(frozen=True)
class LanePiece:
    """One stretch of a source's lane on the destination timeline.

    SOURCE pieces play ``[source_start_ms, source_start_ms + duration_ms)``;
    FREEZE pieces hold the frame sampled at ``source_start_ms``.
    """

    kind: PieceKind
    segment_index: int
    source_start_ms: int
    duration_ms: int
    dest_start_ms: int

    @property
    def dest_end_ms(self) -> int:
        return self.dest_start_ms + self.duration_ms


@dataclass
class Lane:
    source_index: int
    pieces: list[LanePiece] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return sum(p.duration_ms for p in self.pieces)

    @property
    def freeze_pieces(self) -> list[LanePiece]:
        return [p for p in self.pieces if p.kind is PieceKind.FREEZE]


@dataclass(frozen=True)
class OverlaySpec:
    """A text line or background panel drawn on top of the composite.

    ``segment_index`` None means the overlay spans the whole export.
    Colours are RGBA tuples.
    """

    text: str
    color: tuple[int, int, int, int]
    rect: LayoutRect
    source_index: int
    start_ms: int
    duration_ms: int
    z_order: int = 0
    font_size: int = 12
    background: tuple[int, int, int, int] | None = None
    segment_index: int | None = None
    name: str = ""
