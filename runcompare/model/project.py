"""VideoSource, SourceLabel, ExportRequest and ExportResult data models."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

# Rotations the engine knows how to undo; anything else is shown as coded.
QUARTER_TURNS = (0, 90, 180, 270)


class Orientation(enum.Enum):
    HORIZONTAL = "horizontal"  # side by side, 2 sources
    VERTICAL = "vertical"  # stacked, 2 sources
    GRID = "grid"  # 2x2, 4 sources

    @property
    def source_count(self) -> int:
        return 4 if self is Orientation.GRID else 2


class SyncMode(enum.Enum):
    SIMPLE = "simple"
    LAPS = "laps"


@dataclass(frozen=True)
class VideoSource:
    """One input video.

    ``width``/``height`` are the upright (post-rotation) display size.
    ``rotation`` is the clockwise display rotation reported by the
    capture device, in degrees.
    """

    path: str
    duration: float = 0.0
    width: int = 0
    height: int = 0
    fps: float = 0.0
    rotation: int = 0
    has_audio: bool = False
    start_offset_ms: int = 0
    lap_boundaries_ms: tuple[int, ...] = ()

    @property
    def duration_ms(self) -> int:
        return int(round(self.duration * 1000))

    @property
    def coded_size(self) -> tuple[int, int]:
        """Size of the frames as stored in the file, before rotation."""
        if self.rotation in (90, 270):
            return self.height, self.width
        return self.width, self.height

    @property
    def frame_duration_ms(self) -> float:
        fps = self.fps if self.fps > 1 else 30.0
        return 1000.0 / fps

    @property
    def has_lap_boundaries(self) -> bool:
        return len(self.lap_boundaries_ms) >= 2


@dataclass(frozen=True)
class SourceLabel:
    """Pre-formatted display text for one source. Empty fields are omitted."""

    name: str = ""
    category: str = ""
    section: int | str | None = None
    time: str = ""
    penalties: str = ""

    @property
    def is_empty(self) -> bool:
        return not (
            self.name or self.category or self.section not in (None, "")
            or self.time or self.penalties
        )


@dataclass(frozen=True)
class ExportRequest:
    sources: tuple[VideoSource, ...]
    output_path: str
    orientation: Orientation = Orientation.HORIZONTAL
    sync_mode: SyncMode = SyncMode.SIMPLE
    max_duration_ms: int | None = None
    labels: tuple[SourceLabel | None, ...] = ()

    def __post_init__(self):
        # Accept lists from callers but store tuples
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "labels", tuple(self.labels))

    def label_for(self, index: int) -> SourceLabel | None:
        if index < len(self.labels):
            return self.labels[index]
        return None


@dataclass
class ExportResult:
    success: bool
    output_path: str | None = None
    file_size_bytes: int = 0
    duration: float = 0.0
    error_message: str | None = None
    cancelled: bool = False
    segment_count: int = 0
    truncation: str | None = None
    skipped_overlays: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str, cancelled: bool = False) -> "ExportResult":
        return cls(success=False, error_message=message, cancelled=cancelled)


_INVALID_FILENAME_CHARS = '<>:"/\\|?*' + "".join(chr(c) for c in range(32))


def _sanitize_filename(name: str) -> str:
    return "".join("_" if ch in _INVALID_FILENAME_CHARS else ch for ch in name)


def suggest_output_path(
    folder: str | Path,
    names: list[str],
    now: datetime | None = None,
) -> str:
    """Build an ``"A vs B.mp4"`` path in *folder*, adding a timestamp if taken."""
    folder = Path(folder)
    labels = [n or f"Athlete{i + 1}" for i, n in enumerate(names)]
    stem = " vs ".join(labels)
    candidate = folder / _sanitize_filename(f"{stem}.mp4")
    if candidate.exists():
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        candidate = folder / _sanitize_filename(f"{stem}_{stamp}.mp4")
    return os.fspath(candidate)
