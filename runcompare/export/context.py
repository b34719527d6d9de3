"""Mutable state for one export call, threaded through the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from runcompare.compose.transform import Transform
from runcompare.config import Settings
from runcompare.model.project import ExportRequest, VideoSource
from runcompare.model.timeline import Lane, Layout, OverlaySpec, SegmentPlan


@dataclass
class ExportContext:
    request: ExportRequest
    settings: Settings
    work_dir: Path
    sources: list[VideoSource] = field(default_factory=list)
    plan: SegmentPlan = field(default_factory=SegmentPlan)
    layout: Layout | None = None
    transforms: list[Transform] = field(default_factory=list)
    lanes: list[Lane] = field(default_factory=list)
    overlays: list[OverlaySpec] = field(default_factory=list)
    skipped_overlays: list[str] = field(default_factory=list)

    @property
    def total_seconds(self) -> float:
        return self.plan.total_ms / 1000.0

    def work_path(self, name: str) -> Path:
        return self.work_dir / name
