"""Overlay content: athlete info panels and per-lap comparison labels.

Only decides *what* to draw and *where*; rasterising happens in
``runcompare.export.overlay_render``.
"""

from __future__ import annotations

from runcompare.config import Settings
from runcompare.model.project import ExportRequest, SourceLabel, SyncMode
from runcompare.model.timeline import Layout, LayoutRect, OverlaySpec, SegmentPlan
from runcompare.model.timing import format_lap_delta, format_lap_time

SEPARATOR = " | "

PANEL_BACKGROUND = (0, 0, 0, 150)
NAME_COLOR = (255, 255, 255, 255)
INFO_COLOR = (180, 180, 180, 255)
DELTA_COLOR = (220, 220, 220, 255)

AHEAD_COLOR = (52, 199, 89, 255)  # #34C759
BEHIND_COLOR = (255, 59, 48, 255)  # #FF3B30
TIED_COLOR = (255, 255, 255, 255)

AHEAD = "ahead"
BEHIND = "behind"
TIED = "tied"

LAP_COLORS = {AHEAD: AHEAD_COLOR, BEHIND: BEHIND_COLOR, TIED: TIED_COLOR}

INSET = 10
TEXT_PADDING = 12
MIN_PANEL_WIDTH = 120
INFO_PANEL_HEIGHT = 70
LAP_PANEL_HEIGHT = 52

# Average glyph width relative to font size for a proportional font
CHAR_WIDTH_RATIO = 0.55

Z_PANEL = 0
Z_TEXT = 1
Z_LAP_PANEL = 2
Z_LAP_TEXT = 3


def build_info_line(label: SourceLabel) -> str:
    """Join the non-empty category, section, time and penalty fields."""
    parts = []
    if label.category:
        parts.append(label.category)
    if label.section not in (None, ""):
        parts.append(f"Sec. {label.section}")
    if label.time:
        parts.append(label.time)
    if label.penalties:
        parts.append(label.penalties)
    return SEPARATOR.join(parts)


def estimate_text_width(text: str, font_size: int) -> float:
    return len(text) * font_size * CHAR_WIDTH_RATIO if text else 0.0


def panel_width(lines: list[tuple[str, int]], rect: LayoutRect) -> float:
    """Fit the longest line plus padding, clamped to the rect, with a floor."""
    longest = max((estimate_text_width(t, size) for t, size in lines), default=0.0)
    width = min(longest + 2 * TEXT_PADDING, rect.w - 2 * INSET)
    return max(width, MIN_PANEL_WIDTH)


def label_overlays(
    label: SourceLabel,
    rect: LayoutRect,
    source_index: int,
    total_ms: int,
    settings: Settings,
) -> list[OverlaySpec]:
    """Name and info lines on a panel in the top-left corner of *rect*."""
    info = build_info_line(label)
    if not label.name and not info:
        return []

    width = panel_width(
        [(label.name, settings.name_font_size), (info, settings.info_font_size)], rect
    )
    panel = LayoutRect(rect.x + INSET, rect.y + INSET, width, INFO_PANEL_HEIGHT)
    text_w = width - 2 * TEXT_PADDING

    specs = [
        OverlaySpec(
            text="",
            color=PANEL_BACKGROUND,
            background=PANEL_BACKGROUND,
            rect=panel,
            source_index=source_index,
            start_ms=0,
            duration_ms=total_ms,
            z_order=Z_PANEL,
            name=f"source{source_index + 1}-panel",
        )
    ]
    if label.name:
        specs.append(
            OverlaySpec(
                text=label.name,
                color=NAME_COLOR,
                rect=LayoutRect(panel.x + TEXT_PADDING, panel.y + 6, text_w, 24),
                source_index=source_index,
                start_ms=0,
                duration_ms=total_ms,
                z_order=Z_TEXT,
                font_size=settings.name_font_size,
                name=f"source{source_index + 1}-name",
            )
        )
    if info:
        specs.append(
            OverlaySpec(
                text=info,
                color=INFO_COLOR,
                rect=LayoutRect(panel.x + TEXT_PADDING, panel.y + 35, text_w, 20),
                source_index=source_index,
                start_ms=0,
                duration_ms=total_ms,
                z_order=Z_TEXT,
                font_size=settings.info_font_size,
                name=f"source{source_index + 1}-info",
            )
        )
    return specs


def classify_laps(durations: list[int]) -> list[str]:
    """Mark each lap as ahead (fastest), behind, or tied (all equal)."""
    best = min(durations)
    if all(d == best for d in durations):
        return [TIED] * len(durations)
    return [AHEAD if d == best else BEHIND for d in durations]


def lap_deltas(durations: list[int]) -> list[int]:
    """Each lap minus the fastest of the *other* laps; positive means slower."""
    deltas = []
    for i, d in enumerate(durations):
        others = durations[:i] + durations[i + 1:]
        deltas.append(d - min(others) if others else 0)
    return deltas


def lap_overlays(
    plan: SegmentPlan,
    layout: Layout,
    settings: Settings,
) -> list[OverlaySpec]:
    """Per segment and source: colour-coded lap time plus delta, bottom-left of the rect."""
    specs = []
    for segment in plan.segments:
        durations = [r.duration_ms for r in segment.ranges]
        standings = classify_laps(durations)
        deltas = lap_deltas(durations)

        for i, rect in enumerate(layout.rects):
            lap_text = f"Lap {segment.index + 1}: {format_lap_time(durations[i])}"
            delta_text = format_lap_delta(deltas[i])
            width = panel_width(
                [(lap_text, settings.lap_font_size), (delta_text, settings.delta_font_size)],
                rect,
            )
            panel = LayoutRect(
                rect.x + INSET,
                rect.y + rect.h - INSET - LAP_PANEL_HEIGHT,
                width,
                LAP_PANEL_HEIGHT,
            )
            text_w = width - 2 * TEXT_PADDING
            common = dict(
                source_index=i,
                start_ms=segment.dest_start_ms,
                duration_ms=segment.target_ms,
                segment_index=segment.index,
            )
            tag = f"source{i + 1}-lap{segment.index + 1}"
            specs.extend([
                OverlaySpec(
                    text="",
                    color=PANEL_BACKGROUND,
                    background=PANEL_BACKGROUND,
                    rect=panel,
                    z_order=Z_LAP_PANEL,
                    name=f"{tag}-panel",
                    **common,
                ),
                OverlaySpec(
                    text=lap_text,
                    color=LAP_COLORS[standings[i]],
                    rect=LayoutRect(panel.x + TEXT_PADDING, panel.y + 4, text_w, 24),
                    z_order=Z_LAP_TEXT,
                    font_size=settings.lap_font_size,
                    name=f"{tag}-time",
                    **common,
                ),
                OverlaySpec(
                    text=delta_text,
                    color=DELTA_COLOR,
                    rect=LayoutRect(panel.x + TEXT_PADDING, panel.y + 28, text_w, 20),
                    z_order=Z_LAP_TEXT,
                    font_size=settings.delta_font_size,
                    name=f"{tag}-delta",
                    **common,
                ),
            ])
    return specs


def build_overlays(
    request: ExportRequest,
    plan: SegmentPlan,
    layout: Layout,
    settings: Settings | None = None,
) -> list[OverlaySpec]:
    """All overlays for an export, ordered bottom to top."""
    settings = settings or Settings()
    specs: list[OverlaySpec] = []
    for i, rect in enumerate(layout.rects):
        label = request.label_for(i)
        if label is None or label.is_empty:
            continue
        specs.extend(label_overlays(label, rect, i, plan.total_ms, settings))

    if request.sync_mode is SyncMode.LAPS:
        specs.extend(lap_overlays(plan, layout, settings))

    # Stable sort keeps per-source ordering within a z level
    return sorted(specs, key=lambda s: s.z_order)
