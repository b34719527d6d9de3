"""Canvas size and per-source placement rectangles."""

from __future__ import annotations

from runcompare.model.project import Orientation
from runcompare.model.timeline import Layout, LayoutRect


def _even(value: float) -> int:
    """Round to the nearest even integer >= 2 (H.264 needs even dimensions)."""
    return max(2, int(round(value / 2.0)) * 2)


def _side_by_side(sizes: list[tuple[int, int]]) -> tuple[float, float, list[LayoutRect]]:
    # Normalize to the smaller height, then place left to right
    height = float(min(h for _, h in sizes))
    rects = []
    x = 0.0
    for w, h in sizes:
        scaled_w = w * height / h
        rects.append(LayoutRect(x, 0.0, scaled_w, height))
        x += scaled_w
    return x, height, rects


def _stacked(sizes: list[tuple[int, int]]) -> tuple[float, float, list[LayoutRect]]:
    width = float(min(w for w, _ in sizes))
    rects = []
    y = 0.0
    for w, h in sizes:
        scaled_h = h * width / w
        rects.append(LayoutRect(0.0, y, width, scaled_h))
        y += scaled_h
    return width, y, rects


def _grid(canvas_width: int, canvas_height: int) -> tuple[float, float, list[LayoutRect]]:
    # [0] [1]
    # [2] [3]
    cell_w = canvas_width / 2.0
    cell_h = canvas_height / 2.0
    rects = [
        LayoutRect(col * cell_w, row * cell_h, cell_w, cell_h)
        for row in range(2)
        for col in range(2)
    ]
    return float(canvas_width), float(canvas_height), rects


def compute_layout(
    sizes: list[tuple[int, int]],
    orientation: Orientation,
    max_long_edge: int = 1920,
    grid_canvas: tuple[int, int] = (1920, 1080),
) -> Layout:
    """Compute the output canvas and one rect per source.

    *sizes* are upright (post-rotation) ``(width, height)`` pairs in source
    order. If the canvas's long edge exceeds *max_long_edge*, the canvas and
    every rect are scaled down by one common factor.

    Raises:
        ValueError: On the wrong number of sources for *orientation* or a
            zero-sized source.
    """
    expected = orientation.source_count
    if len(sizes) != expected:
        raise ValueError(
            f"{orientation.value} layout needs {expected} sources, got {len(sizes)}"
        )
    if any(w <= 0 or h <= 0 for w, h in sizes):
        raise ValueError(f"Source sizes must be positive, got {sizes}")

    if orientation is Orientation.HORIZONTAL:
        width, height, rects = _side_by_side(sizes)
    elif orientation is Orientation.VERTICAL:
        width, height, rects = _stacked(sizes)
    else:
        width, height, rects = _grid(*grid_canvas)

    factor = 1.0
    long_edge = max(width, height)
    if max_long_edge and long_edge > max_long_edge:
        factor = max_long_edge / long_edge
        width *= factor
        height *= factor
        rects = [r.scaled(factor) for r in rects]

    return Layout(
        canvas_width=_even(width),
        canvas_height=_even(height),
        rects=tuple(rects),
        downscale=factor,
    )
