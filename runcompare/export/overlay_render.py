"""Rasterise OverlaySpecs to RGBA arrays with Pillow."""

from __future__ import annotations

import functools
import math

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from runcompare.errors import OverlayRenderSkipped
from runcompare.model.timeline import OverlaySpec

PANEL_CORNER_RADIUS = 8


@functools.lru_cache(maxsize=32)
def load_font(size: int, font_path: str | None = None) -> ImageFont.ImageFont:
    if font_path:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size=size)


def render_overlay(spec: OverlaySpec, font_path: str | None = None) -> np.ndarray:
    """Return an (h, w, 4) uint8 RGBA image for *spec*.

    Text that does not fit the spec's rect is clipped.

    Raises:
        OverlayRenderSkipped: If the overlay cannot be drawn.
    """
    width = int(math.ceil(spec.rect.w))
    height = int(math.ceil(spec.rect.h))
    if width <= 0 or height <= 0:
        raise OverlayRenderSkipped(f"{spec.name or spec.text!r} has an empty rect")

    image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)

    if spec.background is not None:
        draw.rounded_rectangle(
            (0, 0, width - 1, height - 1),
            radius=PANEL_CORNER_RADIUS,
            fill=tuple(spec.background),
        )

    if spec.text:
        try:
            font = load_font(spec.font_size, font_path)
        except OSError as e:
            raise OverlayRenderSkipped(f"Cannot load font {font_path!r}: {e}")
        draw.text((0, 0), spec.text, font=font, fill=tuple(spec.color))

    return np.asarray(image, dtype=np.uint8)


def overlay_position(spec: OverlaySpec) -> tuple[int, int]:
    return int(round(spec.rect.x)), int(round(spec.rect.y))
