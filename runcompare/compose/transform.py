"""Per-source affine transform: rotate upright, scale to fit, move to the rect."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from runcompare.model.project import QUARTER_TURNS
from runcompare.model.timeline import LayoutRect


@dataclass(frozen=True)
class Transform:
    """Maps coded frame pixels onto the output canvas.

    ``rotation`` is the clockwise rotation actually applied (0 when the
    source's metadata was not a quarter turn).
    """

    rotation: int
    scale: float
    tx: float
    ty: float
    coded_width: int
    coded_height: int

    @property
    def upright_size(self) -> tuple[int, int]:
        if self.rotation in (90, 270):
            return self.coded_height, self.coded_width
        return self.coded_width, self.coded_height

    @property
    def output_size(self) -> tuple[int, int]:
        w, h = self.upright_size
        return max(1, int(round(w * self.scale))), max(1, int(round(h * self.scale)))

    @property
    def matrix(self) -> np.ndarray:
        """3x3 homogeneous matrix: translate @ scale @ rotate."""
        w, h = self.coded_width, self.coded_height
        if self.rotation == 90:
            rotate = np.array([[0, -1, h], [1, 0, 0], [0, 0, 1]], dtype=float)
        elif self.rotation == 180:
            rotate = np.array([[-1, 0, w], [0, -1, h], [0, 0, 1]], dtype=float)
        elif self.rotation == 270:
            rotate = np.array([[0, 1, 0], [-1, 0, w], [0, 0, 1]], dtype=float)
        else:
            rotate = np.eye(3)
        scale = np.diag([self.scale, self.scale, 1.0])
        translate = np.array([[1, 0, self.tx], [0, 1, self.ty], [0, 0, 1]], dtype=float)
        return translate @ scale @ rotate

    @property
    def origin(self) -> tuple[int, int]:
        """Canvas pixel where the placed frame's top-left corner lands."""
        w, h = self.coded_width, self.coded_height
        corners = np.array([[0, w, 0, w], [0, 0, h, h], [1, 1, 1, 1]], dtype=float)
        placed = self.matrix @ corners
        return int(round(placed[0].min())), int(round(placed[1].min()))


def compute_transform(
    coded_size: tuple[int, int],
    rotation: int,
    rect: LayoutRect,
) -> Transform:
    """Build the transform for a coded frame of *coded_size* into *rect*.

    The frame is rotated upright first, then scaled uniformly by
    ``min(rect.w / w, rect.h / h)`` and translated to the rect's origin.
    """
    coded_w, coded_h = coded_size
    if coded_w <= 0 or coded_h <= 0:
        raise ValueError(f"Coded size must be positive, got {coded_size}")

    applied = rotation % 360 if rotation % 360 in QUARTER_TURNS else 0
    upright_w, upright_h = (coded_h, coded_w) if applied in (90, 270) else (coded_w, coded_h)

    scale = min(rect.w / upright_w, rect.h / upright_h)
    return Transform(
        rotation=applied,
        scale=scale,
        tx=rect.x,
        ty=rect.y,
        coded_width=coded_w,
        coded_height=coded_h,
    )
