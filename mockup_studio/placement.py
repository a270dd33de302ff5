"""
placement.py — Normalized foreground placement and its pixel rectangle.

  x, y   centre of the foreground, as fractions of canvas width / height
  scale  foreground width as a fraction of canvas width

Height always comes from the foreground's native aspect ratio:

  aspect  = fw / fh
  targetW = W * scale
  targetH = targetW / aspect
  drawX   = W*x - targetW/2
  drawY   = H*y - targetH/2

Values are clamped on construction; callers never have to validate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple, Union

from .raster import Rect
from .templates import PrintableTemplate, SceneTemplate

SCENE_DEFAULT_SCALE     = 0.6
PRINTABLE_DEFAULT_SCALE = 0.4   # a logo covers less of the object than a hero product shot
MIN_SCALE               = 0.01
MAX_SCALE               = 1.0


def _clamp(value: float, lo: float, hi: float, fallback: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(value):
        return fallback
    return min(max(value, lo), hi)


def _all_finite(*values: float) -> bool:
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


@dataclass(frozen=True)
class PlacementTransform:
    x: float = 0.5
    y: float = 0.5
    scale: float = SCENE_DEFAULT_SCALE

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _clamp(self.x, 0.0, 1.0, 0.5))
        object.__setattr__(self, "y", _clamp(self.y, 0.0, 1.0, 0.5))
        object.__setattr__(self, "scale", _clamp(self.scale, MIN_SCALE, MAX_SCALE, SCENE_DEFAULT_SCALE))

    # ── Geometry ──────────────────────────────────────────────────────────────

    def draw_box(
        self,
        canvas_size: Tuple[int, int],
        foreground_size: Tuple[int, int],
    ) -> Tuple[float, float, float, float]:
        """Exact (drawX, drawY, targetW, targetH) in canvas pixels."""
        W, H = canvas_size
        fw, fh = foreground_size
        if fw <= 0 or fh <= 0:
            raise ValueError(f"foreground has no area: {fw}×{fh}")
        aspect = fw / fh
        target_w = W * self.scale
        target_h = target_w / aspect
        return (W * self.x - target_w / 2, H * self.y - target_h / 2, target_w, target_h)

    def to_rect(
        self,
        canvas_size: Tuple[int, int],
        foreground_size: Tuple[int, int],
    ) -> Rect:
        """
        Integer pixel rectangle for the foreground.

        Both edges are rounded independently, so the rect centre stays within
        one pixel of (W*x, H*y) and a smaller scale never produces a rect that
        pokes outside a larger one at the same centre.
        """
        draw_x, draw_y, target_w, target_h = self.draw_box(canvas_size, foreground_size)
        left = _round_half_up(draw_x)
        top = _round_half_up(draw_y)
        right = max(_round_half_up(draw_x + target_w), left + 1)
        bottom = max(_round_half_up(draw_y + target_h), top + 1)
        return Rect(left, top, right - left, bottom - top)

    # ── Gestures ──────────────────────────────────────────────────────────────

    def panned(
        self,
        dx: float,
        dy: float,
        rendered_width: float,
        rendered_height: float,
    ) -> "PlacementTransform":
        """
        Move by a screen-space drag delta.

        Divides by the size the template is currently rendered at (not the
        canvas size), so a drag moves the foreground with the pointer at any zoom.
        """
        if not _all_finite(dx, dy, rendered_width, rendered_height):
            return self
        if rendered_width <= 0 or rendered_height <= 0:
            return self
        return PlacementTransform(
            x=self.x + dx / rendered_width,
            y=self.y + dy / rendered_height,
            scale=self.scale,
        )

    def zoomed(self, factor: float) -> "PlacementTransform":
        """Pinch zoom about the current centre. A non-finite factor is ignored."""
        if not _all_finite(factor):
            return self
        return PlacementTransform(x=self.x, y=self.y, scale=self.scale * factor)


def default_placement(template: Union[SceneTemplate, PrintableTemplate]) -> PlacementTransform:
    """Placement applied whenever the active template changes."""
    if isinstance(template, PrintableTemplate):
        scale = PRINTABLE_DEFAULT_SCALE
    elif isinstance(template, SceneTemplate):
        scale = SCENE_DEFAULT_SCALE
    else:
        raise TypeError(f"unknown template kind: {type(template).__name__}")

    override = template.default_placement
    if override is None:
        return PlacementTransform(x=0.5, y=0.5, scale=scale)
    return PlacementTransform(
        x=0.5 if override.x is None else override.x,
        y=0.5 if override.y is None else override.y,
        scale=scale if override.scale is None else override.scale,
    )
