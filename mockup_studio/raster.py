"""
raster.py — RGBA pixel buffer used by the mask synthesizer and compositor.

A RasterBuffer wraps a uint8 (H, W, 4) numpy array. Pillow is only used at the
edges (decode, encode, resample); all compositing math runs on the array so
the result is exact and deterministic.

Blend modes (non-premultiplied, W3C compositing formulas):
  NORMAL    source-over
  MULTIPLY  Cs' = (1 - αb)·Cs + αb·(Cb·Cs), then source-over
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np
from PIL import Image

RGBA = Tuple[int, int, int, int]


class BlendMode(str, Enum):
    NORMAL = "normal"
    MULTIPLY = "multiply"


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle, top-left origin."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class RasterBuffer:
    """Mutable RGBA pixel buffer with known width/height."""

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"expected (H, W, 4) array, got {pixels.shape}")
        self.pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def blank(cls, width: int, height: int, fill: RGBA = (0, 0, 0, 0)) -> "RasterBuffer":
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid surface size {width}×{height}")
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[:, :] = fill
        return cls(arr)

    @classmethod
    def from_image(cls, img: Image.Image) -> "RasterBuffer":
        return cls(np.array(img.convert("RGBA")))

    @classmethod
    def from_bytes(cls, data: bytes) -> "RasterBuffer":
        """Decode PNG/JPEG/WebP bytes. Raises OSError / ValueError on corrupt data."""
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return cls.from_image(img)

    def copy(self) -> "RasterBuffer":
        return RasterBuffer(self.pixels.copy())

    # ── Geometry ──────────────────────────────────────────────────────────────

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def luma(self) -> np.ndarray:
        """Rec. 601 luma per pixel, float32 (H, W) in 0–255."""
        rgb = self.pixels[:, :, :3].astype(np.float32)
        return 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]

    # ── Pixel access ──────────────────────────────────────────────────────────

    def get_pixel(self, x: int, y: int) -> RGBA:
        r, g, b, a = self.pixels[y, x]
        return (int(r), int(g), int(b), int(a))

    def set_pixel(self, x: int, y: int, rgba: RGBA) -> None:
        self.pixels[y, x] = rgba

    # ── Resampling / encoding ─────────────────────────────────────────────────

    def resized(self, width: int, height: int) -> "RasterBuffer":
        if (width, height) == self.size:
            return self.copy()
        img = self.to_image().resize((width, height), Image.LANCZOS)
        return RasterBuffer.from_image(img)

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels, "RGBA")

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.to_image().save(buf, format="PNG")
        return buf.getvalue()

    def to_base64(self) -> str:
        return base64.b64encode(self.to_png()).decode("ascii")

    # ── Compositing ───────────────────────────────────────────────────────────

    def blit(
        self,
        src: "RasterBuffer",
        rect: Rect,
        blend: BlendMode = BlendMode.NORMAL,
        opacity: float = 1.0,
    ) -> None:
        """
        Draw src into rect (resampled to the rect size), clipped to this buffer.

        Parts of rect outside the buffer are dropped; the visible part keeps
        its position, so a half-offscreen foreground is cropped, never moved.
        """
        if rect.is_empty:
            return
        x0, y0 = max(rect.x, 0), max(rect.y, 0)
        x1, y1 = min(rect.right, self.width), min(rect.bottom, self.height)
        if x0 >= x1 or y0 >= y1:
            return

        layer = src if src.size == (rect.width, rect.height) else src.resized(rect.width, rect.height)
        sx0, sy0 = x0 - rect.x, y0 - rect.y
        patch = layer.pixels[sy0:sy0 + (y1 - y0), sx0:sx0 + (x1 - x0)].astype(np.float32)
        region = self.pixels[y0:y1, x0:x1]
        region[:] = _composite(region.astype(np.float32), patch, blend, opacity)


def _composite(
    dst: np.ndarray,
    src: np.ndarray,
    blend: BlendMode,
    opacity: float,
) -> np.ndarray:
    sa = (src[:, :, 3:4] / 255.0) * float(np.clip(opacity, 0.0, 1.0))
    da = dst[:, :, 3:4] / 255.0
    cs = src[:, :, :3]
    cb = dst[:, :, :3]

    if blend is BlendMode.MULTIPLY:
        cs = (1.0 - da) * cs + da * (cb * cs / 255.0)
    elif blend is not BlendMode.NORMAL:
        raise ValueError(f"unsupported blend mode: {blend}")

    out_a = sa + da * (1.0 - sa)
    num = cs * sa + cb * da * (1.0 - sa)
    out_rgb = np.divide(num, out_a, out=np.zeros_like(num), where=out_a > 0)

    out = np.empty(dst.shape, dtype=np.float32)
    out[:, :, :3] = out_rgb
    out[:, :, 3:4] = out_a * 255.0
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)
