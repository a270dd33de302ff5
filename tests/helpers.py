from __future__ import annotations

from typing import Dict, Tuple

import numpy as np

from mockup_studio.raster import RasterBuffer

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


def solid(width: int, height: int, rgba: Tuple[int, int, int, int]) -> RasterBuffer:
    return RasterBuffer.blank(width, height, rgba)


def object_on_white(width: int, height: int, box: Tuple[int, int, int, int],
                    rgba=(180, 40, 40, 255)) -> RasterBuffer:
    """Opaque white studio shot with a coloured rectangle at box = (x0, y0, x1, y1)."""
    buf = solid(width, height, WHITE)
    x0, y0, x1, y1 = box
    buf.pixels[y0:y1, x0:x1] = rgba
    return buf


def mask_values(mask: RasterBuffer) -> set:
    flat = mask.pixels.reshape(-1, 4)
    return {tuple(int(v) for v in row) for row in np.unique(flat, axis=0)}


def white_area(mask: RasterBuffer) -> np.ndarray:
    return np.all(mask.pixels == WHITE, axis=2)


class MemoryFetch:
    """Location → bytes map standing in for HTTP / disk reads."""

    def __init__(self, files: Dict[str, bytes]) -> None:
        self.files = dict(files)
        self.calls = []

    def __call__(self, location: str) -> bytes:
        self.calls.append(location)
        if location not in self.files:
            raise FileNotFoundError(location)
        return self.files[location]
