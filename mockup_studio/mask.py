"""
mask.py — Binary edit-region masks for the generative inpainting call.

Output is always strictly binary: every pixel is (255,255,255,255) or
(0,0,0,255). Never grey, never transparent.

Scene mode
  white = the placed product's own silhouette (model must keep these pixels)
  black = everything else (free for contact shadows / reflections)

Printable mode
  white = object printable area  AND  dilated logo footprint
  black = everything else, including logo parts that fall off the object.
  The logo is clipped by the intersection, never recentred.

Silhouette normalization:
  Authored masks and blank-object photos sometimes arrive fully opaque (a
  black-and-white JPEG instead of a cut-out). Those are detected by sampling
  alpha and re-read by luma: luma > silhouette_luma_threshold → object.
  Blank objects without any silhouette are keyed against a white studio
  background (all channels > white_key_threshold → background).

The intersection is evaluated element-wise on the full pixel grid; Pillow's
composite operators are only used to place and resample layers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageFilter

from .assets import TemplateAssets
from .errors import MaskSynthesisError
from .placement import PlacementTransform
from .raster import BlendMode, RasterBuffer, Rect
from .templates import PrintableTemplate, SceneTemplate

logger = logging.getLogger(__name__)

ALPHA_THRESHOLD   = 240    # alpha below this counts as "transparent" when sampling
TRANSPARENT_RATIO = 0.01   # >1% transparent samples → real alpha channel
SAMPLE_STRIDE     = 2

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


# ── Alpha normalization ───────────────────────────────────────────────────────

def has_real_alpha(buf: RasterBuffer, stride: int = SAMPLE_STRIDE) -> bool:
    """True if a meaningful share of sampled pixels is not ≈ opaque."""
    sample = buf.alpha[::stride, ::stride]
    if sample.size == 0:
        return False
    transparent_ratio = np.count_nonzero(sample < ALPHA_THRESHOLD) / sample.size
    return transparent_ratio > TRANSPARENT_RATIO


def normalize_silhouette(buf: RasterBuffer, luma_threshold: int = 40) -> RasterBuffer:
    """
    Return a copy whose alpha channel is the silhouette.

    Cut-outs keep their alpha. Opaque images get alpha synthesized from luma:
    the threshold is low enough to keep the shadowed side of the object while
    still rejecting a near-black studio backdrop.
    """
    out = buf.copy()
    if has_real_alpha(buf):
        return out
    logger.debug(f"silhouette is opaque — keying by luma > {luma_threshold}")
    out.pixels[:, :, 3] = np.where(buf.luma() > luma_threshold, 255, 0).astype(np.uint8)
    return out


def auto_mask(blank_object: RasterBuffer, white_key_threshold: int = 240) -> RasterBuffer:
    """
    Infer a silhouette from the blank-object photo itself.

    Real alpha is used as-is. Otherwise the studio background is assumed flat
    white: pixels with every channel > white_key_threshold become transparent,
    everything else opaque.
    """
    out = blank_object.copy()
    if has_real_alpha(blank_object):
        return out
    rgb = blank_object.pixels[:, :, :3]
    near_white = np.all(rgb > white_key_threshold, axis=2)
    out.pixels[:, :, 3] = np.where(near_white, 0, 255).astype(np.uint8)
    return out


def silhouette_luma(silhouette: RasterBuffer, canvas_size: Tuple[int, int]) -> np.ndarray:
    """
    Object luma on the canvas grid: the silhouette drawn as solid white over
    opaque black, resampled to canvas size.
    """
    W, H = canvas_size
    shape = RasterBuffer.blank(silhouette.width, silhouette.height, WHITE)
    shape.pixels[:, :, 3] = silhouette.alpha
    ground = RasterBuffer.blank(W, H, BLACK)
    ground.blit(shape, Rect(0, 0, W, H))
    return ground.luma()


# ── Footprints ────────────────────────────────────────────────────────────────

def place_layer(foreground: RasterBuffer, rect: Rect, canvas_size: Tuple[int, int]) -> RasterBuffer:
    """Foreground drawn at rect on an otherwise transparent canvas."""
    W, H = canvas_size
    layer = RasterBuffer.blank(W, H)
    layer.blit(foreground, rect, BlendMode.NORMAL)
    return layer


def dilate_alpha(alpha: np.ndarray, radius: float) -> np.ndarray:
    """Blur-dilate an alpha plane outward; interior coverage never drops."""
    if radius <= 0:
        return alpha.copy()
    blurred = np.array(Image.fromarray(alpha, "L").filter(ImageFilter.GaussianBlur(radius)))
    return np.maximum(alpha, blurred)


def binary_mask(editable: np.ndarray) -> RasterBuffer:
    """Bool (H, W) → strictly black/white opaque RGBA buffer."""
    h, w = editable.shape
    pixels = np.empty((h, w, 4), dtype=np.uint8)
    pixels[:, :] = BLACK
    pixels[editable] = WHITE
    return RasterBuffer(pixels)


@dataclass
class PrintableFootprint:
    """Placed logo plus the pixels it may occupy on the object."""
    layer: RasterBuffer
    editable: np.ndarray

    def clipped_layer(self) -> RasterBuffer:
        """The logo with everything outside the editable region made transparent."""
        clipped = self.layer.copy()
        clipped.pixels[~self.editable, 3] = 0
        return clipped


def printable_footprint(
    template: PrintableTemplate,
    blank_object: RasterBuffer,
    silhouette: Optional[RasterBuffer],
    logo: RasterBuffer,
    rect: Rect,
    canvas_size: Tuple[int, int],
) -> PrintableFootprint:
    if silhouette is not None:
        normalized = normalize_silhouette(silhouette, template.silhouette_luma_threshold)
    else:
        logger.info(f"{template.id}: no printable-area mask — inferring from blank object")
        normalized = auto_mask(blank_object, template.white_key_threshold)

    object_luma = silhouette_luma(normalized, canvas_size)
    layer = place_layer(logo, rect, canvas_size)
    logo_alpha = dilate_alpha(layer.alpha, template.footprint_dilation_radius)

    editable = (
        (object_luma > template.intersection_luma_threshold)
        & (logo_alpha > template.footprint_alpha_threshold)
    )
    return PrintableFootprint(layer=layer, editable=editable)


# ── Public API ────────────────────────────────────────────────────────────────

def scene_mask(foreground: RasterBuffer, rect: Rect, canvas_size: Tuple[int, int]) -> RasterBuffer:
    layer = place_layer(foreground, rect, canvas_size)
    return binary_mask(layer.alpha > 0)


@dataclass
class MaskSynthesis:
    mask: RasterBuffer
    rect: Rect
    # printable templates only; the compositor paints the clipped logo from it
    footprint: Optional[PrintableFootprint] = None


def synthesize_mask(
    assets: TemplateAssets,
    foreground: RasterBuffer,
    placement: PlacementTransform,
    canvas_size: Tuple[int, int],
) -> MaskSynthesis:
    """
    Build the binary mask for the template's mode at canvas_size, together
    with the placement rect and (printable) footprint it was derived from.

    Raises MaskSynthesisError when no surface can be rendered (empty canvas,
    empty foreground, allocation failure).
    """
    template: Union[SceneTemplate, PrintableTemplate] = assets.template
    if not isinstance(template, (SceneTemplate, PrintableTemplate)):
        raise TypeError(f"unknown template kind: {type(template).__name__}")
    try:
        rect = placement.to_rect(canvas_size, foreground.size)
        if isinstance(template, SceneTemplate):
            return MaskSynthesis(mask=scene_mask(foreground, rect, canvas_size), rect=rect)
        fp = printable_footprint(
            template, assets.background, assets.silhouette_mask, foreground, rect, canvas_size
        )
        return MaskSynthesis(mask=binary_mask(fp.editable), rect=rect, footprint=fp)
    except (ValueError, MemoryError) as exc:
        raise MaskSynthesisError(f"{template.id}: cannot render mask surface: {exc}") from exc
