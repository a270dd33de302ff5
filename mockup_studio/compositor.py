"""
Compositor — renders the preview / export raster and its matching mask.

Draw order on a canvas capped at ``max_dimension`` (aspect-preserving):

  1. background (scene photo or blank object), resampled to the canvas
  2. foreground at its placement rect
       scene      normal paint
       printable  multiply at ink_opacity, using the intersection-clipped logo
                  so the preview never shows ink the mask would not allow
  3. scene only: overlay multiplied over the whole canvas (light falloff)

The mask comes from the same placement rect in the same call, so image and
mask always line up and always share dimensions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .assets import TemplateAssets
from .config import MAX_DIMENSION
from .errors import MaskSynthesisError
from .mask import PrintableFootprint, synthesize_mask
from .placement import PlacementTransform
from .raster import BlendMode, RasterBuffer, Rect
from .templates import PrintableTemplate

CANVAS_FILL = (255, 255, 255, 255)


@dataclass
class CompositeResult:
    image: RasterBuffer
    mask: RasterBuffer
    rect: Rect

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


def canvas_size(background_size: Tuple[int, int], max_dimension: int = MAX_DIMENSION) -> Tuple[int, int]:
    """Background size, downscaled (never upscaled) so the long edge fits max_dimension."""
    w, h = background_size
    if w <= 0 or h <= 0:
        raise ValueError(f"background has no area: {w}×{h}")
    long_edge = max(w, h)
    if long_edge <= max_dimension:
        return (w, h)
    ratio = max_dimension / long_edge
    return (max(1, round(w * ratio)), max(1, round(h * ratio)))


def _base_canvas(background: RasterBuffer, size: Tuple[int, int]) -> RasterBuffer:
    W, H = size
    canvas = RasterBuffer.blank(W, H, CANVAS_FILL)
    canvas.blit(background, Rect(0, 0, W, H))
    return canvas


def _render_scene(
    background: RasterBuffer,
    overlay: Optional[RasterBuffer],
    foreground: RasterBuffer,
    rect: Rect,
    size: Tuple[int, int],
) -> RasterBuffer:
    canvas = _base_canvas(background, size)
    canvas.blit(foreground, rect, BlendMode.NORMAL)
    if overlay is not None:
        W, H = size
        canvas.blit(overlay, Rect(0, 0, W, H), BlendMode.MULTIPLY)
    return canvas


def _render_printable(
    template: PrintableTemplate,
    background: RasterBuffer,
    footprint: PrintableFootprint,
    size: Tuple[int, int],
) -> RasterBuffer:
    W, H = size
    canvas = _base_canvas(background, size)
    # ink soaks into the material: multiply, slightly translucent
    canvas.blit(footprint.clipped_layer(), Rect(0, 0, W, H), BlendMode.MULTIPLY, template.ink_opacity)
    return canvas


def compose(
    assets: TemplateAssets,
    foreground: RasterBuffer,
    placement: PlacementTransform,
    max_dimension: int = MAX_DIMENSION,
) -> CompositeResult:
    """
    Render {template, foreground, placement} into a preview raster + binary mask.

    The mask, rect and printable footprint come from mask.synthesize_mask;
    the image is painted from the same rect and footprint.

    Raises MaskSynthesisError if no drawing surface can be created.
    """
    template = assets.template
    try:
        size = canvas_size(assets.background.size, max_dimension)
    except ValueError as exc:
        raise MaskSynthesisError(f"{template.id}: cannot render surface: {exc}") from exc

    synthesis = synthesize_mask(assets, foreground, placement, size)
    try:
        if synthesis.footprint is not None:
            image = _render_printable(template, assets.background, synthesis.footprint, size)
        else:
            image = _render_scene(assets.background, assets.overlay, foreground, synthesis.rect, size)
    except (ValueError, MemoryError) as exc:
        raise MaskSynthesisError(f"{template.id}: cannot render surface: {exc}") from exc

    if synthesis.mask.size != image.size:
        raise MaskSynthesisError(f"{template.id}: mask {synthesis.mask.size} does not match image {image.size}")
    return CompositeResult(image=image, mask=synthesis.mask, rect=synthesis.rect)
