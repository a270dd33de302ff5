from __future__ import annotations

import numpy as np
import pytest

from mockup_studio.assets import TemplateAssets
from mockup_studio.compositor import canvas_size, compose
from mockup_studio.mask import synthesize_mask
from mockup_studio.placement import PlacementTransform
from mockup_studio.raster import Rect
from mockup_studio.templates import PrintableTemplate, SceneTemplate
from helpers import BLACK, WHITE, mask_values, object_on_white, solid, white_area

SCENE = SceneTemplate(id="scene", background="bg.png")
PRINTABLE = PrintableTemplate(id="printable", background="blank.png")


def test_canvas_size_only_downscales():
    assert canvas_size((800, 600), 1080) == (800, 600)
    assert canvas_size((4000, 2000), 1080) == (1080, 540)
    assert canvas_size((1500, 3000), 2048) == (1024, 2048)
    with pytest.raises(ValueError):
        canvas_size((0, 10))


def test_scene_scenario():
    assets = TemplateAssets(template=SCENE, background=solid(1000, 1000, (90, 90, 90, 255)))
    fg = solid(200, 100, (200, 10, 10, 255))

    result = compose(assets, fg, PlacementTransform(0.5, 0.5, 0.4))

    assert result.rect == Rect(300, 400, 400, 200)
    assert result.size == (1000, 1000)
    assert result.image.get_pixel(500, 500) == (200, 10, 10, 255)
    assert result.image.get_pixel(299, 500) == (90, 90, 90, 255)
    assert result.image.get_pixel(500, 600) == (90, 90, 90, 255)
    assert white_area(result.mask)[400:600, 300:700].all()


def test_scene_overlay_multiplies_whole_canvas():
    overlay = solid(100, 100, (128, 128, 128, 255))
    assets = TemplateAssets(template=SCENE, background=solid(100, 100, WHITE), overlay=overlay)
    result = compose(assets, solid(10, 10, (0, 0, 255, 255)), PlacementTransform(0.5, 0.5, 0.1))
    assert result.image.get_pixel(0, 0) == (128, 128, 128, 255)
    # the overlay never leaks into the mask
    assert white_area(result.mask).sum() == 10 * 10


def test_scene_without_overlay_shows_background():
    assets = TemplateAssets(template=SCENE, background=solid(50, 50, (1, 2, 3, 255)))
    result = compose(assets, solid(5, 5, WHITE), PlacementTransform(0.5, 0.5, 0.1))
    assert result.image.get_pixel(0, 0) == (1, 2, 3, 255)


def test_printable_ink_stays_inside_object():
    blank = object_on_white(200, 200, (50, 50, 150, 150), rgba=(200, 200, 200, 255))
    assets = TemplateAssets(template=PRINTABLE, background=blank)
    logo = solid(100, 100, (0, 0, 0, 255))

    # logo is wider than the object: the part over the studio backdrop must not print
    result = compose(assets, logo, PlacementTransform(0.5, 0.5, 0.8))

    assert result.image.get_pixel(20, 100) == WHITE
    r, g, b, a = result.image.get_pixel(100, 100)
    assert a == 255
    assert r < 200 * 0.2
    assert white_area(result.mask)[100, 100]
    assert not white_area(result.mask)[100, 20]


def test_printable_ink_is_translucent():
    blank = solid(40, 40, (200, 200, 200, 255))
    assets = TemplateAssets(template=PrintableTemplate(id="p", background="b.png", ink_opacity=0.5), background=blank)
    result = compose(assets, solid(40, 40, (0, 0, 0, 255)), PlacementTransform(0.5, 0.5, 1.0))
    r, _, _, _ = result.image.get_pixel(20, 20)
    assert r == 100


@pytest.mark.parametrize("template", [SCENE, PRINTABLE])
@pytest.mark.parametrize("cap", [1080, 1500, 2048])
@pytest.mark.parametrize("bg_size", [(2400, 1600), (640, 900)])
def test_mask_matches_image_dimensions(template, cap, bg_size):
    assets = TemplateAssets(template=template, background=object_on_white(*bg_size, (100, 100, 500, 500)))
    result = compose(assets, solid(64, 32, BLACK), PlacementTransform(0.2, 0.2, 0.3), max_dimension=cap)
    assert result.mask.size == result.image.size
    assert max(result.size) <= cap
    assert mask_values(result.mask) <= {WHITE, BLACK}


def test_compose_is_deterministic():
    assets = TemplateAssets(template=PRINTABLE, background=object_on_white(300, 200, (40, 40, 260, 160)))
    logo = solid(30, 30, (10, 120, 200, 255))
    logo.pixels[:10, :, 3] = 0
    a = compose(assets, logo, PlacementTransform(0.33, 0.6, 0.5))
    b = compose(assets, logo, PlacementTransform(0.33, 0.6, 0.5))
    assert a.mask.to_png() == b.mask.to_png()
    assert np.array_equal(a.image.pixels, b.image.pixels)


@pytest.mark.parametrize("template", [SCENE, PRINTABLE])
def test_compose_mask_is_the_synthesized_mask(template):
    assets = TemplateAssets(template=template, background=object_on_white(300, 200, (40, 40, 260, 160)))
    logo = solid(30, 20, (10, 120, 200, 255))
    placement = PlacementTransform(0.45, 0.55, 0.3)

    result = compose(assets, logo, placement)
    synthesis = synthesize_mask(assets, logo, placement, result.size)

    assert result.rect == synthesis.rect
    assert result.mask.to_png() == synthesis.mask.to_png()
    assert (synthesis.footprint is not None) == (template is PRINTABLE)
