from __future__ import annotations

import asyncio
import logging

import pytest

from mockup_studio.assets import load_foreground, load_template_assets, read_location
from mockup_studio.errors import AssetLoadError
from mockup_studio.templates import PrintableTemplate, SceneTemplate
from helpers import WHITE, MemoryFetch, solid

SCENE = SceneTemplate(
    id="desk",
    background="desk/background.png",
    overlay="desk/overlay.png",
    silhouette_mask="desk/mask.png",
)
PRINTABLE = PrintableTemplate(id="mug", background="mug/blank.png", silhouette_mask="mug/mask.png")


def test_all_assets_load_from_asset_root(tmp_path):
    (tmp_path / "desk").mkdir()
    (tmp_path / "desk" / "background.png").write_bytes(solid(40, 30, (10, 20, 30, 255)).to_png())
    (tmp_path / "desk" / "overlay.png").write_bytes(solid(40, 30, WHITE).to_png())
    (tmp_path / "desk" / "mask.png").write_bytes(solid(40, 30, WHITE).to_png())

    assets = asyncio.run(load_template_assets(SCENE, asset_root=tmp_path))

    assert assets.template is SCENE
    assert assets.background.size == (40, 30)
    assert assets.background.get_pixel(0, 0) == (10, 20, 30, 255)
    assert assets.overlay is not None
    assert assets.silhouette_mask is not None


def test_fetches_every_location_once():
    fetch = MemoryFetch({
        "desk/background.png": solid(8, 8, WHITE).to_png(),
        "desk/overlay.png": solid(8, 8, WHITE).to_png(),
        "desk/mask.png": solid(8, 8, WHITE).to_png(),
    })
    asyncio.run(load_template_assets(SCENE, fetch=fetch))
    assert sorted(fetch.calls) == ["desk/background.png", "desk/mask.png", "desk/overlay.png"]


def test_missing_optional_assets_degrade(caplog):
    fetch = MemoryFetch({
        "desk/background.png": solid(8, 8, WHITE).to_png(),
        "desk/mask.png": b"corrupt",
    })
    with caplog.at_level(logging.WARNING):
        assets = asyncio.run(load_template_assets(SCENE, fetch=fetch))
    assert assets.overlay is None
    assert assets.silhouette_mask is None
    assert "overlay" in caplog.text


def test_missing_background_is_fatal():
    fetch = MemoryFetch({"mug/mask.png": solid(8, 8, WHITE).to_png()})
    with pytest.raises(AssetLoadError):
        asyncio.run(load_template_assets(PRINTABLE, fetch=fetch))


def test_corrupt_background_is_fatal():
    fetch = MemoryFetch({"mug/blank.png": b"\x89PNG broken"})
    with pytest.raises(AssetLoadError):
        asyncio.run(load_template_assets(PRINTABLE, fetch=fetch))


def test_empty_background_is_fatal():
    fetch = MemoryFetch({"mug/blank.png": b""})
    with pytest.raises(AssetLoadError):
        asyncio.run(load_template_assets(PRINTABLE, fetch=fetch))


def test_blank_background_location_is_fatal():
    fetch = MemoryFetch({})
    with pytest.raises(AssetLoadError):
        asyncio.run(load_template_assets(SceneTemplate(id="x", background=""), fetch=fetch))
    assert fetch.calls == []


def test_unset_locations_are_not_fetched():
    fetch = MemoryFetch({"bare.png": solid(4, 4, WHITE).to_png()})
    assets = asyncio.run(load_template_assets(SceneTemplate(id="bare", background="bare.png"), fetch=fetch))
    assert fetch.calls == ["bare.png"]
    assert assets.overlay is None


def test_foreground_loads(tmp_path):
    path = tmp_path / "product.png"
    path.write_bytes(solid(12, 6, (1, 2, 3, 255)).to_png())
    fg = asyncio.run(load_foreground(str(path)))
    assert fg.size == (12, 6)


def test_foreground_failure_is_fatal(tmp_path):
    with pytest.raises(AssetLoadError) as exc:
        asyncio.run(load_foreground(str(tmp_path / "missing.png")))
    assert exc.value.user_message == "The uploaded image could not be read."


def test_read_location_resolves_relative_paths(tmp_path):
    (tmp_path / "a.bin").write_bytes(b"abc")
    assert read_location("a.bin", asset_root=tmp_path) == b"abc"
    assert read_location(str(tmp_path / "a.bin"), asset_root=tmp_path / "elsewhere") == b"abc"
