from __future__ import annotations

import asyncio
import json

import pytest

from mockup_studio.config import Settings
from mockup_studio.main import parse_args, run
from mockup_studio.raster import RasterBuffer
from helpers import WHITE, solid


def test_template_and_foreground_required():
    with pytest.raises(SystemExit):
        parse_args(["--template", "desk-wood-1"])
    assert parse_args(["--list"]).list


def test_preset_must_be_known():
    with pytest.raises(SystemExit):
        parse_args(["--template", "t", "--foreground", "f.png", "--preset", "grunge"])


def test_run_exports_composite_and_mask(tmp_path):
    (tmp_path / "scene").mkdir()
    (tmp_path / "scene" / "bg.png").write_bytes(solid(1600, 1200, (80, 80, 80, 255)).to_png())
    catalog = tmp_path / "templates.json"
    catalog.write_text(json.dumps({
        "templates": [{"id": "scene-1", "mode": "scene", "background": "scene/bg.png",
                       "overlay": "scene/missing.png"}]
    }))
    product = tmp_path / "product.png"
    product.write_bytes(solid(40, 20, WHITE).to_png())
    out = tmp_path / "out"

    args = parse_args([
        "--template", "scene-1",
        "--foreground", str(product),
        "--scale", "0.5",
        "--output", str(out),
    ])
    settings = Settings(templates_path=catalog, asset_root=tmp_path, max_dimension=1080)
    asyncio.run(run(args, settings))

    composite = RasterBuffer.from_bytes((out / "composite.png").read_bytes())
    mask = RasterBuffer.from_bytes((out / "mask.png").read_bytes())
    assert composite.size == mask.size == (1080, 810)
    assert not (out / "result.png").exists()
