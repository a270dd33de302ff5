from __future__ import annotations

import logging
from pathlib import Path

from mockup_studio.config import EDIT_MODEL, Settings


def test_defaults_from_empty_env():
    s = Settings.from_env({})
    assert s.gemini_api_key is None
    assert s.edit_model == EDIT_MODEL
    assert s.max_dimension == 1080
    assert s.templates_path is None
    assert s.asset_root == Path("mockups")
    assert s.upload_url is None
    assert s.http_timeout == 30.0
    assert s.edit_timeout == 90.0


def test_values_from_env():
    s = Settings.from_env({
        "GEMINI_API_KEY": "k",
        "MOCKUP_MAX_DIMENSION": "1600",
        "MOCKUP_TEMPLATES_PATH": "catalog.json",
        "MOCKUP_ASSET_ROOT": "/srv/mockups",
        "MOCKUP_UPLOAD_URL": "https://img.example/upload",
        "MOCKUP_UPLOAD_TOKEN": "t",
        "MOCKUP_HTTP_TIMEOUT": "5",
    })
    assert s.gemini_api_key == "k"
    assert s.max_dimension == 1600
    assert s.templates_path == Path("catalog.json")
    assert s.asset_root == Path("/srv/mockups")
    assert s.upload_url == "https://img.example/upload"
    assert s.upload_token == "t"
    assert s.http_timeout == 5.0


def test_max_dimension_is_clamped(caplog):
    with caplog.at_level(logging.WARNING):
        assert Settings.from_env({"MOCKUP_MAX_DIMENSION": "4096"}).max_dimension == 2048
        assert Settings.from_env({"MOCKUP_MAX_DIMENSION": "512"}).max_dimension == 1080
    assert "MOCKUP_MAX_DIMENSION" in caplog.text


def test_bad_number_falls_back(caplog):
    with caplog.at_level(logging.WARNING):
        s = Settings.from_env({"MOCKUP_EDIT_TIMEOUT": "soon"})
    assert s.edit_timeout == 90.0
    assert "MOCKUP_EDIT_TIMEOUT" in caplog.text
