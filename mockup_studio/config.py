"""
config.py — Runtime settings, read from the environment (and .env).

Required env vars for generation (in .env):
    GEMINI_API_KEY=...

Optional:
    MOCKUP_EDIT_MODEL=gemini-2.5-flash-image
    MOCKUP_CAPTION_MODEL=gemini-2.5-flash
    MOCKUP_MAX_DIMENSION=1080          # composite cap, 1080–2048
    MOCKUP_TEMPLATES_PATH=templates.json
    MOCKUP_ASSET_ROOT=mockups
    MOCKUP_UPLOAD_URL=https://...      # durable image host; unset = no re-upload
    MOCKUP_UPLOAD_TOKEN=...
    MOCKUP_HTTP_TIMEOUT=30
    MOCKUP_EDIT_TIMEOUT=90
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

EDIT_MODEL          = "gemini-2.5-flash-image"
CAPTION_MODEL       = "gemini-2.5-flash"
MAX_DIMENSION       = 1080
MAX_DIMENSION_RANGE = (1080, 2048)
ASSET_ROOT          = Path("mockups")
HTTP_TIMEOUT        = 30.0
EDIT_TIMEOUT        = 90.0


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{key}={raw!r} is not a number — using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    edit_model: str = EDIT_MODEL
    caption_model: str = CAPTION_MODEL
    max_dimension: int = MAX_DIMENSION
    templates_path: Optional[Path] = None
    asset_root: Path = ASSET_ROOT
    upload_url: Optional[str] = None
    upload_token: Optional[str] = None
    http_timeout: float = HTTP_TIMEOUT
    edit_timeout: float = EDIT_TIMEOUT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``env`` (defaults to os.environ after loading .env)."""
        if env is None:
            load_dotenv()
            env = os.environ

        lo, hi = MAX_DIMENSION_RANGE
        max_dim = int(_float_env(env, "MOCKUP_MAX_DIMENSION", MAX_DIMENSION))
        if not lo <= max_dim <= hi:
            clamped = min(max(max_dim, lo), hi)
            logger.warning(f"MOCKUP_MAX_DIMENSION={max_dim} outside {lo}–{hi} — using {clamped}")
            max_dim = clamped

        templates_path = env.get("MOCKUP_TEMPLATES_PATH") or None
        return cls(
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            edit_model=env.get("MOCKUP_EDIT_MODEL") or EDIT_MODEL,
            caption_model=env.get("MOCKUP_CAPTION_MODEL") or CAPTION_MODEL,
            max_dimension=max_dim,
            templates_path=Path(templates_path) if templates_path else None,
            asset_root=Path(env.get("MOCKUP_ASSET_ROOT") or ASSET_ROOT),
            upload_url=env.get("MOCKUP_UPLOAD_URL") or None,
            upload_token=env.get("MOCKUP_UPLOAD_TOKEN") or None,
            http_timeout=_float_env(env, "MOCKUP_HTTP_TIMEOUT", HTTP_TIMEOUT),
            edit_timeout=_float_env(env, "MOCKUP_EDIT_TIMEOUT", EDIT_TIMEOUT),
        )
