"""
assets.py — Fetch and decode every asset a template references.

All fetches for a template are issued at once (fan-out) and awaited together
(fan-in). Only the background is required:

  background       missing / corrupt → AssetLoadError (nothing can be drawn)
  overlay          missing → composite without light falloff
  silhouette_mask  missing → printable masks fall back to auto-mask inference

Blocking I/O (urllib / file reads) runs in the default executor; decoding
happens back on the event loop, so pixel buffers are only ever touched from
one thread.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.request
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .errors import AssetLoadError
from .raster import RasterBuffer
from .templates import PrintableTemplate, SceneTemplate

logger = logging.getLogger(__name__)

USER_AGENT = "MockupStudio/1.0"

Fetcher = Callable[[str], bytes]


@dataclass(frozen=True)
class TemplateAssets:
    template: Union[SceneTemplate, PrintableTemplate]
    background: RasterBuffer
    overlay: Optional[RasterBuffer] = None
    silhouette_mask: Optional[RasterBuffer] = None


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def read_location(location: str, asset_root: Path = Path("mockups"), timeout: float = 30.0) -> bytes:
    """Read raw bytes from an http(s) URL or a path (relative paths resolve against asset_root)."""
    if _is_url(location):
        req = urllib.request.Request(location, headers={"User-Agent": USER_AGENT})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()

    path = Path(location)
    if not path.is_absolute():
        path = asset_root / path
    return path.read_bytes()


async def _fetch_all(locations: Dict[str, str], fetch: Fetcher) -> Dict[str, Union[bytes, BaseException]]:
    loop = asyncio.get_running_loop()
    roles = list(locations)
    results = await asyncio.gather(
        *(loop.run_in_executor(None, fetch, locations[role]) for role in roles),
        return_exceptions=True,
    )
    return dict(zip(roles, results))


def _decode(payload: Union[bytes, BaseException]) -> RasterBuffer:
    if isinstance(payload, BaseException):
        raise payload
    if not payload:
        raise ValueError("empty file")
    return RasterBuffer.from_bytes(payload)


async def load_template_assets(
    template: Union[SceneTemplate, PrintableTemplate],
    asset_root: Path = Path("mockups"),
    timeout: float = 30.0,
    fetch: Optional[Fetcher] = None,
) -> TemplateAssets:
    """Load background + optional overlay / silhouette for template."""
    fetch = fetch or partial(read_location, asset_root=asset_root, timeout=timeout)
    locations = {role: loc for role, loc in template.asset_locations().items() if loc}
    if "background" not in locations:
        raise AssetLoadError(f"{template.id}: no background location configured")
    logger.info(f"Loading {len(locations)} asset(s) for template {template.id}")

    payloads = await _fetch_all(locations, fetch)

    decoded: Dict[str, Optional[RasterBuffer]] = {}
    for role, location in locations.items():
        try:
            decoded[role] = _decode(payloads[role])
        except Exception as exc:
            if role == "background":
                raise AssetLoadError(
                    f"{template.id}: background {location!r} failed to load: {exc}"
                ) from exc
            logger.warning(f"{template.id}: optional {role} {location!r} unavailable ({exc}) — continuing without it")
            decoded[role] = None

    return TemplateAssets(
        template=template,
        background=decoded["background"],
        overlay=decoded.get("overlay"),
        silhouette_mask=decoded.get("silhouette_mask"),
    )


async def load_foreground(
    location: str,
    asset_root: Path = Path("."),
    timeout: float = 30.0,
    fetch: Optional[Fetcher] = None,
) -> RasterBuffer:
    """Load the user's product photo / logo. Failure is fatal."""
    fetch = fetch or partial(read_location, asset_root=asset_root, timeout=timeout)
    payloads = await _fetch_all({"foreground": location}, fetch)
    try:
        return _decode(payloads["foreground"])
    except Exception as exc:
        raise AssetLoadError(
            f"foreground {location!r} failed to load: {exc}",
            user_message="The uploaded image could not be read.",
        ) from exc
