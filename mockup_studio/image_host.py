"""
image_host.py — Durable storage boundary: upload a PNG, get back a stable URL.

POST {url}
  Authorization: Bearer <token>        (when configured)
  {"image": "data:image/png;base64,..."}

Accepted response shapes: {"url": ...}, {"secure_url": ...}, {"data": {"url": ...}}.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from typing import Optional

from .config import HTTP_TIMEOUT
from .errors import UploadFailure

logger = logging.getLogger(__name__)


def _extract_url(body: dict) -> Optional[str]:
    for key in ("secure_url", "url"):
        if isinstance(body.get(key), str):
            return body[key]
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("url"), str):
        return data["url"]
    return None


class ImageHost:
    def __init__(self, url: str, token: Optional[str] = None, timeout: float = HTTP_TIMEOUT):
        self.url = url
        self.token = token
        self.timeout = timeout

    def upload(self, data: bytes, mime: str = "image/png") -> str:
        """Blocking upload. Raises UploadFailure on any error."""
        payload = json.dumps({
            "image": f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}",
        }).encode("utf-8")
        headers = {"Content-Type": "application/json", "User-Agent": "MockupStudio/1.0"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        req = urllib.request.Request(self.url, data=payload, headers=headers, method="POST")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise UploadFailure(f"upload to {self.url} failed: {e}") from e

        url = _extract_url(body) if isinstance(body, dict) else None
        if not url:
            raise UploadFailure(f"upload to {self.url} returned no url")
        logger.info(f"Uploaded {len(data)} bytes → {url}")
        return url
