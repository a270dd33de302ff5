from __future__ import annotations

import base64
import io
import json
import urllib.error
import urllib.request

import pytest

from mockup_studio.errors import UploadFailure
from mockup_studio.image_host import ImageHost


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _fake_urlopen(body, seen):
    def urlopen(req, timeout=None):
        seen.append((req, timeout))
        if isinstance(body, Exception):
            raise body
        return _Response(json.dumps(body).encode())
    return urlopen


def test_upload_posts_data_uri(monkeypatch):
    seen = []
    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen({"secure_url": "https://cdn/x.png"}, seen))

    url = ImageHost("https://host/upload", token="tok", timeout=7).upload(b"PNG")

    assert url == "https://cdn/x.png"
    req, timeout = seen[0]
    assert timeout == 7
    assert req.get_method() == "POST"
    assert req.get_header("Authorization") == "Bearer tok"
    payload = json.loads(req.data)
    assert payload["image"] == "data:image/png;base64," + base64.b64encode(b"PNG").decode()


@pytest.mark.parametrize("body, expected", [
    ({"url": "https://a"}, "https://a"),
    ({"data": {"url": "https://b"}}, "https://b"),
])
def test_upload_accepts_response_shapes(monkeypatch, body, expected):
    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen(body, []))
    assert ImageHost("https://host/upload").upload(b"PNG") == expected


def test_no_token_no_auth_header(monkeypatch):
    seen = []
    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen({"url": "https://a"}, seen))
    ImageHost("https://host/upload").upload(b"PNG")
    assert seen[0][0].get_header("Authorization") is None


def test_network_error_raises_upload_failure(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen(urllib.error.URLError("down"), []))
    with pytest.raises(UploadFailure):
        ImageHost("https://host/upload").upload(b"PNG")


def test_missing_url_raises_upload_failure(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen({"ok": True}, []))
    with pytest.raises(UploadFailure):
        ImageHost("https://host/upload").upload(b"PNG")
