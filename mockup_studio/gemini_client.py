"""
gemini_client.py — Gemini boundary for mask-guided edits and captions.

Visual inputs sent to Gemini (in order):
  1. Edit prompt (IMAGE_EDIT_V1 JSON)
  2. Composite photo            ← the image to edit
  3. Binary mask, same size     ← white/black contract from the system instruction

Outcomes are classified once, here:
  image part returned                          → bytes
  429 / RESOURCE_EXHAUSTED / quota / rateLimit → QuotaExceededError
  anything else (incl. no image part)          → GenerationFailure

There is no retry loop: the session restores the pre-call image and leaves the
decision to retry with the user.
"""

from __future__ import annotations

import base64
import logging
from typing import List, Optional

from google import genai
from google.genai import types as genai_types
from pydantic import BaseModel, Field

from .config import CAPTION_MODEL, EDIT_MODEL, EDIT_TIMEOUT
from .errors import GenerationFailure, QuotaExceededError

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "quota", "rateLimitExceeded")


class Caption(BaseModel):
    caption: str = Field(description="Short social caption for the finished mockup")
    hashtags: List[str] = Field(default_factory=list, description="Hashtags without the leading #")


CAPTION_INSTRUCTION = (
    "You are a social media copywriter for a small product brand. "
    "Look at the product photo and write one engaging caption (max 2 sentences) "
    "and 3-6 relevant hashtags. Return JSON matching the schema."
)


def is_quota_error(message: str) -> bool:
    return any(k in message for k in QUOTA_MARKERS)


def _first_image(response) -> Optional[bytes]:
    for candidate in response.candidates or []:
        content = getattr(candidate, "content", None)
        for part in (content.parts if content else None) or []:
            if getattr(part, "inline_data", None) and part.inline_data.data:
                data = part.inline_data.data
                if isinstance(data, str):
                    data = base64.b64decode(data)
                return data
    return None


class GeminiEditClient:
    """Thin wrapper around genai.Client for the two calls this app makes."""

    def __init__(
        self,
        api_key: str,
        model: str = EDIT_MODEL,
        caption_model: str = CAPTION_MODEL,
        timeout: float = EDIT_TIMEOUT,
        client=None,
    ):
        self.model = model
        self.caption_model = caption_model
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def edit(
        self,
        composite_png: bytes,
        mask_png: bytes,
        prompt: str,
        system_instruction: str,
    ) -> bytes:
        """
        Ask the image model to repaint composite_png under mask_png.

        Returns the edited image bytes. Blocking; the session runs it in an
        executor.
        """
        parts = [
            genai_types.Part.from_text(text=prompt),
            genai_types.Part.from_text(text="COMPOSITE PHOTO — the image to edit."),
            genai_types.Part.from_bytes(data=composite_png, mime_type="image/png"),
            genai_types.Part.from_text(
                text="EDIT MASK — same size as the photo. Follow the white/black contract exactly."
            ),
            genai_types.Part.from_bytes(data=mask_png, mime_type="image/png"),
        ]

        logger.info(f"Gemini edit → {self.model} ({len(composite_png)} + {len(mask_png)} bytes)")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=parts,
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except Exception as e:
            err = str(e)
            if is_quota_error(err):
                logger.warning(f"Gemini quota exhausted: {err}")
                raise QuotaExceededError(err) from e
            logger.error(f"Gemini edit failed: {err}")
            raise GenerationFailure(err) from e

        data = _first_image(response)
        if not data:
            # content filter or text-only answer
            text = (getattr(response, "text", None) or "").strip()
            raise GenerationFailure(f"no image in response{': ' + text[:200] if text else ''}")
        logger.info(f"Gemini edit ✓ {len(data)} bytes")
        return data

    def suggest_caption(self, image_bytes: bytes, notes: str = "") -> Caption:
        parts = [genai_types.Part.from_bytes(data=image_bytes, mime_type="image/png")]
        if notes.strip():
            parts.append(genai_types.Part.from_text(text=f"Brand notes: {notes.strip()}"))

        try:
            response = self.client.models.generate_content(
                model=self.caption_model,
                contents=parts,
                config=genai_types.GenerateContentConfig(
                    system_instruction=CAPTION_INSTRUCTION,
                    response_mime_type="application/json",
                    response_schema=Caption,
                ),
            )
            caption = Caption.model_validate_json(response.text or "")
        except Exception as e:
            err = str(e)
            if is_quota_error(err):
                raise QuotaExceededError(err) from e
            raise GenerationFailure(err, user_message="Caption suggestion failed.") from e

        caption.hashtags = [tag.lstrip("#") for tag in caption.hashtags]
        return caption
