"""
prompts.py — System instructions and request prompts for mask-guided edits.

The two modes need opposite things from the model:

  scene      WHITE mask pixels are the product — reproduce them exactly;
             paint contact shadows / reflections only into BLACK.
  printable  WHITE mask pixels are where the logo is printed — treat them as
             a rigid target; never recentre or complete a clipped logo.

The user-facing prompt is a structured JSON document (IMAGE_EDIT_V1) which
the image model follows more precisely than free prose.
"""

from __future__ import annotations

import json
from typing import Dict, Optional, Union

from .templates import PrintableTemplate, SceneTemplate

MAX_USER_PROMPT_CHARS = 500


SCENE_SYSTEM_INSTRUCTION = """\
**Role:**
You are an expert commercial product photographer and CGI lighting specialist.

**Inputs:**
1. A composite photo: a product already placed into a photographed scene.
2. A strictly black-and-white mask of the same size.

**Mask contract:**
- WHITE pixels are the product. Reproduce them pixel-for-pixel: do not alter, crop, recolour, \
relight or distort the product, its branding or its edges.
- BLACK pixels are the scene. Only here may you paint.

**Task:**
Integrate the product into the scene by adding realistic contact shadows, ambient occlusion and \
subtle reflections on the surface beneath and around it, matching the scene's existing light \
direction and colour temperature so the product looks physically grounded, not floating.

**Negative constraints:**
No text, no watermarks, no new objects, no change of camera angle or framing, no change to the \
product silhouette."""


PRINTABLE_SYSTEM_INSTRUCTION = """\
**Role:**
You are an expert print-production retoucher specialising in product mockups.

**Inputs:**
1. A composite photo: a blank manufactured object with a logo already laid onto it.
2. A strictly black-and-white mask of the same size.

**Mask contract:**
- WHITE pixels are the exact region the printed logo occupies on the object. Treat this region \
as a rigid geometry and lighting target: keep the logo's position, size and outline exactly \
where the mask puts it, bending the ink only to follow the surface curvature and material.
- If the logo is cut off by the mask edge, it is intentionally cropped by the object's printable \
area. Do NOT recentre it, do NOT rescale it, and do NOT invent or complete the missing part of \
the logo.
- BLACK pixels must remain unchanged.

**Task:**
Make the logo look physically printed on the object: ink absorption into the material, surface \
texture showing through, the object's own highlights and shading passing over the print.

**Negative constraints:**
No text other than what the logo contains, no watermarks, no additional logos, no change to the \
object's shape, colour or background."""


STYLE_PRESETS: Dict[str, Dict[str, str]] = {
    "minimalist": {
        "name": "Minimalist",
        "description": "Quiet high-key minimalism (Muji / Apple)",
        "prompt": (
            "Place the product on a clean, matte white podium. The background is a soft, abstract "
            "geometry with minimal details. Soft, diffused daylight coming from the left window. "
            "High-key lighting, airy atmosphere, clean lines. Style reference: Muji, Apple, "
            "Kinfolk magazine."
        ),
    },
    "luxury": {
        "name": "Luxury",
        "description": "Premium cosmetic advertising",
        "prompt": (
            "Place the product on a polished black marble surface with gold veining. The background "
            "is dark and moody with soft bokeh lights. Dramatic studio lighting, rim lighting "
            "highlighting the edges of the product. Elegant, expensive, premium look. Style "
            "reference: Chanel, high-end cosmetics advertisement."
        ),
    },
    "organic": {
        "name": "Organic",
        "description": "Fresh natural lifestyle",
        "prompt": (
            "Place the product on a rustic light oak wooden table. Surround the product with blurred "
            "green leaves and natural elements like stones or dried flowers in the background. "
            "Dappled sunlight filtering through trees (Gobo light effect). Warm, organic, fresh "
            "atmosphere. Style reference: Aesop, lifestyle photography."
        ),
    },
    "festival": {
        "name": "Festival",
        "description": "Seasonal celebration",
        "prompt": (
            "Place the product in a festive setting. Background features soft, out-of-focus warm "
            "fairy lights and colorful holiday decorations (but not overwhelming). Warm color "
            "palette (red, gold, orange). Joyful, inviting, celebration atmosphere. Perfect for a "
            "holiday sale poster."
        ),
    },
}


def system_instruction_for(template: Union[SceneTemplate, PrintableTemplate]) -> str:
    if isinstance(template, SceneTemplate):
        return SCENE_SYSTEM_INSTRUCTION
    if isinstance(template, PrintableTemplate):
        return PRINTABLE_SYSTEM_INSTRUCTION
    raise TypeError(f"unknown template kind: {type(template).__name__}")


def validate_user_prompt(user_prompt: Optional[str]) -> str:
    text = (user_prompt or "").strip()
    if len(text) > MAX_USER_PROMPT_CHARS:
        raise ValueError(f"edit instruction too long ({len(text)} > {MAX_USER_PROMPT_CHARS} chars)")
    return text


def build_edit_prompt(
    template: Union[SceneTemplate, PrintableTemplate],
    preset: Optional[str] = None,
    user_prompt: Optional[str] = None,
) -> str:
    """
    Build the JSON edit prompt for one generation attempt.

    template.generative_prompt is always included; a style preset and a
    free-text user instruction are appended when given.
    """
    if preset is not None and preset not in STYLE_PRESETS:
        raise ValueError(f"unknown style preset {preset!r} (choose from {', '.join(STYLE_PRESETS)})")
    extra = validate_user_prompt(user_prompt)

    if isinstance(template, SceneTemplate):
        mask_semantics = {
            "white": "product — preserve exactly",
            "black": "scene — add contact shadows and reflections here only",
        }
        constraints = [
            "keep every white-mask pixel identical",
            "match existing scene lighting direction",
            "no watermark",
        ]
    elif isinstance(template, PrintableTemplate):
        mask_semantics = {
            "white": "printed logo area — rigid position, size and outline",
            "black": "object and background — unchanged",
        }
        constraints = [
            "never recentre or rescale the logo",
            "never complete a logo cropped by the mask",
            "follow surface curvature and material",
            "no watermark",
        ]
    else:
        raise TypeError(f"unknown template kind: {type(template).__name__}")

    body: Dict[str, object] = {
        "task": "masked_image_edit",
        "mode": template.mode,
        "template": template.id,
        "scene_direction": template.generative_prompt,
        "mask": mask_semantics,
        "constraints": constraints,
        "output": {"aspect_ratio": "same as input", "format": "png"},
    }
    if preset is not None:
        body["style_preset"] = STYLE_PRESETS[preset]["prompt"]
    if extra:
        body["user_instruction"] = extra

    return json.dumps({"IMAGE_EDIT_V1": body}, indent=2, ensure_ascii=False)
