"""
templates.py — Template catalog (scene + printable) and lookup.

Two template kinds, discriminated on ``mode``:

  scene      — product photo placed into a photographed environment.
               background.png under the product, optional overlay.png
               multiplied over the whole scene for light falloff.
  printable  — logo printed onto a blank manufactured object (mug, box lid).
               blank.png plus an optional printable-area mask (white = printable).

Asset locations are either http(s) URLs or paths relative to the asset root
(``mockups/`` by default). Templates are immutable once loaded.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import TemplateNotFoundError

logger = logging.getLogger(__name__)


class PlacementDefaults(BaseModel):
    """Per-template override of the default placement. Missing fields use mode defaults."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    x: Optional[float] = None
    y: Optional[float] = None
    scale: Optional[float] = None


class _TemplateBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    name: str = ""
    category: Optional[str] = None
    thumbnail: Optional[str] = None
    background: str = Field(description="Scene photo or blank-object photo")
    silhouette_mask: Optional[str] = Field(
        default=None,
        description="Object silhouette / printable area. PNG with alpha preferred; "
                    "opaque black-and-white images are normalized by luma.",
    )
    generative_prompt: str = ""
    default_placement: Optional[PlacementDefaults] = None


class SceneTemplate(_TemplateBase):
    mode: Literal["scene"] = "scene"
    overlay: Optional[str] = None

    def asset_locations(self) -> Dict[str, Optional[str]]:
        return {
            "background": self.background,
            "overlay": self.overlay,
            "silhouette_mask": self.silhouette_mask,
        }


class PrintableTemplate(_TemplateBase):
    mode: Literal["printable"] = "printable"

    # Alpha normalization / intersection tuning. Kept per template: a dark
    # ceramic mug and a white cardboard lid need different luma cut-offs.
    silhouette_luma_threshold: int = Field(default=40, ge=0, le=255)
    intersection_luma_threshold: int = Field(default=10, ge=0, le=255)
    footprint_alpha_threshold: int = Field(default=10, ge=0, le=255)
    white_key_threshold: int = Field(default=240, ge=0, le=255)
    footprint_dilation_radius: float = Field(default=3.0, ge=0.0)
    ink_opacity: float = Field(default=0.9, ge=0.0, le=1.0)

    def asset_locations(self) -> Dict[str, Optional[str]]:
        return {
            "background": self.background,
            "silhouette_mask": self.silhouette_mask,
        }


Template = Annotated[Union[SceneTemplate, PrintableTemplate], Field(discriminator="mode")]


class TemplateCatalog(BaseModel):
    templates: List[Template]


# ── Built-in catalog ──────────────────────────────────────────────────────────

BUILTIN_TEMPLATES: List[Union[SceneTemplate, PrintableTemplate]] = [
    SceneTemplate(
        id="desk-wood-1",
        name="Wooden desk",
        category="desktop",
        thumbnail="desk-wood-1/thumbnail.png",
        background="desk-wood-1/background.png",
        overlay="desk-wood-1/overlay.png",
        generative_prompt=(
            "Natural morning sunlight from the left, cast sharp diagonal contact shadows on "
            "the wooden surface to the right. Realistic wooden texture reflections. Warm and "
            "cozy atmosphere. Ensure the product feels grounded."
        ),
    ),
    SceneTemplate(
        id="minimal-white-1",
        name="Minimal white",
        category="minimal",
        thumbnail="minimal-white-1/thumbnail.png",
        background="minimal-white-1/background.png",
        overlay="minimal-white-1/overlay.png",
        generative_prompt=(
            "Soft diffused studio lighting from top-left, creating gentle and smooth contact "
            "shadows beneath the product. Pure white marble surface with subtle reflections. "
            "Clean, bright, high-key photography style."
        ),
    ),
    PrintableTemplate(
        id="printable-mug-1",
        name="Printed mug",
        category="mug",
        thumbnail="printable/mug-1/thumbnail.png",
        background="printable/mug-1/blank.png",
        silhouette_mask="printable/mug-1/mask.png",
        generative_prompt=(
            "The logo is printed on the ceramic mug surface, following the curve, with "
            "realistic glossy reflection and subtle ceramic texture. High precision printing."
        ),
    ),
    PrintableTemplate(
        id="printable-box-lid-base-1",
        name="White lid-and-base gift box",
        category="packaging",
        thumbnail="printable/box-lid-base-1/thumbnail.png",
        background="printable/box-lid-base-1/blank.png",
        silhouette_mask="printable/box-lid-base-1/mask.png",
        generative_prompt=(
            "The design is printed directly onto the top surface of the matte white cardboard "
            "lid. The print has a flat, non-glossy finish that integrates with the subtle paper "
            "texture, showing slight ink absorption under natural studio lighting."
        ),
    ),
]


# ── Registry ──────────────────────────────────────────────────────────────────

class TemplateRegistry:
    """Read-only id → template lookup."""

    def __init__(self, templates: Iterable[Union[SceneTemplate, PrintableTemplate]]) -> None:
        self._by_id: Dict[str, Union[SceneTemplate, PrintableTemplate]] = {}
        for t in templates:
            if t.id in self._by_id:
                raise ValueError(f"duplicate template id: {t.id}")
            self._by_id[t.id] = t

    @classmethod
    def builtin(cls) -> "TemplateRegistry":
        return cls(BUILTIN_TEMPLATES)

    @classmethod
    def from_file(cls, path: Path) -> "TemplateRegistry":
        """Load a JSON catalog: {"templates": [{"id": ..., "mode": "scene" | "printable", ...}]}"""
        catalog = TemplateCatalog.model_validate(json.loads(path.read_text(encoding="utf-8")))
        logger.info(f"Loaded {len(catalog.templates)} template(s) from {path}")
        return cls(catalog.templates)

    @classmethod
    def from_settings(cls, templates_path: Optional[Path]) -> "TemplateRegistry":
        if templates_path is None:
            return cls.builtin()
        return cls.from_file(templates_path)

    def lookup(self, template_id: str) -> Union[SceneTemplate, PrintableTemplate]:
        try:
            return self._by_id[template_id]
        except KeyError:
            raise TemplateNotFoundError(
                f"unknown template id: {template_id!r}",
                user_message=f"Template '{template_id}' does not exist.",
            ) from None

    def ids(self) -> List[str]:
        return list(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)
