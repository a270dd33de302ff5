"""
session.py — One editing session: template, foreground, placement, generations.

All editor state lives on an EditSession instance; nothing is module-global.

Generation lifecycle:

  Idle ──generate()──► compose + mask        (fatal errors raise here, nothing changed)
                       capture UndoSnapshot   (single slot, last write wins)
                       InFlight ──editor.edit() in executor
                         ├─ ok     → working image = result (visible now)
                         │           background task: host.upload → image.url
                         └─ error  → working image = snapshot, re-raise
                                     QuotaExceededError | GenerationFailure
  undo() ──► working image = snapshot (slot cleared) | NothingToUndoError

The snapshot always holds bytes: before the first generation it is the live
composite as rendered for that call, so later pans cannot change it.

A second generate() while one is in flight raises GenerationInProgressError.
Switching template while in flight lets the call finish but drops its result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Dict, Optional, Protocol, Set, Union

from .assets import Fetcher, TemplateAssets, load_foreground, load_template_assets
from .compositor import CompositeResult, compose
from .config import Settings
from .errors import (
    GenerationFailure,
    GenerationInProgressError,
    MaskSynthesisError,
    NothingToUndoError,
    QuotaExceededError,
    UploadFailure,
)
from .gemini_client import Caption, GeminiEditClient
from .image_host import ImageHost
from .placement import PlacementTransform, default_placement
from .prompts import build_edit_prompt, system_instruction_for
from .raster import RasterBuffer
from .templates import PrintableTemplate, SceneTemplate, TemplateRegistry

logger = logging.getLogger(__name__)


class ImageEditor(Protocol):
    def edit(self, composite_png: bytes, mask_png: bytes, prompt: str, system_instruction: str) -> bytes: ...

    def suggest_caption(self, image_bytes: bytes, notes: str = "") -> Caption: ...


class Uploader(Protocol):
    def upload(self, data: bytes, mime: str = "image/png") -> str: ...


@dataclass
class WorkingImage:
    """
    The image the user is looking at once a generation has happened.

    ``generated`` is False for a restored pre-generation composite; placement
    edits drop such an image so the live preview shows again. ``url`` is
    filled in once the durable copy exists.
    """
    data: bytes
    url: Optional[str] = None
    generated: bool = True


@dataclass(frozen=True)
class UndoSnapshot:
    image: WorkingImage


class EditSession:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[TemplateRegistry] = None,
        editor: Optional[ImageEditor] = None,
        host: Optional[Uploader] = None,
        fetch: Optional[Fetcher] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or TemplateRegistry.from_settings(self.settings.templates_path)
        self._editor = editor
        self.host = host
        if self.host is None and self.settings.upload_url:
            self.host = ImageHost(self.settings.upload_url, self.settings.upload_token, self.settings.http_timeout)
        self._fetch = fetch

        self.template: Optional[Union[SceneTemplate, PrintableTemplate]] = None
        self.assets: Optional[TemplateAssets] = None
        self.foreground: Optional[RasterBuffer] = None
        self.placement = PlacementTransform()
        self.working_image: Optional[WorkingImage] = None
        self.undo_slot: Optional[UndoSnapshot] = None

        self._asset_cache: Dict[str, TemplateAssets] = {}
        self._in_flight = False
        # bumped on every template switch; an attempt started under an older
        # epoch no longer owns the session state
        self._epoch = 0
        self._background: Set[asyncio.Task] = set()

    # ── Setup ─────────────────────────────────────────────────────────────────

    @property
    def editor(self) -> ImageEditor:
        if self._editor is None:
            if not self.settings.gemini_api_key:
                raise GenerationFailure(
                    "GEMINI_API_KEY not set",
                    user_message="Image generation is not configured.",
                )
            self._editor = GeminiEditClient(
                api_key=self.settings.gemini_api_key,
                model=self.settings.edit_model,
                caption_model=self.settings.caption_model,
                timeout=self.settings.edit_timeout,
            )
        return self._editor

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def select_template(self, template_id: str) -> TemplateAssets:
        """
        Make template_id the active template.

        Assets are loaded once per session and cached. Switching template
        resets placement to the template default and discards generated
        images, which belonged to the previous template. A generation still
        in flight keeps running, but its result is dropped.
        """
        template = self.registry.lookup(template_id)
        assets = self._asset_cache.get(template.id)
        if assets is None:
            assets = await load_template_assets(
                template,
                asset_root=self.settings.asset_root,
                timeout=self.settings.http_timeout,
                fetch=self._fetch,
            )
            self._asset_cache[template.id] = assets

        self.template = template
        self.assets = assets
        self.placement = default_placement(template)
        self.working_image = None
        self.undo_slot = None
        self._epoch += 1
        logger.info(f"Template → {template.id} ({template.mode})")
        return assets

    async def set_foreground(self, location: str) -> RasterBuffer:
        self.foreground = await load_foreground(location, timeout=self.settings.http_timeout, fetch=self._fetch)
        self._drop_restored_composite()
        logger.info(f"Foreground loaded: {self.foreground.width}×{self.foreground.height}")
        return self.foreground

    # ── Placement ─────────────────────────────────────────────────────────────

    def _drop_restored_composite(self) -> None:
        if self.working_image is not None and not self.working_image.generated:
            self.working_image = None

    def set_placement(self, x: float, y: float, scale: float) -> PlacementTransform:
        self.placement = PlacementTransform(x=x, y=y, scale=scale)
        self._drop_restored_composite()
        return self.placement

    def pan(self, dx: float, dy: float, rendered_width: float, rendered_height: float) -> PlacementTransform:
        self.placement = self.placement.panned(dx, dy, rendered_width, rendered_height)
        self._drop_restored_composite()
        return self.placement

    def zoom(self, factor: float) -> PlacementTransform:
        self.placement = self.placement.zoomed(factor)
        self._drop_restored_composite()
        return self.placement

    # ── Rendering ─────────────────────────────────────────────────────────────

    def preview(self) -> CompositeResult:
        """Composite + mask for the current state."""
        if self.assets is None:
            raise MaskSynthesisError("no template selected", user_message="Choose a template first.")
        if self.foreground is None:
            raise MaskSynthesisError("no foreground loaded", user_message="Upload a product image first.")
        return compose(self.assets, self.foreground, self.placement, self.settings.max_dimension)

    def current_image(self) -> bytes:
        """PNG bytes of what the user currently sees."""
        if self.working_image is not None:
            return self.working_image.data
        return self.preview().image.to_png()

    # ── Generation ────────────────────────────────────────────────────────────

    async def generate(self, preset: Optional[str] = None, user_prompt: Optional[str] = None) -> WorkingImage:
        if self._in_flight:
            raise GenerationInProgressError("generate() called while an attempt is in flight")

        # everything that can fail fatally happens before state changes
        composite = self.preview()
        prompt = build_edit_prompt(self.template, preset=preset, user_prompt=user_prompt)
        system_instruction = system_instruction_for(self.template)
        composite_png = composite.image.to_png()
        mask_png = composite.mask.to_png()

        snapshot = UndoSnapshot(self.working_image or WorkingImage(data=composite_png, generated=False))
        self.undo_slot = snapshot
        epoch = self._epoch
        self._in_flight = True
        logger.info(f"Generating {self.template.id} at {composite.size[0]}×{composite.size[1]}")
        try:
            loop = asyncio.get_running_loop()
            try:
                data = await loop.run_in_executor(
                    None,
                    partial(
                        self.editor.edit,
                        composite_png=composite_png,
                        mask_png=mask_png,
                        prompt=prompt,
                        system_instruction=system_instruction,
                    ),
                )
                RasterBuffer.from_bytes(data)
            except QuotaExceededError:
                self._restore(snapshot, epoch)
                logger.warning("Generation hit quota — snapshot restored")
                raise
            except GenerationFailure:
                self._restore(snapshot, epoch)
                logger.warning("Generation failed — snapshot restored")
                raise
            except Exception as exc:
                self._restore(snapshot, epoch)
                logger.warning(f"Generation failed ({exc}) — snapshot restored")
                raise GenerationFailure(str(exc)) from exc
        finally:
            self._in_flight = False

        image = WorkingImage(data=data)
        if epoch != self._epoch:
            logger.info("Template changed during generation — result discarded")
            return image
        self.working_image = image
        logger.info(f"Generation ✓ {len(data)} bytes")
        if self.host is not None:
            self._spawn(self._persist(image))
        return image

    def _restore(self, snapshot: UndoSnapshot, epoch: int) -> None:
        if epoch == self._epoch:
            self.working_image = snapshot.image

    def undo(self) -> WorkingImage:
        """Restore the image from before the last generate(). Returns the restored image."""
        if self.undo_slot is None:
            raise NothingToUndoError()
        self.working_image = self.undo_slot.image
        self.undo_slot = None
        logger.info("Undo → restored pre-generation image")
        return self.working_image

    async def suggest_caption(self, notes: str = "") -> Caption:
        image_bytes = self.current_image()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self.editor.suggest_caption, image_bytes, notes))

    # ── Background upload ─────────────────────────────────────────────────────

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist(self, image: WorkingImage) -> None:
        loop = asyncio.get_running_loop()
        try:
            image.url = await loop.run_in_executor(None, self.host.upload, image.data)
        except UploadFailure as exc:
            # the in-memory image stays usable without a durable copy
            logger.warning(f"Durable upload failed: {exc}")

    async def wait_for_uploads(self) -> None:
        """Await outstanding background uploads (CLI exit, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background))
