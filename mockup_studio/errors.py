"""
errors.py — Error taxonomy for the mockup engine.

Fatal errors (template / asset / mask) abort an attempt before any visible
state changes. Recoverable errors (quota / generation) are raised after the
session has restored its undo snapshot. UploadFailure never reaches the user.
"""

from __future__ import annotations


class MockupStudioError(Exception):
    """Base class. ``user_message`` is safe to show as-is."""

    user_message = "Something went wrong."

    def __init__(self, detail: str = "", user_message: str = "") -> None:
        super().__init__(detail or user_message or self.user_message)
        if user_message:
            self.user_message = user_message


class TemplateNotFoundError(MockupStudioError):
    user_message = "That template does not exist."


class AssetLoadError(MockupStudioError):
    user_message = "The template background could not be loaded."


class MaskSynthesisError(MockupStudioError):
    user_message = "The editable-region mask could not be rendered."


class QuotaExceededError(MockupStudioError):
    """Raised when Gemini returns 429 / RESOURCE_EXHAUSTED."""

    user_message = "The image model quota is exhausted. Please retry later."


class GenerationFailure(MockupStudioError):
    user_message = "Image generation failed. Please try again."


class UploadFailure(MockupStudioError):
    user_message = "The image could not be saved to the cloud."


class GenerationInProgressError(MockupStudioError):
    user_message = "A generation is already running."


class NothingToUndoError(MockupStudioError):
    user_message = "Nothing to undo."
