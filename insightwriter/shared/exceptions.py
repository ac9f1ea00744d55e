"""
Error taxonomy for the orchestration pipeline.

Slots that can degrade independently (a single article summary, a single
image) recover locally; everything else surfaces as a terminal pipeline error.
"""
from typing import Optional


class AppBaseError(Exception):
    """Root of all insightwriter errors."""

    def __init__(self, message: str = "", detail: str = ""):
        self.detail = detail
        super().__init__(message)


class ConfigError(AppBaseError):
    """Model or image-generation credentials missing or incomplete."""


class ModelCallError(AppBaseError):
    """Chat-completion endpoint returned non-success or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message, detail=body)


class ModelParseError(AppBaseError):
    """Model text was not JSON, or JSON that does not match the schema."""


class ImageSynthesisError(AppBaseError):
    """A single image generation request failed."""


class PersistenceError(AppBaseError):
    """Saving the finished article failed."""


class NotFoundError(AppBaseError):
    """Referenced search record or source articles do not exist."""


class InvalidRequestError(AppBaseError):
    """Request is missing a required field (insight, keyword, searchId)."""
