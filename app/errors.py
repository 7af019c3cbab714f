"""Exceptions raised by the catalog services."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Catalog operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class MediaNotFoundError(CatalogError):
    status_code = 404
    default_message = "Media not found"

    def __init__(self, media_id: int | None = None):
        message = (
            f"Media {media_id} not found" if media_id is not None else None
        )
        super().__init__(message)
        self.media_id = media_id


class InvalidMediaTypeError(CatalogError):
    status_code = 400
    default_message = "Invalid media type"


class PatchValidationError(CatalogError):
    """Raised when a media update patch is malformed or carries no changes."""

    status_code = 422
    default_message = "Invalid media update"


class UnauthenticatedError(CatalogError):
    status_code = 401
    default_message = "Could not validate credentials"


class UpstreamUnavailableError(CatalogError):
    status_code = 503
    default_message = "Upstream service unavailable"
