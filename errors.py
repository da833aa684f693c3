from __future__ import annotations


class GalleryError(Exception):
    """Base error carrying the HTTP status it should be rendered with."""

    status_code = 500
    error = "Request failed"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class ValidationError(GalleryError):
    status_code = 400
    error = "Invalid request"


class NotFoundError(GalleryError):
    status_code = 404
    error = "Image not found"


class UnsupportedOperation(GalleryError):
    status_code = 405
    error = "Operation not supported"


class DuplicateShortCode(GalleryError):
    status_code = 409
    error = "Short code already exists"


class UpstreamError(GalleryError):
    status_code = 500
    error = "Upload failed"


class RevisionConflict(UpstreamError):
    """The remote file changed between read and write (stale sha)."""


class InternalError(GalleryError):
    status_code = 500
    error = "Internal server error"


class CodeGenerationExhausted(InternalError):
    error = "Failed to generate unique short code"


class ConfigurationError(InternalError):
    error = "Server misconfigured"
