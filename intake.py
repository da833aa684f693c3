from __future__ import annotations

import base64
import binascii
import mimetypes
import re
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from config import config
from errors import ValidationError

DATA_URI_PATTERN = re.compile(r"^data:([A-Za-z\-+/]+);base64,(.+)$", re.DOTALL)

# Content types we accept, mapped to the extension stored upstream
IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/svg+xml": "svg",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "image/avif": "avif",
}

# Latin, Arabic, CJK and accented Latin letters survive; everything else becomes "_"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_\u0600-\u06FF\u4e00-\u9fa5\u00C0-\u017F\s.\-]")


@dataclass
class ImagePayload:
    """Decoded upload ready to be handed to a storage backend."""

    data: bytes
    content_type: str
    extension: str
    original_name: str

    @property
    def size(self) -> int:
        return len(self.data)


def sanitize_filename(filename: str) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    cleaned = re.sub(r"\s+", "_", cleaned)
    return cleaned[:100]


def extension_for(content_type: Optional[str], filename: Optional[str] = None) -> Tuple[str, str]:
    """Resolve an upload's content type and extension against the allowlist.

    Browsers sometimes send ``application/octet-stream`` (or nothing) for
    multipart parts; in that case the type is guessed from the filename.
    Returns ``(content_type, extension)``.
    """
    content_type = (content_type or "").split(";")[0].strip().lower()

    if content_type in ("", "application/octet-stream") and filename:
        guessed, _ = mimetypes.guess_type(filename)
        content_type = (guessed or "").lower()

    extension = IMAGE_EXTENSIONS.get(content_type)
    if extension is None:
        raise ValidationError(f"Unsupported file type: {content_type or 'unknown'}")
    return content_type, extension


def decode_data_uri(value: str) -> Tuple[str, bytes]:
    match = DATA_URI_PATTERN.match(value.strip())
    if not match:
        raise ValidationError("Invalid file format")

    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"Invalid base64 payload: {exc}") from exc
    return match.group(1), data


def _check_size(data: bytes, limit: int) -> None:
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > limit:
        raise ValidationError(
            f"File size exceeds {limit / 1024 / 1024:.1f}MB limit "
            f"({len(data) / 1024 / 1024:.2f} MB)"
        )


def from_multipart(filename: Optional[str], content_type: Optional[str], data: bytes) -> ImagePayload:
    _check_size(data, config.MAX_FILE_SIZE)
    content_type, extension = extension_for(content_type, filename)
    original_name = sanitize_filename(filename) if filename else f"upload_{int(time.time() * 1000)}.{extension}"
    return ImagePayload(
        data=data,
        content_type=content_type,
        extension=extension,
        original_name=original_name,
    )


def from_data_uri(file: Optional[str], custom_name: Optional[str] = None) -> ImagePayload:
    if not file or not isinstance(file, str):
        raise ValidationError("No file provided")
    if custom_name is not None and not isinstance(custom_name, str):
        raise ValidationError("custom_name must be a string")

    content_type, data = decode_data_uri(file)
    _check_size(data, config.MAX_BASE64_FILE_SIZE)
    content_type, extension = extension_for(content_type)

    if custom_name:
        original_name = sanitize_filename(custom_name)
    else:
        original_name = f"upload_{int(time.time() * 1000)}.{extension}"

    return ImagePayload(
        data=data,
        content_type=content_type,
        extension=extension,
        original_name=original_name,
    )
