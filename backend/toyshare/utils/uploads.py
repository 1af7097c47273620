"""Image upload validation and storage.

Uploads are checked by name, size and by actually decoding the bytes
with Pillow; the declared content type is not trusted.
"""

from __future__ import annotations

import io
import logging
import time
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError

_LOGGER = logging.getLogger("toyshare.uploads")

ALLOWED_FORMATS = {"JPEG": ".jpg", "PNG": ".png", "GIF": ".gif", "WEBP": ".webp"}


class UnsupportedUpload(ValueError):
    """Raised when an upload decodes to something other than an allowed image."""


def validate_upload_filename(filename: str) -> None:
    if not filename or len(filename) > 200:
        raise ValueError("invalid filename")
    if "/" in filename or "\\" in filename:
        raise ValueError("invalid filename path")


def sniff_image(payload: bytes) -> str:
    """Return the file extension for an allowed image payload.

    Raises `UnsupportedUpload` if Pillow cannot identify the bytes or the
    format is not one of `ALLOWED_FORMATS`.
    """
    try:
        with Image.open(io.BytesIO(payload)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise UnsupportedUpload("unsupported file content; expected an image") from exc
    ext = ALLOWED_FORMATS.get(fmt or "")
    if not ext:
        raise UnsupportedUpload(f"unsupported image format: {fmt}")
    return ext


def save_image(payload: bytes, upload_dir: Path, prefix: str = "profile") -> str:
    """Validate and persist `payload`, returning its public `/uploads/...` path."""
    ext = sniff_image(payload)
    upload_dir.mkdir(parents=True, exist_ok=True)
    name = f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"
    (upload_dir / name).write_bytes(payload)
    _LOGGER.info("saved upload %s (%d bytes)", name, len(payload))
    return f"/uploads/{name}"
