# apps/backend/services/avatars.py
"""
Avatar processing for promoter photos.

Images over MAX_AVATAR_BYTES are downscaled to MAX_AVATAR_SIDE and
re-encoded as JPEG, first at quality 70 then at 50.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from apps.backend.services.core_service import CoreError

log = logging.getLogger("canwin.avatars")

MAX_AVATAR_BYTES = 300 * 1024
MAX_AVATAR_SIDE = 400
JPEG_QUALITIES = (70, 50)

_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
}


@dataclass(frozen=True)
class AvatarImage:
    content: bytes
    content_type: str
    extension: str
    compressed: bool


def decode_base64_image(payload: str) -> bytes:
    """
    Accepts raw base64 or a `data:image/...;base64,` URL.
    """
    if not payload:
        raise CoreError("Please upload your photo", 400)
    data = payload
    if data.startswith("data:"):
        header, _, data = data.partition(",")
        if not header.startswith("data:image/"):
            raise CoreError("Please select an image file", 400)
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise CoreError("Avatar is not valid base64", 400) from None


def _open_image(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except Image.DecompressionBombError:
        raise CoreError("Image dimensions are too large", 400) from None
    except (UnidentifiedImageError, OSError):
        raise CoreError("Please select an image file", 400) from None
    return img


def fit_within(width: int, height: int, max_side: int = MAX_AVATAR_SIDE) -> Tuple[int, int]:
    """
    Scale (width, height) so the longer side is at most max_side.
    """
    if width > height and width > max_side:
        return max_side, max(1, round(height * max_side / width))
    if height > max_side:
        return max(1, round(width * max_side / height)), max_side
    return width, height


def compress_avatar(raw: bytes) -> AvatarImage:
    """
    Validate an uploaded avatar and shrink it under MAX_AVATAR_BYTES if needed.
    """
    img = _open_image(raw)
    fmt = (img.format or "").upper()

    # small files in a web format are stored untouched; anything else is re-encoded
    if len(raw) <= MAX_AVATAR_BYTES and fmt in _EXTENSIONS:
        content_type = Image.MIME.get(fmt, "image/jpeg")
        return AvatarImage(content=raw, content_type=content_type, extension=_EXTENSIONS[fmt], compressed=False)

    size = fit_within(*img.size)
    resized = img.convert("RGB").resize(size, Image.LANCZOS)

    for quality in JPEG_QUALITIES:
        buf = io.BytesIO()
        resized.save(buf, format="JPEG", quality=quality)
        out = buf.getvalue()
        if len(out) <= MAX_AVATAR_BYTES:
            log.info("Compressed avatar %d -> %d bytes (q=%d, %sx%s)", len(raw), len(out), quality, *size)
            return AvatarImage(content=out, content_type="image/jpeg", extension="jpg", compressed=True)

    raise CoreError("Image must be less than 300KB. Please choose a smaller image.", 400)


def avatar_file_name(owner_id: str, extension: str, now: Optional[float] = None) -> str:
    ms = int((now if now is not None else time.time()) * 1000)
    return f"{owner_id}-{ms}.{extension}"


async def store_avatar(repo: Any, owner_id: str, payload: str) -> Tuple[str, str]:
    """
    Decode, compress and upload. Returns (public_url, file_name).
    """
    avatar = compress_avatar(decode_base64_image(payload))
    file_name = avatar_file_name(owner_id, avatar.extension)
    try:
        url = await repo.upload_avatar(file_name, avatar.content, avatar.content_type)
    except Exception as e:
        log.error("Avatar upload failed for %s: %s", owner_id, e)
        raise CoreError("Failed to upload photo. Please try again.", 502)
    return url, file_name
