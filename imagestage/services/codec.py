"""Codec helpers: binary <-> base64 text and light-weight image probing.

Nothing here validates image content beyond what Pillow needs to read the
header: MIME sniffing for pasted data without a declared type and the pixel
size used to auto-fit the full-size viewer.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
import math
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from imagestage.errors import DecodeError
from imagestage.models import PendingImage

logger = logging.getLogger(__name__)

_VALID_IMAGE_PREFIX = "image/"
_DATA_URL_MARKER = ";base64,"


def is_image_type(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.lower().startswith(_VALID_IMAGE_PREFIX)


# ------------------------------------------------------------------
# Text encoding
# ------------------------------------------------------------------

def encode_bytes(data: bytes) -> str:
    """Return *data* as plain base64 text (no ``data:`` prefix)."""

    return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """Decode base64 text back to bytes.

    A ``data:<mime>;base64,`` prefix, as produced by browsers, is accepted and
    stripped. Malformed input raises :class:`DecodeError`.
    """

    if _DATA_URL_MARKER in payload:
        payload = payload.split(_DATA_URL_MARKER, 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload: {exc}") from exc


async def read_source(image: PendingImage) -> bytes:
    """Return the raw bytes of a pending image, reading from disk off-loop."""

    if image.data is not None:
        return image.data
    if image.path is None:
        raise DecodeError(f"Pending image {image.local_id} has no source")
    try:
        return await asyncio.to_thread(image.path.read_bytes)
    except OSError as exc:
        raise DecodeError(f"Could not read {image.path}: {exc}") from exc


async def encode_image(image: PendingImage) -> str:
    return encode_bytes(await read_source(image))


# ------------------------------------------------------------------
# MIME helpers
# ------------------------------------------------------------------

_MIME_TO_EXTENSION = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

_EXTENSION_TO_MIME = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


def extension_for(mime_type: str | None) -> str:
    return _MIME_TO_EXTENSION.get((mime_type or "").lower(), "png")


def guess_mime_type(name: str | None) -> str | None:
    if not name or "." not in name:
        return None
    return _EXTENSION_TO_MIME.get(name.rsplit(".", 1)[1].lower())


def sniff_mime_type(data: bytes) -> str | None:
    """Identify an image MIME type from its header, or ``None``."""

    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def image_size(data: bytes) -> Tuple[int, int]:
    """Return ``(width, height)`` in pixels."""

    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError(f"Cannot read image dimensions: {exc}") from exc


def format_file_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / math.pow(1024, exponent), 2)
    return f"{value:g} {units[exponent]}"
