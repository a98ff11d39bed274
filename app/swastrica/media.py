"""Image payload helpers for multimodal backends."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

_DATA_URL_TYPES = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data_b64: str

    def as_inline_data(self) -> dict[str, dict[str, str]]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data_b64}}


def strip_data_url(value: str) -> str:
    value = value.strip()
    if value.startswith("data:") and "," in value:
        _, _, value = value.partition(",")
    return value


def detect_image_type(value: str) -> str:
    """Best-effort image subtype from a data URL prefix or magic bytes. Defaults to jpeg."""
    head = value.strip()[:40].lower()
    for prefix, subtype in _DATA_URL_TYPES.items():
        if head.startswith(f"data:{prefix}"):
            return subtype

    raw = strip_data_url(value)[:24]
    try:
        decoded = base64.b64decode(raw + "=" * (-len(raw) % 4), validate=False)
    except (binascii.Error, ValueError):
        return "jpeg"

    if decoded[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if decoded[:4] == b"\x89PNG":
        return "png"
    if decoded[:4] == b"RIFF" and decoded[8:12] == b"WEBP":
        return "webp"
    if decoded[:4] == b"GIF8":
        return "gif"
    return "jpeg"


def to_image_part(value: str, image_type: str | None = None) -> ImagePart:
    subtype = (image_type or "").strip().lower().removeprefix("image/") or detect_image_type(value)
    if subtype == "jpg":
        subtype = "jpeg"
    return ImagePart(mime_type=f"image/{subtype}", data_b64=strip_data_url(value))
