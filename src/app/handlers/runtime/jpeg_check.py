from __future__ import annotations

import base64

from src.storage.models import IMAGE_CONTENT_PREFIX

JPEG_SOI = b"\xff\xd8"
JPEG_EOI = b"\xff\xd9"


def is_jpeg_bytes(data: bytes) -> bool:
    """Check the JPEG start-of-image and end-of-image markers."""

    return len(data) >= 4 and data.startswith(JPEG_SOI) and data.endswith(JPEG_EOI)


def to_image_content(data: bytes) -> str:
    return IMAGE_CONTENT_PREFIX + base64.b64encode(data).decode("ascii")
