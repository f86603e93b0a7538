"""Validation for cover images attached to the book metadata."""

from __future__ import annotations

import logging

from ..editor.document_model import CoverImage

__all__ = ["COVER_MAX_BYTES", "CoverTooLargeError", "ingest_cover"]

LOGGER = logging.getLogger(__name__)

COVER_MAX_BYTES = 2 * 1024 * 1024


class CoverTooLargeError(ValueError):
    """Raised when a cover upload exceeds the size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Cover image is {size} bytes; the limit is {limit} bytes")
        self.size = size
        self.limit = limit


def ingest_cover(data: bytes, mime_type: str, *, max_bytes: int = COVER_MAX_BYTES) -> CoverImage:
    """Validate an uploaded cover and wrap it as :class:`CoverImage`.

    Raises:
        CoverTooLargeError: If ``data`` is larger than ``max_bytes``.
        ValueError: If ``mime_type`` is not an image type or ``data`` is empty.
    """

    payload = bytes(data)
    if len(payload) > max_bytes:
        LOGGER.warning("Rejected cover upload: %d bytes exceeds %d", len(payload), max_bytes)
        raise CoverTooLargeError(len(payload), max_bytes)
    normalized = (mime_type or "").strip().lower()
    if not normalized.startswith("image/"):
        raise ValueError(f"Unsupported cover type: {mime_type!r}")
    if not payload:
        raise ValueError("Cover image is empty")
    return CoverImage(data=payload, mime_type=normalized)
