"""
File Format Detector

Classifies an upload into PDF, DOCX, IMAGE or UNSUPPORTED from its declared
MIME type, falling back to the filename extension.
"""

import os
from enum import Enum
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Formats the extraction pipeline can route."""
    PDF = "pdf"
    DOCX = "docx"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}

# Media types Claude Vision accepts for images
OCR_IMAGE_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

IMAGE_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


def _mime_base(content_type: Optional[str]) -> str:
    # "application/pdf; charset=utf-8" -> "application/pdf"
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


def _extension(filename: Optional[str]) -> str:
    _, ext = os.path.splitext((filename or "").lower())
    return ext


def detect_file_format(
    filename: Optional[str],
    content_type: Optional[str] = None
) -> FileFormat:
    """
    Detect file format from MIME type and filename extension.

    A format matches if EITHER its MIME type or its extension matches.
    Precedence when several would match: PDF > DOCX > IMAGE.

    Args:
        filename: Name of the uploaded file (with extension)
        content_type: Declared MIME type, may be empty

    Returns:
        Detected FileFormat enum value
    """
    mime = _mime_base(content_type)
    ext = _extension(filename)

    if mime == PDF_MIME_TYPE or ext == ".pdf":
        detected = FileFormat.PDF
    elif mime == DOCX_MIME_TYPE or ext == ".docx":
        detected = FileFormat.DOCX
    elif mime.startswith("image/") or ext in IMAGE_EXTENSIONS:
        detected = FileFormat.IMAGE
    else:
        logger.warning("unsupported_format", filename=filename, content_type=content_type)
        return FileFormat.UNSUPPORTED

    logger.debug(
        "format_detected",
        filename=filename,
        content_type=content_type,
        format=detected.value,
    )
    return detected


def image_media_type(
    filename: Optional[str],
    content_type: Optional[str] = None
) -> Optional[str]:
    """
    Media type to declare when sending an image to OCR.

    A declared type Claude Vision accepts (JPEG, PNG, GIF, WebP) is passed
    through; otherwise the type comes from a .jpg/.jpeg/.png extension.

    Returns:
        The media type, or None when the image cannot be sent to OCR
        (e.g. image/tiff or image/heic without a JPEG/PNG extension)
    """
    mime = _mime_base(content_type)
    if mime == "image/jpg":
        mime = "image/jpeg"
    if mime in OCR_IMAGE_MEDIA_TYPES:
        return mime
    return IMAGE_MEDIA_TYPES.get(_extension(filename))


__all__ = [
    "FileFormat",
    "PDF_MIME_TYPE",
    "DOCX_MIME_TYPE",
    "detect_file_format",
    "image_media_type",
]
