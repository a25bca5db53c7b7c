"""
Text Normalizer / Validator

Turns raw extractor output into an ExtractedDocument: trims whitespace,
rejects empty or oversized text, counts legal section headings and builds
the head/tail previews shown next to the upload.
"""

import math
import re
from typing import Optional

import structlog

from contractlens.config import settings
from contractlens.models.extraction_result import ExtractedDocument, ExtractionMetadata
from contractlens.services.extraction.errors import DocumentTooLong, EmptyDocument


logger = structlog.get_logger(__name__)


# Line-start headings: "ARTICLE 1", "Section 12", "PART 3", "IV.", "3.4 ..."
SECTION_PATTERN = re.compile(
    r"^((ARTICLE|SECTION|PART)\s+\d+|[IVXLCDM]+\.|[0-9]+\.\d+)",
    re.IGNORECASE | re.MULTILINE,
)

DOCX_CHARS_PER_PAGE = 3000
ELLIPSIS = "..."


def count_sections(text: str) -> int:
    return len(SECTION_PATTERN.findall(text))


def estimate_docx_pages(char_count: int) -> int:
    """DOCX has no page model; estimate one page per 3000 characters."""
    return max(1, math.ceil(char_count / DOCX_CHARS_PER_PAGE))


def build_previews(text: str, length: int) -> tuple:
    """Head and tail snippets, marked with an ellipsis when clipped."""
    if len(text) <= length:
        return text, text
    return text[:length] + ELLIPSIS, ELLIPSIS + text[-length:]


def finalize(
    raw_text: str,
    page_hint: Optional[int],
    source_format: str,
    extraction_method: str,
    pages_processed: Optional[int] = None,
    truncated: bool = False,
    ocr_fallback: bool = False,
    max_text_length: Optional[int] = None,
    preview_length: Optional[int] = None,
) -> ExtractedDocument:
    """
    Validate extracted text and compute its metadata.

    Args:
        raw_text: Extractor output
        page_hint: True page count when the extractor knows it (PDF); None
                   means estimate from character count (DOCX)
        source_format: pdf, docx or image
        extraction_method: pymupdf, python_docx or ocr
        pages_processed: Pages actually read (defaults to the page count)
        truncated: Page cap was hit
        ocr_fallback: Scanned-PDF OCR path was taken
        max_text_length: Character ceiling (default settings.max_text_length)
        preview_length: Preview slice length (default settings.preview_length)

    Raises:
        EmptyDocument: Nothing but whitespace was extracted
        DocumentTooLong: Text exceeds the ceiling (never silently clipped)
    """
    max_text_length = max_text_length or settings.max_text_length
    preview_length = preview_length or settings.preview_length

    text = (raw_text or "").strip()

    if not text:
        logger.warning("empty_document", source_format=source_format)
        raise EmptyDocument()

    if len(text) > max_text_length:
        logger.warning(
            "document_too_long",
            source_format=source_format,
            length=len(text),
            limit=max_text_length,
        )
        raise DocumentTooLong(len(text), max_text_length)

    pages_detected = page_hint if page_hint else estimate_docx_pages(len(text))
    preview_start, preview_end = build_previews(text, preview_length)

    metadata = ExtractionMetadata(
        pages_detected=pages_detected,
        characters_extracted=len(text),
        sections_detected=count_sections(text),
        preview_start=preview_start,
        preview_end=preview_end,
        source_format=source_format,
        extraction_method=extraction_method,
        pages_processed=pages_processed or pages_detected,
        truncated=truncated,
        ocr_fallback=ocr_fallback,
    )

    logger.info(
        "document_finalized",
        source_format=source_format,
        pages_detected=metadata.pages_detected,
        characters=metadata.characters_extracted,
        sections=metadata.sections_detected,
    )
    return ExtractedDocument(text=text, metadata=metadata)


__all__ = [
    "finalize",
    "count_sections",
    "estimate_docx_pages",
    "build_previews",
    "SECTION_PATTERN",
]
