"""
Extraction Result Models

Pydantic models for the extraction pipeline's input and output.
Serialized field names are camelCase, matching what the upload UI and the
analysis stage consume.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExtractionRequest(BaseModel):
    """An uploaded file, consumed by one extraction call and then discarded."""

    data: bytes = Field(repr=False, description="Raw file bytes")
    mime_type: Optional[str] = Field(
        default=None,
        description="Declared MIME type from the upload, may be empty"
    )
    filename: str = Field(default="", description="Original filename")

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ExtractionMetadata(BaseModel):
    """Structural facts about the extracted text."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pages_detected: int = Field(
        ge=1,
        description="True page count (PDF), estimated (DOCX) or 1 (image)"
    )
    characters_extracted: int = Field(ge=0, description="Length of the final text")
    sections_detected: int = Field(
        ge=0,
        description="Lines starting with an ARTICLE/SECTION/PART number, roman numeral or n.n clause"
    )
    preview_start: str = Field(description="Head of the text for UI display")
    preview_end: str = Field(description="Tail of the text for UI display")
    source_format: Literal["pdf", "docx", "image"] = Field(
        description="Sniffed input format"
    )
    extraction_method: Literal["pymupdf", "python_docx", "ocr"] = Field(
        description="How the final text was produced"
    )
    pages_processed: int = Field(
        ge=1,
        description="Pages actually read; below pages_detected when the page cap applied"
    )
    truncated: bool = Field(default=False, description="Page cap was hit")
    ocr_fallback: bool = Field(
        default=False,
        description="PDF had no usable embedded text and was OCR'd instead"
    )


class ExtractedDocument(BaseModel):
    """Normalized text plus metadata, handed to the analysis stage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = Field(min_length=1, description="Normalized document text")
    metadata: ExtractionMetadata
