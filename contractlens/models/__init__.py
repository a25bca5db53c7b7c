"""
Data Models
"""

from contractlens.models.extraction_result import (
    ExtractionRequest,
    ExtractionMetadata,
    ExtractedDocument,
)

__all__ = [
    "ExtractionRequest",
    "ExtractionMetadata",
    "ExtractedDocument",
]
