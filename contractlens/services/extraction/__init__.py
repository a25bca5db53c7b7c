"""
Extraction Services

Contract text extraction from PDF, DOCX and images: format detection,
native PDF/DOCX parsing, Claude Vision OCR (images and scanned PDFs),
validation and metadata.
"""

from .detector import (
    detect_file_format,
    image_media_type,
    FileFormat,
)
from .errors import (
    ExtractionError,
    FileTooLarge,
    UnsupportedFormat,
    PdfPasswordProtected,
    PdfStructureCorrupt,
    PdfWorkerUnavailable,
    DocxParseError,
    OcrServiceUnavailable,
    OcrQuotaExceeded,
    EmptyDocument,
    DocumentTooLong,
    ExtractionTimeout,
)
from .pdf_engine import PdfEngine, get_pdf_engine, shutdown_pdf_engine
from .pdf_extractor import PDFExtractor, PdfText
from .docx_extractor import DOCXExtractor
from .ocr_bridge import OcrBridge, OCR_PROMPT
from .normalizer import finalize, count_sections
from .orchestrator import (
    ExtractionOrchestrator,
    ExtractionState,
    extract_document,
    get_orchestrator,
)

__all__ = [
    # Format detection
    "detect_file_format",
    "image_media_type",
    "FileFormat",
    # Errors
    "ExtractionError",
    "FileTooLarge",
    "UnsupportedFormat",
    "PdfPasswordProtected",
    "PdfStructureCorrupt",
    "PdfWorkerUnavailable",
    "DocxParseError",
    "OcrServiceUnavailable",
    "OcrQuotaExceeded",
    "EmptyDocument",
    "DocumentTooLong",
    "ExtractionTimeout",
    # PDF extraction
    "PdfEngine",
    "get_pdf_engine",
    "shutdown_pdf_engine",
    "PDFExtractor",
    "PdfText",
    # DOCX extraction
    "DOCXExtractor",
    # OCR
    "OcrBridge",
    "OCR_PROMPT",
    # Validation
    "finalize",
    "count_sections",
    # Orchestration
    "ExtractionOrchestrator",
    "ExtractionState",
    "extract_document",
    "get_orchestrator",
]
