"""
Extraction Failure Taxonomy

Every way an extraction call can fail maps to exactly one ExtractionError
subclass. Each carries a stable machine code, a human-readable message safe
to show to the uploader, and whether the caller may sensibly retry.
"""

from typing import Optional


class ExtractionError(Exception):
    """Base class for all terminal extraction failures."""

    code: str = "extraction_failed"
    user_message: str = "Could not extract text from this file."
    retryable: bool = False
    http_status: int = 422

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.user_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class FileTooLarge(ExtractionError):
    code = "file_too_large"
    user_message = "File size exceeds 10MB limit. Please upload a smaller file."
    http_status = 413

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        limit_mb = limit_bytes / (1024 * 1024)
        super().__init__(
            f"File size exceeds {limit_mb:g}MB limit. Please upload a smaller file."
        )


class UnsupportedFormat(ExtractionError):
    code = "unsupported_format"
    user_message = "Unsupported file type. Please upload PDF, DOCX, JPG, or PNG."
    http_status = 415


class PdfPasswordProtected(ExtractionError):
    code = "pdf_password_protected"
    user_message = "PDF is password protected."


class PdfStructureCorrupt(ExtractionError):
    code = "pdf_structure_corrupt"
    user_message = "Failed to parse PDF."


class PdfWorkerUnavailable(ExtractionError):
    code = "pdf_worker_unavailable"
    user_message = "PDF Worker Error: Could not load PDF processor. Please try again."
    retryable = True
    http_status = 503


class DocxParseError(ExtractionError):
    code = "docx_parse_error"
    user_message = "Failed to parse Word document."


class OcrServiceUnavailable(ExtractionError):
    code = "ocr_service_unavailable"
    user_message = "Text recognition is temporarily unavailable. Please try again."
    retryable = True
    http_status = 503

    def __init__(self, message: Optional[str] = None, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class OcrQuotaExceeded(ExtractionError):
    code = "ocr_quota_exceeded"
    user_message = "Text recognition quota reached. Upgrade your plan to continue."
    http_status = 402


class EmptyDocument(ExtractionError):
    code = "empty_document"
    user_message = "Could not extract any text from this file. It might be scanned or empty."


class DocumentTooLong(ExtractionError):
    code = "document_too_long"

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"Document is too long ({length} chars). Limit is {limit}. Please shorten."
        )


class ExtractionTimeout(ExtractionError):
    code = "extraction_timeout"
    user_message = "Processing this file took too long. Please try a smaller file."
    retryable = True
    http_status = 504

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Processing this file took longer than {timeout_seconds:g} seconds. "
            "Please try a smaller file."
        )


__all__ = [
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
]
