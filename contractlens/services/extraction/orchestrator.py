"""
Extraction Orchestrator

Public entry point of the extraction pipeline:

    SNIFFING -> EXTRACTING -> (SCANNED_FALLBACK) -> VALIDATING -> DONE | FAILED

- Files over the size ceiling are rejected before anything is parsed
- Unsupported formats fail without touching any extractor
- PDFs whose embedded text is near-empty are treated as scanned and OCR'd
- The whole call runs under a wall-clock timeout
- The first typed error ends the call; partial results are never returned
"""

import asyncio
import re
from enum import Enum
from typing import Callable, Optional

import structlog

from contractlens.config import ExtractionLimits
from contractlens.models.extraction_result import ExtractedDocument, ExtractionRequest
from contractlens.services.cost_control import TokenBudgetTracker
from contractlens.services.extraction.detector import (
    FileFormat,
    PDF_MIME_TYPE,
    detect_file_format,
    image_media_type,
)
from contractlens.services.extraction.docx_extractor import DOCXExtractor
from contractlens.services.extraction.errors import (
    ExtractionError,
    ExtractionTimeout,
    FileTooLarge,
    UnsupportedFormat,
)
from contractlens.services.extraction.normalizer import finalize
from contractlens.services.extraction.ocr_bridge import OcrBridge
from contractlens.services.extraction.pdf_extractor import (
    PAGE_ERROR_PLACEHOLDER,
    PDFExtractor,
    TRUNCATION_NOTICE,
)


logger = structlog.get_logger(__name__)


PAGE_MARKER_PATTERN = re.compile(r"--- PAGE \d+ ---")
TRUNCATION_PATTERN = re.compile(r"\.\.\.\[Truncated:[^\]]*\]\.\.\.")
WHITESPACE_PATTERN = re.compile(r"\s+")


class ExtractionState(str, Enum):
    SNIFFING = "sniffing"
    EXTRACTING = "extracting"
    SCANNED_FALLBACK = "scanned_fallback"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


def signal_length(pdf_text: str) -> int:
    """
    Count the characters a PDF extraction actually recovered.

    Page markers, the truncation notice, per-page error placeholders and all
    whitespace are excluded, leaving only recognized document content.
    """
    content = PAGE_MARKER_PATTERN.sub("", pdf_text)
    content = TRUNCATION_PATTERN.sub("", content)
    content = content.replace(PAGE_ERROR_PLACEHOLDER, "")
    return len(WHITESPACE_PATTERN.sub("", content))


class ExtractionOrchestrator:
    """
    Routes an upload to the right extractor and validates the result.

    Usage:
        orchestrator = ExtractionOrchestrator()
        document = await orchestrator.extract(
            ExtractionRequest(data=raw, mime_type="application/pdf", filename="nda.pdf")
        )
        print(document.metadata.pages_detected)
    """

    def __init__(
        self,
        pdf_extractor: Optional[PDFExtractor] = None,
        docx_extractor: Optional[DOCXExtractor] = None,
        ocr_factory: Optional[Callable[[], OcrBridge]] = None,
        limits: Optional[ExtractionLimits] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            pdf_extractor: PDF extractor (built from limits if not provided)
            docx_extractor: DOCX extractor
            ocr_factory: Builds the OCR bridge for one extraction call; the
                         default gives each call its own token budget
            limits: Size, length and timing bounds (from settings if not provided)
        """
        self.limits = limits or ExtractionLimits.from_settings()
        self.pdf_extractor = pdf_extractor or PDFExtractor(
            page_cap=self.limits.page_cap,
            batch_size=self.limits.batch_size,
            batch_yield_seconds=self.limits.batch_yield_seconds,
        )
        self.docx_extractor = docx_extractor or DOCXExtractor()
        self._ocr_factory = ocr_factory or (
            lambda: OcrBridge(token_budget=TokenBudgetTracker())
        )

    async def extract(self, request: ExtractionRequest) -> ExtractedDocument:
        """
        Extract and validate text from one uploaded file.

        Raises:
            ExtractionError: Any subclass; see errors.py for the taxonomy
        """
        log = logger.bind(
            filename=request.filename,
            mime_type=request.mime_type,
            size_bytes=request.size_bytes,
        )
        try:
            return await asyncio.wait_for(
                self._run(request, log),
                timeout=self.limits.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self._transition(log, ExtractionState.FAILED, error="extraction_timeout")
            raise ExtractionTimeout(self.limits.timeout_seconds) from e
        except ExtractionError as e:
            self._transition(log, ExtractionState.FAILED, error=e.code)
            raise

    async def _run(self, request: ExtractionRequest, log) -> ExtractedDocument:
        self._transition(log, ExtractionState.SNIFFING)

        if request.size_bytes > self.limits.max_file_size_bytes:
            raise FileTooLarge(request.size_bytes, self.limits.max_file_size_bytes)

        file_format = detect_file_format(request.filename, request.mime_type)
        if file_format == FileFormat.UNSUPPORTED:
            raise UnsupportedFormat()

        self._transition(log, ExtractionState.EXTRACTING, format=file_format.value)

        if file_format == FileFormat.PDF:
            document = await self._extract_pdf(request, log)
        elif file_format == FileFormat.DOCX:
            raw_text = await asyncio.to_thread(self.docx_extractor.extract, request.data)
            self._transition(log, ExtractionState.VALIDATING)
            document = self._finalize(
                raw_text,
                page_hint=None,
                source_format="docx",
                extraction_method="python_docx",
            )
        else:
            media_type = image_media_type(request.filename, request.mime_type)
            if media_type is None:
                raise UnsupportedFormat()
            ocr = self._ocr_factory()
            raw_text = await ocr.recognize(request.data, media_type)
            self._transition(log, ExtractionState.VALIDATING)
            document = self._finalize(
                raw_text,
                page_hint=1,
                source_format="image",
                extraction_method="ocr",
            )

        self._transition(
            log,
            ExtractionState.DONE,
            characters=document.metadata.characters_extracted,
            pages=document.metadata.pages_detected,
        )
        return document

    async def _extract_pdf(self, request: ExtractionRequest, log) -> ExtractedDocument:
        pdf = await self.pdf_extractor.extract(request.data)

        recovered = signal_length(pdf.text)
        if recovered < self.limits.scanned_pdf_min_chars:
            self._transition(
                log,
                ExtractionState.SCANNED_FALLBACK,
                recovered_chars=recovered,
                threshold=self.limits.scanned_pdf_min_chars,
            )
            # OCR sees the same pages the native path read
            ocr_data = request.data
            if pdf.truncated:
                ocr_data = await self.pdf_extractor.leading_pages(request.data)

            ocr = self._ocr_factory()
            ocr_text = await ocr.recognize(
                ocr_data, PDF_MIME_TYPE, estimated_pages=pdf.pages_processed
            )
            if pdf.truncated and ocr_text.strip():
                ocr_text += TRUNCATION_NOTICE.format(cap=pdf.pages_processed)

            self._transition(log, ExtractionState.VALIDATING)
            return self._finalize(
                ocr_text,
                page_hint=pdf.page_count,
                source_format="pdf",
                extraction_method="ocr",
                pages_processed=pdf.pages_processed,
                truncated=pdf.truncated,
                ocr_fallback=True,
            )

        self._transition(log, ExtractionState.VALIDATING)
        return self._finalize(
            pdf.text,
            page_hint=pdf.page_count,
            source_format="pdf",
            extraction_method="pymupdf",
            pages_processed=pdf.pages_processed,
            truncated=pdf.truncated,
        )

    def _finalize(self, raw_text: str, **kwargs) -> ExtractedDocument:
        return finalize(
            raw_text,
            max_text_length=self.limits.max_text_length,
            preview_length=self.limits.preview_length,
            **kwargs,
        )

    @staticmethod
    def _transition(log, state: ExtractionState, **context) -> None:
        log.info("extraction_state", state=state.value, **context)


# Module-level instance (lazy initialization)
_orchestrator: Optional[ExtractionOrchestrator] = None


def get_orchestrator() -> ExtractionOrchestrator:
    """Shared orchestrator; holds no per-request state."""
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = ExtractionOrchestrator()
    return _orchestrator


async def extract_document(
    data: bytes,
    mime_type: Optional[str],
    filename: str,
) -> ExtractedDocument:
    """Extract text from raw upload bytes with the shared orchestrator."""
    request = ExtractionRequest(data=data, mime_type=mime_type, filename=filename)
    return await get_orchestrator().extract(request)


__all__ = [
    "ExtractionOrchestrator",
    "ExtractionState",
    "extract_document",
    "get_orchestrator",
    "signal_length",
]
