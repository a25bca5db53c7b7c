"""
PDF Extractor

Extracts embedded text from PDF files using PyMuPDF (fitz).

Key behaviors:
- Pages are read in small concurrent batches, batches run one after another
- Documents over the page cap are read up to the cap only; the true page
  count is still reported and a truncation notice is appended to the text
- A page that fails to parse gets a placeholder instead of failing the document
- Encrypted, corrupt or unloadable PDFs raise typed ExtractionErrors
- The document is always closed, including on error and cancellation
- Over-cap documents can be cut to their first page_cap pages, bounding
  what the scanned-PDF fallback sends to OCR
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

import structlog

from contractlens.config import settings
from contractlens.services.extraction.errors import (
    PdfPasswordProtected,
    PdfStructureCorrupt,
    PdfWorkerUnavailable,
)
from contractlens.services.extraction.pdf_engine import PdfEngine, get_pdf_engine


logger = structlog.get_logger(__name__)


PAGE_MARKER = "--- PAGE {number} ---"
PAGE_ERROR_PLACEHOLDER = "[Error parsing page]"
TRUNCATION_NOTICE = (
    "\n...[Truncated: Document exceeded {cap} pages. First {cap} pages processed.]..."
)


@dataclass
class PdfText:
    """Raw output of one PDF extraction, before validation."""
    text: str
    page_count: int
    pages_processed: int

    @property
    def truncated(self) -> bool:
        return self.page_count > self.pages_processed


def format_page(number: int, text: str) -> str:
    return f"\n{PAGE_MARKER.format(number=number)}\n\n{text}\n\n"


def _read_page_text(doc, index: int) -> str:
    # Runs on the PDF worker thread
    page = doc.load_page(index)
    text = page.get_text("text", sort=True)
    # Drop the page before the next one is loaded
    del page
    return text


class PDFExtractor:
    """
    PDF text extractor with bounded, batched page reads.

    Usage:
        extractor = PDFExtractor()
        result = await extractor.extract(pdf_bytes)
        print(result.page_count, len(result.text))
    """

    def __init__(
        self,
        engine: Optional[PdfEngine] = None,
        page_cap: Optional[int] = None,
        batch_size: Optional[int] = None,
        batch_yield_seconds: Optional[float] = None,
    ):
        """
        Initialize PDF extractor.

        Args:
            engine: PDF engine to run PyMuPDF calls on (process singleton if not provided)
            page_cap: Maximum pages to read (default settings.page_cap = 30)
            batch_size: Pages read concurrently per batch (default settings.batch_size = 3)
            batch_yield_seconds: Pause between batches so other tasks get scheduled
        """
        self._engine = engine
        self.page_cap = page_cap or settings.page_cap
        self.batch_size = batch_size or settings.batch_size
        self.batch_yield_seconds = (
            settings.batch_yield_seconds if batch_yield_seconds is None else batch_yield_seconds
        )

        if self.page_cap < 1 or self.batch_size < 1:
            raise ValueError("page_cap and batch_size must be positive")

    @property
    def engine(self) -> PdfEngine:
        """Resolve the shared engine on first use."""
        if self._engine is None:
            self._engine = get_pdf_engine()
        return self._engine

    async def extract(self, data: bytes) -> PdfText:
        """
        Extract page-delimited text from a PDF.

        Args:
            data: Raw PDF bytes

        Returns:
            PdfText with the assembled text and true page count

        Raises:
            PdfPasswordProtected: Document requires a password
            PdfStructureCorrupt: Document cannot be parsed or has no pages
            PdfWorkerUnavailable: PDF engine cannot be loaded
        """
        engine = self.engine
        log = logger.bind(size_bytes=len(data))

        doc = await self._open(engine, data, log)
        try:
            page_count = doc.page_count
            if page_count < 1:
                log.warning("pdf_has_no_pages")
                raise PdfStructureCorrupt("PDF contains no pages.")

            pages_to_process = min(page_count, self.page_cap)
            if page_count > pages_to_process:
                log.info(
                    "pdf_truncated",
                    total_pages=page_count,
                    processing=pages_to_process,
                    page_cap=self.page_cap,
                )

            # One slot per page; each task writes only its own index
            slots: List[str] = [""] * pages_to_process
            for start in range(0, pages_to_process, self.batch_size):
                batch = range(start, min(start + self.batch_size, pages_to_process))
                await asyncio.gather(
                    *(self._fill_slot(engine, doc, slots, index) for index in batch)
                )
                await asyncio.sleep(self.batch_yield_seconds)

            text = "".join(
                format_page(number, page_text)
                for number, page_text in enumerate(slots, start=1)
            )
            if page_count > pages_to_process:
                text += TRUNCATION_NOTICE.format(cap=self.page_cap)

            log.info(
                "text_extracted",
                total_pages=page_count,
                pages_processed=pages_to_process,
                text_length=len(text),
            )
            return PdfText(text=text, page_count=page_count, pages_processed=pages_to_process)
        finally:
            await self._close(engine, doc, log)

    async def leading_pages(self, data: bytes) -> bytes:
        """
        The first page_cap pages of a PDF as a standalone PDF.

        Documents within the cap are returned unchanged.

        Raises:
            Same errors as extract() for unreadable documents
        """
        engine = self.engine
        log = logger.bind(size_bytes=len(data))

        doc = await self._open(engine, data, log)
        try:
            page_count = doc.page_count
            if page_count <= self.page_cap:
                return data
            subset = await engine.copy_pages(doc, self.page_cap)
        finally:
            await self._close(engine, doc, log)

        log.info(
            "pdf_leading_pages_copied",
            total_pages=page_count,
            pages=self.page_cap,
            subset_size_bytes=len(subset),
        )
        return subset

    async def _open(self, engine: PdfEngine, data: bytes, log):
        """Open the document and map open failures to typed errors."""
        try:
            doc = await engine.open_document(data)
        except PdfWorkerUnavailable:
            log.error("pdf_worker_unavailable")
            raise
        except (RuntimeError, ValueError, TypeError) as e:
            # fitz.FileDataError and EmptyFileError are RuntimeError subclasses
            log.warning("pdf_open_failed", error=str(e), error_type=type(e).__name__)
            raise PdfStructureCorrupt() from e

        if doc.needs_pass:
            log.warning("pdf_password_protected")
            await self._close(engine, doc, log)
            raise PdfPasswordProtected()

        return doc

    async def _fill_slot(self, engine: PdfEngine, doc, slots: List[str], index: int) -> None:
        try:
            slots[index] = await engine.run(_read_page_text, doc, index)
        except PdfWorkerUnavailable:
            raise
        except Exception as e:
            logger.warning("pdf_page_parse_failed", page=index + 1, error=str(e))
            slots[index] = PAGE_ERROR_PLACEHOLDER

    async def _close(self, engine: PdfEngine, doc, log) -> None:
        try:
            # Queued behind any page reads still running on the worker
            await engine.run(doc.close)
        except PdfWorkerUnavailable:
            doc.close()
        log.debug("pdf_document_closed")


__all__ = [
    "PDFExtractor",
    "PdfText",
    "PAGE_MARKER",
    "PAGE_ERROR_PLACEHOLDER",
    "TRUNCATION_NOTICE",
    "format_page",
]
