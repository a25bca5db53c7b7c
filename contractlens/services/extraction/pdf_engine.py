"""
PDF Processing Engine

Process-wide handle around PyMuPDF. PyMuPDF is not thread-safe, so every
call that touches a document runs on one dedicated worker thread; asyncio
callers await those calls without blocking the event loop.

The engine is created lazily on first use and reused across extractions.
Documents opened through it are owned by the caller, never by the engine.
"""

import asyncio
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

import structlog

try:
    import fitz  # PyMuPDF
except ImportError:
    fitz = None  # surfaced as PdfWorkerUnavailable on first use

from contractlens.services.extraction.errors import PdfWorkerUnavailable


logger = structlog.get_logger(__name__)


class PdfEngine:
    """
    Single-worker executor for PyMuPDF calls.

    Usage:
        engine = get_pdf_engine()
        doc = await engine.open_document(pdf_bytes)
        try:
            text = await engine.run(read_page, doc, 0)
        finally:
            await engine.run(doc.close)
    """

    def __init__(self):
        if fitz is None:
            logger.error("pymupdf_not_installed")
            raise PdfWorkerUnavailable(
                "PDF Worker missing. PyMuPDF is not installed on this server."
            )

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-worker")
        self.version = getattr(fitz, "VersionBind", "unknown")

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run fn(*args) on the PDF worker thread and await its result.

        Raises:
            PdfWorkerUnavailable: If the worker has been shut down
        """
        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(self._executor, functools.partial(fn, *args))
        except RuntimeError as e:
            # ThreadPoolExecutor refuses new work after shutdown
            raise PdfWorkerUnavailable() from e
        return await future

    async def open_document(self, data: bytes):
        """Open a PDF from memory. Parse errors propagate unchanged."""
        return await self.run(_open_stream, data)

    async def copy_pages(self, doc, count: int) -> bytes:
        """Serialize the first count pages of an open document as a new PDF."""
        return await self.run(_copy_leading_pages, doc, count)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def _open_stream(data: bytes):
    return fitz.open(stream=data, filetype="pdf")


def _copy_leading_pages(doc, count: int) -> bytes:
    subset = fitz.open()
    try:
        subset.insert_pdf(doc, from_page=0, to_page=count - 1)
        return subset.tobytes(garbage=3, deflate=True)
    finally:
        subset.close()


# Module-level instance (lazy initialization)
_engine: Optional[PdfEngine] = None
_engine_lock = threading.Lock()


def get_pdf_engine() -> PdfEngine:
    """
    Get the process-wide PDF engine, creating it on first access.

    Initialization is single-flight: concurrent first callers block on the
    lock and all receive the same instance. A failed initialization is not
    cached, so a later call retries it.

    Raises:
        PdfWorkerUnavailable: If PyMuPDF cannot be loaded
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = PdfEngine()
                logger.info("pdf_engine_initialized", pymupdf_version=_engine.version)
    return _engine


def shutdown_pdf_engine() -> None:
    """Stop the worker thread and drop the singleton."""
    global _engine

    with _engine_lock:
        if _engine is not None:
            _engine.shutdown()
            _engine = None
            logger.info("pdf_engine_shutdown")


__all__ = ["PdfEngine", "get_pdf_engine", "shutdown_pdf_engine"]
