"""Shared fixtures: in-memory PDF/DOCX builders and extraction fakes."""

import asyncio
import io
from types import SimpleNamespace

import fitz
import pytest
from docx import Document

from contractlens.services.extraction.pdf_engine import shutdown_pdf_engine


CONTRACT_PAGE = (
    "ARTICLE {n} Services\n"
    "The Provider shall perform the services described in Schedule A.\n"
    "{n}.1 Payment terms are net thirty days from invoice."
)


def build_pdf(page_texts):
    """Build a PDF with one page per entry; empty entries give blank pages."""
    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def build_contract_pdf(pages):
    return build_pdf([CONTRACT_PAGE.format(n=n) for n in range(1, pages + 1)])


def build_encrypted_pdf():
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Confidential settlement agreement", fontsize=11)
    data = doc.tobytes(
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="user-secret",
    )
    doc.close()
    return data


def build_docx(paragraphs, table_rows=None):
    doc = Document()
    for paragraph in paragraphs:
        doc.add_paragraph(paragraph)
    if table_rows:
        table = doc.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for row, values in zip(table.rows, table_rows):
            for cell, value in zip(row.cells, values):
                cell.text = value
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class FakeOcr:
    """Stands in for OcrBridge; records every recognize() call."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def recognize(self, data, mime_type, estimated_pages=1):
        self.calls.append(SimpleNamespace(
            data=data, mime_type=mime_type, estimated_pages=estimated_pages
        ))
        if self.error is not None:
            raise self.error
        return self.text


class FakePage:
    def __init__(self, text, fail=False):
        self.text = text
        self.fail = fail

    def get_text(self, *args, **kwargs):
        if self.fail:
            raise RuntimeError("broken content stream")
        return self.text


class FakeDocument:
    """Minimal stand-in for a fitz.Document."""

    def __init__(self, page_texts, failing_pages=(), needs_pass=False):
        self.page_texts = list(page_texts)
        self.failing_pages = set(failing_pages)
        self.needs_pass = needs_pass
        self.closed = False
        self.loaded = []

    @property
    def page_count(self):
        return len(self.page_texts)

    def load_page(self, index):
        self.loaded.append(index)
        return FakePage(self.page_texts[index], fail=index in self.failing_pages)

    def close(self):
        self.closed = True


class FakeEngine:
    """
    PdfEngine stand-in that runs calls inline after a per-call delay.

    delay_for(args) picks the sleep before each call, letting tests reorder
    page completions within a batch.
    """

    def __init__(self, document, delay_for=None):
        self.document = document
        self.delay_for = delay_for or (lambda args: 0)
        self.completed = []

    async def open_document(self, data):
        return self.document

    async def run(self, fn, *args):
        await asyncio.sleep(self.delay_for(args))
        result = fn(*args)
        if len(args) == 2:
            self.completed.append(args[1])
        return result


@pytest.fixture
def contract_pdf():
    return build_contract_pdf(1)


@pytest.fixture(scope="session", autouse=True)
def _stop_pdf_engine():
    yield
    shutdown_pdf_engine()
