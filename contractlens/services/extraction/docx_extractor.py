"""
DOCX Document Extractor

Extracts raw text from DOCX documents using the python-docx library.
Paragraphs and tables are read in body order, so a clause table stays
between the clauses around it.
No pagination: page counts for DOCX are estimated from character count.
"""

import io
import zipfile

import structlog
from docx import Document
from docx.opc.exceptions import OpcError
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph

from contractlens.services.extraction.errors import DocxParseError

logger = structlog.get_logger(__name__)


class DOCXExtractor:
    """
    Extracts plain text from DOCX documents.

    Uses python-docx to read both paragraphs and tables; table cells are
    joined with " | " so clause tables stay readable on one line per row.
    """

    def extract(self, data: bytes) -> str:
        """
        Extract text from a DOCX document.

        Args:
            data: Raw DOCX bytes

        Returns:
            Paragraph and table text joined by newlines (may be empty)

        Raises:
            DocxParseError: Corrupt archive or unexpected document schema
        """
        try:
            doc = Document(io.BytesIO(data))
        except (OpcError, zipfile.BadZipFile, KeyError, ValueError, SyntaxError) as e:
            # lxml parse errors subclass SyntaxError
            logger.warning("docx_open_failed", error=str(e), error_type=type(e).__name__)
            raise DocxParseError() from e

        try:
            all_text = []
            paragraph_count = 0
            table_count = 0
            for child in doc.element.body.iterchildren():
                if child.tag == qn("w:p"):
                    text = Paragraph(child, doc).text
                    if text.strip():
                        all_text.append(text)
                        paragraph_count += 1
                elif child.tag == qn("w:tbl"):
                    table_count += 1
                    all_text.extend(self._table_rows(Table(child, doc)))
        except (AttributeError, KeyError, ValueError) as e:
            logger.warning("docx_read_failed", error=str(e), error_type=type(e).__name__)
            raise DocxParseError() from e

        combined_text = '\n'.join(all_text)

        logger.info(
            "docx_text_extracted",
            paragraphs=paragraph_count,
            tables=table_count,
            text_length=len(combined_text),
        )
        return combined_text

    @staticmethod
    def _table_rows(table: Table) -> list:
        rows = []
        for row in table.rows:
            row_text = " | ".join(
                cell.text.strip() for cell in row.cells if cell.text.strip()
            )
            if row_text:
                rows.append(row_text)
        return rows


__all__ = ["DOCXExtractor"]
