"""Tests for text validation and metadata."""

import pytest

from contractlens.services.extraction.errors import DocumentTooLong, EmptyDocument
from contractlens.services.extraction.normalizer import (
    build_previews,
    count_sections,
    estimate_docx_pages,
    finalize,
)


def _finalize(text, **kwargs):
    defaults = dict(page_hint=1, source_format="image", extraction_method="ocr")
    defaults.update(kwargs)
    return finalize(text, **defaults)


class TestCountSections:
    """Tests for legal heading detection."""

    def test_article_section_and_subclause(self):
        text = "ARTICLE 1\nSECTION 2\n3.4 Indemnification"
        assert count_sections(text) == 3

    def test_case_insensitive(self):
        assert count_sections("Article 7 Term\nsection 8 Notices\nPart 2") == 3

    def test_roman_numeral_headings(self):
        assert count_sections("I. Parties\nII. Recitals\nIV. Termination") == 3

    def test_only_counts_line_starts(self):
        """References inside sentences are not headings"""
        text = "As set out in Section 4 and clause 2.1, the Buyer pays."
        assert count_sections(text) == 0

    def test_plain_prose(self):
        assert count_sections("This agreement is made between the parties.") == 0


class TestFinalize:
    """Tests for finalize."""

    def test_trims_and_counts_characters(self):
        document = _finalize("   \n ARTICLE 1 Scope \n\n")
        assert document.text == "ARTICLE 1 Scope"
        assert document.metadata.characters_extracted == len(document.text)
        assert document.metadata.sections_detected == 1

    def test_whitespace_only_is_empty(self):
        with pytest.raises(EmptyDocument):
            _finalize(" \n\t ")

    def test_none_is_empty(self):
        with pytest.raises(EmptyDocument):
            _finalize(None)

    def test_exactly_at_ceiling_is_accepted(self):
        document = _finalize("a" * 1000, max_text_length=1000)
        assert document.metadata.characters_extracted == 1000

    def test_over_ceiling_is_rejected_not_clipped(self):
        with pytest.raises(DocumentTooLong) as excinfo:
            _finalize("a" * 1001, max_text_length=1000)
        assert excinfo.value.length == 1001
        assert excinfo.value.limit == 1000

    def test_default_ceiling_is_300k(self):
        with pytest.raises(DocumentTooLong):
            _finalize("x" * 300001)

    def test_docx_pages_estimated_when_no_hint(self):
        document = _finalize("w" * 6001, page_hint=None, source_format="docx",
                             extraction_method="python_docx")
        assert document.metadata.pages_detected == 3

    def test_page_hint_is_kept(self):
        document = _finalize("text", page_hint=120, pages_processed=30, truncated=True,
                             source_format="pdf", extraction_method="pymupdf")
        assert document.metadata.pages_detected == 120
        assert document.metadata.pages_processed == 30
        assert document.metadata.truncated is True

    def test_camel_case_serialization(self):
        dumped = _finalize("ARTICLE 1").model_dump(by_alias=True)
        assert set(dumped["metadata"]) >= {
            "pagesDetected", "charactersExtracted", "sectionsDetected",
            "previewStart", "previewEnd",
        }


class TestPreviews:
    """Tests for head/tail previews."""

    def test_short_text_is_not_marked(self):
        assert build_previews("short", 1000) == ("short", "short")

    def test_long_text_gets_ellipsis(self):
        text = "a" * 10 + "b" * 10
        start, end = build_previews(text, 10)
        assert start == "a" * 10 + "..."
        assert end == "..." + "b" * 10


class TestEstimateDocxPages:

    @pytest.mark.parametrize("chars,pages", [(0, 1), (1, 1), (3000, 1), (3001, 2), (9000, 3)])
    def test_estimate(self, chars, pages):
        assert estimate_docx_pages(chars) == pages
