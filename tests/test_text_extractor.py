"""
Tests for document text extraction.

Tests cover:
- Plain text from bytes and paths
- PDF detection and parsing
- Size, length and encoding failures
"""

import io

import pytest
from pypdf import PdfWriter

from extraction.text_extractor import DocumentTextExtractor
from models.errors import ExtractionError

LONG_TEXT = "Contrato de trabalho por prazo indeterminado, função de motorista. " * 3


def _blank_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=595, height=842)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestPlainText:
    """Tests for UTF-8 documents."""

    @pytest.mark.asyncio
    async def test_bytes(self):
        text = await DocumentTextExtractor().extract(f"  {LONG_TEXT}\n".encode("utf-8"))
        assert text == LONG_TEXT.strip()

    @pytest.mark.asyncio
    async def test_path(self, tmp_path):
        path = tmp_path / "inicial.txt"
        path.write_text(LONG_TEXT, encoding="utf-8")
        assert await DocumentTextExtractor().extract(path) == LONG_TEXT.strip()

    @pytest.mark.asyncio
    async def test_too_short(self):
        """Short texts are rejected as unreadable documents."""
        with pytest.raises(ExtractionError, match="too short"):
            await DocumentTextExtractor().extract(b"curto")

    @pytest.mark.asyncio
    async def test_custom_minimum(self):
        assert await DocumentTextExtractor(min_text_length=3).extract(b"curto") == "curto"

    @pytest.mark.asyncio
    async def test_invalid_utf8(self):
        with pytest.raises(ExtractionError, match="UTF-8"):
            await DocumentTextExtractor().extract(b"\xff\xfe" * 100)

    @pytest.mark.asyncio
    async def test_too_large(self):
        extractor = DocumentTextExtractor(max_file_size=10)
        with pytest.raises(ExtractionError, match="too large"):
            await extractor.extract(LONG_TEXT.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path):
        with pytest.raises(ExtractionError, match="Cannot read"):
            await DocumentTextExtractor().extract(tmp_path / "sumiu.pdf")


class TestPdf:
    """Tests for PDF documents."""

    @pytest.mark.asyncio
    async def test_scanned_pdf_rejected(self):
        """A PDF with no text layer yields too little text."""
        with pytest.raises(ExtractionError, match="scanned or protected"):
            await DocumentTextExtractor().extract(_blank_pdf(2))

    @pytest.mark.asyncio
    async def test_pdf_path(self, tmp_path):
        path = tmp_path / "inicial.pdf"
        path.write_bytes(_blank_pdf())
        with pytest.raises(ExtractionError, match="too short"):
            await DocumentTextExtractor().extract(path)

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self):
        with pytest.raises(ExtractionError, match="Failed to parse PDF"):
            await DocumentTextExtractor().extract(b"%PDF-1.7\nnot really a pdf")

    def test_page_limit(self):
        extractor = DocumentTextExtractor(max_pages=1)
        assert extractor.parse_pdf(_blank_pdf(3)) == ""
