"""Text extraction for uploaded legal documents (PDF and plain text)."""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader

from models.batch import DocumentSource
from models.errors import ExtractionError

logger = logging.getLogger(__name__)

MAX_PDF_PAGES = 500
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
MIN_TEXT_LENGTH = 100

PDF_MAGIC = b"%PDF"
TEXT_SUFFIXES = (".txt", ".text")


class TextExtractor(Protocol):
    """Turns a document's raw bytes into plain text."""

    async def extract(self, source: DocumentSource) -> str: ...


class DocumentTextExtractor:
    """
    Extract text from PDFs with pypdf and from UTF-8 text files.

    Parsing runs in a worker thread so a large PDF does not block the event
    loop while other units are waiting on the network.
    """

    def __init__(
        self,
        max_pages: int = MAX_PDF_PAGES,
        min_text_length: int = MIN_TEXT_LENGTH,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self.max_pages = max_pages
        self.min_text_length = min_text_length
        self.max_file_size = max_file_size

    async def extract(self, source: DocumentSource) -> str:
        """
        Extract the text of one document.

        Raises:
            ExtractionError: The file is unreadable, too large, or yields
                less than `min_text_length` characters (typically a scanned
                or protected PDF).
        """
        text = await asyncio.to_thread(self._extract_sync, source)
        text = text.strip()
        if len(text) < self.min_text_length:
            raise ExtractionError(
                f"Extracted text too short ({len(text)} chars); "
                f"the document may be scanned or protected"
            )
        return text

    def _extract_sync(self, source: DocumentSource) -> str:
        if isinstance(source, Path):
            try:
                size = source.stat().st_size
            except OSError as e:
                raise ExtractionError(f"Cannot read {source.name}: {e}") from e
            self._check_size(size)
            if source.suffix.lower() in TEXT_SUFFIXES:
                return self._decode_text(source.read_bytes())
            return self.parse_pdf(source.read_bytes())

        self._check_size(len(source))
        if source.startswith(PDF_MAGIC):
            return self.parse_pdf(source)
        return self._decode_text(source)

    def _check_size(self, size: int) -> None:
        if size > self.max_file_size:
            limit_mb = self.max_file_size // (1024 * 1024)
            raise ExtractionError(f"File too large ({size} bytes, limit {limit_mb}MB)")

    @staticmethod
    def _decode_text(content: bytes) -> str:
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionError(f"Text file is not valid UTF-8: {e}") from e

    def parse_pdf(self, content: bytes) -> str:
        """Extract text page by page, up to `max_pages` pages."""
        try:
            reader = PdfReader(io.BytesIO(content))
            num_pages = len(reader.pages)

            if num_pages > self.max_pages:
                logger.warning(f"PDF has {num_pages} pages, limiting to {self.max_pages}")

            text_parts = []
            for page in reader.pages[: self.max_pages]:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
        except Exception as e:
            logger.error(f"PDF parsing failed: {e}")
            raise ExtractionError(f"Failed to parse PDF: {e}") from e

        return "\n\n".join(text_parts)
