"""
PDF text extraction using pdfplumber.

Turns an uploaded PDF into plain text for the extraction backends.
"""

import io
import logging
from typing import BinaryIO

import pdfplumber

logger = logging.getLogger(__name__)


class UnreadableDocumentError(Exception):
    """Raised when no text can be read from a document.

    Covers empty uploads, non-PDF content, encrypted or corrupt files, and
    image-only PDFs without a text layer.
    """

    pass


class PDFTextService:
    """
    Service for reading the text layer of PDF documents.

    Uses pdfplumber (pdfminer.six) page by page.
    """

    def __init__(self, page_separator: str = "\n"):
        """
        Initialize the PDF text service.

        Args:
            page_separator: String inserted between the text of consecutive pages.
        """
        self.page_separator = page_separator

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """
        Extract plain text from every page of a PDF.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            The document text, pages joined by ``page_separator``.

        Raises:
            UnreadableDocumentError: If the document has no readable text.
        """
        # Ensure we have bytes
        if hasattr(file_bytes, "read"):
            pdf_bytes = file_bytes.read()
        else:
            pdf_bytes = file_bytes

        if not pdf_bytes:
            raise UnreadableDocumentError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise UnreadableDocumentError(
                "Invalid PDF file: does not start with PDF header"
            )

        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                page_texts = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            logger.warning("Could not read PDF: %s", e)
            raise UnreadableDocumentError(
                f"Encrypted or corrupted PDF file: {e}"
            ) from e

        text = self.page_separator.join(page_texts).strip()
        if not text:
            raise UnreadableDocumentError(
                "PDF has no text layer (scanned or image-only document)"
            )

        logger.info(
            "Extracted %d characters from %d page(s)", len(text), len(page_texts)
        )
        return text


# Singleton instance for convenience
_pdf_service: PDFTextService | None = None


def get_pdf_service() -> PDFTextService:
    """Get or create the PDF text service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFTextService()
    return _pdf_service
