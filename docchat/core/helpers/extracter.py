"""
Document text extraction service.
Supports PDF and Word documents stored in the object store.
"""
import io
import logging
import os
import tempfile
from typing import Optional

from docx import Document as DocxDocument
from pypdf import PdfReader

from docchat.core.exceptions import DocChatError, ExtractionError
from docchat.services.file_service import ObjectStore

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME_TYPE = "application/msword"


class DocumentExtractor:
    """Extract plain text from stored documents, dispatched by declared MIME type."""

    SUPPORTED_MIME_TYPES = {
        PDF_MIME_TYPE: "PDF",
        DOCX_MIME_TYPE: "DOCX",
        DOC_MIME_TYPE: "DOC",
    }

    def __init__(self, object_store: ObjectStore, temp_dir: Optional[str] = None):
        """
        Initialize extractor.

        Args:
            object_store: Store holding the raw document bytes
            temp_dir: Directory for PDF staging files (system default if None)
        """
        self.object_store = object_store
        self.temp_dir = temp_dir

    def extract(self, storage_key: str, mime_type: str) -> str:
        """
        Extract text from a stored document.

        Args:
            storage_key: Object store key of the document
            mime_type: Declared MIME type of the document

        Returns:
            Extracted text. Empty for unsupported types.

        Raises:
            ExtractionError: If the bytes cannot be fetched or parsed
        """
        if mime_type not in self.SUPPORTED_MIME_TYPES:
            logger.warning(f"Unsupported file type '{mime_type}' for '{storage_key}', skipping extraction")
            return ""

        try:
            file_bytes = self.object_store.get(storage_key)
        except DocChatError as e:
            raise ExtractionError(f"Failed to read document '{storage_key}': {e}", cause=e)

        if not file_bytes:
            raise ExtractionError(f"Failed to read document '{storage_key}': empty buffer received")

        logger.info(f"Extracting text from {self.SUPPORTED_MIME_TYPES[mime_type]} file '{storage_key}'")

        if mime_type == PDF_MIME_TYPE:
            return self._extract_pdf(file_bytes)
        return self._extract_docx(file_bytes)

    def _extract_pdf(self, file_bytes: bytes) -> str:
        """Extract text from PDF via a temporary staging file."""
        try:
            with tempfile.NamedTemporaryFile(suffix=".pdf", dir=self.temp_dir, delete=False) as staged:
                staged.write(file_bytes)
                staged_path = staged.name
        except OSError as e:
            raise ExtractionError(f"Failed to stage PDF: {e}", cause=e)

        try:
            reader = PdfReader(staged_path)
            text_parts = []
            for page in reader.pages:
                page_text = page.extract_text() or ""
                if page_text.strip():
                    text_parts.append(page_text)
            return "\n\n".join(text_parts)
        except Exception as e:
            logger.error(f"PDF extraction error: {e}")
            raise ExtractionError(f"Failed to process PDF file: {e}", cause=e)
        finally:
            try:
                os.remove(staged_path)
            except OSError as e:
                logger.warning(f"Could not remove staging file '{staged_path}': {e}")

    def _extract_docx(self, file_bytes: bytes) -> str:
        """Extract text from DOCX paragraphs and tables."""
        try:
            doc = DocxDocument(io.BytesIO(file_bytes))
            parts = [para.text for para in doc.paragraphs if para.text.strip()]
            for table in doc.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if cells:
                        parts.append(" | ".join(cells))
            return "\n".join(parts)
        except Exception as e:
            logger.error(f"DOCX extraction error: {e}")
            raise ExtractionError(f"Failed to process DOC/DOCX file: {e}", cause=e)
