"""
Text chunking service using LangChain's RecursiveCharacterTextSplitter.
"""
import logging
from typing import List
from langchain_text_splitters import RecursiveCharacterTextSplitter

from docchat.core.config import settings

logger = logging.getLogger(__name__)


class TextChunker:
    """Split text into smaller chunks for embedding and retrieval."""

    def __init__(
        self,
        chunk_size: int = settings.CHUNK_SIZE,
        chunk_overlap: int = settings.CHUNK_OVERLAP
    ):
        """
        Initialize text chunker.

        Args:
            chunk_size: Maximum size of each chunk in characters
            chunk_overlap: Number of overlapping characters between chunks
        """
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=["\n\n", "\n", ". ", " ", ""]
        )
        logger.info(
            f"TextChunker initialized with chunk_size={chunk_size}, "
            f"chunk_overlap={chunk_overlap}"
        )

    def chunk_text(self, text: str) -> List[str]:
        """
        Split text into chunks.

        Args:
            text: Input text to split

        Returns:
            List of non-empty text chunks (empty for blank input)
        """
        if not text or not text.strip():
            return []

        chunks = self.splitter.split_text(text)

        # Filter out empty chunks
        chunks = [chunk.strip() for chunk in chunks if chunk.strip()]

        logger.debug(f"Split text into {len(chunks)} chunks")
        return chunks
