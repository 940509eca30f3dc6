"""
Turns extracted text into (text, embedding) pairs ready for indexing.
"""
import logging
from dataclasses import dataclass
from typing import List

from docchat.core.exceptions import EmbeddingError
from docchat.core.helpers.chunker import TextChunker
from docchat.core.helpers.embedder import EmbeddingService

logger = logging.getLogger(__name__)


@dataclass
class EmbeddedChunk:
    index: int
    text: str
    embedding: List[float]


class ChunkEmbedder:
    """Chunk text and embed every chunk in one batched provider call."""

    def __init__(self, chunker: TextChunker, embedder: EmbeddingService):
        self.chunker = chunker
        self.embedder = embedder

    def chunk_and_embed(self, text: str) -> List[EmbeddedChunk]:
        chunks = self.chunker.chunk_text(text)
        if not chunks:
            logger.info("No chunks produced, skipping embedding")
            return []

        embeddings = self.embedder.embed_texts(chunks)
        if len(embeddings) != len(chunks):
            raise EmbeddingError(
                f"Chunks ({len(chunks)}) and embeddings ({len(embeddings)}) length mismatch"
            )

        dimensions = {len(vector) for vector in embeddings}
        if len(dimensions) != 1 or 0 in dimensions:
            raise EmbeddingError(f"Inconsistent embedding dimensionality: {sorted(dimensions)}")

        logger.info(f"Embedded {len(chunks)} chunks ({dimensions.pop()} dimensions)")
        return [
            EmbeddedChunk(index=idx, text=chunk, embedding=vector)
            for idx, (chunk, vector) in enumerate(zip(chunks, embeddings))
        ]
