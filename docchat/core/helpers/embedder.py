"""
Embedding service for generating vector embeddings using OpenAI.
"""
import logging
import time
from typing import List, Optional

import openai
from openai import OpenAI

from docchat.core.config import settings
from docchat.core.exceptions import AuthError, EmbeddingError, QuotaError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """
    Service for generating text embeddings using OpenAI.
    Handles batching and classifies provider failures.
    """

    MAX_BATCH_SIZE = 2048  # OpenAI limit for text-embedding-3-*

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        client: Optional[OpenAI] = None,
    ):
        """
        Initialize embedding service.

        Args:
            api_key: OpenAI API key (defaults to settings.OPENAI_API_KEY)
            model: Embedding model (defaults to settings.EMBEDDING_MODEL)
            dimensions: Output dimension (defaults to settings.EMBEDDING_DIMENSION)
            client: Preconfigured OpenAI client
        """
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSION
        self._client: Optional[OpenAI] = client

    @property
    def client(self) -> OpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AuthError("OPENAI_API_KEY not configured")
            self._client = OpenAI(api_key=self.api_key)
            logger.info("OpenAI client initialized")
        return self._client

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts, preserving order.

        Raises:
            AuthError: Invalid or missing API key
            QuotaError: Quota or rate limit exhausted
            EmbeddingError: Any other provider failure
        """
        if not texts or any(not t.strip() for t in texts):
            raise EmbeddingError("Cannot embed empty text")

        logger.info(f"Generating embeddings for {len(texts)} texts using {self.model}")

        embeddings: List[List[float]] = []
        total_batches = (len(texts) + self.MAX_BATCH_SIZE - 1) // self.MAX_BATCH_SIZE
        for i in range(0, len(texts), self.MAX_BATCH_SIZE):
            batch = texts[i:i + self.MAX_BATCH_SIZE]
            logger.debug(f"Processing batch {i // self.MAX_BATCH_SIZE + 1}/{total_batches} ({len(batch)} texts)")
            embeddings.extend(self._embed_batch(batch))

            # Small delay to avoid rate limits (only if there are more batches)
            if i + self.MAX_BATCH_SIZE < len(texts):
                time.sleep(0.1)

        return embeddings

    def embed_query(self, query: str) -> List[float]:
        """Generate embedding for a single query."""
        if not query or not query.strip():
            raise EmbeddingError("Cannot embed empty query")
        logger.debug("Generating query embedding")
        return self._embed_batch([query.strip()])[0]

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        try:
            response = self.client.embeddings.create(
                input=texts,
                model=self.model,
                dimensions=self.dimensions
            )
        except openai.AuthenticationError as e:
            logger.error(f"Embedding provider rejected credentials: {e}")
            raise AuthError("Invalid or missing OpenAI API key for embeddings", cause=e)
        except openai.PermissionDeniedError as e:
            logger.error(f"Embedding provider denied access: {e}")
            raise AuthError("OpenAI API key is not allowed to use the embedding model", cause=e)
        except openai.RateLimitError as e:
            logger.warning(f"Embedding quota exhausted: {e}")
            raise QuotaError("OpenAI API quota exceeded for embeddings", cause=e)
        except openai.OpenAIError as e:
            logger.error(f"Embedding generation failed: {e}")
            raise EmbeddingError(f"Failed to generate embeddings: {e}", cause=e)

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(data)} vectors for {len(texts)} inputs"
            )
        return [[float(val) for val in item.embedding] for item in data]
