"""
Error taxonomy for the ingestion and retrieval pipeline.

Every error raised by the pipeline derives from ``DocChatError`` so the HTTP
layer and the job handlers can catch the family in one place. ``cause`` keeps
the original exception for logging.
"""
from typing import Optional


class DocChatError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ValidationError(DocChatError):
    """Malformed request payload. Never retried."""


class NotFoundError(DocChatError):
    """A referenced record does not exist."""


class DocumentAlreadyExistsError(DocChatError):
    """Conditional create failed because the document is already stored."""


class ObjectStoreError(DocChatError):
    """Raw document bytes could not be written, read or removed."""


class ExtractionError(DocChatError):
    """Text extraction failed. Terminal for the document."""


class EmbeddingError(DocChatError):
    """The embedding provider failed or returned unusable output."""


class AuthError(EmbeddingError):
    """Invalid or missing provider credentials. Fatal, never retried."""


class QuotaError(EmbeddingError):
    """Provider quota or rate limit exhausted. Retryable with backoff."""


class VectorIndexError(DocChatError):
    """Vector upsert, search or delete failed."""


class RetrievalError(VectorIndexError):
    """Similarity search failed while answering a chat message."""


class GenerationError(DocChatError):
    """The generative model failed or returned an empty answer."""


class CascadeDeleteError(DocChatError):
    """One sub-resource of a cascading delete could not be removed."""

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_key: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.resource_type = resource_type
        self.resource_key = resource_key


class InvalidTransitionError(DocChatError):
    """A processing status transition was not allowed from the current state."""


class EnqueueError(DocChatError):
    """A job could not be handed to the queue."""


class RetryableJobError(DocChatError):
    """Raised by a job handler to ask the queue for another attempt."""
