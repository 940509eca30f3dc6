"""
Configuration management using Pydantic settings.
"""
from typing import List, Optional, Union
import os
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "DocChat"
    ENV: str = os.getenv("ENV", "local")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./docchat.db")
    VECTOR_DATABASE_URL: Optional[str] = os.getenv("VECTOR_DATABASE_URL") or None

    # Google Cloud Storage Configuration
    GCS_BUCKET_NAME: str = os.getenv("GCS_BUCKET_NAME", "")
    GCS_PROJECT_ID: str = os.getenv("GCS_PROJECT_ID", "")
    UPLOAD_PREFIX: str = "uploads"
    TEMP_DIR: Optional[str] = os.getenv("TEMP_DIR") or None

    # LLMs Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_DIMENSION: int = int(os.getenv("EMBEDDING_DIMENSION", 1024))
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", 0.3))

    # Retrieval Configuration
    CHUNK_SIZE: int = 500
    CHUNK_OVERLAP: int = 50
    DOCUMENT_COLLECTION: str = os.getenv("DOCUMENT_COLLECTION", "document_embeddings")
    REFERENCE_COLLECTION: str = os.getenv("REFERENCE_COLLECTION", "reference_questions")
    SEARCH_RESULT_LIMIT: int = 5
    HISTORY_MESSAGE_LIMIT: int = 8
    REFERENCE_RESULT_LIMIT: int = 3

    # Job Queue Configuration
    QUEUE_BACKEND: str = os.getenv("QUEUE_BACKEND", "local")  # local, cloud_tasks
    QUEUE_CONCURRENCY: int = int(os.getenv("QUEUE_CONCURRENCY", 3))
    JOB_MAX_ATTEMPTS: int = int(os.getenv("JOB_MAX_ATTEMPTS", 3))
    JOB_RETRY_BACKOFF_SECONDS: float = float(os.getenv("JOB_RETRY_BACKOFF_SECONDS", 5))
    CLOUD_TASKS_LOCATION: str = os.getenv("CLOUD_TASKS_LOCATION", "asia-southeast1")
    CLOUD_TASKS_QUEUE: str = os.getenv("CLOUD_TASKS_QUEUE", "document-processing")
    BACKEND_URL: str = os.getenv("BACKEND_URL", "http://localhost:8000")

    # LangSmith Tracing Configuration
    LANGSMITH_TRACING: bool = os.getenv("LANGSMITH_TRACING", "false").lower() == "true"
    LANGSMITH_ENDPOINT: str = os.getenv("LANGSMITH_ENDPOINT", "")
    LANGSMITH_API_KEY: str = os.getenv("LANGSMITH_API_KEY", "")
    LANGSMITH_PROJECT: str = os.getenv("LANGSMITH_PROJECT", "")

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Union[List[AnyHttpUrl], str] = "*"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if v == "*" or v == ["*"]:
            return "*"
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    @property
    def vector_database_url(self) -> str:
        return self.VECTOR_DATABASE_URL or self.DATABASE_URL

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
