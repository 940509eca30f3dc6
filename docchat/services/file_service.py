"""
Object storage for raw document bytes.
"""
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from google.cloud import storage
from google.cloud.exceptions import GoogleCloudError, NotFound

from docchat.core.config import settings
from docchat.core.exceptions import ObjectStoreError
from docchat.utils.clock import compact_timestamp

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_file_name(file_name: str) -> str:
    """Keep the base name and replace anything outside [A-Za-z0-9._-] with '_'."""
    name = Path(file_name or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


def build_storage_key(file_name: str, prefix: Optional[str] = None) -> str:
    """
    Build a collision-resistant object key.

    Example: ``uploads/20250101120000123456_Quarterly_report.pdf``
    """
    prefix = (prefix if prefix is not None else settings.UPLOAD_PREFIX).strip("/")
    key = f"{compact_timestamp()}_{sanitize_file_name(file_name)}"
    return f"{prefix}/{key}" if prefix else key


class ObjectStore(ABC):
    """Object storage contract required by the pipeline."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store bytes under key. Returns the key."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Fetch bytes stored under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object. Deleting a missing key is not an error."""


class GCSFileService(ObjectStore):
    """Google Cloud Storage implementation of the object store."""

    def __init__(self, bucket_name: Optional[str] = None, project_id: Optional[str] = None):
        try:
            self.client = storage.Client(project=project_id or settings.GCS_PROJECT_ID)
            self.bucket = self.client.bucket(bucket_name or settings.GCS_BUCKET_NAME)
        except GoogleCloudError as e:
            logger.error(f"Failed to initialize Google Cloud Storage client: {e}")
            raise

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            blob = self.bucket.blob(key)
            blob.upload_from_string(data, content_type=content_type, timeout=120)
            logger.info(f"Object '{key}' uploaded ({len(data)} bytes).")
            return key
        except GoogleCloudError as e:
            logger.error(f"Failed to upload object '{key}': {e}")
            raise ObjectStoreError(f"Failed to upload '{key}'", cause=e)

    def get(self, key: str) -> bytes:
        try:
            blob = self.bucket.blob(key)
            content = blob.download_as_bytes()
            logger.info(f"Retrieved content for object '{key}'.")
            return content
        except GoogleCloudError as e:
            logger.error(f"Failed to retrieve content for object '{key}': {e}")
            raise ObjectStoreError(f"Failed to fetch '{key}'", cause=e)

    def delete(self, key: str) -> None:
        try:
            self.bucket.blob(key).delete()
            logger.info(f"Object '{key}' deleted successfully.")
        except NotFound:
            logger.info(f"Object '{key}' already absent.")
        except GoogleCloudError as e:
            logger.error(f"Failed to delete object '{key}': {e}")
            raise ObjectStoreError(f"Failed to delete '{key}'", cause=e)
