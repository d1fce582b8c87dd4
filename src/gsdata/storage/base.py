"""Object store client interface and failure taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .acl import StorageAcl


PLAINTEXT_MD5_KEY = "gsdata-plaintext-md5"
PLAINTEXT_SIZE_KEY = "gsdata-plaintext-size"


@dataclass(frozen=True)
class RemoteEntry:
    """Metadata for one object in a bucket."""

    key: str
    size_bytes: int
    digest: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def encrypted(self) -> bool:
        """Whether the object was uploaded encrypted by this tool."""
        return PLAINTEXT_MD5_KEY in self.metadata

    @property
    def plaintext_digest(self) -> Optional[str]:
        return self.metadata.get(PLAINTEXT_MD5_KEY)

    @property
    def plaintext_size(self) -> Optional[int]:
        value = self.metadata.get(PLAINTEXT_SIZE_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, object]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "key": self.key,
            "size": self.size_bytes,
            "md5": self.digest,
            "etag": self.etag,
            "updated": self.last_modified.isoformat() if self.last_modified else None,
            "metadata": dict(self.metadata),
        }


class ObjectStoreClient(ABC):
    """Abstract bucket client. Every call takes the bearer token to use."""

    @abstractmethod
    async def list_objects(self, bucket: str, token: str) -> List[RemoteEntry]:
        """List every object in the bucket."""

    @abstractmethod
    async def head_object(self, bucket: str, key: str, token: str) -> RemoteEntry:
        """Fetch metadata for a single object."""

    @abstractmethod
    async def get_object(self, bucket: str, key: str, token: str) -> bytes:
        """Download an object's content."""

    @abstractmethod
    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        acl: StorageAcl,
        token: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> RemoteEntry:
        """Upload an object, replacing any existing one."""

    @abstractmethod
    async def delete_object(self, bucket: str, key: str, token: str) -> None:
        """Delete an object."""

    async def close(self) -> None:
        """Release network resources."""


class StoreError(Exception):
    """Base class for classified object store failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.attempts = 0


class AuthExpiredError(StoreError):
    """Raised when the bearer token is expired or invalid."""
    pass


class TransientStoreError(StoreError):
    """Raised for failures worth retrying (network errors, 5xx, throttling)."""

    def __init__(self, message: str, status: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message, status)
        self.retry_after = retry_after


class PermanentStoreError(StoreError):
    """Raised for failures that will not succeed on retry."""
    pass


class NotFoundError(PermanentStoreError):
    """Raised when the bucket or object does not exist."""
    pass


def classify_status(status: int, message: str, retry_after: Optional[float] = None) -> StoreError:
    """Map an HTTP status code onto the failure taxonomy."""
    if status == 401:
        return AuthExpiredError(message, status)
    if status == 404:
        return NotFoundError(message, status)
    if status in (408, 429) or status >= 500:
        return TransientStoreError(message, status, retry_after)
    return PermanentStoreError(message, status)
