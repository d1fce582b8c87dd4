"""Object storage clients."""

from .acl import StorageAcl
from .base import (
    ObjectStoreClient,
    RemoteEntry,
    StoreError,
    AuthExpiredError,
    TransientStoreError,
    PermanentStoreError,
    NotFoundError,
    classify_status,
    PLAINTEXT_MD5_KEY,
    PLAINTEXT_SIZE_KEY,
)
from .google_storage import GoogleStorageClient

__all__ = [
    "StorageAcl",
    "ObjectStoreClient",
    "RemoteEntry",
    "StoreError",
    "AuthExpiredError",
    "TransientStoreError",
    "PermanentStoreError",
    "NotFoundError",
    "classify_status",
    "PLAINTEXT_MD5_KEY",
    "PLAINTEXT_SIZE_KEY",
    "GoogleStorageClient",
]
