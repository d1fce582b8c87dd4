"""Shared fixtures: an in-memory bucket, a scripted credential supplier and a fake cipher."""

import asyncio
import hashlib
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from gsdata.auth import AccessToken, AuthenticationError, CredentialSupplier
from gsdata.crypto import Cipher
from gsdata.storage import (
    AuthExpiredError,
    NotFoundError,
    ObjectStoreClient,
    RemoteEntry,
    StorageAcl,
)


class InMemoryObjectStore(ObjectStoreClient):
    """Single-bucket object store with scriptable failures."""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: Dict[str, Tuple[bytes, Dict[str, str], StorageAcl]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.failures: Dict[Tuple[str, str], List[Exception]] = defaultdict(list)
        self.valid_tokens: Optional[set] = None
        self.delay = 0.0

    def add(self, key: str, data: bytes, metadata: Optional[Dict[str, str]] = None):
        self.objects[key] = (data, dict(metadata or {}), StorageAcl.PRIVATE)

    def fail(self, method: str, key: str, *errors: Exception):
        self.failures[(method, key)].extend(errors)

    def calls_for(self, method: str) -> List[Tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == method]

    async def _enter(self, method: str, bucket: str, key: str, token: str):
        self.calls.append((method, key, token))
        await asyncio.sleep(self.delay)
        if self.valid_tokens is not None and token not in self.valid_tokens:
            raise AuthExpiredError(f"token {token} expired", 401)
        queue = self.failures.get((method, key))
        if queue:
            raise queue.pop(0)
        if bucket != self.bucket:
            raise NotFoundError(f"bucket {bucket} not found", 404)

    def _entry(self, key: str) -> RemoteEntry:
        data, metadata, _ = self.objects[key]
        return RemoteEntry(
            key=key,
            size_bytes=len(data),
            digest=hashlib.md5(data).hexdigest(),
            metadata=dict(metadata),
        )

    async def list_objects(self, bucket: str, token: str) -> List[RemoteEntry]:
        await self._enter("list", bucket, bucket, token)
        return [self._entry(key) for key in self.objects]

    async def head_object(self, bucket: str, key: str, token: str) -> RemoteEntry:
        await self._enter("head", bucket, key, token)
        if key not in self.objects:
            raise NotFoundError(f"{key} not found", 404)
        return self._entry(key)

    async def get_object(self, bucket: str, key: str, token: str) -> bytes:
        await self._enter("get", bucket, key, token)
        if key not in self.objects:
            raise NotFoundError(f"{key} not found", 404)
        return self.objects[key][0]

    async def put_object(self, bucket, key, data, acl, token, metadata=None) -> RemoteEntry:
        await self._enter("put", bucket, key, token)
        self.objects[key] = (data, dict(metadata or {}), acl)
        return self._entry(key)

    async def delete_object(self, bucket: str, key: str, token: str) -> None:
        await self._enter("delete", bucket, key, token)
        if key not in self.objects:
            raise NotFoundError(f"{key} not found", 404)
        del self.objects[key]


class ScriptedSupplier(CredentialSupplier):
    """Hands out ``token-0``, then ``token-1`` and so on for each refresh."""

    def __init__(self, refresh_delay: float = 0.01, fail_refresh: bool = False):
        self.generation = 0
        self.refresh_calls = 0
        self.refresh_delay = refresh_delay
        self.fail_refresh = fail_refresh

    async def current_access_token(self) -> AccessToken:
        return AccessToken(f"token-{self.generation}")

    async def refresh(self) -> AccessToken:
        self.refresh_calls += 1
        await asyncio.sleep(self.refresh_delay)
        if self.fail_refresh:
            raise AuthenticationError("refresh token revoked")
        self.generation += 1
        return AccessToken(f"token-{self.generation}")


class ReversibleCipher(Cipher):
    """Deterministic stand-in for GnuPG."""

    def __init__(self):
        self.recipients_seen: List[Tuple[str, ...]] = []

    def encrypt(self, data: bytes, recipients: Sequence[str]) -> bytes:
        self.recipients_seen.append(tuple(recipients))
        return b"ENC[" + ",".join(recipients).encode() + b"]" + data[::-1]

    def decrypt(self, data: bytes) -> bytes:
        header_end = data.index(b"]") + 1
        return data[header_end:][::-1]


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def supplier():
    return ScriptedSupplier()


@pytest.fixture
def cipher():
    return ReversibleCipher()


@pytest.fixture
def sync_root(tmp_path):
    """Directory with a.txt and b.txt."""
    root = tmp_path / "tree"
    root.mkdir()
    (root / "a.txt").write_bytes(b"alpha")
    (root / "b.txt").write_bytes(b"bravo")
    return root


@pytest.fixture(autouse=True)
def fast_backoff(monkeypatch):
    from gsdata.config.settings import get_settings

    monkeypatch.setattr(get_settings().sync, "backoff_base_seconds", 0.0)
    monkeypatch.setattr(get_settings().sync, "backoff_max_seconds", 0.0)
