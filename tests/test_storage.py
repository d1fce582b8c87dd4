"""Tests for the object store failure taxonomy and the Cloud Storage client."""

import asyncio
import base64
import hashlib
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from gsdata.storage import (
    AuthExpiredError,
    GoogleStorageClient,
    NotFoundError,
    PermanentStoreError,
    RemoteEntry,
    StorageAcl,
    StoreError,
    TransientStoreError,
    classify_status,
)


class TestClassifyStatus:
    """HTTP status to failure class."""

    @pytest.mark.parametrize("status,expected", [
        (401, AuthExpiredError),
        (404, NotFoundError),
        (408, TransientStoreError),
        (429, TransientStoreError),
        (500, TransientStoreError),
        (503, TransientStoreError),
        (400, PermanentStoreError),
        (403, PermanentStoreError),
        (412, PermanentStoreError),
    ])
    def test_classification(self, status, expected):
        error = classify_status(status, "boom")

        assert type(error) is expected
        assert error.status == status

    def test_not_found_is_permanent(self):
        assert isinstance(classify_status(404, "gone"), PermanentStoreError)

    def test_retry_after_kept_for_throttling(self):
        assert classify_status(429, "slow down", retry_after=2.0).retry_after == 2.0


class TestStorageAcl:
    """Canned ACL names."""

    def test_json_api_names(self):
        assert StorageAcl.PRIVATE.predefined_acl == "private"
        assert StorageAcl.PUBLIC_READ.predefined_acl == "publicRead"
        assert StorageAcl.BUCKET_OWNER_FULL_CONTROL.predefined_acl == "bucketOwnerFullControl"

    def test_from_name(self):
        assert StorageAcl.from_name(None) == StorageAcl.PRIVATE
        assert StorageAcl.from_name("Public-Read") == StorageAcl.PUBLIC_READ
        with pytest.raises(ValueError, match="Unknown ACL"):
            StorageAcl.from_name("public")


class TestGoogleStorageClient:
    """Resource conversion and request construction, without the network."""

    def setup_method(self):
        self.client = GoogleStorageClient(project_id="1234")

    def test_convert_object_resource(self):
        digest = hashlib.md5(b"alpha").digest()
        entry = self.client._convert_to_remote_entry({
            "name": "dir/a.txt",
            "size": "5",
            "md5Hash": base64.b64encode(digest).decode(),
            "etag": "CJ+1",
            "updated": "2024-03-01T10:15:00.000Z",
            "metadata": {"owner": "ops"},
        })

        assert entry.key == "dir/a.txt"
        assert entry.size_bytes == 5
        assert entry.digest == digest.hex()
        assert entry.last_modified.year == 2024
        assert entry.metadata == {"owner": "ops"}
        assert not entry.encrypted

    def test_composite_object_has_no_digest(self):
        entry = self.client._convert_to_remote_entry({"name": "big.bin", "size": "10"})

        assert entry.digest is None
        assert entry.last_modified is None

    def test_invalid_md5_is_ignored(self):
        assert GoogleStorageClient._decode_md5("not base64!") is None

    def test_retry_after_parsing(self):
        assert GoogleStorageClient._parse_retry_after("3") == 3.0
        assert GoogleStorageClient._parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
        assert GoogleStorageClient._parse_retry_after(None) is None

    def test_object_url_escapes_key(self):
        url = self.client._object_url("bucket", "dir/a b.txt")
        assert url.endswith("/b/bucket/o/dir%2Fa%20b.txt")

    @pytest.mark.asyncio
    async def test_put_object_request(self):
        self.client._request_json = AsyncMock(return_value={"name": "a.txt", "size": "5"})

        entry = await self.client.put_object(
            "bucket", "a.txt", b"alpha", StorageAcl.AUTHENTICATED_READ, "tok", {"k": "v"}
        )

        method, url, token = self.client._request_json.call_args.args
        kwargs = self.client._request_json.call_args.kwargs
        assert method == "POST"
        assert "/upload/" in url
        assert token == "tok"
        assert kwargs["params"] == {"uploadType": "multipart", "predefinedAcl": "authenticatedRead"}
        assert kwargs["body_factory"]() is not kwargs["body_factory"]()
        assert entry.key == "a.txt"

    @pytest.mark.asyncio
    async def test_list_objects_follows_pages(self):
        self.client._request_json = AsyncMock(side_effect=[
            {"items": [{"name": "a", "size": "1"}], "nextPageToken": "p2"},
            {"items": [{"name": "b", "size": "2"}]},
        ])

        entries = await self.client.list_objects("bucket", "tok")

        assert [e.key for e in entries] == ["a", "b"]
        second_params = self.client._request_json.call_args_list[1].kwargs["params"]
        assert second_params["pageToken"] == "p2"


class TestRemoteEntry:

    def test_plaintext_tags(self):
        entry = RemoteEntry(
            key="a",
            size_bytes=40,
            metadata={"gsdata-plaintext-md5": "abc", "gsdata-plaintext-size": "5"}
        )

        assert entry.encrypted
        assert entry.plaintext_digest == "abc"
        assert entry.plaintext_size == 5

    def test_to_dict(self):
        assert RemoteEntry(key="a", size_bytes=1, digest="d").to_dict()["md5"] == "d"


def mock_session(status=200, headers=None, body=None, text=""):
    """Session whose request() yields a single canned response."""
    response = MagicMock(status=status, headers=headers or {})
    response.text = AsyncMock(return_value=text)
    response.json = AsyncMock(return_value=body or {})
    response.read = AsyncMock(return_value=b"payload")

    session = MagicMock()
    session.request.return_value.__aenter__.return_value = response
    session.request.return_value.__aexit__.return_value = False
    return session


class TestRequestFailures:
    """HTTP and network failures surface as classified store errors."""

    @pytest.mark.parametrize("status,expected", [
        (401, AuthExpiredError),
        (404, NotFoundError),
        (408, TransientStoreError),
        (429, TransientStoreError),
        (502, TransientStoreError),
        (403, PermanentStoreError),
    ])
    @pytest.mark.asyncio
    async def test_status_is_classified(self, status, expected):
        client = GoogleStorageClient(session=mock_session(status=status, text="denied"))

        with pytest.raises(StoreError) as exc_info:
            await client.head_object("bucket", "a.txt", "tok")

        assert type(exc_info.value) is expected
        assert exc_info.value.status == status
        assert "denied" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_retry_after_header_is_parsed(self):
        client = GoogleStorageClient(session=mock_session(status=429, headers={"Retry-After": "7"}))

        with pytest.raises(TransientStoreError) as exc_info:
            await client.get_object("bucket", "a.txt", "tok")

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        session = MagicMock()
        session.request.side_effect = aiohttp.ClientConnectionError("connection reset")
        client = GoogleStorageClient(session=session)

        with pytest.raises(TransientStoreError, match="connection reset"):
            await client.delete_object("bucket", "a.txt", "tok")

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        session = mock_session()
        session.request.return_value.__aenter__.side_effect = asyncio.TimeoutError()
        client = GoogleStorageClient(session=session)

        with pytest.raises(TransientStoreError) as exc_info:
            await client.list_objects("bucket", "tok")

        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    async def test_success_sends_bearer_token_and_project(self):
        session = mock_session(body={"name": "a.txt", "size": "5"})
        client = GoogleStorageClient(project_id="1234", session=session)

        entry = await client.head_object("bucket", "a.txt", "tok")

        headers = session.request.call_args.kwargs["headers"]
        assert headers == {"Authorization": "Bearer tok", "x-goog-project-id": "1234"}
        assert entry.size_bytes == 5

    @pytest.mark.asyncio
    async def test_media_download_returns_bytes(self):
        client = GoogleStorageClient(session=mock_session())

        assert await client.get_object("bucket", "a.txt", "tok") == b"payload"
