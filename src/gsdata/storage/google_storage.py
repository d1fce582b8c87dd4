"""Google Cloud Storage client over the JSON API."""

import asyncio
import base64
import binascii
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from .acl import StorageAcl
from .base import (
    ObjectStoreClient,
    RemoteEntry,
    StoreError,
    TransientStoreError,
    classify_status,
)
from ..config.settings import get_settings
from ..performance import get_metrics_collector
from ..utils.logging import get_logger


LIST_FIELDS = "nextPageToken,items(name,size,md5Hash,etag,updated,metadata)"


class GoogleStorageClient(ObjectStoreClient):
    """Bucket operations against ``storage.googleapis.com``."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        api_url: Optional[str] = None,
        upload_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """Initialize the storage client.

        Args:
            project_id: Google API project number, sent with every request
            api_url: Base URL of the JSON API
            upload_url: Base URL of the upload endpoint
            timeout_seconds: Total timeout for a single request
            session: Existing session to reuse; created lazily otherwise
        """
        settings = get_settings()
        self.project_id = project_id
        self.api_url = (api_url or settings.google.storage_api_url).rstrip("/")
        self.upload_url = (upload_url or settings.google.storage_upload_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.sync.request_timeout_seconds
        )
        self.session = session
        self._owns_session = session is None

        self.metrics = get_metrics_collector()
        self.logger = get_logger(self.__class__.__name__)

    async def __aenter__(self):
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def list_objects(self, bucket: str, token: str) -> List[RemoteEntry]:
        url = f"{self.api_url}/b/{quote(bucket, safe='')}/o"
        entries: List[RemoteEntry] = []
        page_token = None

        while True:
            params = {"fields": LIST_FIELDS}
            if page_token:
                params["pageToken"] = page_token

            result = await self._request_json("GET", url, token, params=params)
            for item in result.get("items", []):
                entries.append(self._convert_to_remote_entry(item))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        self.logger.info("Listed bucket", bucket=bucket, objects=len(entries))
        return entries

    async def head_object(self, bucket: str, key: str, token: str) -> RemoteEntry:
        result = await self._request_json("GET", self._object_url(bucket, key), token)
        return self._convert_to_remote_entry(result)

    async def get_object(self, bucket: str, key: str, token: str) -> bytes:
        return await self._request(
            "GET", self._object_url(bucket, key), token, params={"alt": "media"}, read_json=False
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        acl: StorageAcl,
        token: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> RemoteEntry:
        url = f"{self.upload_url}/b/{quote(bucket, safe='')}/o"
        params = {
            "uploadType": "multipart",
            "predefinedAcl": acl.predefined_acl,
        }
        resource: Dict[str, Any] = {"name": key}
        if metadata:
            resource["metadata"] = metadata

        # The writer is rebuilt for every attempt so that retries resend the payload
        def build_body() -> aiohttp.MultipartWriter:
            writer = aiohttp.MultipartWriter("related")
            writer.append_json(resource)
            writer.append(data, {"Content-Type": "application/octet-stream"})
            return writer

        result = await self._request_json("POST", url, token, params=params, body_factory=build_body)
        self.metrics.record_value("storage.upload_bytes", len(data))
        return self._convert_to_remote_entry(result)

    async def delete_object(self, bucket: str, key: str, token: str) -> None:
        await self._request("DELETE", self._object_url(bucket, key), token, read_json=False)

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.api_url}/b/{quote(bucket, safe='')}/o/{quote(key, safe='')}"

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self.session

    async def _request_json(self, method: str, url: str, token: str, **kwargs) -> Dict[str, Any]:
        return await self._request(method, url, token, read_json=True, **kwargs)

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        params: Optional[Dict[str, str]] = None,
        body_factory=None,
        read_json: bool = True
    ):
        """Issue one authenticated request and classify any failure."""
        session = self._ensure_session()
        headers = {"Authorization": f"Bearer {token}"}
        if self.project_id:
            headers["x-goog-project-id"] = self.project_id

        data = body_factory() if body_factory else None
        self.metrics.increment_counter("storage.requests")

        try:
            async with self.metrics.time_operation("storage.request_duration", tags={"method": method}):
                async with session.request(
                    method, url, params=params, headers=headers, data=data
                ) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
                        raise classify_status(
                            response.status,
                            f"{method} {url} failed: {response.status} - {error_text[:200]}",
                            retry_after
                        )

                    if not read_json:
                        return await response.read()
                    if response.status == 204:
                        return {}
                    return await response.json(content_type=None)

        except StoreError:
            self.metrics.increment_counter("storage.errors")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.metrics.increment_counter("storage.errors")
            raise TransientStoreError(f"Network error during {method} {url}: {e}") from e

    def _convert_to_remote_entry(self, item: Dict[str, Any]) -> RemoteEntry:
        """Convert a JSON API object resource to a RemoteEntry."""
        size = 0
        try:
            size = int(item.get("size", 0))
        except (TypeError, ValueError):
            self.logger.warning("Unparseable object size", key=item.get("name"), size=item.get("size"))

        return RemoteEntry(
            key=item["name"],
            size_bytes=size,
            digest=self._decode_md5(item.get("md5Hash")),
            last_modified=self._parse_timestamp(item.get("updated")),
            etag=item.get("etag"),
            metadata=dict(item.get("metadata") or {}),
        )

    @staticmethod
    def _decode_md5(md5_hash: Optional[str]) -> Optional[str]:
        # Composite objects carry no md5Hash
        if not md5_hash:
            return None
        try:
            return base64.b64decode(md5_hash, validate=True).hex()
        except (binascii.Error, ValueError):
            return None

    def _parse_timestamp(self, timestamp_str: Optional[str]) -> Optional[datetime]:
        if not timestamp_str:
            return None
        try:
            return datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            self.logger.warning("Failed to parse timestamp", timestamp=timestamp_str)
            return None

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> Optional[float]:
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None
