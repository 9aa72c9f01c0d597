"""
Unit Tests for the custom quote StorageClient

Uses httpx.MockTransport in place of the storage service.
"""

import httpx
import pytest

from core.config import ServiceConfig
from microservices.custom_quote_service.clients.storage_client import StorageClient
from microservices.custom_quote_service.protocols import UploadError

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


def _client(handler) -> StorageClient:
    client = StorageClient(config=ServiceConfig(storage_service_url="http://storage.test/"))
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


async def test_upload_returns_download_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={
            "file_id": "file_123",
            "file_path": "custom_quotes/quote_1.jpg",
            "download_url": "https://cdn.example.com/custom_quotes/quote_1.jpg",
        })

    async with _client(handler) as client:
        url = await client.upload_file("piano.jpg", b"\xff\xd8\xff", "image/jpeg", user_id="usr_1")

    assert url == "https://cdn.example.com/custom_quotes/quote_1.jpg"
    assert seen["url"] == "http://storage.test/api/v1/storage/files/upload"
    assert b'name="access_level"' in seen["body"]
    assert b"public" in seen["body"]
    assert b".jpg" in seen["body"]


async def test_http_error_raises_upload_error():
    async with _client(lambda request: httpx.Response(503, json={"detail": "down"})) as client:
        with pytest.raises(UploadError, match="503"):
            await client.upload_file("piano.jpg", b"data", "image/jpeg")


async def test_connection_error_raises_upload_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UploadError):
            await client.upload_file("piano.jpg", b"data", "image/jpeg")


async def test_missing_url_raises_upload_error():
    async with _client(lambda request: httpx.Response(200, json={"file_id": "f"})) as client:
        with pytest.raises(UploadError, match="no URL"):
            await client.upload_file("piano.jpg", b"data", "image/jpeg")
