"""
Tests for fetching OpenAPI documents through the cache.

Run with: pytest tests/test_fetch.py -v
"""

import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache import SpecCache
from errors import FetchError
from fetch import SPEC_ACCEPT, fetch_spec

URL = "https://example.org/openapi.json"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_network_hit_is_cached(tmp_path):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b'{"openapi": "3.0.0"}')

    cache = SpecCache(tmp_path)
    async with _client(handler) as client:
        data = await fetch_spec(URL, cache, client)

    assert data == b'{"openapi": "3.0.0"}'
    assert cache.get(URL) == data
    assert seen[0].headers["Accept"] == SPEC_ACCEPT


@pytest.mark.asyncio
async def test_cache_hit_skips_network(tmp_path):
    def handler(request):
        raise AssertionError("network should not be used")

    cache = SpecCache(tmp_path)
    cache.put(URL, b"cached")
    async with _client(handler) as client:
        assert await fetch_spec(URL, cache, client) == b"cached"


@pytest.mark.asyncio
async def test_non_200_is_fetch_error(tmp_path):
    cache = SpecCache(tmp_path)
    async with _client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(FetchError) as exc:
            await fetch_spec(URL, cache, client)

    assert exc.value.url == URL
    assert "404" in str(exc.value)
    assert cache.get(URL) is None


@pytest.mark.asyncio
async def test_transport_error_is_fetch_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(FetchError) as exc:
            await fetch_spec(URL, SpecCache(tmp_path), client)

    assert "connection refused" in exc.value.cause


@pytest.mark.asyncio
async def test_cache_write_failure_does_not_fail_fetch(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    async with _client(lambda request: httpx.Response(200, content=b"spec")) as client:
        assert await fetch_spec(URL, SpecCache(blocker), client) == b"spec"
