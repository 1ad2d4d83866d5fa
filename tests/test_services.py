"""
Tests for authenticated requests against configured services.

Run with: pytest tests/test_services.py -v
"""

import base64
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import parse_config
from errors import NotConfigured, TransportError
from services import ServiceRegistry


def _registry(services, handler):
    cfg = parse_config({"services": services})
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ServiceRegistry(cfg.services, client), client


class Recorder:
    def __init__(self, status=200, content=b"[]"):
        self.requests = []
        self.status = status
        self.content = content

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, content=self.content)


@pytest.mark.asyncio
async def test_header_auth_and_version_prefix():
    rec = Recorder(content=b'[{"id": 1}]')
    registry, client = _registry({"sonarr": {"url": "http://sonarr:8989", "api_key": "secret"}}, rec)
    async with client:
        body, status = await registry.get("sonarr").perform_request("GET", "/series", {"term": "wire"})

    assert (body, status) == (b'[{"id": 1}]', 200)
    request = rec.requests[0]
    assert str(request.url) == "http://sonarr:8989/api/v3/series?term=wire"
    assert request.headers["X-Api-Key"] == "secret"
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_query_auth():
    rec = Recorder()
    registry, client = _registry(
        {"bazarr": {"url": "http://bazarr:6767", "api_key": "k1", "auth_method": "query"}}, rec
    )
    async with client:
        await registry.get("bazarr").perform_request("GET", "series")

    assert rec.requests[0].url.params["apikey"] == "k1"
    assert rec.requests[0].url.path == "/api/series"


@pytest.mark.asyncio
async def test_basic_auth():
    rec = Recorder()
    registry, client = _registry(
        {"custom": {"url": "http://c:1", "api_key": "user", "auth_method": "basic"}}, rec
    )
    async with client:
        await registry.get("custom").perform_request("GET", "/status")

    expected = "Basic " + base64.b64encode(b"user:").decode()
    assert rec.requests[0].headers["Authorization"] == expected


@pytest.mark.asyncio
async def test_post_body_and_content_type():
    rec = Recorder(status=201, content=b"{}")
    registry, client = _registry({"radarr": {"url": "http://radarr:7878", "api_key": "k"}}, rec)
    async with client:
        _, status = await registry.get("radarr").perform_request("post", "/api/v3/movie", body=b'{"title": "Heat"}')

    request = rec.requests[0]
    assert status == 201
    assert request.method == "POST"
    assert request.url.path == "/api/v3/movie"
    assert request.headers["Content-Type"] == "application/json"
    assert request.content == b'{"title": "Heat"}'


@pytest.mark.asyncio
async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    registry, client = _registry({"sonarr": {"url": "http://sonarr:8989"}}, handler)
    async with client:
        with pytest.raises(TransportError):
            await registry.get("sonarr").perform_request("GET", "/series")


def test_unknown_service():
    registry, _ = _registry({"sonarr": {"url": "http://sonarr:8989"}}, Recorder())
    with pytest.raises(NotConfigured) as exc:
        registry.get("plex")
    assert "sonarr" in str(exc.value)
    assert registry.names() == ["sonarr"]
