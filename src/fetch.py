"""HTTP client and fetch utilities."""

import logging
from typing import Optional

import httpx

from cache import SpecCache
from config import settings
from errors import FetchError

logger = logging.getLogger(__name__)

SPEC_ACCEPT = "application/json, application/x-yaml, text/yaml"

http_client = httpx.AsyncClient(
    timeout=settings.http_timeout,
    follow_redirects=True,
    headers={"User-Agent": "arr-mcp/1.0 (*arr API MCP Server)"},
)


async def fetch_spec(
    url: str, cache: SpecCache, client: Optional[httpx.AsyncClient] = None
) -> bytes:
    """Fetch an OpenAPI document, using the cache if it holds a fresh copy."""
    cached = cache.get(url)
    if cached is not None:
        logger.debug("spec cache hit for %s", url)
        return cached

    client = client or http_client
    try:
        response = await client.get(
            url, headers={"Accept": SPEC_ACCEPT}, timeout=settings.http_timeout
        )
    except httpx.TimeoutException:
        raise FetchError(url, "timeout")
    except httpx.HTTPError as e:
        raise FetchError(url, str(e) or type(e).__name__) from e

    if response.status_code != 200:
        raise FetchError(url, f"HTTP {response.status_code}")

    data = response.content
    cache.try_put(url, data)
    return data
