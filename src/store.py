"""Owns one EndpointIndex per configured service."""

import asyncio
import logging
import threading
from typing import Mapping, Optional

import httpx

from cache import SpecCache
from config import ServiceConfig
from errors import ArrMcpError, NotConfigured, ParseError
from fetch import fetch_spec
from index import EndpointIndex
from models import EndpointSummary
from parsers import parse_spec

logger = logging.getLogger(__name__)


class IndexRegistry:
    """
    Service name -> EndpointIndex with atomic per-service replacement.

    Writers swap in a fresh mapping under the lock; readers grab the current
    mapping reference, which is never mutated afterwards.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._indices: Mapping[str, EndpointIndex] = {}

    def get(self, name: str) -> Optional[EndpointIndex]:
        return self._indices.get(name)

    def snapshot(self) -> Mapping[str, EndpointIndex]:
        return self._indices

    def swap(self, name: str, index: EndpointIndex) -> Optional[EndpointIndex]:
        """Install an index, returning the one it replaced."""
        with self._lock:
            previous = self._indices.get(name)
            self._indices = {**self._indices, name: index}
        return previous


class SpecStore:
    """Fetches, parses and serves OpenAPI indices for all configured services."""

    def __init__(
        self,
        services: Mapping[str, ServiceConfig],
        cache: SpecCache,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.services = services
        self.cache = cache
        self.client = client
        self._registry = IndexRegistry()

    def _spec_url(self, name: str) -> str:
        svc = self.services.get(name)
        if svc is None:
            raise NotConfigured(f"service {name!r} not configured")
        if not svc.openapi_url:
            raise NotConfigured(f"no OpenAPI URL for {name}")
        return svc.openapi_url

    def documented(self) -> list[str]:
        """Names of configured services that have a documentation URL."""
        return sorted(name for name, svc in self.services.items() if svc.openapi_url)

    async def _load(self, name: str, url: str) -> EndpointIndex:
        # Fetch and parse before touching the registry so a failure or a
        # cancellation leaves the previous index in place.
        data = await fetch_spec(url, self.cache, self.client)
        try:
            index = await asyncio.to_thread(parse_spec, name, data, url)
        except ArrMcpError:
            raise
        except Exception as e:
            raise ParseError(f"parsing spec for {name}: {type(e).__name__}: {e}") from e
        self._registry.swap(name, index)
        return index

    async def load_all(self) -> None:
        """Load every documented service; failures are logged and skipped."""
        for name in self.documented():
            try:
                index = await self._load(name, self.services[name].openapi_url)
            except ArrMcpError as e:
                logger.error("loading spec for %s: %s", name, e)
            else:
                logger.info("loaded %s: %d endpoints", name, index.count())

    async def refresh(self, name: str) -> EndpointIndex:
        """Drop the cached document for a service and load it again."""
        url = self._spec_url(name)
        self.cache.invalidate(url)
        index = await self._load(name, url)
        logger.info("refreshed %s: %d endpoints", name, index.count())
        return index

    async def refresh_all(self) -> dict[str, Exception]:
        """Refresh every documented service, returning only the failures."""
        errors: dict[str, Exception] = {}
        for name in self.documented():
            try:
                await self.refresh(name)
            except ArrMcpError as e:
                logger.error("refreshing spec for %s: %s", name, e)
                errors[name] = e
        return errors

    def get_index(self, name: str) -> Optional[EndpointIndex]:
        return self._registry.get(name)

    def loaded(self) -> list[str]:
        return sorted(self._registry.snapshot())

    def search(self, query: str, service: Optional[str] = None) -> list[EndpointSummary]:
        """Search one service or all loaded services."""
        indices = self._registry.snapshot()
        results = []
        for name in sorted(indices):
            if service and name != service:
                continue
            results.extend(indices[name].search(query))
        return results
