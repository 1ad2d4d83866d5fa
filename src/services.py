"""Authenticated HTTP access to configured *arr services."""

import logging
from typing import Mapping, Optional

import httpx

from config import ServiceConfig, settings
from errors import NotConfigured, TransportError
from fetch import http_client

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT", "PATCH")


class HeaderAuth(httpx.Auth):
    """Send the API key in a header (X-Api-Key by default)."""

    def __init__(self, header: str, key: str):
        self.header = header
        self.key = key

    def auth_flow(self, request: httpx.Request):
        request.headers[self.header] = self.key
        yield request


class QueryAuth(httpx.Auth):
    """Send the API key as a query parameter."""

    def __init__(self, param: str, key: str):
        self.param = param
        self.key = key

    def auth_flow(self, request: httpx.Request):
        request.url = request.url.copy_set_param(self.param, self.key)
        yield request


def build_auth(config: ServiceConfig) -> httpx.Auth:
    if config.auth_method == "query":
        return QueryAuth("apikey", config.api_key)
    if config.auth_method == "basic":
        return httpx.BasicAuth(config.api_key, "")
    return HeaderAuth(config.auth_header or "X-Api-Key", config.api_key)


class ArrService:
    """One configured service: base URL plus credentials."""

    def __init__(self, name: str, config: ServiceConfig, client: Optional[httpx.AsyncClient] = None):
        self.name = name
        self.config = config
        self.api_version = config.api_version or ""
        self.base_url = config.url.rstrip("/") + self.api_version
        self.auth = build_auth(config)
        self.client = client

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        # Callers sometimes include the version prefix themselves
        if self.api_version and path.startswith(self.api_version + "/"):
            path = path[len(self.api_version):]
        return self.base_url + path

    async def perform_request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> tuple[bytes, int]:
        """Issue an authenticated request and return (body, status)."""
        method = method.upper()
        headers = {"Accept": "application/json"}
        if method in BODY_METHODS:
            headers["Content-Type"] = "application/json"

        client = self.client or http_client
        try:
            response = await client.request(
                method,
                self.url_for(path),
                params=dict(query) if query else None,
                content=body,
                headers=headers,
                auth=self.auth,
                timeout=settings.http_timeout,
            )
        except httpx.TimeoutException:
            raise TransportError(f"{method} {path} on {self.name} timed out")
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} on {self.name} failed: {e}") from e

        logger.debug("%s %s on %s -> %d", method, path, self.name, response.status_code)
        return response.content, response.status_code


class ServiceRegistry:
    """All configured services, by name."""

    def __init__(self, services: Mapping[str, ServiceConfig], client: Optional[httpx.AsyncClient] = None):
        self._services = {name: ArrService(name, cfg, client) for name, cfg in services.items()}

    def get(self, name: str) -> ArrService:
        try:
            return self._services[name]
        except KeyError:
            available = ", ".join(self.names()) or "none"
            raise NotConfigured(f"service {name!r} not found. Available: {available}") from None

    def names(self) -> list[str]:
        return sorted(self._services)
