#!/usr/bin/env python3
"""
arr-mcp: an MCP server for *arr service APIs

Lets an agent browse the OpenAPI documentation of Sonarr, Radarr, Lidarr,
Readarr, Prowlarr, Overseerr and similar services, and make authenticated
calls against them with responses trimmed to fit a context window.

Environment variables:
    ARR_MCP_CONFIG: Path to the YAML config file (default: ~/.config/arr-mcp/config.yaml)
    CACHE_DIR: OpenAPI document cache directory (default: ~/.cache/arr-mcp)
    CACHE_TTL: Cache TTL in seconds (default: 86400)
    LOG_LEVEL: Logging level (default: INFO)
"""

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData

from cache import SpecCache
from config import AppConfig, load_config, settings
from errors import ArrMcpError, ConfigError, NotConfigured, NotFound, TransportError
from governor import govern, serialize
from models import EndpointSummary, ServiceInfo
from services import ServiceRegistry
from shaping import shape_response
from store import SpecStore

logger = logging.getLogger(__name__)

INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class AppState:
    """Everything the tools need, built once from the config."""

    def __init__(
        self,
        config: AppConfig,
        cache: Optional[SpecCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        cache = cache or SpecCache(settings.cache_dir, settings.cache_ttl)
        self.store = SpecStore(config.services, cache, client)
        self.registry = ServiceRegistry(config.services, client)


_state: Optional[AppState] = None


def configure(
    config: AppConfig,
    cache: Optional[SpecCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AppState:
    """Install the state used by the tools."""
    global _state
    _state = AppState(config, cache, client)
    return _state


@asynccontextmanager
async def lifespan(server: FastMCP):
    state = _get_state()
    logger.info("loaded config with %d services", len(state.config.services))
    await state.store.load_all()
    yield state


mcp = FastMCP(
    "arr-mcp",
    instructions="""*arr API MCP Server - Browse and call Sonarr/Radarr/Lidarr/Prowlarr/Overseerr APIs.

Tools:
- list_services() → Configured services and whether their API docs are loaded
- list_endpoints(service, tag?, method?) → Endpoints grouped by tag
- search_api(query, service?) → Full-text search over paths, summaries, descriptions, tags
- get_endpoint_details(service, path, method?) → Parameters, request body, responses
- refresh_api_specs(service?) → Re-fetch OpenAPI documents
- call_api(service, path, method?, query?, body?, fields?, filter?, limit?) → Authenticated request
- shape_json(json, fields?, filter?, limit?) → Apply fields/filter/limit to a JSON payload

Large responses are replaced with a summary of the largest list and example `fields` values.""",
    lifespan=lifespan,
)


# --- Helper Functions ---


def _error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def _get_state() -> AppState:
    if _state is None:
        raise _error(INTERNAL_ERROR, "Server is not configured")
    return _state


def _require_index(service: str):
    state = _get_state()
    index = state.store.get_index(service)
    if index is None:
        if service not in state.config.services:
            available = ", ".join(sorted(state.config.services)) or "none"
            raise _error(INVALID_PARAMS, f"Unknown service '{service}'. Available: {available}")
        raise _error(
            INVALID_PARAMS,
            f"No API spec loaded for '{service}'. Try refresh_api_specs('{service}') first.",
        )
    return index


def _format_query(raw: Optional[str]) -> Optional[dict[str, str]]:
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        raise _error(INVALID_PARAMS, f"Invalid query JSON: {e}")
    if not isinstance(decoded, dict):
        raise _error(INVALID_PARAMS, "query must be a JSON object")
    query = {}
    for key, val in decoded.items():
        if isinstance(val, bool):
            val = "true" if val else "false"
        query[key] = val if isinstance(val, str) else json.dumps(val)
    return query


def _format_summaries(summaries: list[EndpointSummary]) -> list[str]:
    lines = []
    for ep in summaries:
        lines.append(f"- {ep.method} {ep.path}" + (f" — {ep.summary}" if ep.summary else ""))
    return lines


def _shape_and_render(data, fields, filter, limit) -> str:
    if fields or filter or limit:
        data = shape_response(data, fields, filter, limit)
    payload, replaced = govern(data, _get_state().config.max_response_size_kb)
    if replaced:
        logger.info("response replaced by size diagnostic (%s KB)", payload.get("originalSizeKB"))
    return serialize(payload)


# --- Documentation Tools ---


@mcp.tool()
async def list_services() -> str:
    """
    List all configured *arr services with their URLs and API doc status.

    Returns:
        JSON list of services.
    """
    state = _get_state()
    services = []
    for name in state.registry.names():
        cfg = state.config.services[name]
        index = state.store.get_index(name)
        services.append(
            ServiceInfo(
                name=name,
                display_name=cfg.display_name or name,
                url=cfg.url,
                auth_method=cfg.auth_method or "header",
                has_spec=index is not None,
                endpoints=index.count() if index is not None else 0,
            ).model_dump()
        )
    return serialize(services)


@mcp.tool()
async def list_endpoints(service: str, tag: Optional[str] = None, method: Optional[str] = None) -> str:
    """
    List API endpoints for a service, optionally filtered by tag or HTTP method.

    Args:
        service: Service name (e.g., 'sonarr', 'radarr')
        tag: Optional API tag/category (case-insensitive)
        method: Optional HTTP method (GET, POST, PUT, DELETE)

    Returns:
        Markdown list of endpoints grouped by tag.
    """
    index = _require_index(service)
    endpoints = index.filter(tag, method)
    if not endpoints:
        tags = ", ".join(index.tags())
        return f"No endpoints match the given filters. Available tags: {tags}"

    by_tag: dict[str, list[EndpointSummary]] = {}
    for ep in endpoints:
        by_tag.setdefault(ep.tag or "untagged", []).append(ep)

    lines = [f"# {service} API Endpoints ({len(endpoints)})", ""]
    for t in sorted(by_tag):
        lines.append(f"## {t}")
        lines.extend(_format_summaries(sorted(by_tag[t], key=lambda e: (e.path, e.method))))
        lines.append("")

    lines.append("Hint: Use `get_endpoint_details(service, path, method)` for parameters and request body.")
    return "\n".join(lines)


@mcp.tool()
async def search_api(query: str, service: Optional[str] = None) -> str:
    """
    Full-text search across API specs: endpoint paths, summaries, descriptions and tags.

    Args:
        query: Search text (case-insensitive substring)
        service: Optional service name to limit the search

    Returns:
        Markdown list of matching endpoints.
    """
    if not query:
        raise _error(INVALID_PARAMS, "query is required")
    if service:
        _require_index(service)

    results = _get_state().store.search(query, service)
    if not results:
        return "No results found."

    lines = [f'# Search results for "{query}" ({len(results)} matches)', ""]
    for r in results:
        lines.append(f"**[{r.service}]** {r.method} {r.path}")
        if r.summary:
            lines.append(f"  {r.summary}")
        lines.append("")
    return "\n".join(lines).rstrip()


@mcp.tool()
async def get_endpoint_details(service: str, path: str, method: str = "GET") -> str:
    """
    Get full details for an API endpoint: parameters, request body schema, and responses.

    Args:
        service: Service name
        path: Endpoint path (e.g., '/series' or '/api/v3/series/{id}')
        method: HTTP method. Default: GET

    Returns:
        JSON endpoint description. If the exact path or method is not documented,
        the closest documented endpoint is returned.
    """
    if not path:
        raise _error(INVALID_PARAMS, "path is required")
    index = _require_index(service)
    try:
        detail = index.get_detail(path, method)
    except NotFound as e:
        raise _error(INVALID_PARAMS, f"{e}. Use search_api to find the right path.")
    return serialize(detail.model_dump(mode="json", by_alias=True, exclude_none=True))


@mcp.tool()
async def refresh_api_specs(service: Optional[str] = None) -> str:
    """
    Force re-fetch and re-parse of OpenAPI specs for one or all services.

    Args:
        service: Service name to refresh (omit for all)

    Returns:
        Outcome per service.
    """
    store = _get_state().store
    if service:
        try:
            index = await store.refresh(service)
        except NotConfigured as e:
            raise _error(INVALID_PARAMS, str(e))
        except ArrMcpError as e:
            raise _error(INTERNAL_ERROR, f"Failed to refresh {service}: {e}")
        return f"Refreshed spec for {service} ({index.count()} endpoints)"

    errors = await store.refresh_all()
    if not errors:
        return "All specs refreshed successfully"

    lines = ["Refresh completed with errors:"]
    for name in sorted(errors):
        lines.append(f"- {name}: {errors[name]}")
    return "\n".join(lines)


# --- API Call Tools ---


@mcp.tool()
async def call_api(
    service: str,
    path: str,
    method: str = "GET",
    query: Optional[str] = None,
    body: Optional[str] = None,
    fields: Optional[str] = None,
    filter: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    """
    Make an authenticated API call to a configured *arr service.

    Args:
        service: Service name (e.g., 'sonarr', 'radarr')
        path: API path (e.g., '/series'). The API version prefix is added automatically.
        method: HTTP method. Default: GET
        query: Query parameters as a JSON object (e.g., '{"term": "breaking bad"}')
        body: Request body as a JSON string
        fields: Comma-separated fields to keep, dot notation for nesting
                (e.g., 'id,title,statistics.sizeOnDisk' or 'records.id,records.title')
        filter: Filter list items, 'field:op:value' with op in contains, eq, ne, gt, lt
                (e.g., 'title:contains:Pirates', 'year:gt:2000', 'hasFile:eq:true')
        limit: Max number of list items to return

    Returns:
        JSON response, or a size summary with example fields when the response is too large.
    """
    state = _get_state()
    method = (method or "GET").upper()

    if method == "DELETE" and not state.config.allow_destructive:
        raise _error(
            INVALID_PARAMS,
            "DELETE requests are disabled. Set allow_destructive: true in the config to enable them.",
        )

    try:
        svc = state.registry.get(service)
    except NotConfigured as e:
        raise _error(INVALID_PARAMS, str(e))

    params = _format_query(query)
    payload = None
    if body:
        try:
            json.loads(body)
        except ValueError as e:
            raise _error(INVALID_PARAMS, f"Invalid body JSON: {e}")
        payload = body.encode("utf-8")

    try:
        content, status = await svc.perform_request(method, path, params, payload)
    except TransportError as e:
        raise _error(INTERNAL_ERROR, f"Request failed: {e}")

    try:
        data = json.loads(content) if content else None
    except ValueError:
        return f"status: {status}\n{content.decode('utf-8', errors='replace')}"

    rendered = _shape_and_render(data, fields, filter, limit)
    if status >= 400:
        return f"status: {status}\n{rendered}"
    return rendered


@mcp.tool()
async def shape_json(
    json_data: str,
    fields: Optional[str] = None,
    filter: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    """
    Apply fields/filter/limit to a JSON payload you already have.

    Args:
        json_data: JSON text
        fields: Comma-separated fields to keep, dot notation for nesting
        filter: 'field:op:value' with op in contains, eq, ne, gt, lt
        limit: Max number of list items

    Returns:
        Shaped JSON, or a size summary when still too large.
    """
    try:
        data = json.loads(json_data)
    except ValueError as e:
        raise _error(INVALID_PARAMS, f"Invalid JSON: {e}")
    return _shape_and_render(data, fields, filter, limit)


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config()
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)

    configure(config)
    logger.info("starting arr-mcp server (stdio)")
    mcp.run()


if __name__ == "__main__":
    main()
