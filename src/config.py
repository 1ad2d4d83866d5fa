"""
Configuration for the arr-mcp server.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from errors import ConfigError


class Settings(BaseSettings):
    """
    Process-level settings loaded from environment variables.

    Environment variables:
        ARR_MCP_CONFIG: Path to the YAML service configuration file.
                        Defaults to ~/.config/arr-mcp/config.yaml
        CACHE_DIR: Directory for caching fetched OpenAPI documents.
                   Defaults to ~/.cache/arr-mcp
        CACHE_TTL: Cache TTL in seconds. Default: 86400 (24 hours)
        HTTP_TIMEOUT: Timeout in seconds for every outbound request. Default: 30
        LOG_LEVEL: Logging level name. Default: INFO
    """

    config_path: Path = Field(
        default=Path.home() / ".config" / "arr-mcp" / "config.yaml",
        alias="ARR_MCP_CONFIG",
        description="Path to the YAML service configuration file",
    )

    cache_dir: Path = Field(
        default=Path.home() / ".cache" / "arr-mcp",
        alias="CACHE_DIR",
        description="Directory for caching fetched OpenAPI documents",
    )

    cache_ttl: int = Field(
        default=86400,  # 24 hours
        alias="CACHE_TTL",
        description="Cache TTL in seconds",
    )

    http_timeout: float = Field(
        default=30.0,
        alias="HTTP_TIMEOUT",
        description="Timeout in seconds for outbound HTTP requests",
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level name",
    )


# Global settings instance
settings = Settings()


# --- Service defaults ---

DEFAULT_API_VERSIONS = {
    "sonarr": "/api/v3",
    "radarr": "/api/v3",
    "lidarr": "/api/v1",
    "readarr": "/api/v1",
    "prowlarr": "/api/v1",
    "bazarr": "/api",
    "overseerr": "/api/v1",
}

DEFAULT_OPENAPI_URLS = {
    "sonarr": "https://raw.githubusercontent.com/Sonarr/Sonarr/develop/src/Sonarr.Api.V3/openapi.json",
    "radarr": "https://raw.githubusercontent.com/Radarr/Radarr/develop/src/Radarr.Api.V3/openapi.json",
    "lidarr": "https://raw.githubusercontent.com/Lidarr/Lidarr/develop/src/Lidarr.Api.V1/openapi.json",
    "readarr": "https://raw.githubusercontent.com/Readarr/Readarr/develop/src/Readarr.Api.V1/openapi.json",
    "prowlarr": "https://raw.githubusercontent.com/Prowlarr/Prowlarr/develop/src/Prowlarr.Api.V1/openapi.json",
    "overseerr": "https://raw.githubusercontent.com/sct/overseerr/develop/overseerr-api.yml",
}

DEFAULT_AUTH_HEADER = "X-Api-Key"


class ServiceConfig(BaseModel):
    """Connection settings for one *arr service."""

    url: str = Field(description="Base URL (e.g., 'http://localhost:8989')")
    api_key: str = Field(default="", description="API key or basic-auth username")
    auth_method: Optional[Literal["header", "query", "basic"]] = Field(
        default=None, description="How the API key is sent"
    )
    auth_header: Optional[str] = Field(default=None, description="Header name for header auth")
    api_version: Optional[str] = Field(default=None, description="API path prefix (e.g., '/api/v3')")
    openapi_url: Optional[str] = Field(default=None, description="OpenAPI document URL override")
    display_name: Optional[str] = Field(default=None, description="Human-readable name")


class AppConfig(BaseModel):
    """Contents of the YAML configuration file."""

    services: dict[str, ServiceConfig] = Field(default_factory=dict)
    max_response_size_kb: int = Field(default=50, description="Size Governor threshold in KB")
    allow_destructive: bool = Field(default=False, description="Permit DELETE requests via call_api")


def apply_defaults(name: str, svc: ServiceConfig) -> ServiceConfig:
    """Fill unset fields of a service from the defaults for its name."""
    auth_method = svc.auth_method or "header"
    auth_header = svc.auth_header
    if not auth_header and auth_method == "header":
        auth_header = DEFAULT_AUTH_HEADER

    return svc.model_copy(
        update={
            "url": svc.url.rstrip("/"),
            "auth_method": auth_method,
            "auth_header": auth_header,
            "api_version": svc.api_version if svc.api_version is not None else DEFAULT_API_VERSIONS.get(name, ""),
            "openapi_url": svc.openapi_url or DEFAULT_OPENAPI_URLS.get(name),
            "display_name": svc.display_name or name.capitalize(),
        }
    )


def parse_config(raw: Optional[dict]) -> AppConfig:
    """Validate a decoded config mapping and apply per-service defaults."""
    try:
        cfg = AppConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e

    cfg.services = {name: apply_defaults(name, svc) for name, svc in cfg.services.items()}
    if cfg.max_response_size_kb <= 0:
        cfg.max_response_size_kb = 50
    return cfg


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load the YAML configuration file."""
    path = Path(path) if path else settings.config_path
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"reading config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing config {path}: {e}") from e

    if raw is not None and not isinstance(raw, dict):
        raise ConfigError(f"parsing config {path}: top level must be a mapping")
    return parse_config(raw)
