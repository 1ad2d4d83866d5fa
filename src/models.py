"""
Data models for the arr-mcp server.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Endpoint Index Models ---

class EndpointSummary(BaseModel):
    """Compact listing entry for one endpoint."""
    model_config = ConfigDict(frozen=True)

    service: str = Field(description="Service the endpoint belongs to")
    method: str = Field(description="Upper-case HTTP method")
    path: str = Field(description="Path as declared in the OpenAPI document")
    summary: str = Field(default="", description="One-line operation summary")
    tag: str = Field(default="", description="First declared tag, or empty")


class ParameterInfo(BaseModel):
    """A single declared parameter."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: str = Field(alias="in", description="query, path, header, or cookie")
    required: bool = False
    type: str = ""
    description: str = ""


class SchemaInfo(BaseModel):
    """Simplified request body schema: top-level properties only."""
    model_config = ConfigDict(frozen=True)

    content_type: str
    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Property name -> {type, description}",
    )
    required: list[str] = Field(default_factory=list)
    example: Optional[Any] = None


class EndpointDetail(BaseModel):
    """Full documentation for one (path, method) pair."""
    model_config = ConfigDict(frozen=True)

    service: str
    method: str
    path: str
    summary: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    parameters: tuple[ParameterInfo, ...] = ()
    request_body: Optional[SchemaInfo] = None
    responses: dict[str, str] = Field(
        default_factory=dict,
        description="Status code -> description",
    )

    def to_summary(self) -> EndpointSummary:
        return EndpointSummary(
            service=self.service,
            method=self.method,
            path=self.path,
            summary=self.summary,
            tag=self.tags[0] if self.tags else "",
        )


# --- Tool Output Models ---

class ServiceInfo(BaseModel):
    """A configured service as reported by list_services."""
    name: str
    display_name: str
    url: str
    auth_method: str
    has_spec: bool = False
    endpoints: int = 0
