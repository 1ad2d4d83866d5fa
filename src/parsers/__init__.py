"""Parsers for OpenAPI and Swagger interface description documents."""

from parsers.openapi import (
    HTTP_METHODS,
    RefResolver,
    build_endpoints,
    flatten_properties,
    load_document,
    parse_spec,
    resolve_external_refs,
    validate_document,
)

__all__ = [
    "HTTP_METHODS",
    "RefResolver",
    "build_endpoints",
    "flatten_properties",
    "load_document",
    "parse_spec",
    "resolve_external_refs",
    "validate_document",
]
