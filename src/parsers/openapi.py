"""OpenAPI 3.x / Swagger 2.0 document parsing into an EndpointIndex."""

import json
import logging
from typing import Any, Optional

import yaml
from prance.util.resolver import RESOLVE_FILES, RESOLVE_HTTP
from prance.util.resolver import RefResolver as PranceResolver
from pydantic import ValidationError

from errors import ParseError
from index import EndpointIndex
from models import EndpointDetail, ParameterInfo, SchemaInfo

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Locations that describe a request body rather than a parameter (Swagger 2.0)
BODY_LOCATIONS = ("body", "formData")

MAX_ALLOF_DEPTH = 8

LOCAL_REF_KEY = "x-arr-mcp-local-ref"


def load_document(data: bytes) -> dict:
    """Decode a JSON or YAML document into a mapping."""
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"document is not valid UTF-8: {e}") from e
    else:
        text = data

    try:
        doc = json.loads(text)
    except ValueError:
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParseError(f"document is neither JSON nor YAML: {e}") from e

    if not isinstance(doc, dict):
        raise ParseError("document root must be a mapping")
    return doc


def validate_document(doc: dict) -> list[str]:
    """Basic structural checks. Problems are reported, never raised."""
    warnings = []
    if "openapi" not in doc and "swagger" not in doc:
        warnings.append("Missing 'openapi' or 'swagger' version field")
    if not isinstance(doc.get("info"), dict):
        warnings.append("Missing 'info' section")
    if "paths" not in doc:
        warnings.append("No paths defined in specification")
    elif not isinstance(doc["paths"], dict):
        warnings.append("'paths' is not a mapping")
    return warnings


class RefResolver:
    """Resolves local JSON pointer references (``#/...``) within one document."""

    def __init__(self, doc: dict):
        self.doc = doc
        self.warnings: list[str] = []

    def _lookup(self, ref: str) -> Any:
        node: Any = self.doc
        for raw in ref[2:].split("/"):
            part = raw.replace("~1", "/").replace("~0", "~")
            if isinstance(node, dict) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return None
        return node

    def resolve(self, node: Any) -> Any:
        """Follow ``$ref`` chains until a concrete node is reached."""
        seen = set()
        while isinstance(node, dict) and "$ref" in node:
            ref = node["$ref"]
            if not isinstance(ref, str) or not ref.startswith("#/"):
                self.warnings.append(f"unsupported reference {ref!r}")
                return {}
            if ref in seen:
                self.warnings.append(f"circular reference {ref!r}")
                return {}
            seen.add(ref)
            target = self._lookup(ref)
            if target is None:
                self.warnings.append(f"unresolved reference {ref!r}")
                return {}
            node = target
        return node


def _schema_type(schema: dict) -> str:
    t = schema.get("type")
    if isinstance(t, list):
        # OpenAPI 3.1 allows ["string", "null"]
        t = next((x for x in t if x != "null"), t[0] if t else None)
    return t if isinstance(t, str) and t else "unknown"


def _merged_schema(resolver: RefResolver, schema: Any, depth: int = 0) -> dict:
    """Resolve a schema and fold ``allOf`` members into one mapping."""
    schema = resolver.resolve(schema)
    if not isinstance(schema, dict):
        return {}
    if "allOf" not in schema or depth >= MAX_ALLOF_DEPTH:
        return schema

    merged = {k: v for k, v in schema.items() if k != "allOf"}
    properties = dict(_properties_of(resolver, merged))
    required = _required_of(resolver, merged)
    members = schema.get("allOf") or []
    if not isinstance(members, list):
        resolver.warnings.append("'allOf' is not a list")
        members = []
    for member in members:
        part = _merged_schema(resolver, member, depth + 1)
        properties.update(_properties_of(resolver, part))
        required.extend(r for r in _required_of(resolver, part) if r not in required)
        if "type" not in merged and "type" in part:
            merged["type"] = part["type"]
    merged["properties"] = properties
    merged["required"] = required
    return merged


def _properties_of(resolver: RefResolver, schema: dict) -> dict:
    props = schema.get("properties")
    if props is None:
        return {}
    if not isinstance(props, dict):
        resolver.warnings.append("'properties' is not a mapping")
        return {}
    return props


def _required_of(resolver: RefResolver, schema: dict) -> list[str]:
    required = schema.get("required")
    if required is None:
        return []
    if not isinstance(required, list):
        resolver.warnings.append("'required' is not a list")
        return []
    return [r for r in required if isinstance(r, str)]


def flatten_properties(resolver: RefResolver, schema: dict) -> dict[str, dict]:
    """Top-level properties of a schema as name -> {type, description}."""
    props = {}
    declared = schema.get("properties")
    if not isinstance(declared, dict):
        return props
    for name, prop in declared.items():
        prop = _merged_schema(resolver, prop)
        entry = {"type": _schema_type(prop)}
        if prop.get("description"):
            entry["description"] = prop["description"]
        props[name] = entry
    return props


def _schema_info(resolver: RefResolver, content_type: str, media: Any) -> SchemaInfo:
    media = resolver.resolve(media) if isinstance(media, dict) else {}
    schema = _merged_schema(resolver, media.get("schema") or {})
    example = media.get("example", schema.get("example"))
    return SchemaInfo(
        content_type=content_type,
        properties=flatten_properties(resolver, schema),
        required=_required_of(resolver, schema),
        example=example,
    )


def _merge_parameters(resolver: RefResolver, *groups: Any) -> list[dict]:
    """Combine path-level and operation-level parameters; later groups win."""
    merged: dict[tuple, dict] = {}
    for group in groups:
        if not isinstance(group, list):
            continue
        for raw in group:
            param = resolver.resolve(raw)
            if not isinstance(param, dict):
                continue
            name, location = param.get("name"), param.get("in", "query")
            if not isinstance(name, str) or not isinstance(location, str):
                resolver.warnings.append(f"skipping parameter with invalid name or location: {name!r}")
                continue
            merged[(name, location)] = param
    return list(merged.values())


def _parameter_info(resolver: RefResolver, param: dict) -> ParameterInfo:
    schema = resolver.resolve(param.get("schema")) if "schema" in param else param
    if not isinstance(schema, dict):
        schema = {}
    return ParameterInfo(
        name=str(param["name"]),
        location=param.get("in", "query"),
        required=bool(param.get("required", False)),
        type=_schema_type(schema),
        description=param.get("description") or "",
    )


def _consumes(resolver: RefResolver, consumes: Any) -> list[str]:
    """Swagger 2.0 ``consumes`` as a list of media types."""
    if not consumes:
        return []
    if isinstance(consumes, str):
        return [consumes]
    if not isinstance(consumes, list):
        resolver.warnings.append("'consumes' is not a list")
        return []
    return [c for c in consumes if isinstance(c, str)]


def _request_body(
    resolver: RefResolver, doc: dict, operation: dict, body_params: list[dict]
) -> Optional[SchemaInfo]:
    body = operation.get("requestBody")
    if body is not None:
        body = resolver.resolve(body)
        content = body.get("content") if isinstance(body, dict) else None
        if isinstance(content, dict):
            # First declared content type only
            for content_type, media in content.items():
                return _schema_info(resolver, content_type, media)
        return None

    consumes = _consumes(resolver, operation.get("consumes") or doc.get("consumes"))
    for param in body_params:
        if param.get("in") == "body":
            content_type = consumes[0] if consumes else "application/json"
            return _schema_info(resolver, content_type, {"schema": param.get("schema") or {}})

    form = [p for p in body_params if p.get("in") == "formData"]
    if form:
        content_type = consumes[0] if consumes else "application/x-www-form-urlencoded"
        properties = {}
        for p in form:
            entry = {"type": _schema_type(p)}
            if p.get("description"):
                entry["description"] = p["description"]
            properties[p["name"]] = entry
        return SchemaInfo(
            content_type=content_type,
            properties=properties,
            required=[p["name"] for p in form if p.get("required")],
        )
    return None


def _responses(resolver: RefResolver, responses: Any) -> dict[str, str]:
    result = {}
    if not isinstance(responses, dict):
        return result
    for code, resp in responses.items():
        resp = resolver.resolve(resp)
        if isinstance(resp, dict) and isinstance(resp.get("description"), str):
            result[str(code)] = resp["description"]
    return result


def _build_operation(
    service: str, doc: dict, resolver: RefResolver, path: str, method: str, path_item: dict, operation: dict
) -> EndpointDetail:
    params = _merge_parameters(resolver, path_item.get("parameters"), operation.get("parameters"))
    regular = [p for p in params if p.get("in") not in BODY_LOCATIONS]
    body_params = [p for p in params if p.get("in") in BODY_LOCATIONS]

    tags = operation.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]
    return EndpointDetail(
        service=service,
        method=method.upper(),
        path=path,
        summary=operation.get("summary") or "",
        description=operation.get("description") or "",
        tags=tuple(str(t) for t in tags if t is not None),
        parameters=tuple(_parameter_info(resolver, p) for p in regular),
        request_body=_request_body(resolver, doc, operation, body_params),
        responses=_responses(resolver, operation.get("responses")),
    )


def build_endpoints(service: str, doc: dict, resolver: RefResolver) -> dict[str, dict[str, EndpointDetail]]:
    """
    Walk the paths table and build path -> method -> EndpointDetail.

    An operation that cannot be built is skipped with a warning; the rest of
    the document is still indexed.
    """
    endpoints: dict[str, dict[str, EndpointDetail]] = {}
    paths = doc.get("paths")
    if not isinstance(paths, dict):
        return endpoints

    for path, path_item in paths.items():
        path_item = resolver.resolve(path_item)
        if not isinstance(path_item, dict):
            continue

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            try:
                detail = _build_operation(service, doc, resolver, str(path), method, path_item, operation)
            except ValidationError as e:
                resolver.warnings.append(f"skipping {method.upper()} {path}: {e.error_count()} invalid fields")
                continue
            except Exception as e:
                resolver.warnings.append(f"skipping {method.upper()} {path}: {type(e).__name__}: {e}")
                continue
            endpoints.setdefault(str(path), {})[method.upper()] = detail

    return endpoints


def _has_external_refs(node: Any) -> bool:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and not ref.startswith("#"):
            return True
        return any(_has_external_refs(v) for v in node.values())
    if isinstance(node, list):
        return any(_has_external_refs(v) for v in node)
    return False


def _rename_local_refs(node: Any, old: str, new: str) -> Any:
    """Copy of ``node`` with the key of every ``#/...`` reference renamed."""
    if isinstance(node, dict):
        ref = node.get(old)
        return {
            (new if k == old and isinstance(ref, str) and ref.startswith("#") else k): _rename_local_refs(v, old, new)
            for k, v in node.items()
        }
    if isinstance(node, list):
        return [_rename_local_refs(v, old, new) for v in node]
    return node


def _stop_recursion(limit, parsed_url, recursions=()):
    return {}


def resolve_external_refs(doc: dict, base_url: Optional[str], warnings: list[str]) -> dict:
    """
    Inline references to other documents (``other.yaml#/Pet``, absolute
    URLs) using prance. Local ``#/...`` pointers are left for RefResolver.

    Relative references need the URL the document was fetched from. A
    failure leaves the document as it was and adds a warning.
    """
    if not _has_external_refs(doc):
        return doc
    if not base_url:
        warnings.append("external references present but the document URL is unknown")
        return doc

    # prance would fetch the root document again to follow its own local
    # pointers, so those are hidden from it while it runs.
    masked = _rename_local_refs(doc, "$ref", LOCAL_REF_KEY)
    resolver = PranceResolver(
        masked,
        base_url,
        resolve_types=RESOLVE_HTTP | RESOLVE_FILES,
        recursion_limit_handler=_stop_recursion,
    )
    try:
        resolver.resolve_references()
    except Exception as e:
        warnings.append(f"resolving external references: {e}")
        return doc
    return _rename_local_refs(resolver.specs, LOCAL_REF_KEY, "$ref")


def parse_spec(service: str, data: bytes, base_url: Optional[str] = None) -> EndpointIndex:
    """
    Parse a raw OpenAPI/Swagger document into an EndpointIndex.

    ``base_url`` is where the document came from; relative external
    references are resolved against it. Structural problems and
    unresolvable references are logged as warnings; only an undecodable
    document raises ParseError.
    """
    doc = load_document(data)
    warnings = validate_document(doc)

    doc = resolve_external_refs(doc, base_url, warnings)
    resolver = RefResolver(doc)
    endpoints = build_endpoints(service, doc, resolver)
    warnings.extend(resolver.warnings)

    if warnings:
        shown = "; ".join(warnings[:5])
        more = f" (+{len(warnings) - 5} more)" if len(warnings) > 5 else ""
        logger.warning("spec validation for %s: %s%s", service, shown, more)

    return EndpointIndex(service, endpoints)
