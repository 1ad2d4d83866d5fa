"""Queryable per-service index of parsed endpoints."""

from types import MappingProxyType
from typing import Mapping, Optional

from errors import NotFound
from models import EndpointDetail, EndpointSummary


class EndpointIndex:
    """
    Parsed endpoints for a single service, keyed path -> method -> detail.

    The index is built once and never mutated; a refresh replaces the whole
    object.
    """

    def __init__(self, service: str, endpoints: Mapping[str, Mapping[str, EndpointDetail]]):
        self.service = service
        self._endpoints = MappingProxyType(
            {path: MappingProxyType(dict(methods)) for path, methods in endpoints.items()}
        )

    @property
    def endpoints(self) -> Mapping[str, Mapping[str, EndpointDetail]]:
        return self._endpoints

    def __iter__(self):
        for methods in self._endpoints.values():
            yield from methods.values()

    def count(self) -> int:
        """Total number of (path, method) pairs."""
        return sum(len(methods) for methods in self._endpoints.values())

    def tags(self) -> list[str]:
        """Distinct tags across all endpoints, sorted."""
        return sorted({tag for detail in self for tag in detail.tags})

    def filter(self, tag: Optional[str] = None, method: Optional[str] = None) -> list[EndpointSummary]:
        """Endpoint summaries matching optional tag and method filters."""
        tag = tag.lower() if tag else None
        method = method.upper() if method else None

        results = []
        for detail in self:
            if method and detail.method != method:
                continue
            if tag and not any(t.lower() == tag for t in detail.tags):
                continue
            results.append(detail.to_summary())
        return results

    def search(self, query: str) -> list[EndpointSummary]:
        """Case-insensitive substring search over path, summary, description and tags."""
        query = query.lower()
        return [detail.to_summary() for detail in self if matches(query, detail)]

    def get_detail(self, path: str, method: Optional[str] = None) -> EndpointDetail:
        """
        Best available documentation for an endpoint.

        Falls back to a loosely matching path when there is no exact match,
        and to another method of that path when the requested method is not
        declared.
        """
        methods = self._endpoints.get(path)
        if methods is None:
            match = loose_match(path, self._endpoints)
            if match is None:
                raise NotFound(f"endpoint {path} not found in {self.service} API")
            methods = self._endpoints[match]

        if method and method.upper() in methods:
            return methods[method.upper()]
        if not methods:
            raise NotFound(f"no methods documented for {path} in {self.service} API")
        return methods[min(methods)]


def loose_match(path: str, paths) -> Optional[str]:
    """
    Pick an indexed path for a requested path that has no exact entry.

    Indexed paths that start or end with the requested path win first, the
    shortest of them (so "/series" finds "/api/v3/series"). Otherwise the
    longest indexed path that the requested path starts or ends with is
    used. Ties break lexically.
    """
    if not path:
        return None
    containing = [p for p in paths if p.startswith(path) or p.endswith(path)]
    if containing:
        return min(containing, key=lambda p: (len(p), p))
    contained = [p for p in paths if p and (path.startswith(p) or path.endswith(p))]
    if contained:
        return min(contained, key=lambda p: (-len(p), p))
    return None


def matches(query: str, detail: EndpointDetail) -> bool:
    """True if a lower-cased query is a substring of any searchable field."""
    if query in detail.path.lower():
        return True
    if query in detail.summary.lower():
        return True
    if query in detail.description.lower():
        return True
    return any(query in tag.lower() for tag in detail.tags)
