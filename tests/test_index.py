"""
Tests for EndpointIndex queries.

Run with: pytest tests/test_index.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from errors import NotFound
from index import EndpointIndex, loose_match
from models import EndpointDetail


def _detail(path, method, summary="", description="", tags=()):
    return EndpointDetail(
        service="radarr",
        method=method,
        path=path,
        summary=summary,
        description=description,
        tags=tuple(tags),
    )


@pytest.fixture
def index():
    details = [
        _detail("/api/v3/movie", "GET", "List movies", tags=["Movie"]),
        _detail("/api/v3/movie", "POST", "Add a movie", tags=["Movie"]),
        _detail("/api/v3/movie/{id}", "GET", "Get a movie", tags=["Movie"]),
        _detail("/api/v3/movie/{id}", "PUT", "Update a movie", tags=["Movie"]),
        _detail("/api/v3/queue", "GET", "Download queue", "Items currently downloading", ["Queue"]),
        _detail("/api/v3/system/status", "GET", "Status", tags=["System", "Diagnostics"]),
    ]
    endpoints = {}
    for d in details:
        endpoints.setdefault(d.path, {})[d.method] = d
    return EndpointIndex("radarr", endpoints)


class TestFilter:
    def test_count(self, index):
        assert index.count() == 6

    def test_no_filters_returns_everything(self, index):
        assert len(index.filter()) == 6

    def test_tag_is_case_insensitive_exact(self, index):
        paths = {s.path for s in index.filter(tag="movie")}
        assert paths == {"/api/v3/movie", "/api/v3/movie/{id}"}
        assert index.filter(tag="mov") == []

    def test_tag_matches_any_declared_tag(self, index):
        [summary] = index.filter(tag="DIAGNOSTICS")
        assert summary.path == "/api/v3/system/status"
        assert summary.tag == "System"

    def test_method(self, index):
        assert {(s.path, s.method) for s in index.filter(method="put")} == {("/api/v3/movie/{id}", "PUT")}

    def test_tag_result_is_subset_of_unfiltered(self, index):
        everything = set(index.filter())
        assert set(index.filter(tag="Movie")) <= everything

    def test_tags(self, index):
        assert index.tags() == ["Diagnostics", "Movie", "Queue", "System"]


class TestSearch:
    def test_matches_path(self, index):
        assert {s.path for s in index.search("SYSTEM")} == {"/api/v3/system/status"}

    def test_matches_description(self, index):
        [summary] = index.search("downloading")
        assert summary.path == "/api/v3/queue"

    def test_matches_tag(self, index):
        assert [s.path for s in index.search("diagnost")] == ["/api/v3/system/status"]

    def test_no_match(self, index):
        assert index.search("calendar") == []

    def test_results_contain_query(self, index):
        for summary in index.search("movie"):
            assert "movie" in summary.path.lower() or "movie" in summary.summary.lower()


class TestGetDetail:
    def test_exact(self, index):
        detail = index.get_detail("/api/v3/movie/{id}", "PUT")
        assert detail.summary == "Update a movie"

    def test_method_is_case_insensitive(self, index):
        assert index.get_detail("/api/v3/movie", "post").method == "POST"

    def test_suffix_fallback(self, index):
        detail = index.get_detail("/queue", "GET")
        assert detail.path == "/api/v3/queue"

    def test_fallback_prefers_shortest_containing_path(self, index):
        assert index.get_detail("/movie", "GET").path == "/api/v3/movie"

    def test_requested_path_longer_than_indexed(self, index):
        detail = index.get_detail("/api/v3/queue/details", "GET")
        assert detail.path == "/api/v3/queue"

    def test_method_fallback(self, index):
        detail = index.get_detail("/api/v3/movie", "DELETE")
        assert detail.path == "/api/v3/movie"
        assert detail.method in {"GET", "POST"}

    def test_not_found(self, index):
        with pytest.raises(NotFound):
            index.get_detail("/calendar", "GET")

    def test_empty_path_not_found(self, index):
        with pytest.raises(NotFound):
            index.get_detail("", "GET")


def test_loose_match_tie_break_is_lexical():
    assert loose_match("/b", ["/z/b", "/a/b"]) == "/a/b"


def test_index_is_read_only(index):
    with pytest.raises(TypeError):
        index.endpoints["/new"] = {}
