"""
Tests for the response size guard.

Run with: pytest tests/test_governor.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from governor import find_largest_array, govern, serialize


def _records(n, padding=2000):
    return [{"id": i, "title": f"Movie {i}", "overview": "x" * padding} for i in range(n)]


def test_small_payload_passes_through():
    data = {"records": _records(2, padding=10), "page": 1}
    payload, replaced = govern(data, max_size_kb=50)
    assert payload is data
    assert replaced is False


def test_envelope_diagnostic():
    data = {"records": _records(50), "page": 1}
    payload, replaced = govern(data, max_size_kb=50)

    assert replaced is True
    assert payload["fieldPath"] == "records"
    assert payload["itemCount"] == 50
    assert payload["availableFields"] == ["id", "title", "overview"]
    assert payload["originalSizeKB"] == len(serialize(data).encode()) // 1024
    assert payload["examples"][0] == "fields=records.id,records.title"


def test_available_fields_keep_document_order():
    items = [{"title": f"Movie {i}", "id": i, "overview": "x" * 2000} for i in range(20)]
    payload, replaced = govern({"records": items}, max_size_kb=10)

    assert replaced is True
    assert payload["availableFields"] == ["title", "id", "overview"]
    assert payload["examples"] == [
        "fields=records.title,records.id",
        "fields=records.title,records.id,records.overview",
    ]


def test_top_level_array_diagnostic():
    payload, replaced = govern(_records(40), max_size_kb=10)
    assert replaced is True
    assert payload["fieldPath"] == ""
    assert payload["itemCount"] == 40
    assert payload["examples"][0] == "fields=id,title"


def test_no_array_generic_diagnostic():
    payload, replaced = govern({"blob": "x" * 4096}, max_size_kb=1)
    assert replaced is True
    assert set(payload) == {"error", "originalSizeKB", "hint"}
    assert payload["originalSizeKB"] == 4


def test_threshold_uses_1024_byte_kb():
    data = "x" * (2 * 1024 - 2)  # serialized with surrounding quotes: exactly 2048 bytes
    assert govern(data, max_size_kb=2) == (data, False)
    assert govern(data + "x", max_size_kb=2)[1] is True


def test_largest_array_one_level_only():
    data = {"small": [1], "big": [1, 2, 3], "nested": {"huge": list(range(100))}}
    assert find_largest_array(data) == ("big", [1, 2, 3])
    assert find_largest_array("scalar") is None
    assert find_largest_array({"a": 1}) is None


def test_scalar_items_have_no_fields():
    payload, _ = govern(list(range(5000)), max_size_kb=1)
    assert payload["availableFields"] == []
    assert payload["examples"] == []
    assert payload["itemCount"] == 5000
