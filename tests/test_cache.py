"""
Tests for the on-disk OpenAPI document cache.

Run with: pytest tests/test_cache.py -v
"""

import os
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache import SpecCache

URL = "https://example.org/openapi.json"


def test_miss_when_empty(tmp_path):
    assert SpecCache(tmp_path).get(URL) is None


def test_put_then_get(tmp_path):
    cache = SpecCache(tmp_path)
    cache.put(URL, b'{"openapi": "3.0.0"}')
    assert cache.get(URL) == b'{"openapi": "3.0.0"}'


def test_key_is_truncated_sha256_hex():
    key = SpecCache.key_for(URL)
    assert key.endswith(".json")
    assert len(key) == 16 + len(".json")
    assert key == SpecCache.key_for(URL)
    assert key != SpecCache.key_for(URL + "?v=2")


def test_put_creates_directory(tmp_path):
    cache = SpecCache(tmp_path / "nested" / "dir")
    cache.put(URL, b"x")
    assert cache.path_for(URL).exists()


def test_overwrite(tmp_path):
    cache = SpecCache(tmp_path)
    cache.put(URL, b"old")
    cache.put(URL, b"new")
    assert cache.get(URL) == b"new"


def test_stale_entry_is_absent(tmp_path):
    cache = SpecCache(tmp_path, ttl=60)
    cache.put(URL, b"data")
    old = time.time() - 120
    os.utime(cache.path_for(URL), (old, old))
    assert cache.get(URL) is None


def test_invalidate(tmp_path):
    cache = SpecCache(tmp_path)
    cache.put(URL, b"data")
    cache.invalidate(URL)
    assert cache.get(URL) is None
    # Absent entries are fine
    cache.invalidate(URL)


def test_try_put_reports_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    cache = SpecCache(blocker)
    assert cache.try_put(URL, b"data") is False
    assert cache.get(URL) is None


def test_try_put_success(tmp_path):
    cache = SpecCache(tmp_path)
    assert cache.try_put(URL, b"data") is True
