"""Disk cache with TTL for fetched interface description documents."""

import hashlib
import logging
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 86400  # 24 hours


class SpecCache:
    """
    Best-effort file cache keyed by source URL.

    Each document lives in its own file named after a truncated SHA-256 of
    the URL. The file's mtime is the cache timestamp. Any I/O problem on
    read is treated as a miss.
    """

    def __init__(self, directory: Path, ttl: int = DEFAULT_TTL):
        self.directory = Path(directory)
        self.ttl = ttl

    @staticmethod
    def key_for(url: str) -> str:
        """Cache filename for a URL."""
        digest = hashlib.sha256(url.encode("utf-8")).digest()
        return f"{digest[:8].hex()}.json"

    def path_for(self, url: str) -> Path:
        return self.directory / self.key_for(url)

    def get(self, url: str) -> Optional[bytes]:
        """Get cached bytes if present and younger than the TTL."""
        path = self.path_for(url)
        try:
            age = time.time() - path.stat().st_mtime
            if age >= self.ttl:
                return None
            return path.read_bytes()
        except OSError:
            return None

    def put(self, url: str, data: bytes) -> None:
        """Store bytes for a URL, overwriting any previous entry."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(url).write_bytes(data)

    def try_put(self, url: str, data: bytes) -> bool:
        """Store bytes, logging instead of raising on failure."""
        try:
            self.put(url, data)
        except OSError as e:
            logger.warning("failed to cache spec from %s: %s", url, e)
            return False
        return True

    def invalidate(self, url: str) -> None:
        """Remove the entry for a URL, if any."""
        try:
            self.path_for(url).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("failed to invalidate cached spec for %s: %s", url, e)
