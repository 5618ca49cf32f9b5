"""SQLite-backed cache for fetched artifacts."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
from pathlib import Path

from .base import BaseFetcher, FetchedArtifact

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS artifact_cache (
  cache_key TEXT PRIMARY KEY,
  location TEXT NOT NULL,
  artifact_json TEXT NOT NULL,
  created_at REAL NOT NULL,
  expires_at REAL
);
CREATE INDEX IF NOT EXISTS idx_artifact_cache_expires ON artifact_cache (expires_at);
"""


def cache_key_for(location: str) -> str:
    return hashlib.sha256(location.encode("utf-8")).hexdigest()


class ArtifactCache:
    """
    Artifact text keyed by the SHA-256 of its location.

    Rows written while ``ttl_seconds`` is set expire after that many seconds;
    expired rows are dropped when read.
    """

    db_path: Path
    ttl_seconds: float | None

    def __init__(self, db_path: str | Path, ttl_seconds: float | None = None) -> None:
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_seconds
        self.hits = 0
        self.misses = 0
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as connection:
            _ = connection.executescript(SCHEMA_SQL)

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self.db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def get(self, location: str) -> FetchedArtifact | None:
        key = cache_key_for(location)
        with self._connect() as connection:
            row = connection.execute(
                "SELECT artifact_json, expires_at FROM artifact_cache WHERE cache_key = ?",
                (key,),
            ).fetchone()
            if row is not None and row["expires_at"] is not None and row["expires_at"] < time.time():
                _ = connection.execute("DELETE FROM artifact_cache WHERE cache_key = ?", (key,))
                row = None

        if row is None:
            self.misses += 1
            return None
        payload = json.loads(row["artifact_json"])
        if not isinstance(payload, dict):
            logger.warning(f"Discarding malformed cache row for {location}")
            self.misses += 1
            return None
        self.hits += 1
        return FetchedArtifact.from_dict(payload, from_cache=True)

    def set(self, artifact: FetchedArtifact) -> None:
        now = time.time()
        expires_at = now + self.ttl_seconds if self.ttl_seconds else None
        with self._connect() as connection:
            _ = connection.execute(
                "INSERT OR REPLACE INTO artifact_cache "
                "(cache_key, location, artifact_json, created_at, expires_at) VALUES (?, ?, ?, ?, ?)",
                (
                    cache_key_for(artifact.location),
                    artifact.location,
                    json.dumps(artifact.to_dict(), ensure_ascii=False),
                    now,
                    expires_at,
                ),
            )

    def purge_expired(self) -> int:
        """Delete every expired row; returns how many were removed."""
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM artifact_cache WHERE expires_at IS NOT NULL AND expires_at < ?",
                (time.time(),),
            )
            return cursor.rowcount

    def clear(self) -> None:
        with self._connect() as connection:
            _ = connection.execute("DELETE FROM artifact_cache")

    async def get_or_fetch(self, fetcher: BaseFetcher, location: str) -> FetchedArtifact:
        cached = self.get(location)
        if cached is not None:
            logger.debug(f"Cache hit for {location}")
            return cached
        artifact = await fetcher.fetch(location)
        self.set(artifact)
        return artifact


class CachedFetcher(BaseFetcher):
    """Fetcher decorator that serves repeat locations from an ArtifactCache."""

    def __init__(self, inner: BaseFetcher, cache: ArtifactCache) -> None:
        super().__init__(fetcher_id=f"cached:{inner.fetcher_id}")
        self.inner = inner
        self.cache = cache

    async def fetch(self, location: str) -> FetchedArtifact:  # pyright: ignore[reportImplicitOverride]
        return await self.cache.get_or_fetch(self.inner, location)
