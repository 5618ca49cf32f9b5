"""Artifact fetcher implementations."""

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
import urllib.request
from collections.abc import Iterable, Mapping
from pathlib import Path

from playground.schemas import FetchSettings

from .base import BaseFetcher, FetchedArtifact, FetchError
from .cache import ArtifactCache, CachedFetcher
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "docs-sandbox/0.1"

_URL_SCHEMES = {"http", "https", "file"}


def _is_local_path(location: str) -> bool:
    scheme = urllib.parse.urlsplit(location).scheme
    # single-letter schemes are Windows drive letters
    return scheme == "" or len(scheme) == 1


class UrlFetcher(BaseFetcher):
    """Fetch artifacts over http(s), file:// URLs or from local paths."""

    timeout_seconds: int
    user_agent: str
    base_dir: Path | None
    _retry_policy: RetryPolicy | None

    def __init__(
        self,
        fetcher_id: str = "url",
        timeout_seconds: int = 30,
        retry_policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        base_dir: str | Path | None = None,
    ) -> None:
        super().__init__(fetcher_id=fetcher_id)
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._retry_policy = retry_policy

    async def fetch(self, location: str) -> FetchedArtifact:  # pyright: ignore[reportImplicitOverride]
        start = time.perf_counter()
        try:
            text = await asyncio.to_thread(self._download_with_retry, location)
        except Exception as exc:
            self._record(None)
            raise FetchError(location, f"{exc.__class__.__name__}: {exc}") from exc
        latency_ms = (time.perf_counter() - start) * 1000
        self._record(latency_ms)
        logger.debug(f"Fetched {location} in {latency_ms:.1f}ms")
        return FetchedArtifact(location=location, text=text, latency_ms=latency_ms)

    def _download_with_retry(self, location: str) -> str:
        if self._retry_policy is None:
            return self._download(location)
        return self._retry_policy.execute(lambda: self._download(location))

    def _download(self, location: str) -> str:
        if _is_local_path(location):
            path = Path(location)
            if not path.is_absolute() and self.base_dir is not None:
                path = self.base_dir / path
            return path.read_text(encoding="utf-8")

        scheme = urllib.parse.urlsplit(location).scheme.lower()
        if scheme not in _URL_SCHEMES:
            raise ValueError(f"Unsupported URL scheme: {scheme}")
        request = urllib.request.Request(location, headers={"User-Agent": self.user_agent})
        with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
            charset = response.headers.get_content_charset() or "utf-8"
            return response.read().decode(charset)


class FakeFetcher(BaseFetcher):
    """Deterministic in-memory fetcher for offline tests."""

    artifacts: dict[str, str]
    failing: set[str]
    requested: list[str]

    def __init__(
        self,
        artifacts: Mapping[str, str],
        failing: Iterable[str] = (),
        fetcher_id: str = "fake",
    ) -> None:
        super().__init__(fetcher_id=fetcher_id)
        self.artifacts = dict(artifacts)
        self.failing = set(failing)
        self.requested = []

    @property
    def call_count(self) -> int:
        return len(self.requested)

    async def fetch(self, location: str) -> FetchedArtifact:  # pyright: ignore[reportImplicitOverride]
        self.requested.append(location)
        await asyncio.sleep(0)
        if location in self.failing:
            self._record(None)
            raise FetchError(location, "simulated network failure")
        if location not in self.artifacts:
            self._record(None)
            raise FetchError(location, "HTTP 404")
        self._record(0.0)
        return FetchedArtifact(location=location, text=self.artifacts[location], latency_ms=0.0)


def create_fetcher(
    settings: FetchSettings,
    retry_policy: RetryPolicy | None = None,
) -> BaseFetcher:
    policy = retry_policy or RetryPolicy(max_retries=settings.max_retries)
    fetcher: BaseFetcher = UrlFetcher(
        timeout_seconds=settings.timeout_seconds,
        retry_policy=policy,
        user_agent=settings.user_agent,
        base_dir=settings.base_dir,
    )
    if settings.cache_path:
        cache = ArtifactCache(settings.cache_path, ttl_seconds=settings.cache_ttl_seconds)
        fetcher = CachedFetcher(fetcher, cache)
    return fetcher
