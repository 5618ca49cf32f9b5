import asyncio
import email.message
import urllib.error
from pathlib import Path

import pytest

from fetch.base import FetchedArtifact, FetchError
from fetch.cache import ArtifactCache, CachedFetcher
from fetch.fetchers import FakeFetcher, UrlFetcher, create_fetcher
from fetch.retry import RetryDecision, RetryPolicy, classify_error
from playground.schemas import FetchSettings


# --- Fetcher Tests ---


def test_fake_fetcher_serves_known_locations() -> None:
    fetcher = FakeFetcher({"lib.py": "VALUE = 1"})
    artifact = asyncio.run(fetcher.fetch("lib.py"))

    assert artifact.text == "VALUE = 1"
    assert artifact.location == "lib.py"
    assert fetcher.call_count == 1


def test_fake_fetcher_raises_for_failing_and_unknown_locations() -> None:
    fetcher = FakeFetcher({"lib.py": "VALUE = 1"}, failing={"lib.py"})

    with pytest.raises(FetchError):
        asyncio.run(fetcher.fetch("lib.py"))
    with pytest.raises(FetchError, match="404"):
        asyncio.run(fetcher.fetch("missing.py"))
    assert fetcher.get_metrics()["failures"] == 2


def test_url_fetcher_reads_local_path_and_file_url(tmp_path: Path) -> None:
    artifact_path = tmp_path / "result.py"
    artifact_path.write_text("Result = 'ok'\n", encoding="utf-8")
    fetcher = UrlFetcher(base_dir=tmp_path)

    relative = asyncio.run(fetcher.fetch("result.py"))
    absolute = asyncio.run(fetcher.fetch(artifact_path.as_uri()))

    assert relative.text == "Result = 'ok'\n"
    assert absolute.text == "Result = 'ok'\n"
    assert fetcher.get_metrics()["fetches"] == 2


def test_url_fetcher_wraps_missing_file_in_fetch_error(tmp_path: Path) -> None:
    fetcher = UrlFetcher(retry_policy=RetryPolicy(max_retries=3, sleep_fn=lambda _: None))

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(fetcher.fetch(str(tmp_path / "nope.py")))
    assert "FileNotFoundError" in str(excinfo.value)


def test_url_fetcher_rejects_unsupported_scheme() -> None:
    fetcher = UrlFetcher()
    with pytest.raises(FetchError, match="Unsupported URL scheme"):
        asyncio.run(fetcher.fetch("ftp://example.com/lib.py"))


def test_create_fetcher_from_settings(tmp_path: Path) -> None:
    plain = create_fetcher(FetchSettings())
    assert isinstance(plain, UrlFetcher)

    cached = create_fetcher(FetchSettings(cache_path=str(tmp_path / "cache.db")))
    assert isinstance(cached, CachedFetcher)
    assert isinstance(cached.inner, UrlFetcher)


# --- Cache Tests ---


def test_cache_hit_returns_same_artifact_without_refetch(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache.db")
    fetcher = FakeFetcher({"https://cdn.test/lib.py": "VALUE = 2"})

    first = asyncio.run(cache.get_or_fetch(fetcher, "https://cdn.test/lib.py"))
    assert fetcher.call_count == 1
    assert first.from_cache is False

    second = asyncio.run(cache.get_or_fetch(fetcher, "https://cdn.test/lib.py"))
    assert fetcher.call_count == 1
    assert second.text == first.text
    assert second.from_cache is True


def test_cache_entries_expire(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache.db", ttl_seconds=-1)
    cache.set(FetchedArtifact(location="lib.py", text="x", latency_ms=1.0))

    assert cache.get("lib.py") is None
    assert cache.misses == 1


def test_cache_purge_and_clear(tmp_path: Path) -> None:
    expired = ArtifactCache(tmp_path / "cache.db", ttl_seconds=-1)
    expired.set(FetchedArtifact(location="old.py", text="x", latency_ms=1.0))
    fresh = ArtifactCache(tmp_path / "cache.db")
    fresh.set(FetchedArtifact(location="new.py", text="y", latency_ms=1.0))

    assert fresh.purge_expired() == 1
    assert fresh.get("new.py") is not None
    assert fresh.hits == 1

    fresh.clear()
    assert fresh.get("new.py") is None


def test_cached_fetcher_delegates_once(tmp_path: Path) -> None:
    inner = FakeFetcher({"lib.py": "VALUE = 3"})
    fetcher = CachedFetcher(inner, ArtifactCache(tmp_path / "cache.db"))

    async def fetch_twice() -> list[str]:
        first = await fetcher.fetch("lib.py")
        second = await fetcher.fetch("lib.py")
        return [first.text, second.text]

    assert asyncio.run(fetch_twice()) == ["VALUE = 3", "VALUE = 3"]
    assert inner.call_count == 1


# --- Retry Tests ---


def test_retry_policy_retries_on_timeout() -> None:
    attempts = {"count": 0}

    def flaky_call() -> str:
        if attempts["count"] < 2:
            attempts["count"] += 1
            raise TimeoutError("timeout")
        return "ok"

    policy = RetryPolicy(max_retries=3, sleep_fn=lambda _: None)
    assert policy.execute(flaky_call) == "ok"
    assert attempts["count"] == 2


def test_retry_policy_retries_server_errors_but_not_client_errors() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(max_retries=2, sleep_fn=sleeps.append)

    def server_error() -> str:
        raise urllib.error.HTTPError("https://cdn.test/lib.py", 503, "Unavailable", {}, None)

    with pytest.raises(urllib.error.HTTPError):
        policy.execute(server_error)
    assert sleeps == [1, 2]

    sleeps.clear()

    def not_found() -> str:
        raise urllib.error.HTTPError("https://cdn.test/lib.py", 404, "Not Found", {}, None)

    with pytest.raises(urllib.error.HTTPError):
        policy.execute(not_found)
    assert sleeps == []


def test_retry_policy_backoff_is_capped() -> None:
    policy = RetryPolicy()
    assert [policy.backoff_seconds(i) for i in range(6)] == [1, 2, 4, 8, 8, 8]


def test_retry_policy_honors_retry_after_within_cap() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(max_retries=2, sleep_fn=sleeps.append)
    headers = email.message.Message()
    headers["Retry-After"] = "5"

    def rate_limited() -> str:
        raise urllib.error.HTTPError("https://cdn.test/lib.py", 429, "Too Many Requests", headers, None)

    with pytest.raises(urllib.error.HTTPError):
        policy.execute(rate_limited)
    assert sleeps == [5, 5]


@pytest.mark.parametrize(
    "exc, decision",
    [
        (urllib.error.URLError("name resolution failed"), RetryDecision.RETRY),
        (ConnectionResetError("reset"), RetryDecision.RETRY),
        (FileNotFoundError("lib.py"), RetryDecision.FAIL_FAST),
        (ValueError("Unsupported URL scheme: ftp"), RetryDecision.FAIL_FAST),
        (KeyError("unexpected"), RetryDecision.FAIL_FAST),
    ],
)
def test_classify_error(exc: Exception, decision: RetryDecision) -> None:
    assert classify_error(exc) is decision
