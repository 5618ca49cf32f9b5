"""Base fetcher interface and fetched-artifact schema."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import asdict, dataclass


class FetchError(RuntimeError):
    """Raised when an artifact cannot be retrieved."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {location}: {reason}")
        self.location = location
        self.reason = reason


@dataclass(frozen=True)
class FetchedArtifact:
    location: str
    text: str
    latency_ms: float
    from_cache: bool = False

    def to_dict(self) -> dict[str, object]:
        return {"location": self.location, "text": self.text, "latency_ms": self.latency_ms}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object], from_cache: bool = False) -> "FetchedArtifact":
        latency = payload.get("latency_ms")
        try:
            latency_ms = float(latency) if isinstance(latency, (int, float, str)) else 0.0
        except ValueError:
            latency_ms = 0.0
        return cls(
            location=str(payload.get("location", "")),
            text=str(payload.get("text", "")),
            latency_ms=latency_ms,
            from_cache=from_cache,
        )


@dataclass
class FetchMetrics:
    fetches: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.fetches if self.fetches else 0.0


class BaseFetcher(ABC):
    """Abstract interface for artifact fetchers."""

    fetcher_id: str

    def __init__(self, fetcher_id: str) -> None:
        self.fetcher_id = fetcher_id
        self.metrics = FetchMetrics()

    @abstractmethod
    async def fetch(self, location: str) -> FetchedArtifact:
        """Fetch the artifact at ``location``; raise FetchError on failure."""

    def get_metrics(self) -> dict[str, object]:
        return {**asdict(self.metrics), "avg_latency_ms": self.metrics.avg_latency_ms}

    def _record(self, latency_ms: float | None) -> None:
        """Count one attempt; ``None`` marks a failure."""
        if latency_ms is None:
            self.metrics.failures += 1
        else:
            self.metrics.fetches += 1
            self.metrics.total_latency_ms += latency_ms
