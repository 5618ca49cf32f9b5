"""Retry policy with exponential backoff for artifact downloads."""

from __future__ import annotations

import logging
import socket
import time
import urllib.error
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Local file problems and malformed locations will not fix themselves.
_PERMANENT_ERRORS = (ValueError, FileNotFoundError, IsADirectoryError, PermissionError)
_TRANSIENT_ERRORS = (TimeoutError, ConnectionError, socket.timeout)


class RetryDecision(str, Enum):
    RETRY = "retry"
    FAIL_FAST = "fail_fast"


def classify_error(exc: Exception) -> RetryDecision:
    """Decide whether a failed download is worth another attempt."""
    if isinstance(exc, urllib.error.HTTPError):
        status = exc.code
        if status == 429 or status >= 500:
            return RetryDecision.RETRY
        return RetryDecision.FAIL_FAST
    if isinstance(exc, _PERMANENT_ERRORS):
        return RetryDecision.FAIL_FAST
    if isinstance(exc, _TRANSIENT_ERRORS):
        return RetryDecision.RETRY
    # URLError wraps DNS and socket failures raised while connecting
    if isinstance(exc, urllib.error.URLError):
        return RetryDecision.RETRY
    return RetryDecision.FAIL_FAST


def _retry_after_seconds(exc: Exception) -> int | None:
    if not isinstance(exc, urllib.error.HTTPError) or exc.headers is None:
        return None
    value = exc.headers.get("Retry-After")
    if value is None or not str(value).strip().isdigit():
        return None
    return int(str(value).strip())


class RetryPolicy:
    """Exponential backoff (1, 2, 4, 8 seconds, capped) around a blocking call."""

    max_retries: int
    max_backoff_seconds: int
    sleep_fn: Callable[[float], None]

    def __init__(
        self,
        max_retries: int = 3,
        sleep_fn: Callable[[float], None] | None = None,
        max_backoff_seconds: int = 8,
    ) -> None:
        self.max_retries = max_retries
        self.max_backoff_seconds = max_backoff_seconds
        self.sleep_fn = sleep_fn or time.sleep

    def backoff_seconds(self, attempt_index: int) -> int:
        return min(2**attempt_index, self.max_backoff_seconds)

    def execute(self, operation: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return operation()
            except Exception as exc:
                if classify_error(exc) is RetryDecision.FAIL_FAST or attempt >= self.max_retries:
                    raise
                delay = self.backoff_seconds(attempt)
                retry_after = _retry_after_seconds(exc)
                if retry_after is not None:
                    delay = min(max(delay, retry_after), self.max_backoff_seconds)
                attempt += 1
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries} failed with "
                    f"{exc.__class__.__name__}: {exc}; retrying in {delay}s"
                )
                self.sleep_fn(delay)
