"""
Console replacement for sandboxed snippets.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from console.formatter import MAX_CHILDREN, PREVIEW_LENGTH, format_value
from console.surface import OutputSurface

if TYPE_CHECKING:
    from playground.schemas import ConsoleSettings


class Debouncer:
    """
    Collapse bursts of triggers into one callback on the running event loop.

    Each trigger re-arms the timer. Outside an event loop the callback runs
    immediately.
    """

    def __init__(self, callback: Callable[[], object], delay_seconds: float) -> None:
        self.callback = callback
        self.delay_seconds = delay_seconds
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _ = self.callback()
            return
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        if self.pending:
            self.cancel()
            _ = self.callback()

    def _fire(self) -> None:
        self._handle = None
        _ = self.callback()


class FakeConsole:
    """log/warn/error that render their arguments into an output surface."""

    def __init__(
        self,
        output: OutputSurface,
        separator: str = " ",
        debounce_seconds: float = 0.1,
        preview_length: int = PREVIEW_LENGTH,
        max_children: int = MAX_CHILDREN,
    ) -> None:
        self.output = output
        self.separator = separator
        self.preview_length = preview_length
        self.max_children = max_children
        self._toggles = Debouncer(output.attach_toggles, debounce_seconds)

    @classmethod
    def from_settings(cls, output: OutputSurface, settings: ConsoleSettings) -> "FakeConsole":
        return cls(
            output,
            separator=settings.separator,
            debounce_seconds=settings.debounce_ms / 1000,
            preview_length=settings.preview_length,
        )

    def log(self, *args: object) -> None:
        self._write("log", args)

    def warn(self, *args: object) -> None:
        self._write("warn", args)

    def error(self, *args: object) -> None:
        self._write("error", args)

    def flush(self) -> None:
        """Run any pending toggle wiring now."""
        self._toggles.flush()

    def _write(self, method: str, args: tuple[object, ...]) -> None:
        body = self.separator.join(
            format_value(arg, preview_length=self.preview_length, max_children=self.max_children)
            for arg in args
        )
        self.output.append(f'<div class="console-{method}">{body}</div>')
        self._toggles.trigger()
