"""
In-process runner for documentation snippets.
"""

from __future__ import annotations

import ast
import builtins
import inspect
import logging
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, TextIO

from sandbox.imports import build_import_hook, build_sandbox_builtins
from sandbox.registry import ModuleRegistry

if TYPE_CHECKING:
    from console.fake_console import FakeConsole

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    success: bool
    error: str | None
    runtime_ms: float


def _format_error(exc: BaseException) -> str:
    return f"{exc.__class__.__name__}: {exc}"


class SnippetRunner:
    """
    Run snippet source with registry-backed imports and a fake console.

    Top-level ``await`` is allowed. Exceptions raised by the snippet, including
    syntax errors, are reported to the console and returned in the result.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        console: FakeConsole,
        filename: str = "<snippet>",
    ) -> None:
        self.registry = registry
        self.console = console
        self.filename = filename

    def build_namespace(self) -> dict[str, object]:
        import_hook = build_import_hook(self.registry)
        return {
            "__name__": "__main__",
            "__builtins__": build_sandbox_builtins(import_hook, self._print),
            "console": self.console,
        }

    async def run(self, code: str) -> ExecutionResult:
        start = time.perf_counter()
        namespace = self.build_namespace()
        try:
            compiled = compile(
                code, self.filename, "exec", flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT, dont_inherit=True
            )
            result = eval(compiled, namespace)
            if inspect.iscoroutine(result):
                await result
        except (Exception, SystemExit) as exc:  # noqa: BLE001 - snippet errors belong to its output
            runtime_ms = (time.perf_counter() - start) * 1000
            self.console.error(exc)
            logger.debug(f"Snippet {self.filename} failed: {_format_error(exc)}")
            return ExecutionResult(success=False, error=_format_error(exc), runtime_ms=runtime_ms)

        runtime_ms = (time.perf_counter() - start) * 1000
        return ExecutionResult(success=True, error=None, runtime_ms=runtime_ms)

    def _print(
        self,
        *args: object,
        sep: str | None = " ",
        end: str | None = "\n",
        file: TextIO | None = None,
        flush: bool = False,
    ) -> None:
        if file is None or file is sys.stdout:
            self.console.log(*args)
        elif file is sys.stderr:
            self.console.error(*args)
        else:
            builtins.print(*args, sep=sep, end=end, file=file, flush=flush)
