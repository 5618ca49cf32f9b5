"""Wiring of registry, console and runner for one playground page."""

from __future__ import annotations

import logging

from console.fake_console import FakeConsole
from console.surface import HtmlSurface
from fetch.base import BaseFetcher
from fetch.fetchers import create_fetcher
from playground.schemas import SandboxConfig
from sandbox.declarations import DeclarationSink, InMemoryDeclarations, StubDirectory
from sandbox.executor import ExecutionResult, SnippetRunner
from sandbox.registry import ModuleRegistry

logger = logging.getLogger(__name__)


class SandboxSession:
    """
    One page lifetime: modules are loaded once, snippets run any number of times
    and their output accumulates on the same surface.
    """

    def __init__(
        self,
        config: SandboxConfig,
        fetcher: BaseFetcher | None = None,
        declarations: DeclarationSink | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or create_fetcher(config.fetch)
        if declarations is None:
            declarations = StubDirectory(config.stub_dir) if config.stub_dir else InMemoryDeclarations()
        self.registry = ModuleRegistry.from_config(config, self.fetcher, declarations)
        self.surface = HtmlSurface()
        self.console = FakeConsole.from_settings(self.surface, config.console)
        self.runner = SnippetRunner(self.registry, self.console)
        self._loaded = False

    async def load(self) -> None:
        if not self._loaded:
            await self.registry.load_all()
            self._loaded = True

    async def run(self, code: str) -> ExecutionResult:
        await self.load()
        result = await self.runner.run(code)
        self.console.flush()
        logger.info(
            f"Snippet finished: success={result.success} runtime={result.runtime_ms:.1f}ms"
        )
        return result
