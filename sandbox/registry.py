"""
Registry of interceptable modules and the resolver that serves them.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fetch.base import BaseFetcher
from sandbox.artifacts import evaluate_artifact
from sandbox.declarations import DeclarationSink, InMemoryDeclarations, wrap_declaration

if TYPE_CHECKING:
    from playground.schemas import SandboxConfig

logger = logging.getLogger(__name__)

Resolver = Callable[[str], object]


class _NotFound:
    _instance: "_NotFound | None" = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass
class ModuleEntry:
    """
    One interceptable module.

    ``pattern`` is searched against requested names; without it only ``name``
    itself matches. The resolved value is written once, by the registry.
    """

    name: str
    code_location: str
    types_location: str | None = None
    binding_name: str | None = None
    pattern: str | None = None
    _value: object = field(default=None, init=False, repr=False)
    _matcher: re.Pattern[str] | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._matcher = re.compile(self.pattern) if self.pattern is not None else None

    def matches(self, module_name: str) -> bool:
        if self._matcher is None:
            return module_name == self.name
        return self._matcher.search(module_name) is not None

    @property
    def resolved_value(self) -> object:
        return self._value

    @property
    def is_resolved(self) -> bool:
        return self._value is not None


class ModuleRegistry:
    """
    Owns the module entries, loads them, and decorates host resolvers.
    """

    def __init__(
        self,
        entries: Iterable[ModuleEntry],
        fetcher: BaseFetcher,
        declarations: DeclarationSink | None = None,
    ) -> None:
        self._entries = tuple(entries)
        self._fetcher = fetcher
        self._declarations = declarations if declarations is not None else InMemoryDeclarations()
        self._inflight: dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_config(
        cls,
        config: SandboxConfig,
        fetcher: BaseFetcher,
        declarations: DeclarationSink | None = None,
    ) -> "ModuleRegistry":
        entries = [
            ModuleEntry(
                name=spec.name,
                pattern=spec.pattern,
                code_location=spec.code_url.format(version=config.version),
                types_location=(
                    spec.types_url.format(version=config.version) if spec.types_url else None
                ),
                binding_name=spec.binding_name,
            )
            for spec in config.modules
        ]
        return cls(entries, fetcher, declarations)

    @property
    def entries(self) -> tuple[ModuleEntry, ...]:
        return self._entries

    @property
    def declarations(self) -> DeclarationSink:
        return self._declarations

    def find(self, module_name: str) -> ModuleEntry | None:
        for entry in self._entries:
            if entry.matches(module_name):
                return entry
        return None

    async def load_library(self, entry: ModuleEntry) -> None:
        """Fetch and evaluate ``entry``'s artifact; failures are logged, not raised."""
        if entry.is_resolved:
            return
        task = self._inflight.get(entry.name)
        if task is None:
            task = asyncio.ensure_future(self._load_library(entry))
            self._inflight[entry.name] = task
            task.add_done_callback(lambda _done: self._inflight.pop(entry.name, None))
        await task

    async def _load_library(self, entry: ModuleEntry) -> None:
        try:
            artifact = await self._fetcher.fetch(entry.code_location)
            value = evaluate_artifact(artifact.text, entry)
        except Exception as exc:  # noqa: BLE001 - a broken module must not break the page
            logger.error(f"Failed to load module '{entry.name}' from {entry.code_location}: {exc}")
            return
        if not entry.is_resolved:
            entry._value = value
            logger.info(f"Loaded module '{entry.name}' from {entry.code_location}")

    async def load_type_declarations(self, entry: ModuleEntry) -> ModuleEntry:
        """Fetch ``entry``'s stub and hand it to the declaration sink."""
        if entry.types_location is None:
            return entry
        try:
            artifact = await self._fetcher.fetch(entry.types_location)
            text = wrap_declaration(artifact.text, entry.name, entry.types_location)
            self._declarations.register_declaration(text, entry.name)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                f"Failed to load declarations for '{entry.name}' from {entry.types_location}: {exc}"
            )
        return entry

    async def load_all(self) -> None:
        """Load every entry's library and declarations concurrently."""

        async def _load_entry(entry: ModuleEntry) -> None:
            _ = await asyncio.gather(
                self.load_library(entry),
                self.load_type_declarations(entry),
            )

        _ = await asyncio.gather(*(_load_entry(entry) for entry in self._entries))
        loaded = sum(1 for entry in self._entries if entry.is_resolved)
        logger.info(f"Sandbox modules loaded: {loaded}/{len(self._entries)}")

    def decorate_resolver(self, host_resolver: Resolver | None = None) -> Resolver:
        """
        Wrap ``host_resolver`` so registered names are served from the registry.

        A matched entry yields its resolved value, which is None while the
        module is unavailable. Unmatched names go to ``host_resolver``, or
        yield NOT_FOUND when there is none.
        """

        def resolve(module_name: str) -> object:
            entry = self.find(module_name)
            if entry is not None:
                return entry.resolved_value
            if callable(host_resolver):
                return host_resolver(module_name)
            return NOT_FOUND

        return resolve
