"""
Stub declaration sinks for the editor's type-checking service.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class DeclarationSink(Protocol):
    def register_declaration(self, text: str, module_name: str) -> None: ...


def wrap_declaration(text: str, module_name: str, location: str | None = None) -> str:
    """Prefix stub text with a header naming the module it declares."""
    source = f" (from {location})" if location else ""
    header = f"# Stub declarations for module '{module_name}'{source}\n"
    if text.startswith(header):
        return text
    return header + text


class InMemoryDeclarations:
    """Keep the latest stub text per module name."""

    def __init__(self) -> None:
        self.declarations: dict[str, str] = {}

    def register_declaration(self, text: str, module_name: str) -> None:
        self.declarations[module_name] = text

    def get(self, module_name: str) -> str | None:
        return self.declarations.get(module_name)


class StubDirectory:
    """
    Write stubs as ``<root>/<package path>/__init__.pyi``.

    Pointing a type checker at ``root`` (for mypy, via ``MYPYPATH``) makes the
    registered modules resolvable even though they are not installed.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def stub_path(self, module_name: str) -> Path:
        parts = [part for part in module_name.replace("/", ".").split(".") if part]
        if not parts:
            raise ValueError(f"Invalid module name: {module_name!r}")
        return self.root.joinpath(*parts) / "__init__.pyi"

    def register_declaration(self, text: str, module_name: str) -> None:
        path = self.stub_path(module_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote stub for {module_name} to {path}")
