"""CLI for running documentation snippets outside the browser."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from playground.config import load_config
from playground.schemas import SandboxConfig
from playground.session import SandboxSession
from playground.snippets import decode_snippet, encode_snippet, extract_code

app = typer.Typer(help="Documentation sandbox CLI")

_MARKDOWN_SUFFIXES = {".md", ".mdx", ".markdown"}


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    """Configure logging for every command."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.secho(f"❌ Invalid log level: {log_level}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_config_or_exit(config_path: Optional[str]) -> SandboxConfig:
    if config_path is None:
        return SandboxConfig()
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        typer.secho(f"❌ Config file not found: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.secho(f"❌ Invalid config: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _read_snippet(path: Path) -> str:
    if not path.exists():
        typer.secho(f"❌ Snippet not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() not in _MARKDOWN_SUFFIXES:
        return raw
    code = extract_code(raw)
    if not code:
        typer.secho(f"❌ No ```python block found in {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return code


@app.command()
def run(
    snippet_path: str = typer.Argument(..., help="Python file or markdown page with a ```python block"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Sandbox YAML config"),
    output: str = typer.Option("sandbox-output.html", help="Where to write the rendered console"),
) -> None:
    """Run a snippet with sandbox modules and render its console output."""
    config = _load_config_or_exit(config_path)
    code = _read_snippet(Path(snippet_path))

    session = SandboxSession(config)
    result = asyncio.run(session.run(code))
    output_path = session.surface.write(output, title=Path(snippet_path).name)

    if result.success:
        typer.secho("✅ Snippet ran successfully!", fg=typer.colors.GREEN)
    else:
        typer.secho(f"❌ Snippet failed: {result.error}", fg=typer.colors.RED, err=True)
    typer.echo(f"   Output: {output_path}")
    typer.echo(f"   Runtime: {result.runtime_ms:.1f}ms")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def modules(
    config_path: Optional[str] = typer.Option(None, "--config", help="Sandbox YAML config"),
) -> None:
    """Load every registered module and report which ones resolved."""
    config = _load_config_or_exit(config_path)
    session = SandboxSession(config)
    asyncio.run(session.load())

    entries = session.registry.entries
    loaded = sum(1 for entry in entries if entry.is_resolved)
    typer.secho(f"\n📦 {loaded}/{len(entries)} module(s) loaded:\n", fg=typer.colors.BLUE)
    for entry in entries:
        marker = "✓" if entry.is_resolved else "✗"
        typer.echo(f"  {marker} {entry.name}")
        typer.echo(f"    Code: {entry.code_location}")
        if entry.types_location:
            typer.echo(f"    Types: {entry.types_location}")
    if loaded < len(entries):
        raise typer.Exit(1)


@app.command()
def share(
    snippet_path: str = typer.Argument(..., help="Python file or markdown page to share"),
) -> None:
    """Print a shareable token for a snippet."""
    code = _read_snippet(Path(snippet_path))
    typer.echo(encode_snippet(code))


@app.command()
def open_share(
    token: str = typer.Argument(..., help="Token produced by `share`"),
    output: Optional[str] = typer.Option(None, help="Write the snippet to this file"),
) -> None:
    """Decode a shared snippet token."""
    try:
        code = decode_snippet(token)
    except ValueError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if output is None:
        typer.echo(code)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(code, encoding="utf-8")
    typer.secho(f"✅ Snippet written to {path}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
