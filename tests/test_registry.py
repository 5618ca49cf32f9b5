import asyncio
import logging
import sys

import pytest

from fetch.fetchers import FakeFetcher
from playground.schemas import ModuleSpec, SandboxConfig
from sandbox.declarations import InMemoryDeclarations
from sandbox.registry import NOT_FOUND, ModuleEntry, ModuleRegistry


BASE_SOURCE = "class Result:\n    name = 'base'\n"
SUB_SOURCE = "class ResultFn:\n    name = 'sub'\n"


def _pkg_entries() -> list[ModuleEntry]:
    return [
        ModuleEntry(
            name="pkg",
            pattern=r"^pkg(\/(?!sub).+)?$",
            code_location="cdn/pkg.py",
            types_location="cdn/pkg.pyi",
            binding_name="Result",
        ),
        ModuleEntry(
            name="pkg/sub",
            pattern=r"^pkg\/sub$",
            code_location="cdn/sub.py",
            binding_name="ResultFn",
        ),
    ]


def _fetcher(**overrides: str) -> FakeFetcher:
    artifacts = {
        "cdn/pkg.py": BASE_SOURCE,
        "cdn/pkg.pyi": "class Result: ...\n",
        "cdn/sub.py": SUB_SOURCE,
    }
    artifacts.update(overrides)
    return FakeFetcher(artifacts)


def _loaded_registry(entries: list[ModuleEntry]) -> ModuleRegistry:
    registry = ModuleRegistry(entries, _fetcher())
    asyncio.run(registry.load_all())
    return registry


# --- Resolver Tests ---


@pytest.mark.parametrize("reverse", [False, True])
def test_dedicated_subpath_entry_wins_over_base_pattern(reverse: bool) -> None:
    entries = _pkg_entries()
    if reverse:
        entries.reverse()
    registry = _loaded_registry(entries)
    host_calls: list[str] = []

    def host_resolver(name: str) -> object:
        host_calls.append(name)
        return "host"

    resolve = registry.decorate_resolver(host_resolver)
    value = resolve("pkg/sub")

    assert getattr(value, "name") == "sub"
    assert host_calls == []


def test_base_pattern_covers_its_subpaths() -> None:
    registry = _loaded_registry(_pkg_entries())
    resolve = registry.decorate_resolver()

    assert getattr(resolve("pkg"), "name") == "base"
    assert getattr(resolve("pkg/utils"), "name") == "base"
    assert resolve("pkg/subtle") is NOT_FOUND
    assert resolve("pkgx") is NOT_FOUND


def test_unmatched_name_goes_to_host_resolver() -> None:
    registry = _loaded_registry(_pkg_entries())
    resolve = registry.decorate_resolver(lambda name: f"host:{name}")

    assert resolve("json") == "host:json"


def test_unmatched_name_without_host_is_not_found() -> None:
    registry = ModuleRegistry(_pkg_entries(), _fetcher())
    resolve = registry.decorate_resolver()

    value = resolve("requests")
    assert value is NOT_FOUND
    assert not value


def test_matched_but_unloaded_entry_resolves_to_none() -> None:
    registry = ModuleRegistry(_pkg_entries(), _fetcher())
    resolve = registry.decorate_resolver(lambda name: "host")

    assert resolve("pkg") is None


def test_exact_entry_without_pattern_matches_only_its_name() -> None:
    entry = ModuleEntry(name="ts_result", code_location="cdn/pkg.py", binding_name="Result")
    assert entry.matches("ts_result")
    assert not entry.matches("ts_result.fn")


# --- Loader Tests ---


def test_load_all_survives_a_permanently_failing_entry(caplog: pytest.LogCaptureFixture) -> None:
    entries = _pkg_entries()
    fetcher = _fetcher()
    fetcher.failing.add("cdn/pkg.py")
    registry = ModuleRegistry(entries, fetcher)

    with caplog.at_level(logging.ERROR, logger="sandbox.registry"):
        asyncio.run(registry.load_all())

    resolve = registry.decorate_resolver()
    assert resolve("pkg") is None
    assert getattr(resolve("pkg/sub"), "name") == "sub"
    assert any("pkg" in record.message for record in caplog.records)


def test_load_library_is_idempotent() -> None:
    entry = _pkg_entries()[0]
    fetcher = _fetcher()
    registry = ModuleRegistry([entry], fetcher)

    async def load_concurrently_then_again() -> None:
        await asyncio.gather(registry.load_library(entry), registry.load_library(entry))
        await registry.load_library(entry)

    asyncio.run(load_concurrently_then_again())

    assert fetcher.requested.count("cdn/pkg.py") == 1
    assert entry.is_resolved


def test_artifact_with_syntax_error_stays_unresolved(caplog: pytest.LogCaptureFixture) -> None:
    entry = _pkg_entries()[0]
    registry = ModuleRegistry([entry], _fetcher(**{"cdn/pkg.py": "class Result(:\n"}))

    with caplog.at_level(logging.ERROR, logger="sandbox.registry"):
        asyncio.run(registry.load_library(entry))

    assert entry.resolved_value is None
    assert any("SyntaxError" in record.message for record in caplog.records)


def test_artifact_missing_binding_stays_unresolved() -> None:
    entry = _pkg_entries()[0]
    registry = ModuleRegistry([entry], _fetcher(**{"cdn/pkg.py": "Other = 1\n"}))

    asyncio.run(registry.load_library(entry))

    assert entry.resolved_value is None


def test_artifact_runs_in_isolated_namespace() -> None:
    source = (
        "assert __spec__ is None\n"
        "assert __loader__ is None\n"
        "Result = __name__\n"
    )
    entry = ModuleEntry(name="iso_pkg", code_location="cdn/iso.py", binding_name="Result")
    registry = ModuleRegistry([entry], FakeFetcher({"cdn/iso.py": source}))

    asyncio.run(registry.load_library(entry))

    assert entry.resolved_value == "iso_pkg"


def test_artifact_cannot_register_itself_in_sys_modules() -> None:
    source = "import sys\nsys.modules[__name__] = sys\nResult = 42\n"
    entry = ModuleEntry(name="self_registering_pkg", code_location="cdn/reg.py", binding_name="Result")
    registry = ModuleRegistry([entry], FakeFetcher({"cdn/reg.py": source}))

    asyncio.run(registry.load_library(entry))

    assert entry.resolved_value == 42
    assert "self_registering_pkg" not in sys.modules


@pytest.mark.parametrize("future_import", ["", "from __future__ import annotations\n"])
def test_artifact_defining_dataclass_resolves(future_import: str) -> None:
    source = (
        future_import
        + "import typing\n"
        "from dataclasses import dataclass\n"
        "\n"
        "@dataclass(frozen=True)\n"
        "class Ok:\n"
        "    value: int\n"
        "\n"
        "HINTS = typing.get_type_hints(Ok)\n"
        "Result = Ok\n"
    )
    entry = ModuleEntry(name="dataclass_pkg", code_location="cdn/dc.py", binding_name="Result")
    registry = ModuleRegistry([entry], FakeFetcher({"cdn/dc.py": source}))

    asyncio.run(registry.load_library(entry))

    ok_class = entry.resolved_value
    assert ok_class is not None
    assert getattr(ok_class(3), "value") == 3
    assert "dataclass_pkg" not in sys.modules


def test_artifact_annotations_are_not_postponed_by_host_module() -> None:
    source = "def f(x: int) -> int:\n    return x\n\nResult = f.__annotations__\n"
    entry = ModuleEntry(name="annotated_pkg", code_location="cdn/ann.py", binding_name="Result")
    registry = ModuleRegistry([entry], FakeFetcher({"cdn/ann.py": source}))

    asyncio.run(registry.load_library(entry))

    assert entry.resolved_value == {"x": int, "return": int}


def test_entry_without_binding_name_resolves_to_module() -> None:
    entry = ModuleEntry(name="whole_pkg", code_location="cdn/whole.py")
    registry = ModuleRegistry([entry], FakeFetcher({"cdn/whole.py": "def ok(v):\n    return ('ok', v)\n"}))

    asyncio.run(registry.load_library(entry))

    module = entry.resolved_value
    assert getattr(module, "__name__") == "whole_pkg"
    assert getattr(module, "ok")(1) == ("ok", 1)


def test_resolved_value_is_write_once() -> None:
    entry = ModuleEntry(name="once", code_location="cdn/once.py", binding_name="Result")
    fetcher = FakeFetcher({"cdn/once.py": "Result = 'first'\n"})
    registry = ModuleRegistry([entry], fetcher)

    asyncio.run(registry.load_library(entry))
    fetcher.artifacts["cdn/once.py"] = "Result = 'second'\n"
    asyncio.run(registry.load_library(entry))

    assert entry.resolved_value == "first"


# --- Declaration Tests ---


def test_type_declarations_are_registered_under_module_name() -> None:
    declarations = InMemoryDeclarations()
    registry = ModuleRegistry(_pkg_entries(), _fetcher(), declarations)

    asyncio.run(registry.load_all())

    stub = declarations.get("pkg")
    assert stub is not None
    assert stub.startswith("# Stub declarations for module 'pkg'")
    assert "class Result: ..." in stub
    assert declarations.get("pkg/sub") is None


def test_type_declaration_failure_returns_entry(caplog: pytest.LogCaptureFixture) -> None:
    entry = _pkg_entries()[0]
    fetcher = _fetcher()
    fetcher.failing.add("cdn/pkg.pyi")
    declarations = InMemoryDeclarations()
    registry = ModuleRegistry([entry], fetcher, declarations)

    with caplog.at_level(logging.ERROR, logger="sandbox.registry"):
        returned = asyncio.run(registry.load_type_declarations(entry))

    assert returned is entry
    assert declarations.declarations == {}
    assert any("declarations" in record.message for record in caplog.records)


# --- Config Tests ---


def test_from_config_substitutes_version() -> None:
    config = SandboxConfig(
        version="1.2.3",
        modules=[
            ModuleSpec(
                name="lib",
                code_url="https://cdn.test/lib@{version}/lib.py",
                types_url="https://cdn.test/lib@{version}/lib.pyi",
                binding_name="Lib",
            )
        ],
    )
    registry = ModuleRegistry.from_config(config, FakeFetcher({}))

    (entry,) = registry.entries
    assert entry.code_location == "https://cdn.test/lib@1.2.3/lib.py"
    assert entry.types_location == "https://cdn.test/lib@1.2.3/lib.pyi"
    assert entry.matches("lib")
