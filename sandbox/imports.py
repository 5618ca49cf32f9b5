"""
Replacement __import__ for sandboxed snippets.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Sequence
from types import ModuleType
from typing import cast

from sandbox.registry import NOT_FOUND, ModuleRegistry

ImportFn = Callable[
    [str, dict[str, object] | None, dict[str, object] | None, Sequence[str], int],
    ModuleType,
]


def _is_available(value: object) -> bool:
    return value is not None and value is not NOT_FOUND


def _public_namespace(name: str, value: object) -> ModuleType:
    """Module object carrying ``value``'s public attributes."""
    namespace = ModuleType(name)
    for key in dir(value):
        if key.startswith("_"):
            continue
        try:
            setattr(namespace, key, getattr(value, key))
        except AttributeError:
            continue
    return namespace


def _attach(root: ModuleType, dotted_name: str, value: object) -> None:
    """Set ``value`` at ``dotted_name`` below ``root``, creating parents as needed."""
    parts = dotted_name.split(".")[1:]
    parent = root
    for depth, part in enumerate(parts[:-1], start=1):
        child = getattr(parent, part, None)
        if not isinstance(child, ModuleType):
            child = ModuleType(".".join([root.__name__, *parts[:depth]]))
            setattr(parent, part, child)
        parent = child
    setattr(parent, parts[-1], value)


def build_import_hook(
    registry: ModuleRegistry,
    original_import: ImportFn | None = None,
) -> ImportFn:
    """
    Build an __import__ that serves registered modules from ``registry``.

    Every other absolute import falls through to ``original_import``.
    Registered modules that are not loaded raise ModuleNotFoundError at the
    snippet's import statement. Registered sub-modules are reachable as
    attributes of their root after ``import pkg.sub`` and through
    ``from pkg import sub``.
    """
    fallback_import: ImportFn = original_import or cast(ImportFn, builtins.__import__)
    resolve = registry.decorate_resolver()

    def registered_value(module_name: str) -> object:
        if registry.find(module_name) is None:
            return NOT_FOUND
        return resolve(module_name)

    def root_module(name: str) -> ModuleType:
        root_name = name.partition(".")[0]
        root_value = registered_value(root_name)
        if not _is_available(root_value):
            raise ModuleNotFoundError(f"No module named '{root_name}'", name=root_name)
        root = _public_namespace(root_name, root_value)
        dotted = {entry.name for entry in registry.entries if entry.name.startswith(f"{root_name}.")}
        dotted.add(name)
        for child_name in sorted(dotted, key=lambda item: (item.count("."), item)):
            child_value = registered_value(child_name)
            if _is_available(child_value):
                _attach(root, child_name, child_value)
        return root

    def with_submodules(name: str, value: object, fromlist: Sequence[str]) -> object:
        missing = {
            item: registered_value(f"{name}.{item}")
            for item in fromlist
            if item != "*" and not hasattr(value, item)
        }
        # a pattern alias that resolves back to the parent is not a sub-module
        found = {
            item: child
            for item, child in missing.items()
            if _is_available(child) and child is not value
        }
        if not found:
            return value
        namespace = _public_namespace(name, value)
        for item, child in found.items():
            setattr(namespace, item, child)
        return namespace

    def sandbox_import(
        name: str,
        globals: dict[str, object] | None = None,
        locals: dict[str, object] | None = None,
        fromlist: Sequence[str] = (),
        level: int = 0,
    ) -> ModuleType:
        if level:
            return fallback_import(name, globals, locals, fromlist, level)

        def host_resolver(module_name: str) -> object:
            return fallback_import(module_name, globals, locals, fromlist, level)

        value = registry.decorate_resolver(host_resolver)(name)
        if registry.find(name) is None:
            return cast(ModuleType, value)
        if not _is_available(value):
            raise ModuleNotFoundError(
                f"No module named '{name}' (sandbox module is not available)",
                name=name,
            )
        if not fromlist and "." in name:
            # `import pkg.sub` binds `pkg`, with `sub` reachable from it
            return root_module(name)
        if fromlist:
            value = with_submodules(name, value, fromlist)
        return cast(ModuleType, value)

    return sandbox_import


def build_sandbox_builtins(
    import_hook: ImportFn,
    print_fn: Callable[..., None],
) -> dict[str, object]:
    """Copy of the builtins namespace with imports and printing redirected."""
    namespace = dict(vars(builtins))
    namespace["__import__"] = import_hook
    namespace["print"] = print_fn
    return namespace
