"""
Isolated evaluation of fetched library artifacts.
"""

from __future__ import annotations

import sys
import types
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sandbox.registry import ModuleEntry


# Globals an artifact could use to attach itself to the host's import system.
ISOLATED_GLOBALS: dict[str, object] = {
    "__spec__": None,
    "__loader__": None,
    "__package__": None,
}


class ArtifactError(RuntimeError):
    """Raised when a fetched artifact fails to evaluate or lacks its binding."""


def evaluate_artifact(source: str, entry: ModuleEntry) -> object:
    """
    Execute ``source`` in a fresh module namespace and return the library value.

    The module is visible in ``sys.modules`` only while its body runs, so
    dataclasses and ``typing.get_type_hints`` can find it; afterwards the
    previous table entry is restored.
    """
    module = types.ModuleType(entry.name)
    scope = module.__dict__
    scope.update(ISOLATED_GLOBALS)
    scope["__file__"] = entry.code_location

    previous = sys.modules.get(entry.name)
    try:
        code = compile(source, entry.code_location, "exec", dont_inherit=True)
        sys.modules[entry.name] = module
        exec(code, scope)
    except Exception as exc:
        raise ArtifactError(
            f"Artifact for '{entry.name}' failed to evaluate: {exc.__class__.__name__}: {exc}"
        ) from exc
    finally:
        _restore_module_table(entry.name, previous)

    if entry.binding_name is None:
        return module
    value = scope.get(entry.binding_name)
    if value is None:
        raise ArtifactError(
            f"Artifact for '{entry.name}' does not define '{entry.binding_name}'"
        )
    return value


def _restore_module_table(name: str, previous: types.ModuleType | None) -> None:
    if previous is None:
        sys.modules.pop(name, None)
    else:
        sys.modules[name] = previous
