"""Sentinel values and markup wrappers understood by the formatter."""

from __future__ import annotations


class Unsafe(str):
    """Markup that the formatter emits verbatim instead of escaping."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Unsafe({str.__repr__(self)})"


class _Sentinel:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


# Stands in for a container already visited during one formatting call.
CIRCULAR = _Sentinel("CIRCULAR")

# A value that is absent rather than None.
UNDEFINED = _Sentinel("UNDEFINED")
