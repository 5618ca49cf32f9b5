"""
Safe HTML formatting of arbitrary snippet values.

``format_value`` turns any value into a markup string: primitives inline,
containers as collapsible blocks with a short preview. A value graph is first
converted into an acyclic tree of DisplayNodes, replacing every container seen
earlier in the same call with a circular marker, and only then serialised.
"""

from __future__ import annotations

import datetime as dt
import functools
import html
import inspect
import json
import logging
import numbers
import traceback
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from enum import Enum

from console.markers import CIRCULAR, UNDEFINED, Unsafe

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 75
MAX_CHILDREN = 1000

_OMIT = object()

# Containers that cannot close a cycle on their own are not tracked, so
# shared or interned instances (the empty tuple, equal dates) render normally.
_UNTRACKED = (tuple, frozenset, range, dt.date)


class NodeKind(str, Enum):
    PRIMITIVE = "primitive"
    NULL = "null"
    UNDEFINED = "undefined"
    STRING = "string"
    FUNCTION = "function"
    ERROR = "error"
    ARRAY = "array"
    OBJECT = "object"
    CIRCULAR = "circular"


@dataclass(frozen=True)
class DisplayNode:
    kind: NodeKind
    label: object | None = None
    # inline markup for leaves, "name: message" markup for errors
    text: str = ""
    css_class: str = ""
    header: str = ""
    preview: str = ""
    detail: str = ""
    length: int = 0
    children: tuple["DisplayNode", ...] = ()
    data: object = None


def cut(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: length - 3] + "..."


def _label_text(label: object) -> str:
    if isinstance(label, (str, int)) and not isinstance(label, bool):
        return str(label)
    return repr(label)


def _type_name(value: object) -> str:
    return type(value).__qualname__


def _safe_repr(value: object) -> str:
    try:
        return repr(value)
    except Exception:  # noqa: BLE001
        return f"<unrepresentable {_type_name(value)}>"


def _is_function(value: object) -> bool:
    return (
        inspect.isroutine(value)
        or isinstance(value, type)
        or isinstance(value, functools.partial)
    )


def _describe_callable(value: object) -> str:
    if isinstance(value, type):
        return f"class {value.__qualname__}"
    if isinstance(value, functools.partial):
        return f"partial({_describe_callable(value.func)})"
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None)
    if not name:
        return _safe_repr(value)
    try:
        signature = str(inspect.signature(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        signature = "(...)"
    keyword = "async def" if inspect.iscoroutinefunction(value) else "def"
    return f"{keyword} {name}{signature}"


def _error_cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def _own_items(value: object) -> list[tuple[object, object]]:
    """Mapping items, or instance attributes from __dict__ and __slots__."""
    if isinstance(value, Mapping):
        return list(value.items())

    items: list[tuple[object, object]] = []
    try:
        attributes = vars(value)
    except TypeError:
        attributes = {}
    items.extend(attributes.items())

    seen_names = set(attributes)
    for klass in type(value).__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in seen_names or slot in ("__dict__", "__weakref__"):
                continue
            try:
                items.append((slot, getattr(value, slot)))
            except AttributeError:
                continue
            seen_names.add(slot)
    return items


class _NodeBuilder:
    """Converts one value graph into DisplayNodes; lives for one format call."""

    def __init__(self, preview_length: int, max_children: int) -> None:
        self.preview_length = preview_length
        self.max_children = max_children
        # id -> object; holding the object keeps its id from being reused
        self.seen: dict[int, object] = {}

    def build(self, value: object, label: object | None = None, type_override: str | None = None) -> DisplayNode:
        try:
            return self._build(value, label, type_override)
        except Exception as exc:  # noqa: BLE001 - one bad value must not sink the render
            logger.debug(f"Falling back to repr for {_type_name(value)}: {exc}")
            raw = _safe_repr(value)
            text = html.escape(raw, quote=False)
            return DisplayNode(NodeKind.PRIMITIVE, label, text=text, css_class="unknown", data=raw)

    def _enter(self, value: object) -> bool:
        """Record ``value``; False when it was already visited in this call."""
        key = id(value)
        if key in self.seen:
            return False
        self.seen[key] = value
        return True

    def _build(self, value: object, label: object | None, type_override: str | None) -> DisplayNode:
        if value is CIRCULAR:
            return DisplayNode(NodeKind.CIRCULAR, label, data="[Circular]")
        if value is UNDEFINED:
            return DisplayNode(NodeKind.UNDEFINED, label, data=_OMIT)
        if value is None:
            return DisplayNode(NodeKind.NULL, label, data=None)
        if isinstance(value, Unsafe):
            return DisplayNode(NodeKind.STRING, label, text=str(value), data=str(value))
        if isinstance(value, str):
            return DisplayNode(NodeKind.STRING, label, text=html.escape(value, quote=False), data=value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            raw = _safe_repr(bytes(value))
            text = html.escape(raw, quote=False)
            return DisplayNode(NodeKind.PRIMITIVE, label, text=text, css_class="string", data=raw)
        if isinstance(value, bool):
            return DisplayNode(NodeKind.PRIMITIVE, label, text=str(value), css_class="boolean", data=value)
        if isinstance(value, numbers.Number):
            data = value if isinstance(value, (int, float)) else str(value)
            return DisplayNode(
                NodeKind.PRIMITIVE, label, text=html.escape(str(value)), css_class="number", data=data
            )
        if isinstance(value, Enum):
            text = html.escape(_safe_repr(value), quote=False)
            return DisplayNode(NodeKind.PRIMITIVE, label, text=text, css_class="enum", data=str(value))
        if _is_function(value):
            text = html.escape(_describe_callable(value), quote=False)
            return DisplayNode(NodeKind.FUNCTION, label, text=text, css_class="function", data=_OMIT)

        if not isinstance(value, _UNTRACKED) and not self._enter(value):
            return DisplayNode(NodeKind.CIRCULAR, label, data="[Circular]")

        if isinstance(value, BaseException):
            return self._error_node(value, label)
        if isinstance(value, (dt.datetime, dt.date)):
            return self._date_node(value, label)
        if isinstance(value, (Sequence, Set)):
            return self._array_node(value, label, type_override)
        return self._object_node(value, _own_items(value), label, type_override)

    def _error_node(self, exc: BaseException, label: object | None) -> DisplayNode:
        name = _type_name(exc)
        try:
            message = str(exc)
        except Exception:  # noqa: BLE001
            message = "<unprintable message>"
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__, chain=False))

        children: list[DisplayNode] = []
        cause = _error_cause(exc)
        if cause is not None:
            children.append(self.build(cause, "cause"))

        return DisplayNode(
            NodeKind.ERROR,
            label,
            text=f"<strong>{html.escape(name)}</strong>: {html.escape(message, quote=False)}",
            detail=html.escape(stack.rstrip("\n"), quote=False),
            children=tuple(children),
            data=f"{name}: {message}",
        )

    def _date_node(self, value: dt.date, label: object | None) -> DisplayNode:
        moment = value if isinstance(value, dt.datetime) else dt.datetime(value.year, value.month, value.day)
        iso = moment.isoformat()
        fields: list[tuple[object, object]] = [
            ("iso", iso),
            ("stamp", int(moment.timestamp() * 1000)),
        ]
        header = f'Date <span class="number">{html.escape(moment.strftime("%c"))}</span>'
        node = self._object_node(value, fields, label, header)
        return DisplayNode(
            node.kind,
            node.label,
            header=node.header,
            preview=node.preview,
            length=node.length,
            children=node.children,
            data=iso,
        )

    def _array_node(
        self,
        value: Sequence[object] | Set[object],
        label: object | None,
        type_override: str | None,
    ) -> DisplayNode:
        total = len(value)
        children: list[DisplayNode] = []
        for index, item in enumerate(value):
            if index >= self.max_children:
                break
            children.append(self.build(item, index))
        data = [None if child.data is _OMIT else child.data for child in children]

        header = type_override if type_override is not None else (
            "" if type(value) is list else html.escape(_type_name(value))
        )
        return DisplayNode(
            NodeKind.ARRAY,
            label,
            header=header,
            length=total,
            children=tuple(children),
            data=data,
        )

    def _object_node(
        self,
        value: object,
        fields: list[tuple[object, object]],
        label: object | None,
        type_override: str | None,
    ) -> DisplayNode:
        children: list[DisplayNode] = []
        for index, (key, item) in enumerate(fields):
            if index >= self.max_children:
                break
            children.append(self.build(item, key))
        shown = [child for child in children if child.data is not _OMIT]
        keys = [_label_text(child.label) for child in shown]
        if len(set(keys)) < len(keys):
            # 1 and "1" would share a preview key
            keys = [repr(child.label) for child in shown]
        data = {key: child.data for key, child in zip(keys, shown)}

        if type_override is not None:
            header = type_override
        elif type(value) is dict:
            header = ""
        else:
            header = html.escape(_type_name(value))

        serialized = json.dumps(data, ensure_ascii=False, default=str)[1:-1]
        preview = html.escape(cut(serialized, self.preview_length), quote=False)
        return DisplayNode(
            NodeKind.OBJECT,
            label,
            header=header,
            preview=preview,
            length=len(fields),
            children=tuple(children),
            data=data,
        )


def _prefix(node: DisplayNode) -> str:
    if node.label is None:
        return ""
    return f'<span class="key">{html.escape(_label_text(node.label))}: </span>'


def _more_item(node: DisplayNode, unit: str) -> str:
    hidden = node.length - len(node.children)
    if hidden <= 0:
        return ""
    return f'<div class="collapsible-item"><span class="more">... {hidden} more {unit}</span></div>'


def render_node(node: DisplayNode) -> str:
    """Serialise a DisplayNode tree to markup."""
    prefix = _prefix(node)
    kind = node.kind

    if kind is NodeKind.CIRCULAR:
        return f'{prefix}<span class="circular">[Circular]</span>'
    if kind is NodeKind.UNDEFINED:
        return f'{prefix}<span class="undefined">undefined</span>'
    if kind is NodeKind.NULL:
        return f'{prefix}<span class="null">None</span>'
    if kind is NodeKind.STRING:
        if node.label is None:
            return node.text
        return f'{prefix}<span class="string">{json.dumps(node.text, ensure_ascii=False)}</span>'
    if kind in (NodeKind.PRIMITIVE, NodeKind.FUNCTION):
        return f'{prefix}<span class="{node.css_class}">{node.text}</span>'

    if kind is NodeKind.ERROR:
        cause = "".join(
            f'<div class="collapsible-item">{render_node(child)}</div>' for child in node.children
        )
        return (
            f'<div class="collapsible">{prefix}'
            '<span class="collapsible-arrow">+</span>'
            f'<span class="error">{node.text}</span>'
            '<div class="collapsible-content">'
            f'{cause}'
            f'<div class="collapsible-item"><pre>{node.detail}</pre></div>'
            '</div></div>'
        )

    items = "".join(
        f'<div class="collapsible-item">{render_node(child)}</div>' for child in node.children
    )
    if kind is NodeKind.ARRAY:
        return (
            f'<div class="collapsible">{prefix}'
            '<span class="collapsible-arrow">+</span>'
            f'{node.header}[<span class="collapsible-length">{node.length} items</span>'
            f'<div class="collapsible-content">{items}{_more_item(node, "items")}</div>]'
            '</div>'
        )
    return (
        f'<div class="collapsible">{prefix}'
        '<span class="collapsible-arrow">+</span>'
        f'{node.header}{{&nbsp;<span class="collapsible-preview">{node.preview}</span>'
        f'<div class="collapsible-content">{items}{_more_item(node, "keys")}</div>}}'
        f'<span class="collapsible-length">{node.length} keys</span>'
        '</div>'
    )


def build_node(
    value: object,
    label: object | None = None,
    type_override: str | None = None,
    preview_length: int = PREVIEW_LENGTH,
    max_children: int = MAX_CHILDREN,
) -> DisplayNode:
    return _NodeBuilder(preview_length, max_children).build(value, label, type_override)


def format_value(
    value: object,
    label: object | None = None,
    type_override: str | None = None,
    preview_length: int = PREVIEW_LENGTH,
    max_children: int = MAX_CHILDREN,
) -> str:
    """
    Render ``value`` as HTML markup; never raises.

    Args:
        value: Anything a snippet produced
        label: Field name shown before the value (index, key, "cause")
        type_override: Markup replacing the type name in a collapsible header
        preview_length: Character budget of an object's one-line preview
        max_children: Children materialised per container; the rest are counted

    Returns:
        Markup string
    """
    try:
        node = build_node(value, label, type_override, preview_length, max_children)
        return render_node(node)
    except Exception as exc:  # noqa: BLE001
        logger.debug(f"Formatting {_type_name(value)} failed: {exc}")
        prefix = "" if label is None else f'<span class="key">{html.escape(_label_text(label))}: </span>'
        return f'{prefix}<span class="unknown">{html.escape(_safe_repr(value), quote=False)}</span>'
