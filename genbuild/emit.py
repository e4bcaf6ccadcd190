"""Serializer from a small closed set of values to BUILD file text.

Values:

* atoms - ``str`` (quoted), :class:`Sym` (bare), ``PurePath`` (quoted),
  ``bool`` (``True``/``False``) and ``int`` (bare)
* mappings - any ``Mapping`` renders as ``{k : v, ...}``
* sequences - ``list``/``tuple`` render as ``[a, b]``
* :class:`KwArgs` - ``name = value`` pairs inside a call
* :class:`Call` - ``name(arg, ...)``
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Mapping, Tuple

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\f": "\\f",
    "\b": "\\b",
}


@dataclass(frozen=True)
class Sym:
    """A bare name, rendered without quotes."""

    name: str


@dataclass(frozen=True)
class KwArgs:
    """Ordered keyword arguments of a call."""

    items: Tuple[Tuple[str, Any], ...]

    @classmethod
    def of(cls, mapping: Mapping[str, Any]) -> "KwArgs":
        return cls(tuple((str(key), value) for key, value in mapping.items()))


@dataclass(frozen=True)
class Call:
    """A function call such as ``clojure_library(...)`` or ``load(...)``."""

    name: str
    args: Tuple[Any, ...] = ()


def quote(text: str) -> str:
    return '"' + "".join(_ESCAPES.get(char, char) for char in text) + '"'


def emit(value: Any) -> str:
    """Render ``value``; raises ``TypeError`` for anything outside the closed set."""
    # bool is checked before int because it is an int subclass
    if isinstance(value, bool):
        return _emit_bool(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, Sym):
        return value.name
    if isinstance(value, PurePath):
        return quote(value.as_posix())
    if isinstance(value, int):
        return str(value)
    if isinstance(value, KwArgs):
        return _emit_kwargs(value)
    if isinstance(value, Call):
        return _emit_call(value)
    if isinstance(value, Mapping):
        return _emit_mapping(value)
    if isinstance(value, (list, tuple)):
        return _emit_sequence(value)
    raise TypeError(f"don't know how to emit {type(value).__name__}: {value!r}")


def _emit_bool(value: bool) -> str:
    return "True" if value else "False"


def _emit_kwargs(value: KwArgs) -> str:
    return ",\n\t".join(f"{key} = {emit(item)}" for key, item in value.items)


def _emit_call(value: Call) -> str:
    return f"{value.name}({', '.join(emit(arg) for arg in value.args)})"


def _emit_mapping(value: Mapping[Any, Any]) -> str:
    return "{" + ", ".join(f"{emit(key)} : {emit(item)}" for key, item in value.items()) + "}"


def _emit_sequence(value: Any) -> str:
    return "[" + ", ".join(emit(item) for item in value) + "]"


def package_call() -> Call:
    return Call("package", (KwArgs.of({"default_visibility": ["//visibility:public"]}),))


def load_call(bzl: str, *symbols: str) -> Call:
    return Call("load", (bzl, *symbols))


__all__ = ["Call", "KwArgs", "Sym", "emit", "load_call", "package_call", "quote"]
