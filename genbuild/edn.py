"""Reader for EDN data and Clojure source forms.

Lists read as ``tuple``, vectors as ``list``, maps as ``dict``, sets as
``frozenset``. Symbols and keywords get their own value types so that
``(ns foo)`` and ``(:require ...)`` can be told apart from strings.
Reader conditionals are resolved against a feature set (``{"clj"}`` by
default); metadata is kept only when it is attached to a symbol.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from fractions import Fraction
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional


class ReaderError(ValueError):
    """Raised when text cannot be read as EDN / Clojure forms."""

    def __init__(self, message: str, line: int | None = None) -> None:
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)
        self.line = line


@dataclass(frozen=True)
class Symbol:
    """A Clojure symbol, optionally namespace qualified."""

    name: str
    ns: Optional[str] = None
    meta: Dict[Any, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)

    @classmethod
    def parse(cls, text: str) -> "Symbol":
        if text != "/" and "/" in text:
            ns, _, name = text.partition("/")
            if ns and name:
                return cls(name=name, ns=ns)
        return cls(name=text)

    def __str__(self) -> str:
        return f"{self.ns}/{self.name}" if self.ns else self.name


@dataclass(frozen=True)
class Keyword:
    """A Clojure keyword such as ``:require`` or ``:mvn/version``."""

    name: str
    ns: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Keyword":
        if "/" in text and text != "/":
            ns, _, name = text.partition("/")
            if ns and name:
                return cls(name=name, ns=ns)
        return cls(name=text)

    def __str__(self) -> str:
        return f":{self.ns}/{self.name}" if self.ns else f":{self.name}"


@dataclass(frozen=True)
class Regex:
    pattern: str


@dataclass(frozen=True)
class TaggedLiteral:
    tag: Symbol
    form: Any


def kw(text: str) -> Keyword:
    """Shorthand used by callers that look up keyword keys."""
    return Keyword.parse(text)


def sym(text: str) -> Symbol:
    return Symbol.parse(text)


class _Nothing:
    pass


_NOTHING = _Nothing()
_EOF = object()


@dataclass
class _Splice:
    forms: List[Any]


_DELIMITERS = set("()[]{}\"';`~^@\\,")
_WHITESPACE = set(" \t\r\n\f,")
_INT_RE = re.compile(r"^([-+]?)(?:(0)|([1-9][0-9]*)|0[xX]([0-9A-Fa-f]+)|0([0-7]+)|([1-9][0-9]?)[rR]([0-9A-Za-z]+))N?$")
_FLOAT_RE = re.compile(r"^[-+]?[0-9]+(\.[0-9]*)?([eE][-+]?[0-9]+)?M?$")
_RATIO_RE = re.compile(r"^([-+]?[0-9]+)/([0-9]+)$")
_CHAR_NAMES = {
    "newline": "\n",
    "space": " ",
    "tab": "\t",
    "backspace": "\b",
    "formfeed": "\f",
    "return": "\r",
}
_STRING_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "\\": "\\",
}
_CLOSERS = {"(": ")", "[": "]", "{": "}"}


class _Reader:
    def __init__(self, text: str, features: FrozenSet[str]) -> None:
        self.text = text
        self.pos = 0
        self.features = features

    # ------------------------------------------------------------------
    # Character helpers

    @property
    def line(self) -> int:
        return self.text.count("\n", 0, self.pos) + 1

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _next(self) -> str:
        char = self._peek()
        self.pos += 1
        return char

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char in _WHITESPACE:
                self.pos += 1
            elif char == ";":
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end == -1 else end + 1
            else:
                break

    def _token(self) -> str:
        start = self.pos
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char in _WHITESPACE or (char in _DELIMITERS and char not in "'#"):
                break
            self.pos += 1
        return self.text[start:self.pos]

    def error(self, message: str) -> ReaderError:
        return ReaderError(message, self.line)

    # ------------------------------------------------------------------
    # Forms

    def read(self) -> Any:
        """Return the next form, ``_EOF`` at end of input."""
        while True:
            self._skip_whitespace()
            if self.pos >= len(self.text):
                return _EOF
            form = self._read_form()
            if form is _NOTHING:
                continue
            if isinstance(form, _Splice):
                raise self.error("reader conditional splicing outside of a collection")
            return form

    def _read_required(self) -> Any:
        while True:
            self._skip_whitespace()
            if self.pos >= len(self.text):
                raise self.error("unexpected end of input")
            form = self._read_form()
            if form is not _NOTHING:
                return form

    def _read_form(self) -> Any:
        char = self._peek()
        if char in _CLOSERS:
            self.pos += 1
            items = self._read_until(_CLOSERS[char])
            if char == "(":
                return tuple(items)
            if char == "[":
                return items
            return self._build_map(items)
        if char in ")]}":
            raise self.error(f"unmatched delimiter {char!r}")
        if char == '"':
            self.pos += 1
            return self._read_string()
        if char == "\\":
            self.pos += 1
            return self._read_char()
        if char == ":":
            self.pos += 1
            return self._read_keyword()
        if char == "'":
            self.pos += 1
            return (Symbol("quote"), self._read_required())
        if char == "`":
            self.pos += 1
            return (Symbol("syntax-quote"), self._read_required())
        if char == "~":
            self.pos += 1
            if self._peek() == "@":
                self.pos += 1
                return (Symbol("unquote-splicing"), self._read_required())
            return (Symbol("unquote"), self._read_required())
        if char == "@":
            self.pos += 1
            return (Symbol("deref"), self._read_required())
        if char == "^":
            self.pos += 1
            return self._read_meta()
        if char == "#":
            self.pos += 1
            return self._read_dispatch()
        return self._read_atom()

    def _read_until(self, closer: str) -> List[Any]:
        items: List[Any] = []
        start_line = self.line
        while True:
            self._skip_whitespace()
            if self.pos >= len(self.text):
                raise ReaderError(f"EOF while reading, expected {closer!r}", start_line)
            if self._peek() == closer:
                self.pos += 1
                return items
            form = self._read_form()
            if form is _NOTHING:
                continue
            if isinstance(form, _Splice):
                items.extend(form.forms)
                continue
            items.append(form)

    def _build_map(self, items: List[Any]) -> Dict[Any, Any]:
        if len(items) % 2:
            raise self.error("map literal must contain an even number of forms")
        result: Dict[Any, Any] = {}
        for key, value in zip(items[0::2], items[1::2]):
            result[_hashable(key)] = value
        return result

    def _read_string(self) -> str:
        chunks: List[str] = []
        start_line = self.line
        while True:
            if self.pos >= len(self.text):
                raise ReaderError("EOF while reading string", start_line)
            char = self._next()
            if char == '"':
                return "".join(chunks)
            if char != "\\":
                chunks.append(char)
                continue
            escape = self._next()
            if escape in _STRING_ESCAPES:
                chunks.append(_STRING_ESCAPES[escape])
            elif escape == "u":
                digits = self.text[self.pos:self.pos + 4]
                if len(digits) != 4:
                    raise self.error("invalid unicode escape")
                self.pos += 4
                chunks.append(chr(int(digits, 16)))
            else:
                raise self.error(f"unsupported escape character \\{escape}")

    def _read_char(self) -> str:
        first = self._next()
        if not first:
            raise self.error("EOF while reading character")
        rest = self._token()
        token = first + rest
        if len(token) == 1:
            return token
        if token in _CHAR_NAMES:
            return _CHAR_NAMES[token]
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        if token.startswith("o") and len(token) > 1:
            return chr(int(token[1:], 8))
        raise self.error(f"unsupported character: \\{token}")

    def _read_keyword(self) -> Keyword:
        auto = self._peek() == ":"
        if auto:
            self.pos += 1
        token = self._token()
        if not token:
            raise self.error("invalid keyword")
        keyword = Keyword.parse(token)
        return keyword

    def _read_meta(self) -> Any:
        meta = self._read_required()
        target = self._read_required()
        if isinstance(meta, (Symbol, str)):
            meta = {Keyword("tag"): meta}
        elif isinstance(meta, Keyword):
            meta = {meta: True}
        elif not isinstance(meta, dict):
            raise self.error("metadata must be a symbol, keyword, string or map")
        if isinstance(target, Symbol):
            merged = dict(target.meta)
            merged.update(meta)
            return replace(target, meta=merged)
        return target

    def _read_dispatch(self) -> Any:
        char = self._peek()
        if char == "{":
            self.pos += 1
            return frozenset(_hashable(item) for item in self._read_until("}"))
        if char == "_":
            self.pos += 1
            self._read_required()
            return _NOTHING
        if char == '"':
            self.pos += 1
            return Regex(self._read_raw_string())
        if char == "'":
            self.pos += 1
            return (Symbol("var"), self._read_required())
        if char == "(":
            self.pos += 1
            return (Symbol("fn*"), tuple(self._read_until(")")))
        if char == "?":
            self.pos += 1
            return self._read_conditional()
        if char == "#":
            self.pos += 1
            token = self._token()
            values = {"Inf": float("inf"), "-Inf": float("-inf"), "NaN": float("nan")}
            if token not in values:
                raise self.error(f"unknown symbolic value ##{token}")
            return values[token]
        if char == ":":
            self.pos += 1
            return self._read_namespaced_map()
        if char == "!":
            end = self.text.find("\n", self.pos)
            self.pos = len(self.text) if end == -1 else end + 1
            return _NOTHING
        if char == "=":
            raise self.error("read-eval forms are not supported")
        tag = self._read_required()
        if not isinstance(tag, Symbol):
            raise self.error("reader tag must be a symbol")
        return TaggedLiteral(tag=tag, form=self._read_required())

    def _read_raw_string(self) -> str:
        chunks: List[str] = []
        while True:
            if self.pos >= len(self.text):
                raise self.error("EOF while reading regex")
            char = self._next()
            if char == '"':
                return "".join(chunks)
            if char == "\\":
                chunks.append(char)
                chunks.append(self._next())
                continue
            chunks.append(char)

    def _read_conditional(self) -> Any:
        splicing = self._peek() == "@"
        if splicing:
            self.pos += 1
        self._skip_whitespace()
        if self._next() != "(":
            raise self.error("reader conditional body must be a list")
        items = self._read_until(")")
        if len(items) % 2:
            raise self.error("reader conditional requires an even number of forms")
        for feature, form in zip(items[0::2], items[1::2]):
            if not isinstance(feature, Keyword):
                raise self.error("reader conditional feature must be a keyword")
            if feature.name in self.features or feature.name == "default":
                if splicing:
                    if not isinstance(form, (list, tuple)):
                        raise self.error("spliced reader conditional must yield a sequence")
                    return _Splice(list(form))
                return form
        return _NOTHING

    def _read_namespaced_map(self) -> Dict[Any, Any]:
        prefix = self._token()
        self._skip_whitespace()
        if self._next() != "{":
            raise self.error("namespaced map must be followed by a map")
        mapping = self._build_map(self._read_until("}"))
        qualified: Dict[Any, Any] = {}
        for key, value in mapping.items():
            if isinstance(key, Keyword) and key.ns is None and prefix not in ("", ":"):
                key = Keyword(name=key.name, ns=prefix)
            qualified[key] = value
        return qualified

    def _read_atom(self) -> Any:
        token = self._token()
        if not token:
            raise self.error(f"unexpected character {self._peek()!r}")
        if token == "nil":
            return None
        if token == "true":
            return True
        if token == "false":
            return False
        if token[0].isdigit() or (token[0] in "+-" and len(token) > 1 and token[1].isdigit()):
            return self._parse_number(token)
        return Symbol.parse(token)

    def _parse_number(self, token: str) -> Any:
        match = _INT_RE.match(token)
        if match:
            sign, zero, decimal, hexa, octal, radix, radix_digits = match.groups()
            if zero:
                value = 0
            elif decimal:
                value = int(decimal)
            elif hexa:
                value = int(hexa, 16)
            elif octal:
                value = int(octal, 8)
            else:
                value = int(radix_digits, int(radix))
            return -value if sign == "-" else value
        if _FLOAT_RE.match(token):
            return float(token.rstrip("M"))
        ratio = _RATIO_RE.match(token)
        if ratio:
            return Fraction(int(ratio.group(1)), int(ratio.group(2)))
        raise self.error(f"invalid number: {token}")


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(item) for item in value)
    if isinstance(value, dict):
        return tuple((k, _hashable(v)) for k, v in value.items())
    return value


_DEFAULT_FEATURES = frozenset({"clj"})


def read_forms(text: str, features: Iterable[str] | None = None) -> Iterator[Any]:
    """Yield every top-level form in ``text``."""
    reader = _Reader(text, frozenset(features) if features is not None else _DEFAULT_FEATURES)
    while True:
        form = reader.read()
        if form is _EOF:
            return
        yield form


def read_string(text: str, features: Iterable[str] | None = None) -> Any:
    """Return the first form in ``text`` or ``None`` when there is none."""
    for form in read_forms(text, features):
        return form
    return None


def to_python(value: Any) -> Any:
    """Convert reader values into plain Python data (keyword and symbol text, lists, dicts)."""
    if isinstance(value, Keyword):
        return str(value)[1:]
    if isinstance(value, Symbol):
        return str(value)
    if isinstance(value, dict):
        return {_key_to_python(k): to_python(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_python(item) for item in value]
    if isinstance(value, frozenset):
        return sorted((to_python(item) for item in value), key=str)
    return value


def _key_to_python(key: Any) -> Any:
    converted = to_python(key)
    if isinstance(converted, list):
        return tuple(converted)
    return converted


__all__ = [
    "Keyword",
    "ReaderError",
    "Regex",
    "Symbol",
    "TaggedLiteral",
    "kw",
    "read_forms",
    "read_string",
    "sym",
    "to_python",
]
