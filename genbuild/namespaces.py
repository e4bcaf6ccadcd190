"""Parsing of Clojure ``ns`` declarations into dependency facts."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .edn import Keyword, ReaderError, Symbol, read_string
from .errors import DeclarationError, ParseError
from .logging import get_logger

logger = get_logger("namespaces")


@dataclass(frozen=True)
class Platform:
    """A source dialect: which files to read and which reader features apply."""

    name: str
    extensions: Tuple[str, ...]
    features: FrozenSet[str]

    def matches(self, filename: str) -> bool:
        return filename.endswith(self.extensions)


CLJ = Platform("clj", (".clj", ".cljc"), frozenset({"clj"}))
CLJS = Platform("cljs", (".cljs", ".cljc"), frozenset({"cljs"}))
PLATFORMS = {"clj": CLJ, "cljs": CLJS}

_DEPENDENCY_CLAUSES = {"require", "use", "require-macros", "use-macros"}
_NS_FORM_START = re.compile(r"\A(?:\s|,|;[^\n]*(?:\n|\Z)|#![^\n]*(?:\n|\Z))*\(\s*ns[\s,)]")


@dataclass(frozen=True)
class NamespaceDecl:
    """A parsed ``(ns ...)`` form and the dependency facts it declares."""

    name: str
    requires: FrozenSet[str] = frozenset()
    imports: Tuple[str, ...] = ()
    gen_class: Optional[Dict[str, Any]] = None
    metadata: Dict[Keyword, Any] = field(default_factory=dict)
    source: str = ""

    @property
    def requires_aot(self) -> bool:
        """True when the declaration asks for a generated class."""
        return self.gen_class is not None

    @property
    def gen_class_extends(self) -> Optional[str]:
        if not self.gen_class:
            return None
        extends = self.gen_class.get("extends")
        return str(extends) if isinstance(extends, Symbol) else None


def is_ns_form(form: Any) -> bool:
    return isinstance(form, tuple) and bool(form) and form[0] == Symbol("ns")


def parse_ns_form(form: Tuple[Any, ...], source: str = "") -> NamespaceDecl:
    """Build a :class:`NamespaceDecl` from an already-read ``(ns ...)`` form."""
    if not is_ns_form(form):
        raise DeclarationError(source or "<form>", "first form is not an ns declaration")
    if len(form) < 2 or not isinstance(form[1], Symbol):
        raise DeclarationError(source or "<form>", "ns declaration has no name")

    name_symbol: Symbol = form[1]
    rest = list(form[2:])
    if rest and isinstance(rest[0], str):
        rest = rest[1:]
    attr_map: Dict[Keyword, Any] = {}
    if rest and isinstance(rest[0], dict):
        attr_map = rest[0]
        rest = rest[1:]

    metadata: Dict[Keyword, Any] = {
        key: value for key, value in name_symbol.meta.items() if isinstance(key, Keyword)
    }
    metadata.update({key: value for key, value in attr_map.items() if isinstance(key, Keyword)})

    clauses = [ref for ref in rest if isinstance(ref, tuple) and ref and isinstance(ref[0], Keyword)]
    requires: Set[str] = set()
    imports: List[str] = []
    gen_class: Optional[Dict[str, Any]] = None
    for clause in clauses:
        head = clause[0].name
        if head in _DEPENDENCY_CLAUSES:
            for libspec in clause[1:]:
                requires.update(_deps_from_libspec(None, libspec))
        elif head == "import":
            imports.extend(_import_classes(clause[1:]))
        elif head == "gen-class" and gen_class is None:
            gen_class = _gen_class_options(clause[1:])

    return NamespaceDecl(
        name=str(name_symbol),
        requires=frozenset(requires),
        imports=tuple(dict.fromkeys(imports)),
        gen_class=gen_class,
        metadata=metadata,
        source=source,
    )


def _is_prefix_spec(form: Any) -> bool:
    return (
        isinstance(form, (list, tuple))
        and len(form) > 1
        and isinstance(form[0], Symbol)
        and not any(isinstance(item, Keyword) for item in form)
    )


def _is_option_spec(form: Any) -> bool:
    return (
        isinstance(form, (list, tuple))
        and bool(form)
        and isinstance(form[0], Symbol)
        and (len(form) == 1 or isinstance(form[1], Keyword))
    )


def _join(prefix: Optional[str], name: Symbol) -> str:
    return f"{prefix}.{name}" if prefix else str(name)


def _deps_from_libspec(prefix: Optional[str], form: Any) -> Set[str]:
    if _is_prefix_spec(form):
        nested = _join(prefix, form[0])
        found: Set[str] = set()
        for item in form[1:]:
            found.update(_deps_from_libspec(nested, item))
        return found
    if _is_option_spec(form):
        if Keyword("as-alias") in form:
            return set()
        return {_join(prefix, form[0])}
    if isinstance(form, Symbol):
        return {_join(prefix, form)}
    # keywords (:reload, :verbose) and strings (npm requires) declare nothing
    return set()


def _import_classes(specs: Iterable[Any]) -> List[str]:
    classes: List[str] = []
    for spec in specs:
        if isinstance(spec, Symbol):
            classes.append(str(spec))
        elif isinstance(spec, (list, tuple)) and spec and isinstance(spec[0], Symbol):
            package = str(spec[0])
            classes.extend(f"{package}.{cls}" for cls in spec[1:] if isinstance(cls, Symbol))
    return classes


def _gen_class_options(args: Tuple[Any, ...]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for key, value in zip(args[0::2], args[1::2]):
        if isinstance(key, Keyword):
            options[key.name] = value
    return options


def looks_like_ns_file(text: str) -> bool:
    """True when the first form of ``text`` visibly opens with ``(ns``."""
    return bool(_NS_FORM_START.match(text))


def read_ns_decl_text(text: str, source: str, platform: Platform = CLJ) -> Optional[NamespaceDecl]:
    """Return the declaration heading ``text`` or ``None`` when the first form is not ``ns``.

    Raises :class:`DeclarationError` when the text starts with ``(ns`` but cannot
    be read, and :class:`ParseError` when any other leading form is unreadable.
    """
    try:
        form = read_string(text, platform.features)
    except ReaderError as exc:
        if looks_like_ns_file(text):
            raise DeclarationError(source, str(exc)) from exc
        raise ParseError(source, str(exc)) from exc
    if not is_ns_form(form):
        return None
    return parse_ns_form(form, source)


def read_ns_decl(path: Path, platform: Platform = CLJ) -> Optional[NamespaceDecl]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(path, f"unreadable source file: {exc}") from exc
    return read_ns_decl_text(text, str(path), platform)


def iter_source_files(root: Path, platform: Platform) -> List[Path]:
    """Every file below ``root`` with one of the platform's extensions, sorted."""
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            if platform.matches(filename):
                found.append(Path(dirpath) / filename)
    return found


def find_ns_decls_in_dir(root: Path, platform: Platform = CLJ) -> List[Tuple[Path, NamespaceDecl]]:
    """Return ``(path, decl)`` for every readable namespace file under ``root``."""
    decls: List[Tuple[Path, NamespaceDecl]] = []
    if not root.is_dir():
        return decls
    for path in iter_source_files(root, platform):
        try:
            decl = read_ns_decl(path, platform)
        except (ParseError, DeclarationError) as exc:
            logger.debug("Skipping %s while indexing: %s", path, exc)
            continue
        if decl is not None:
            decls.append((path, decl))
    return decls


__all__ = [
    "CLJ",
    "CLJS",
    "NamespaceDecl",
    "PLATFORMS",
    "Platform",
    "find_ns_decls_in_dir",
    "is_ns_form",
    "iter_source_files",
    "looks_like_ns_file",
    "parse_ns_form",
    "read_ns_decl",
    "read_ns_decl_text",
]
