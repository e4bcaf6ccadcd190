"""Introspection of library archives (jars) for namespaces and compiled classes."""

from __future__ import annotations

import re
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, List, Tuple

from .errors import ArchiveFormatError, DeclarationError, ParseError
from .logging import get_logger
from .namespaces import CLJ, NamespaceDecl, Platform, read_ns_decl_text

logger = get_logger("archives")

_CLASS_ENTRY = re.compile(r"(.+)\.class$")

# zipfile surfaces damaged, encrypted or unsupported entries through these.
_CORRUPT_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)


@dataclass(frozen=True)
class ArchiveContents:
    """What a single archive declares, in archive entry order."""

    path: Path
    ns_decls: Tuple[NamespaceDecl, ...]
    classes: FrozenSet[str]
    compiled: bool

    @property
    def namespaces(self) -> FrozenSet[str]:
        return frozenset(decl.name for decl in self.ns_decls)


class ArchiveIndex:
    """Scans archives once per run and caches their contents by path."""

    def __init__(self, platform: Platform = CLJ) -> None:
        self._platform = platform
        self._cache: Dict[Path, ArchiveContents] = {}

    def scan(self, path: Path) -> ArchiveContents:
        """Return the contents of ``path``; raises :class:`ArchiveFormatError` if unreadable."""
        cached = self._cache.get(path)
        if cached is not None:
            return cached
        contents = self._scan(path)
        self._cache[path] = contents
        return contents

    def _scan(self, path: Path) -> ArchiveContents:
        if path.suffix != ".jar":
            raise ArchiveFormatError(f"only .jar archives are supported: {path}")
        try:
            with zipfile.ZipFile(path) as archive:
                ns_decls: List[NamespaceDecl] = []
                classes = set()
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    match = _CLASS_ENTRY.match(info.filename)
                    if match:
                        classes.add(match.group(1).replace("/", "."))
                        continue
                    if not self._platform.matches(info.filename):
                        continue
                    decl = self._read_entry(archive, info, path)
                    if decl is not None:
                        ns_decls.append(decl)
        except ArchiveFormatError:
            raise
        except (OSError, *_CORRUPT_ENTRY_ERRORS) as exc:
            raise ArchiveFormatError(f"cannot read archive {path}: {exc}") from exc

        logger.debug(
            "Scanned %s: %d namespaces, %d classes", path.name, len(ns_decls), len(classes)
        )
        return ArchiveContents(
            path=path,
            ns_decls=tuple(ns_decls),
            classes=frozenset(classes),
            compiled=bool(classes),
        )

    def _read_entry(
        self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, path: Path
    ) -> NamespaceDecl | None:
        source = f"{path}!/{info.filename}"
        try:
            text = archive.read(info).decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping non-UTF-8 entry %s", source)
            return None
        except _CORRUPT_ENTRY_ERRORS as exc:
            raise ArchiveFormatError(f"corrupt entry {source}: {exc}") from exc
        try:
            return read_ns_decl_text(text, source, self._platform)
        except (ParseError, DeclarationError) as exc:
            logger.debug("Skipping unreadable entry %s: %s", source, exc)
            return None


__all__ = ["ArchiveContents", "ArchiveIndex"]
