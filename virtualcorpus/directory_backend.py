"""Directory backend: one document per file under a root directory.

Names are file stems; with recursive=True the stem is prefixed by the POSIX
relative directory ("sub/doc"). Files sharing a stem are enumerated once and
rejected as ambiguous on fetch.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .base_backend import RawContent, env_read_only
from .document import DEFAULT_ENCODING
from .errors import (
    AmbiguousDocumentError, BackendConnectionError, ConfigurationError, DocumentNotFoundError,
)
from .formats import get_format, mime_type_for_suffix, normalize_mime_type
from .logging_util import get_logger

log = get_logger("directory_backend")


@dataclass
class DirectoryConfig:
    root: str
    pattern: str = "*"
    recursive: bool = False
    encoding: str = DEFAULT_ENCODING
    mime_type: str = ""
    extension: str = ".xml"
    read_only: Optional[bool] = None

    def resolved_read_only(self) -> bool:
        return env_read_only() if self.read_only is None else self.read_only


class DirectoryBackend:
    """Mirror the files of one directory.

    Responsibilities:
      - Enumerate matching files once (sorted by relative path)
      - Read/overwrite a file's text in the configured encoding
      - Create and unlink files when writable
    """
    def __init__(self, config: DirectoryConfig):
        if not config.root:
            raise ConfigurationError("root must not be empty")
        root = Path(config.root)
        if not root.is_dir():
            raise ConfigurationError(f"Directory not found: {config.root}")
        if not config.extension.startswith("."):
            raise ConfigurationError(f"extension must start with '.': {config.extension!r}")
        if config.mime_type:
            get_format(config.mime_type)  # validates
        self.config = config
        self.root = root.resolve()
        self.read_only = config.resolved_read_only()
        self.encoding = config.encoding or DEFAULT_ENCODING
        self.mime_type = normalize_mime_type(config.mime_type)
        self._paths: Dict[str, List[Path]] = {}
        self._names: List[str] = []
        self._closed = False
        self._scan()
        log.info("directory_opened", root=str(self.root), documents=len(self._names),
                 read_only=self.read_only, recursive=config.recursive)

    # --- Enumeration ----------------------------------------------------------------
    def _scan(self) -> None:
        walker = self.root.rglob if self.config.recursive else self.root.glob
        found = sorted(
            (p for p in walker(self.config.pattern or "*") if p.is_file()),
            key=lambda p: p.relative_to(self.root).as_posix(),
        )
        for path in found:
            rel = path.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            name = self._name_for(rel)
            if name not in self._paths:
                self._paths[name] = []
                self._names.append(name)
            self._paths[name].append(path)
        for name, paths in self._paths.items():
            if len(paths) > 1:
                log.warn("ambiguous_name", name=name, files=[p.name for p in paths])

    @staticmethod
    def _name_for(rel: Path) -> str:
        return rel.with_suffix("").as_posix()

    def list_names(self) -> List[str]:
        return list(self._names)

    def mime_type_for(self, name: str) -> str:
        """Format the stored content of name is (or, for a new name, will be) in."""
        if self.config.mime_type:
            return self.mime_type
        paths = self._paths.get(name)
        suffix = paths[0].suffix if paths else self.config.extension
        return mime_type_for_suffix(suffix)

    def _check_open(self) -> None:
        if self._closed:
            raise BackendConnectionError(f"Directory backend for {self.root} is closed")

    def path_for(self, name: str) -> Path:
        self._check_open()
        paths = self._paths.get(name)
        if not paths:
            raise DocumentNotFoundError(name, str(self.root))
        if len(paths) > 1:
            raise AmbiguousDocumentError(name, len(paths))
        return paths[0]

    # --- Content --------------------------------------------------------------------
    def fetch(self, name: str) -> RawContent:
        path = self.path_for(name)
        try:
            data = path.read_text(encoding=self.encoding)
        except FileNotFoundError:
            raise DocumentNotFoundError(name, str(path)) from None
        mime = self.mime_type_for(name)
        log.debug("document_fetched", name=name, path=str(path), chars=len(data))
        return RawContent(data=data, mime_type=mime, encoding=self.encoding)

    def persist(self, name: str, content: str) -> None:
        if self.read_only:
            return
        path = self.path_for(name)
        path.write_text(content, encoding=self.encoding)
        log.debug("document_persisted", name=name, path=str(path))

    def insert(self, name: str, content: str) -> None:
        if not self.supports_insert():
            raise ConfigurationError("insert called on read-only directory backend")
        self._check_open()
        if name in self._paths:
            raise ValueError(f"Document already exists: {name}")
        path = self._new_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        # "x" refuses to clobber a file that appeared since enumeration
        with open(path, "x", encoding=self.encoding) as fh:
            fh.write(content)
        self._paths[name] = [path]
        self._names.append(name)
        log.info("document_inserted", name=name, path=str(path))

    def delete(self, name: str) -> None:
        if not self.supports_delete():
            raise ConfigurationError("delete called on read-only directory backend")
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            raise DocumentNotFoundError(name, str(path)) from None
        del self._paths[name]
        self._names.remove(name)
        log.info("document_deleted", name=name, path=str(path))

    def _new_path(self, name: str) -> Path:
        rel = Path(name + self.config.extension)
        if rel.is_absolute() or ".." in rel.parts or (os.sep != "/" and os.sep in name):
            raise ValueError(f"Invalid document name for directory backend: {name!r}")
        if len(rel.parts) > 1 and not self.config.recursive:
            raise ValueError(f"Nested document name requires recursive=True: {name!r}")
        return self.root / rel

    # --- Capabilities ---------------------------------------------------------------
    def supports_insert(self) -> bool:
        return not self.read_only

    def supports_delete(self) -> bool:
        return not self.read_only

    def supports_update(self) -> bool:
        return not self.read_only

    def close(self) -> None:
        # No handles are held between calls; later access fails as a closed backend
        self._closed = True
        self._paths.clear()
        self._names.clear()
