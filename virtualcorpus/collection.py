"""Ordered, lazily loaded view over a document backend.

The name order is fixed when the collection opens. get() decodes a document on
first access and hands back the same object on every later access for the
session. Mutations are checked against the mutation policy before any backend
call is made.
"""
from __future__ import annotations
from typing import Any, List, Optional, Union

from .base_backend import Backend, Capabilities
from .database_backend import DatabaseBackend, DatabaseConfig
from .directory_backend import DirectoryBackend, DirectoryConfig
from .document import Document, OwnershipMarker
from .errors import BackendConnectionError, UnsupportedMutationError
from .formats import decode_document, get_format
from .load_cache import LoadCache
from .logging_util import get_logger
from .name_index import NameIndex
from .policy import CollectionContext, MutationPolicy

log = get_logger("collection")

DocumentRef = Union[Document, str]


class VirtualCollection:
    """Sequence of documents mirrored from a backend.

    Not thread-safe: concurrent use of one instance needs external locking.
    """

    def __init__(self, backend: Backend, label: Optional[str] = None,
                 policy: Optional[MutationPolicy] = None):
        self.backend = backend
        self.label = label or _default_label(backend)
        self.policy = policy or MutationPolicy()
        self.marker = OwnershipMarker(self.label)
        self.context = CollectionContext(read_only=backend.read_only,
                                         capabilities=Capabilities.of(backend))
        try:
            self._index = NameIndex(backend.list_names())
        except Exception:
            backend.close()
            raise
        self._cache = LoadCache(len(self._index))
        self._closed = False
        log.info("collection_opened", label=self.label, size=len(self._index),
                 read_only=self.read_only)

    @classmethod
    def from_config(cls, config, label: Optional[str] = None) -> "VirtualCollection":
        return cls(open_backend(config), label=label)

    @property
    def config(self):
        return self.backend.config

    @property
    def read_only(self) -> bool:
        return self.context.read_only

    # --- Read access ----------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._index)

    def size(self) -> int:
        return len(self._index)

    def names(self) -> List[str]:
        return list(self._index.names())

    def name_at(self, index: int) -> str:
        return self._index.name_at(index)

    def is_loaded(self, index: int) -> bool:
        return self._cache.is_loaded(index)

    def get(self, index: int) -> Document:
        """Return the document at index, fetching and decoding it on first access.

        Negative indices are out of range. Backend errors (not found, ambiguous,
        connection) propagate unchanged and leave the index untouched.
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Collection indices must be integers, not {type(index).__name__}")
        self._check_open()
        name = self._index.name_at(index)
        if self._cache.is_loaded(index):
            return self._cache.get(name)
        raw = self.backend.fetch(name)
        document = decode_document(name, raw.data, raw.mime_type, raw.encoding)
        self.marker.adopt(document)
        self._cache.store(name, document)
        self._cache.mark_loaded(index, name)
        log.debug("document_loaded", label=self.label, name=name, index=index)
        return document

    def __getitem__(self, index: int) -> Document:
        return self.get(index)

    def index_of(self, document: DocumentRef) -> int:
        """Position of the entry with the same name, ignoring content; -1 if absent."""
        return self._index.index_of(_name_of(document))

    def contains(self, document: DocumentRef) -> bool:
        return _name_of(document) in self._index

    def __contains__(self, document: object) -> bool:
        if not isinstance(document, (Document, str)):
            return False
        return self.contains(document)

    def __iter__(self) -> "DocumentIterator":
        return DocumentIterator(self)

    # --- Mutation -------------------------------------------------------------------
    def add(self, document: Document) -> bool:
        """Insert document into the backend and append it, already loaded.

        Returns False, without touching anything, when the name is already present.
        """
        self._check_open()
        self._require("insert", "add")
        if document.name in self._index:
            return False
        self._check_adoptable(document)
        content = self._encode(document)
        self.backend.insert(document.name, content)
        index = self._index.append(document.name)
        self._cache.add_slot()
        self.marker.adopt(document)
        self._cache.store(document.name, document)
        self._cache.mark_loaded(index, document.name)
        log.info("document_added", label=self.label, name=document.name, index=index)
        return True

    def remove_at(self, index: int) -> Optional[Document]:
        """Delete the entry at index from the backend and the collection.

        Returns the cached document if it had been loaded, else None. The backend
        delete runs first; if it fails the collection is left unchanged.
        """
        self._check_open()
        self._require("delete", "remove")
        name = self._index.name_at(index)
        document = self._cache.get(name) if self._cache.is_loaded(index) else None
        self.backend.delete(name)
        self._cache.evict(name)
        self._cache.drop_slot(index)
        self._index.remove(index)
        if document is not None:
            self.marker.release(document)
        log.info("document_removed", label=self.label, name=name, index=index)
        return document

    def remove(self, document: DocumentRef) -> bool:
        self._check_open()
        self._require("delete", "remove")
        index = self.index_of(document)
        if index == -1:
            return False
        self.remove_at(index)
        return True

    def clear(self) -> None:
        self._check_open()
        self._require("delete", "clear")
        for index in range(len(self._index) - 1, -1, -1):
            self.remove_at(index)

    def save(self, document: Document) -> bool:
        """Write the document's current state back to the backend.

        A read-only collection ignores the call and returns False. The saved
        object becomes the cached object for its name.
        """
        self._check_open()
        if self.read_only:
            log.debug("save_skipped_read_only", label=self.label, name=document.name)
            return False
        self._require("update", "save")
        index = self._index.index_of(document.name)
        if index == -1:
            raise UnsupportedMutationError("save", f"{document.name!r} is not in the collection; use add()")
        self._check_adoptable(document)
        self.backend.persist(document.name, self._encode(document))
        self.marker.adopt(document)
        self._cache.store(document.name, document)
        self._cache.mark_loaded(index, document.name)
        log.debug("document_saved", label=self.label, name=document.name, index=index)
        return True

    def _check_open(self) -> None:
        if self._closed:
            raise BackendConnectionError(f"Collection {self.label!r} is closed")

    def _require(self, capability: str, operation: str) -> None:
        try:
            self.policy.require(self.context, capability, operation)
        except UnsupportedMutationError as e:
            log.warn("mutation_rejected", label=self.label, operation=operation, reason=e.reason)
            raise

    def _check_adoptable(self, document: Document) -> None:
        if document.owner is not None and not self.marker.owns(document):
            raise ValueError(f"Document {document.name!r} already belongs to {document.owner.label!r}")

    def _encode(self, document: Document) -> str:
        mime_type = self.backend.mime_type_for(document.name)
        return get_format(mime_type).encode(document)

    # --- Lifecycle ------------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.backend.close()
        except Exception as e:
            log.warn("backend_close_failed", label=self.label, error=str(e))
        log.info("collection_closed", label=self.label, loaded=self._cache.loaded_count())

    def __enter__(self) -> "VirtualCollection":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<VirtualCollection {self.label!r} size={len(self)} read_only={self.read_only}>"


class DocumentIterator:
    """Single-pass iterator; documents come from VirtualCollection.get()."""

    def __init__(self, collection: VirtualCollection):
        self._collection = collection
        self._next = 0

    def __iter__(self) -> "DocumentIterator":
        return self

    def __next__(self) -> Document:
        if self._next >= len(self._collection):
            raise StopIteration
        document = self._collection.get(self._next)
        self._next += 1
        return document

    def remove(self) -> None:
        raise UnsupportedMutationError("iterator remove", "iteration is read-only")


def _name_of(document: DocumentRef) -> str:
    return document if isinstance(document, str) else document.name


def _default_label(backend: Backend) -> str:
    config = getattr(backend, "config", None)
    if hasattr(config, "root"):
        return f"directory:{config.root}"
    if hasattr(config, "table"):
        return f"database:{config.table}"
    return type(backend).__name__


def open_backend(config) -> Backend:
    if isinstance(config, DirectoryConfig):
        return DirectoryBackend(config)
    if isinstance(config, DatabaseConfig):
        return DatabaseBackend(config)
    raise TypeError(f"Unsupported collection config: {type(config).__name__}")


def open_directory(root: str, **kwargs) -> VirtualCollection:
    return VirtualCollection.from_config(DirectoryConfig(root=root, **kwargs))


def open_database(table: str, name_column: str, content_column: str, **kwargs) -> VirtualCollection:
    return VirtualCollection.from_config(
        DatabaseConfig(table=table, name_column=name_column, content_column=content_column, **kwargs))
