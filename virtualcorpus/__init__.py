"""virtualcorpus: lazily loaded document collections over directories and tables.

Single source of truth for the package version so that code, tests, and
packaging can import it without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.

from .collection import VirtualCollection, open_database, open_directory  # noqa: E402
from .database_backend import DatabaseBackend, DatabaseConfig  # noqa: E402
from .directory_backend import DirectoryBackend, DirectoryConfig  # noqa: E402
from .document import Document, OwnershipMarker  # noqa: E402
from .errors import (  # noqa: E402
    AmbiguousDocumentError, BackendConnectionError, ConfigurationError, CorpusError,
    DocumentNotFoundError, UnsupportedMutationError,
)
from .persistence import dump_collection, load_collection  # noqa: E402

__all__ = [
    "PACKAGE_VERSION",
    "VirtualCollection", "open_database", "open_directory",
    "DatabaseBackend", "DatabaseConfig", "DirectoryBackend", "DirectoryConfig",
    "Document", "OwnershipMarker",
    "CorpusError", "ConfigurationError", "BackendConnectionError", "DocumentNotFoundError",
    "AmbiguousDocumentError", "UnsupportedMutationError",
    "dump_collection", "load_collection",
]
