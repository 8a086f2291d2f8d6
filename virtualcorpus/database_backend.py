"""Database backend: one document per row of a single table.

The table needs a unique name column (the document name) and a content column
holding the serialized document. Enumeration runs once at open; afterwards
exactly two statements are used for the backend's lifetime:

    SELECT <content> FROM <table> WHERE <name> = ?
    UPDATE <table> SET <content> = ? WHERE <name> = ?

Rows are never inserted or deleted: the table is immutable by identity even
though content updates are allowed.

Connection handling for sqlite3 (the default driver):
    - read-only backends open the file through a mode=ro URI with query_only=ON,
      writable ones through mode=rw so a missing file is never created
    - environment driven tuning (busy timeout, cache size) with clamping + warn logging
    - autocommit; each update runs in its own short transaction that is
      rolled back unless exactly one row matched
"""
from __future__ import annotations
import gzip, importlib, os, re, sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base_backend import RawContent, env_read_only
from .document import DEFAULT_ENCODING, DEFAULT_MIME_TYPE
from .errors import (
    AmbiguousDocumentError, BackendConnectionError, ConfigurationError, DocumentNotFoundError,
)
from .formats import get_format, normalize_mime_type
from .logging_util import get_logger

log = get_logger("database_backend")

DEFAULT_SELECT_SQL = "SELECT ${documentNameField} from ${tableName}"
DEFAULT_URL = "${dbdirectory}/corpus.db"
TABLE_PLACEHOLDER = "${tableName}"
NAME_COLUMN_PLACEHOLDER = "${documentNameField}"

MAX_CACHE_KIB = 512 * 1024        # 512 MiB upper clamp
MIN_CACHE_KIB = 16                # SQLite minimum practical
DEFAULT_CACHE_KIB = 64 * 1024     # 64 MiB
MAX_BUSY_TIMEOUT_MS = 600_000
DEFAULT_BUSY_TIMEOUT_MS = 30_000

_PLACEHOLDER_RE = re.compile(r"\$([A-Za-z]*)\{([^{}]*)\}")
_LEFTOVER_RE = re.compile(r"\$[A-Za-z]*\{")


@dataclass
class ConnectionTuning:
    cache_kib: int = DEFAULT_CACHE_KIB
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS

    @classmethod
    def from_env(cls) -> "ConnectionTuning":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                log.warn("invalid_env_int", key=name, value=raw, default=default)
                return default
        cache_kib = _int("VIRTUALCORPUS_CACHE_KIB", DEFAULT_CACHE_KIB)
        busy_ms = _int("VIRTUALCORPUS_BUSY_TIMEOUT_MS", DEFAULT_BUSY_TIMEOUT_MS)
        # Clamp
        adjusted = {}
        if cache_kib < MIN_CACHE_KIB or cache_kib > MAX_CACHE_KIB:
            adjusted["cache_kib"] = cache_kib
            cache_kib = min(MAX_CACHE_KIB, max(MIN_CACHE_KIB, cache_kib))
        if busy_ms < 0 or busy_ms > MAX_BUSY_TIMEOUT_MS:
            adjusted["busy_timeout_ms"] = busy_ms
            busy_ms = min(MAX_BUSY_TIMEOUT_MS, max(0, busy_ms))
        if adjusted:
            log.warn("tuning_clamped", original=adjusted,
                     clamped={"cache_kib": cache_kib, "busy_timeout_ms": busy_ms})
        return cls(cache_kib=cache_kib, busy_timeout_ms=busy_ms)


@dataclass
class DatabaseConfig:
    table: str
    name_column: str
    content_column: str
    url: str = DEFAULT_URL
    driver: str = "sqlite3"
    db_directory: str = "."
    user: str = ""
    password: str = ""
    mime_type: str = DEFAULT_MIME_TYPE
    encoding: str = DEFAULT_ENCODING
    compress: bool = False
    select_sql: str = DEFAULT_SELECT_SQL
    read_only: Optional[bool] = None

    def resolved_read_only(self) -> bool:
        return env_read_only() if self.read_only is None else self.read_only

    def validate(self) -> None:
        for field_name in ("table", "name_column", "content_column", "select_sql", "url", "driver"):
            if not getattr(self, field_name):
                raise ConfigurationError(f"{field_name} must not be empty")
        get_format(self.mime_type)

    def enumeration_sql(self) -> str:
        return (self.select_sql
                .replace(TABLE_PLACEHOLDER, self.table)
                .replace(NAME_COLUMN_PLACEHOLDER, self.name_column))

    def fetch_sql(self) -> str:
        return f"SELECT {self.content_column} FROM {self.table} WHERE {self.name_column} = ?"

    def update_sql(self) -> str:
        return f"UPDATE {self.table} SET {self.content_column} = ? WHERE {self.name_column} = ?"


def expand_placeholders(text: str, variables: Dict[str, str], environ=None) -> str:
    """Resolve ${name} from variables and $env{NAME} from the environment.

    Any other form, an unknown name, or an unterminated placeholder is a
    ConfigurationError.
    """
    env = os.environ if environ is None else environ

    def _sub(m: "re.Match[str]") -> str:
        kind, key = m.group(1), m.group(2)
        if kind == "":
            if key not in variables:
                raise ConfigurationError(f"Unknown placeholder ${{{key}}} in {text!r}")
            return variables[key]
        if kind == "env":
            if key not in env:
                raise ConfigurationError(f"Environment variable {key!r} not set for $env{{{key}}}")
            return env[key]
        raise ConfigurationError(f"Unsupported placeholder ${kind}{{{key}}} in {text!r}")

    expanded = _PLACEHOLDER_RE.sub(_sub, text)
    if _LEFTOVER_RE.search(_PLACEHOLDER_RE.sub("", text)):
        raise ConfigurationError(f"Malformed placeholder in {text!r}")
    return expanded


class DatabaseBackend:
    """Table-backed document store.

    Responsibilities:
      - Connect once (no pooling, no reconnect) and hold the connection until close()
      - Enumerate document names with the configured query
      - Fetch/update one row by name with the two fixed statements
      - Optional gzip transform of the content column
    """
    def __init__(self, config: DatabaseConfig, tuning: Optional[ConnectionTuning] = None):
        config.validate()
        self.config = config
        self.tuning = tuning or ConnectionTuning.from_env()
        self.read_only = config.resolved_read_only()
        self.mime_type = normalize_mime_type(config.mime_type)
        self.encoding = config.encoding or DEFAULT_ENCODING
        self.fetch_sql = config.fetch_sql()
        self.update_sql = config.update_sql()
        self._driver = self._load_driver(config.driver)
        self._conn: Any = None
        self._fetch_cursor: Any = None
        self._update_cursor: Any = None
        self._names: List[str] = []
        self.url = self._expanded("url")
        self._connect()
        try:
            self._enumerate()
            self._prepare()
        except Exception:
            self.close()
            raise
        log.info("database_opened", driver=config.driver, table=config.table,
                 documents=len(self._names), read_only=self.read_only, compress=config.compress)

    # --- Setup ----------------------------------------------------------------------
    @staticmethod
    def _load_driver(name: str):
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            raise ConfigurationError(f"Cannot load database driver {name!r}") from e
        style = getattr(module, "paramstyle", None)
        if style not in ("qmark", "format", "pyformat"):
            raise ConfigurationError(f"Driver {name!r} uses unsupported paramstyle {style!r}")
        return module

    def _variables(self) -> Dict[str, str]:
        return {"dbdirectory": str(Path(self.config.db_directory or ".").resolve())}

    def _expanded(self, field_name: str) -> str:
        return expand_placeholders(getattr(self.config, field_name), self._variables())

    def _connect(self) -> None:
        log.info("database_connecting", url=self.url, driver=self.config.driver)
        if self._driver is sqlite3:
            self._conn = self._connect_sqlite()
            return
        kwargs = {}
        user, password = self._expanded("user"), self._expanded("password")
        if user:
            kwargs["user"] = user
        if password:
            kwargs["password"] = password
        try:
            self._conn = self._driver.connect(self.url, **kwargs)
        except self._driver.Error as e:
            raise BackendConnectionError(f"Could not connect to {self.url}: {e}") from e

    def _connect_sqlite(self) -> sqlite3.Connection:
        url = self.url
        is_uri = url.startswith("file:")
        mode = "ro" if self.read_only else "rw"
        if not is_uri:
            if not os.path.exists(url):
                # Friendly pre-check before SQLite cryptic error (and before it creates an empty file)
                raise BackendConnectionError(f"Database not found ({mode} access requested): {url}")
            url = Path(url).resolve().as_uri()
            is_uri = True
        if "mode=" not in url:
            # rw never creates a missing file, unlike a plain connect
            url += ("&" if "?" in url else "?") + f"mode={mode}"
        try:
            conn = sqlite3.connect(url, uri=is_uri, isolation_level=None)
        except sqlite3.Error as e:
            raise BackendConnectionError(f"Could not open database {url}: {e}") from e
        self._apply_pragmas(conn)
        return conn

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        mode = "read_only" if self.read_only else "write"
        pragmas = [f"busy_timeout={self.tuning.busy_timeout_ms}"]
        if self.read_only:
            pragmas.append("query_only=ON")
        else:
            pragmas.append(f"cache_size=-{self.tuning.cache_kib}")  # negative => KiB
        for p in pragmas:
            try:
                conn.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                log.warn("pragma_failed", pragma=p, mode=mode, url=self.url, error=str(e))

    def _enumerate(self) -> None:
        query = self.config.enumeration_sql()
        log.debug("enumeration_query", sql=query)
        cur = self._conn.cursor()
        try:
            cur.execute(query)
            column = self._column_position(cur.description)
            self._names = [str(row[column]) for row in cur.fetchall()]
        except self._driver.Error as e:
            raise ConfigurationError(f"Enumeration query failed ({query}): {e}") from e
        finally:
            cur.close()

    def _column_position(self, description) -> int:
        # Prefer the configured name column; a single-column result is taken as-is
        if description:
            wanted = self.config.name_column.lower()
            for i, col in enumerate(description):
                if str(col[0]).lower() == wanted:
                    return i
        return 0

    def _prepare(self) -> None:
        log.debug("statements_prepared", fetch=self.fetch_sql, update=self.update_sql)
        self._fetch_cursor = self._conn.cursor()
        self._update_cursor = self._conn.cursor()

    def _driver_sql(self, sql: str) -> str:
        if self._driver.paramstyle == "qmark":
            return sql
        return sql.replace("?", "%s")

    def _check_open(self) -> None:
        if self._conn is None:
            raise BackendConnectionError("Database connection is closed")

    # --- Backend API ----------------------------------------------------------------
    def list_names(self) -> List[str]:
        return list(self._names)

    def mime_type_for(self, name: str) -> str:
        return self.mime_type

    def fetch(self, name: str) -> RawContent:
        self._check_open()
        try:
            self._fetch_cursor.execute(self._driver_sql(self.fetch_sql), (name,))
            rows = self._fetch_cursor.fetchmany(2)
        except (self._driver.InterfaceError, self._driver.OperationalError) as e:
            raise BackendConnectionError(f"Fetch failed for {name!r}: {e}") from e
        if not rows:
            raise DocumentNotFoundError(name, f"table {self.config.table}")
        if len(rows) > 1:
            raise AmbiguousDocumentError(name, len(rows) + len(self._fetch_cursor.fetchall()))
        data = self._decode_column(rows[0][0])
        log.debug("document_fetched", name=name, chars=len(data))
        return RawContent(data=data, mime_type=self.mime_type, encoding=self.encoding)

    def persist(self, name: str, content: str) -> None:
        """Update the one row for name; zero or several matches write nothing and raise."""
        if self.read_only:
            return
        self._check_open()
        value = self._encode_column(content)
        try:
            if self._driver is sqlite3:
                # autocommit connection: open an explicit transaction so a bad match can be undone
                self._update_cursor.execute("BEGIN")
            try:
                self._update_cursor.execute(self._driver_sql(self.update_sql), (value, name))
                rowcount = self._update_cursor.rowcount
            except Exception:
                self._conn.rollback()
                raise
            if rowcount == 1:
                self._conn.commit()
            else:
                self._conn.rollback()
        except (self._driver.InterfaceError, self._driver.OperationalError) as e:
            raise BackendConnectionError(f"Update failed for {name!r}: {e}") from e
        if rowcount == 0:
            raise DocumentNotFoundError(name, f"table {self.config.table}")
        if rowcount > 1:
            raise AmbiguousDocumentError(name, rowcount)
        log.debug("document_persisted", name=name, compressed=self.config.compress)

    def insert(self, name: str, content: str) -> None:
        raise ConfigurationError("Adding documents to a database collection is not supported")

    def delete(self, name: str) -> None:
        raise ConfigurationError("Removing documents from a database collection is not supported")

    def supports_insert(self) -> bool:
        return False

    def supports_delete(self) -> bool:
        return False

    def supports_update(self) -> bool:
        return not self.read_only

    # --- Content transforms ---------------------------------------------------------
    def _decode_column(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, memoryview):
            value = value.tobytes()
        if self.config.compress:
            if isinstance(value, str):
                value = value.encode("latin-1")
            return gzip.decompress(value).decode(self.encoding)
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode(self.encoding)
        return str(value)

    def _encode_column(self, content: str) -> Any:
        if self.config.compress:
            return gzip.compress(content.encode(self.encoding))
        return content

    # --- Lifecycle ------------------------------------------------------------------
    def health_check(self) -> Dict[str, Any]:
        """Return connection status and basic counters."""
        if self._conn is None:
            return {"ok": False, "error": "closed"}
        try:
            cur = self._conn.cursor()
            try:
                cur.execute("SELECT 1")
                cur.fetchone()
            finally:
                cur.close()
        except Exception as e:
            return {"ok": False, "error": str(e)}
        return {
            "ok": True,
            "url": self.url,
            "table": self.config.table,
            "documents": len(self._names),
            "read_only": self.read_only,
            "compress": self.config.compress,
            "fetch_sql": self.fetch_sql,
            "update_sql": self.update_sql,
        }

    def close(self) -> None:
        """Discard both statements and close the connection; failures are logged only."""
        for attr in ("_fetch_cursor", "_update_cursor"):
            cur = getattr(self, attr)
            setattr(self, attr, None)
            if cur is None:
                continue
            try:
                cur.close()
            except Exception as e:
                log.warn("cursor_close_failed", error=str(e))
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except Exception as e:
            log.warn("connection_close_failed", url=self.url, error=str(e))
        else:
            log.info("database_closed", url=self.url)
