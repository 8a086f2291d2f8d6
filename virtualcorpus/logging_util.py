"""Lightweight structured logging helper.

Emits JSON lines to stderr; threshold comes from LOG_LEVEL. Components bind a
name once via get_logger() so every record carries a "component" field.
"""
from __future__ import annotations
import os, sys, json, time, threading

_lock = threading.Lock()
LEVEL_ORDER = ["DEBUG", "INFO", "WARN", "ERROR"]


def _threshold() -> str:
    # Read on every call so tests and operators can flip LOG_LEVEL at runtime
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def _should(level: str) -> bool:
    try:
        return LEVEL_ORDER.index(level) >= LEVEL_ORDER.index(_threshold())
    except ValueError:
        return True


def log(level: str, event: str, **fields):
    level = level.upper()
    if not _should(level):
        return
    record = {
        "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        "level": level,
        "event": event,
    }
    record.update(fields)
    line = json.dumps(record, separators=(',', ':'), default=str)
    with _lock:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()


def debug(event: str, **fields): log("DEBUG", event, **fields)
def info(event: str, **fields): log("INFO", event, **fields)
def warn(event: str, **fields): log("WARN", event, **fields)
def error(event: str, **fields): log("ERROR", event, **fields)


class BoundLogger:
    """Logger that stamps a fixed component name on each record."""
    def __init__(self, component: str):
        self.component = component

    def debug(self, event: str, **fields): log("DEBUG", event, component=self.component, **fields)
    def info(self, event: str, **fields): log("INFO", event, component=self.component, **fields)
    def warn(self, event: str, **fields): log("WARN", event, component=self.component, **fields)
    def error(self, event: str, **fields): log("ERROR", event, component=self.component, **fields)


def get_logger(component: str) -> BoundLogger:
    return BoundLogger(component)
