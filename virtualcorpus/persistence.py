"""Save and restore a collection's open parameters.

Only the configuration is written: reloading reconnects and re-enumerates,
so neither cached documents nor connection state are ever serialized.
"""
from __future__ import annotations
import json
import os
from dataclasses import asdict, fields, replace
from typing import Any, Dict, Union

from .collection import VirtualCollection
from .database_backend import DatabaseConfig
from .directory_backend import DirectoryConfig
from .errors import ConfigurationError

CONFIG_KINDS = {
    "directory": DirectoryConfig,
    "database": DatabaseConfig,
}
FORMAT_VERSION = 1

CollectionConfig = Union[DirectoryConfig, DatabaseConfig]


def config_to_dict(config: CollectionConfig) -> Dict[str, Any]:
    for kind, cls in CONFIG_KINDS.items():
        if type(config) is cls:
            return {"kind": kind, "version": FORMAT_VERSION, "params": asdict(config)}
    raise ConfigurationError(f"Cannot serialize config of type {type(config).__name__}")


def config_from_dict(data: Dict[str, Any]) -> CollectionConfig:
    kind = data.get("kind")
    cls = CONFIG_KINDS.get(kind)
    if cls is None:
        raise ConfigurationError(f"Unknown collection kind: {kind!r}")
    version = data.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ConfigurationError(f"Unsupported config version: {version!r}")
    params = dict(data.get("params") or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {kind} parameters: {', '.join(unknown)}")
    try:
        return cls(**params)
    except TypeError as e:  # missing required parameter
        raise ConfigurationError(f"Incomplete {kind} config: {e}") from e


def resolved_config(collection: VirtualCollection) -> CollectionConfig:
    """The collection's config with the mode and paths it actually opened with.

    read_only is pinned to the resolved value so ALLOW_WRITES at load time no
    longer matters, and relative paths become absolute so the working
    directory at load time no longer matters.
    """
    config = collection.config
    backend = collection.backend
    if isinstance(config, DirectoryConfig):
        return replace(config, root=str(backend.root), read_only=backend.read_only)
    if isinstance(config, DatabaseConfig):
        db_directory = os.path.abspath(config.db_directory or ".")
        url = config.url
        if (config.driver == "sqlite3" and "$" not in url and not url.startswith("file:")
                and url != ":memory:"):
            url = os.path.abspath(url)
        return replace(config, db_directory=db_directory, url=url, read_only=backend.read_only)
    return config


def dump_collection(collection: VirtualCollection) -> str:
    data = config_to_dict(resolved_config(collection))
    data["label"] = collection.label
    return json.dumps(data, indent=2, sort_keys=True)


def load_collection(text: str) -> VirtualCollection:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Collection config is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Collection config must be a JSON object")
    return VirtualCollection.from_config(config_from_dict(data), label=data.get("label"))
