"""Freeze storage: YAML files or SQLite, behind the FreezeStore interface."""

from pathlib import Path

from freezebot.config import StoreConfig
from freezebot.errors import ValidationError
from freezebot.store.base import FreezeStore
from freezebot.store.sqlite import SQLiteFreezeStore
from freezebot.store.yaml_store import YamlFreezeStore


def make_store(config: StoreConfig) -> FreezeStore:
    """Build the configured backend (store.backend: yaml | sqlite)."""
    backend = (config.backend or "yaml").strip().lower()
    if backend == "yaml":
        return YamlFreezeStore(Path(config.path))
    if backend == "sqlite":
        return SQLiteFreezeStore(config.path)
    raise ValidationError(f"Unknown store backend: {config.backend!r} (expected yaml or sqlite)")


__all__ = [
    "FreezeStore",
    "SQLiteFreezeStore",
    "YamlFreezeStore",
    "make_store",
]
