"""Durable JSON key-value store for offline state."""

from __future__ import annotations

import json
import logging
import os
import threading
from importlib import resources
from pathlib import Path
from typing import Any

from .exceptions import ConfigError

_LOGGER = logging.getLogger(__name__)

SCHEMA_FILENAME = "local.schema.json"


def load_schema() -> dict:
    """Return the JSON schema describing the persisted store document."""
    schema_path = resources.files("seneparking") / SCHEMA_FILENAME
    return json.loads(schema_path.read_text(encoding="utf-8"))


class LocalStore:
    """String-keyed store of JSON-serializable values.

    Every write rewrites the backing file through a temporary file and
    ``os.replace``. Without a path the store lives in memory only.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def lock(self) -> threading.RLock:
        """Lock for callers that read, modify and write a value."""
        return self._lock

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            # Hand out a copy so callers never mutate the cached document.
            return json.loads(json.dumps(self._data[key]))

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = json.loads(encoded)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def _load(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            _LOGGER.warning("Local store %s is not valid JSON; starting empty", self._path)
            return {}
        except OSError as exc:
            raise ConfigError(f"Local store {self._path} could not be read.") from exc
        if not isinstance(data, dict):
            _LOGGER.warning("Local store %s is not a JSON object; starting empty", self._path)
            return {}
        return data

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)
