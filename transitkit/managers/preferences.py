"""
Durable key-value storage for simple preference values.

The alert store reads its read-state set and feature flags through the
KeyValueStore interface so it can run against a JSON file in the app and
against memory in tests.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract key-value storage with registered defaults."""

    def __init__(self):
        self._defaults: Dict[str, Any] = {}

    def register_defaults(self, defaults: Dict[str, Any]) -> None:
        """Register values returned for keys that were never set."""
        self._defaults.update(defaults)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, falling back to registered defaults, then ``default``."""
        value = self._read(key)
        if value is None:
            return self._defaults.get(key, default)
        return value

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        pass

    @abstractmethod
    def _read(self, key: str) -> Any:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Key-value store that lives for the session only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._values: Dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def _read(self, key: str) -> Any:
        with self._lock:
            return self._values.get(key)


class JSONFileKeyValueStore(KeyValueStore):
    """
    Key-value store persisted to a JSON file.

    Every ``set`` rewrites the file through a temporary file and an atomic
    rename, so a single key update is never half-written.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preferences file {self.path}: not an object")
            return {}
        return data

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            self._write()

    def _read(self, key: str) -> Any:
        with self._lock:
            return self._values.get(key)

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, self.path)
        logger.debug(f"Preferences written to {self.path}")
