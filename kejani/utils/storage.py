"""Key-value storage standing in for the browser's local and session storage."""

from __future__ import annotations

import os
import re
import threading
from typing import Dict, Optional

from .. import config
from .logging import get_logger

LOGGER = get_logger("utils.storage")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class MemoryStorage:
    """Dict backed storage; used for session scoped values and in tests."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class JsonFileStorage:
    """One file per key under ``directory``; values are stored as text."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self._lock = threading.Lock()

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _UNSAFE.sub("_", key) + ".json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with self._lock:
            with open(path, "r", encoding="utf-8") as infile:
                return infile.read()

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path + ".tmp"
        with self._lock:
            with open(tmp_path, "w", encoding="utf-8") as outfile:
                outfile.write(str(value))
            os.replace(tmp_path, path)
        LOGGER.debug("storage_write key=%s bytes=%d", key, len(str(value)))

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)

    def clear(self) -> None:
        if not os.path.isdir(self.directory):
            return
        with self._lock:
            for name in os.listdir(self.directory):
                if name.endswith(".json"):
                    os.remove(os.path.join(self.directory, name))


_storage_singleton: Optional[JsonFileStorage] = None
_session_singleton: Optional[MemoryStorage] = None


def default_storage() -> JsonFileStorage:
    global _storage_singleton
    if _storage_singleton is None:
        _storage_singleton = JsonFileStorage(config.STORAGE_DIR)
    return _storage_singleton


def session_storage() -> MemoryStorage:
    global _session_singleton
    if _session_singleton is None:
        _session_singleton = MemoryStorage()
    return _session_singleton


def reset_storage() -> None:
    global _storage_singleton, _session_singleton
    _storage_singleton = None
    _session_singleton = None


__all__ = ["MemoryStorage", "JsonFileStorage", "default_storage", "session_storage", "reset_storage"]
