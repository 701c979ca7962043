from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class KeyValueStore(ABC):
    """String keys to serialized string values; one key per stored collection."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None):
        self._store: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._store[key] = value


# One lock per resolved file path, shared by every store instance in the process.
_PATH_LOCKS: dict[Path, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


class JsonFileStore(KeyValueStore):
    """All keys in one JSON object on disk; every write replaces the file atomically."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or os.getenv("SMART_EXPENSE_DATA_PATH", "./data/smart_expense.json"))
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise StoreError(f"Store file {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise StoreError(f"Store file {self._path} must hold a JSON object, got {type(payload).__name__}")
        return payload

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        # Read-modify-write of the whole file; concurrent writers would drop each other's keys.
        with self._lock:
            payload = self._read_all()
            payload[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2)
                os.replace(tmp_name, self._path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        logger.debug("JsonFileStore wrote key=%s path=%s", key, self._path)
