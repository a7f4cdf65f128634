from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Generic, Protocol, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: datetime

    def is_stale(self, ttl: timedelta, now: datetime | None = None) -> bool:
        return (now or _utcnow()) - self.fetched_at >= ttl


class SessionCache(Protocol):
    def get(self, key: str) -> CacheEntry | None:
        ...

    def set(self, key: str, value: Any, *, fetched_at: datetime | None = None) -> CacheEntry:
        ...

    def clear(self, key: str | None = None) -> None:
        ...


class InMemorySessionCache(SessionCache):
    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, *, fetched_at: datetime | None = None) -> CacheEntry:
        entry = CacheEntry(value=value, fetched_at=fetched_at or _utcnow())
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


class JsonFileSessionCache(SessionCache):
    """Durable cache in a single owner-only JSON file. Values must be JSON-serialisable."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()
        self._lock = Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            raw = self._load().get(key)
        if not isinstance(raw, dict) or "fetched_at" not in raw:
            return None
        return CacheEntry(value=raw.get("value"), fetched_at=datetime.fromisoformat(raw["fetched_at"]))

    def set(self, key: str, value: Any, *, fetched_at: datetime | None = None) -> CacheEntry:
        entry = CacheEntry(value=value, fetched_at=fetched_at or _utcnow())
        with self._lock:
            data = self._load()
            data[key] = {"value": value, "fetched_at": entry.fetched_at.isoformat()}
            self._store(data)
        return entry

    def clear(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                data: dict = {}
            else:
                data = self._load()
                data.pop(key, None)
            self._store(data)

    def _load(self) -> dict:
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("session_cache: corrupt_file path=%s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _store(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".session-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
