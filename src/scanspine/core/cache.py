"""
Verdict caching keyed by content fingerprint.

Provides a ``VerdictCache`` protocol with in-memory and on-disk
implementations, plus ``KeyedLocks`` for serializing check-then-insert per
fingerprint inside one event loop.

Manifesto:
    A backend's verdict is a pure function of (bytes, backend identity).
    Caching it is an optimization that must be invisible: a run with a warm
    cache and a run with a cold cache produce the same aggregate.

    - **Protocol-based:** VerdictCache defines the contract
    - **Success only:** a verdict is stored only when the backend completed
    - **Misses over crashes:** an unreadable entry is a miss, never an error

Architecture:
    ::

        VerdictCache (Protocol)
        ├── InMemoryCache   : bounded LRU, thread-safe, one process
        └── DirectoryCache  : one JSON file per fingerprint, survives runs

        API: get(fp) → Verdict | None
             set(fp, verdict)
             delete(fp)
             exists(fp) → bool
             clear()

        KeyedLocks: asyncio.Lock per fingerprint, dropped when unused

Examples:
    >>> from scanspine.core.cache import InMemoryCache
    >>> cache = InMemoryCache(max_size=1000)
    >>> cache.set("ab12...", verdict)
    >>> cache.get("ab12...") == verdict
    True

Guardrails:
    ❌ DON'T: Cache a partial verdict from a failed backend
    ✅ DO: Cache only verdicts returned normally by ``scan``

    ❌ DON'T: Key on source path or mtime
    ✅ DO: Key on ``fingerprint(data, name, version)``

Tags:
    cache, fingerprint, lru, verdict, scanspine

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
import threading
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from scanspine.core.errors import ConfigError
from scanspine.core.logging import get_logger

if TYPE_CHECKING:
    from scanspine.framework.backends.protocol import Verdict

logger = get_logger(__name__)


class VerdictCache(Protocol):
    """Protocol for verdict cache implementations.

    Keys are fingerprints (hex strings), values are Verdicts.

    Implementations:
        - :class:`InMemoryCache`: single-process, bounded LRU cache
        - :class:`DirectoryCache`: persistent, one file per key
    """

    def get(self, key: str) -> Verdict | None:
        """Return the cached verdict, or ``None`` on a miss."""
        ...

    def set(self, key: str, value: Verdict) -> None:
        """Store a verdict, replacing any previous one."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if absent."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def clear(self) -> None:
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory verdict cache.

    Uses LRU eviction when ``max_size`` is reached. Thread-safe, so backends
    running in worker threads may share it.

    Example:
        cache = InMemoryCache(max_size=500)
        cache.set(fp, verdict)
        hit = cache.get(fp)
    """

    def __init__(self, *, max_size: int = 10_000):
        if max_size < 1:
            raise ConfigError(f"cache max_size must be positive, got {max_size}")
        self._store: OrderedDict[str, Verdict] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.Lock()

    def get(self, key: str) -> Verdict | None:
        with self._lock:
            value = self._store.get(key)
            if value is not None:
                self._store.move_to_end(key)
            return value

    def set(self, key: str, value: Verdict) -> None:
        with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
            elif len(self._store) >= self._max_size:
                self._store.popitem(last=False)
            self._store[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        with self._lock:
            return len(self._store)


# ------------------------------------------------------------------ #
# Directory Cache
# ------------------------------------------------------------------ #


class DirectoryCache:
    """Persistent verdict cache: one JSON document per fingerprint.

    Entries are sharded by the first two hex characters of the key and
    written atomically (temp file + rename), so a reader never sees a
    half-written entry. Entries that fail to parse are dropped and reported
    as misses.

    Example:
        cache = DirectoryCache(Path("~/.cache/scanspine").expanduser())
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"cannot create cache directory {self._root}: {e}", cause=e) from e

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / key[:2] / f"{key}.json"

    def get(self, key: str) -> Verdict | None:
        from scanspine.framework.backends.protocol import Verdict

        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("cache.read_failed", key=key, error=str(e))
            return None
        try:
            return Verdict.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("cache.corrupt_entry", key=key, error=str(e))
            self.delete(key)
            return None

    def set(self, key: str, value: Verdict) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value.to_dict(), fh, sort_keys=True)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def clear(self) -> None:
        for child in self._root.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()

    def size(self) -> int:
        return sum(1 for _ in self._root.glob("*/*.json"))


# ------------------------------------------------------------------ #
# Per-key locks
# ------------------------------------------------------------------ #


class KeyedLocks:
    """One asyncio.Lock per key, created on demand and dropped when idle.

    Example:
        locks = KeyedLocks()
        async with locks.hold(fp):
            if cache.get(fp) is None:
                cache.set(fp, await backend.scan(data, info))
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


__all__ = [
    "VerdictCache",
    "InMemoryCache",
    "DirectoryCache",
    "KeyedLocks",
]
