#!/usr/bin/env python3
"""
Transactional Key-Value Store

The style cache needs a narrow capability from its store:
- get / set / delete(*keys)
- keys_with_prefix(prefix) for cascade invalidation
- watch(key) + commit(writes) → conditional multi-key write that lands
  only if no watched key changed after the watch

Connections are leased per operation through ``pool.lease()`` and are
always released, whatever happens inside the ``with`` block.

Backends:
- RedisStylePool  — redis-py, WATCH/MULTI/EXEC, SCAN for prefixes
- MemoryStylePool — in-process, revision counters under a lock
"""

import itertools
import logging
import re
import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol

import redis
from redis.exceptions import RedisError, WatchError

from .config import StoreConfig
from .errors import StoreError

logger = logging.getLogger(__name__)


class StoreConnection(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, *keys: str) -> int: ...
    def keys_with_prefix(self, prefix: str) -> List[str]: ...
    def watch(self, key: str) -> None: ...
    def commit(self, writes: Dict[str, str]) -> bool: ...
    def reset(self) -> None: ...


class StylePool(Protocol):
    def lease(self) -> ContextManager[StoreConnection]: ...


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except RedisError as exc:
        raise StoreError(f"{operation} failed: {exc}") from exc


_GLOB_SPECIAL = re.compile(r"([\\*?\[\]^])")


def escape_glob(text: str) -> str:
    """Escape redis MATCH metacharacters so ``text`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


# ── Redis ────────────────────────────────────────────────────────


class RedisStoreConnection:
    """
    One leased redis client.

    While a key is watched, reads go through the watching pipeline
    (immediate mode) so the watch and the read share a connection.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._pipe = None

    def _reader(self):
        return self._pipe if self._pipe is not None else self._client

    def get(self, key: str) -> Optional[str]:
        with _store_errors(f"GET {key}"):
            return self._reader().get(key)

    def set(self, key: str, value: str) -> None:
        with _store_errors(f"SET {key}"):
            self._client.set(key, value)

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with _store_errors("DEL"):
            return int(self._client.delete(*keys))

    def keys_with_prefix(self, prefix: str) -> List[str]:
        with _store_errors(f"SCAN {prefix}*"):
            return sorted(self._client.scan_iter(match=escape_glob(prefix) + "*"))

    def watch(self, key: str) -> None:
        with _store_errors(f"WATCH {key}"):
            if self._pipe is None:
                self._pipe = self._client.pipeline(transaction=True)
            self._pipe.watch(key)

    def commit(self, writes: Dict[str, str]) -> bool:
        pipe = self._pipe if self._pipe is not None else self._client.pipeline(transaction=True)
        try:
            with _store_errors("EXEC"):
                pipe.multi()
                for key, value in writes.items():
                    pipe.set(key, value)
                try:
                    pipe.execute()
                except WatchError:
                    return False
            return True
        finally:
            pipe.reset()
            self._pipe = None

    def reset(self) -> None:
        if self._pipe is not None:
            self._pipe.reset()
            self._pipe = None


class RedisStylePool:
    def __init__(self, connection_pool: redis.ConnectionPool):
        self._pool = connection_pool

    @classmethod
    def from_config(cls, store: StoreConfig) -> "RedisStylePool":
        pool = redis.ConnectionPool.from_url(store.url, db=store.db, decode_responses=True)
        logger.info(f"Redis style store at {store.url} (db={store.db})")
        return cls(pool)

    @contextmanager
    def lease(self) -> Iterator[RedisStoreConnection]:
        conn = RedisStoreConnection(redis.Redis(connection_pool=self._pool))
        try:
            yield conn
        finally:
            conn.reset()

    def close(self) -> None:
        self._pool.disconnect()


# ── In-memory ────────────────────────────────────────────────────


class MemoryStoreConnection:
    def __init__(self, pool: "MemoryStylePool"):
        self._pool = pool
        self._watched: Dict[str, int] = {}

    def get(self, key: str) -> Optional[str]:
        return self._pool._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._pool._lock:
            self._pool._write(key, value)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._pool._lock:
            for key in keys:
                if key in self._pool._data:
                    self._pool._write(key, None)
                    removed += 1
        return removed

    def keys_with_prefix(self, prefix: str) -> List[str]:
        return sorted(key for key in list(self._pool._data) if key.startswith(prefix))

    def watch(self, key: str) -> None:
        self._watched[key] = self._pool._revisions.get(key, 0)

    def commit(self, writes: Dict[str, str]) -> bool:
        try:
            with self._pool._lock:
                for key, revision in self._watched.items():
                    if self._pool._revisions.get(key, 0) != revision:
                        return False
                for key, value in writes.items():
                    self._pool._write(key, value)
                return True
        finally:
            self._watched = {}

    def reset(self) -> None:
        self._watched = {}


class MemoryStylePool:
    """Process-local store. Every write bumps a global revision counter."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._revisions: Dict[str, int] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self.active_leases = 0

    def _write(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._revisions[key] = next(self._counter)

    @contextmanager
    def lease(self) -> Iterator[MemoryStoreConnection]:
        conn = MemoryStoreConnection(self)
        with self._lock:
            self.active_leases += 1
        try:
            yield conn
        finally:
            conn.reset()
            with self._lock:
                self.active_leases -= 1

    def keys(self) -> List[str]:
        return sorted(self._data)
