"""Persistent cache of scraped responses keyed by URL, stored in SQLite."""

from __future__ import annotations

import functools
import os
import sqlite3
import struct
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

_APP_DIR = "porygo"
_DB_NAME = "cache.db"
_CACHE_FILE_MODE = 0o600
_CACHE_DIR_MODE = 0o750
_OPEN_TIMEOUT = 1.0

_FORMAT_VERSION = 1
_HEADER = struct.Struct(">Bq")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)

_CREATE_TABLE = "CREATE TABLE IF NOT EXISTS cache (key TEXT PRIMARY KEY, value BLOB NOT NULL)"


class StorageError(Exception):
    """Base class for cache failures."""


class NotFoundError(StorageError):
    """The requested key is not in the cache."""

    def __init__(self, key: str = "") -> None:
        super().__init__("entry not found")
        self.key = key


class EncodingError(StorageError):
    """A cache entry could not be serialised."""


class DecodingError(StorageError):
    """Stored bytes could not be turned back into a cache entry."""


@dataclass
class CacheEntry:
    """Cached response bytes and the moment they expire."""

    value: bytes
    expiration_time: datetime


class CacheStorage(Protocol):
    """Operations every cache backend provides."""

    def get(self, key: str) -> CacheEntry: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...


def default_cache_path() -> Path:
    """Return the platform's cache file location, honouring XDG_CACHE_HOME."""
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / _APP_DIR / _DB_NAME
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise StorageError(f"failed to get user home directory: {exc}") from exc
    if sys.platform == "win32":
        return home / "AppData" / "Local" / _APP_DIR / _DB_NAME
    if sys.platform == "darwin":
        return home / "Library" / "Caches" / _APP_DIR / _DB_NAME
    return home / ".cache" / _APP_DIR / _DB_NAME


def encode_entry(entry: CacheEntry) -> bytes:
    """Serialise an entry: version byte, expiry in microseconds, then the value."""
    try:
        expires = entry.expiration_time
        if expires.tzinfo is None:
            expires = expires.astimezone()
        micros = (expires - _EPOCH) // _MICROSECOND
        return _HEADER.pack(_FORMAT_VERSION, micros) + bytes(entry.value)
    except (AttributeError, TypeError, ValueError, OverflowError, struct.error) as exc:
        raise EncodingError(f"failed to encode cache entry: {exc}") from exc


def decode_entry(data: bytes) -> CacheEntry:
    """Rebuild an entry written by :func:`encode_entry`."""
    if len(data) < _HEADER.size:
        raise DecodingError("failed to decode cache entry: truncated data")
    version, micros = _HEADER.unpack_from(data)
    if version != _FORMAT_VERSION:
        raise DecodingError(f"failed to decode cache entry: unknown format version {version}")
    try:
        expires = _EPOCH + micros * _MICROSECOND
    except OverflowError as exc:
        raise DecodingError(f"failed to decode cache entry: {exc}") from exc
    return CacheEntry(value=bytes(data[_HEADER.size:]), expiration_time=expires)


def _require_key(key: str) -> None:
    if not key:
        raise ValueError("key cannot be empty")


class SqliteCache:
    """Cache backend kept in a single SQLite file; safe to share between threads."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=_CACHE_DIR_MODE)
        except OSError as exc:
            raise StorageError(f"failed to create cache directory: {exc}") from exc
        conn = None
        try:
            if not self.path.exists():
                os.close(os.open(self.path, os.O_CREAT | os.O_WRONLY, _CACHE_FILE_MODE))
            conn = sqlite3.connect(self.path, timeout=_OPEN_TIMEOUT, check_same_thread=False)
            with conn:
                conn.execute(_CREATE_TABLE)
        except (OSError, sqlite3.Error) as exc:
            if conn is not None:
                conn.close()
            raise StorageError(f"failed to open cache database at {self.path}: {exc}") from exc
        self._conn: sqlite3.Connection | None = conn

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("cache is closed")
        return self._conn

    def get(self, key: str) -> CacheEntry:
        """Return the entry for ``key`` or raise :class:`NotFoundError`."""
        _require_key(key)
        with self._lock:
            conn = self._connection
            try:
                row = conn.execute("SELECT value FROM cache WHERE key = ?", (key,)).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"failed to read from database: {exc}") from exc
        if row is None:
            raise NotFoundError(key)
        return decode_entry(row[0])

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store ``entry`` under ``key``, replacing any previous entry."""
        _require_key(key)
        encoded = encode_entry(entry)
        with self._lock:
            conn = self._connection
            try:
                with conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO cache (key, value) VALUES (?, ?)",
                        (key, encoded),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"failed to put key-value pair: {exc}") from exc

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        _require_key(key)
        with self._lock:
            conn = self._connection
            try:
                with conn:
                    conn.execute("DELETE FROM cache WHERE key = ?", (key,))
            except sqlite3.Error as exc:
                raise StorageError(f"failed to delete key: {exc}") from exc

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            conn = self._connection
            try:
                with conn:
                    conn.execute("DROP TABLE IF EXISTS cache")
                    conn.execute(_CREATE_TABLE)
            except sqlite3.Error as exc:
                raise StorageError(f"failed to recreate cache table: {exc}") from exc

    def close(self) -> None:
        """Close the database; further use raises :class:`StorageError`."""
        with self._lock:
            if self._conn is not None:
                conn, self._conn = self._conn, None
                conn.close()

    def __enter__(self) -> SqliteCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def open_cache(path: str | Path | None = None) -> SqliteCache:
    """Open the cache at ``path``, or at the default location when omitted."""
    return SqliteCache(path if path is not None else default_cache_path())


class CacheManager:
    """Hands out one shared cache instance, opening it on first use."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = path
        self._cache: SqliteCache | None = None
        self._lock = threading.Lock()

    def get_cache(self) -> SqliteCache:
        with self._lock:
            if self._cache is None:
                self._cache = open_cache(self._path)
            return self._cache

    def close(self) -> None:
        """Close the shared cache; the next :meth:`get_cache` reopens it."""
        with self._lock:
            cache, self._cache = self._cache, None
            if cache is not None:
                cache.close()

    def reset(self) -> None:
        """Close and forget the shared cache, keeping it if closing fails."""
        with self._lock:
            if self._cache is not None:
                self._cache.close()
            self._cache = None


@functools.cache
def get_cache_manager() -> CacheManager:
    """Return the process-wide cache manager."""
    return CacheManager()