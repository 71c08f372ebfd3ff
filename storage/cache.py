"""Local key-value cache with a read-through freshness gate."""
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

FETCH_TS_SUFFIX = '-fetch-ts'
DEFAULT_TIMEOUT_SECONDS = 600


class KeyValueStore(Protocol):
    """String key-value store holding cache snapshots."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store; survives warm Lambda invocations."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class JsonFileKeyValueStore:
    """Store persisted as a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._data = self._load()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._save()

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._save()

    def _load(self) -> Dict[str, str]:
        """
        Read the store file.

        Returns:
            Stored entries; empty when the file is missing, unreadable or malformed
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed cache file {self.path}")
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _save(self) -> None:
        """Write all entries to a temp file and atomically swap it in."""
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)


def cache_key(*parts: str, namespace: str = 'eventflow') -> str:
    """Build a namespaced cache key, e.g. ``eventflow-events-team``."""
    return '-'.join([namespace, *parts])


class CacheGate:
    """
    Read-through cache deciding between a local snapshot and a remote fetch.

    Each entry is a JSON value at ``key`` plus the epoch seconds of its last
    fetch at ``key + '-fetch-ts'``. An entry is fresh while
    ``now - fetched_at < timeout``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the gate.

        Args:
            store: Key-value store holding snapshots and timestamps
            timeout: Freshness window in seconds
            clock: Returns the current epoch time in seconds
        """
        self.store = store
        self.timeout = timeout
        self.clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def read_through(
        self,
        key: str,
        fetch_remote: Callable[[], Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for ``key`` if fresh, otherwise fetch it.

        Args:
            key: Cache key
            fetch_remote: Zero-argument callable loading the value remotely
            timeout: Override for the gate's freshness window

        Returns:
            Cached or freshly fetched value

        Raises:
            Any exception raised by ``fetch_remote``; the cache is left untouched
        """
        timeout = self.timeout if timeout is None else timeout

        with self._lock_for(key):
            now = self.clock()
            cached = self._read_entry(key)
            if cached is not None:
                value, fetched_at = cached
                age = now - fetched_at
                if age < timeout:
                    logger.debug(f"Cache hit for {key} ({age:.1f}s old)")
                    return value
                logger.debug(f"Cache stale for {key} ({age:.1f}s old)")
            else:
                logger.debug(f"Cache miss for {key}")

            value = fetch_remote()
            self._write_entry(key, value, self.clock())
            return value

    def write_through(self, key: str, value: Any) -> None:
        """Store a value just written remotely, marking it freshly fetched."""
        with self._lock_for(key):
            self._write_entry(key, value, self.clock())

    def update(self, key: str, mutate: Callable[[Any], Any]) -> bool:
        """
        Apply ``mutate`` to an existing cached value and store the result.

        Args:
            key: Cache key
            mutate: Receives the cached value, returns the new value

        Returns:
            True if an entry existed and was updated
        """
        with self._lock_for(key):
            cached = self._read_entry(key)
            if cached is None:
                return False
            self._write_entry(key, mutate(cached[0]), self.clock())
            return True

    def invalidate(self, key: str) -> None:
        """
        Remove an entry and its timestamp so the next read fetches.

        Args:
            key: Cache key
        """
        with self._lock_for(key):
            self.store.remove(key)
            self.store.remove(key + FETCH_TS_SUFFIX)

    def _read_entry(self, key: str) -> Optional[tuple]:
        """
        Read and decode an entry.

        Args:
            key: Cache key

        Returns:
            (value, fetched_at) tuple, or None when missing or unreadable
        """
        raw_value = self.store.get(key)
        raw_ts = self.store.get(key + FETCH_TS_SUFFIX)
        if raw_value is None or raw_ts is None:
            return None
        try:
            return json.loads(raw_value), float(json.loads(raw_ts))
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    def _write_entry(self, key: str, value: Any, fetched_at: float) -> None:
        """Encode and store a value with its fetch timestamp."""
        self.store.set(key, json.dumps(value))
        self.store.set(key + FETCH_TS_SUFFIX, json.dumps(fetched_at))

    def _lock_for(self, key: str) -> threading.RLock:
        """Get the re-entrant lock guarding ``key``, creating it on first use."""
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock
