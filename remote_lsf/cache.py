import threading
from collections.abc import Callable

from cachetools import TTLCache

from .hashing import HashKind


class HashCache:
    """
    Cache for computed object hashes.

    Thread-safe cache keyed by (path, hash kind) with TTL-based expiration.
    Used to avoid downloading or re-hashing the same object when a format
    asks for a hash more than once.
    """

    def __init__(self, maxsize: int = 4096, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._lock = threading.Lock()

    def get(self, path: str, kind: HashKind) -> str | None:
        """
        Retrieve a hash if cached and not expired.

        Args:
            path: The object path.
            kind: The hash kind.

        Returns:
            The cached hex digest, else None.
        """
        with self._lock:
            return self._cache.get((path, kind))

    def put(self, path: str, kind: HashKind, value: str) -> None:
        """
        Cache a hash value.

        Args:
            path: The object path.
            kind: The hash kind.
            value: The hex digest.
        """
        with self._lock:
            self._cache[(path, kind)] = value

    def get_or_compute(self, path: str, kind: HashKind, compute: Callable[[], str]) -> str:
        """
        Return the cached hash, computing and storing it on a miss.

        Exceptions from compute propagate and nothing is cached.
        """
        cached = self.get(path, kind)
        if cached is not None:
            return cached
        value = compute()
        self.put(path, kind, value)
        return value

    def invalidate(self, path: str) -> None:
        """
        Drop every cached hash for a path.

        Args:
            path: The object path to invalidate.
        """
        with self._lock:
            for key in [k for k in self._cache if k[0] == path]:
                self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
