"""
In-memory, per-run memo keyed by project id.
Guarantees at most one in-flight computation per key when shared across worker threads.
Nothing is written to disk; a new ProjectMemo is created for every run.
"""

import logging
import threading
from typing import Any, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class ProjectMemo:
    def __init__(self):
        self._values: Dict[Hashable, Any] = {}
        self._errors: Dict[Hashable, Exception] = {}
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        # guards _key_locks and the hit/miss counters
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """Return the cached value for key, computing it with compute() on first access.

        Callers racing on the same key block until the first computation finishes and then reuse its outcome.
        If compute() raises, the exception is remembered and re-raised to every later caller for that key.
        """
        with self._lock_for(key):
            if key in self._values or key in self._errors:
                with self._lock:
                    self.hits += 1
                logger.debug("memo hit for %r", key)
                if key in self._errors:
                    raise self._errors[key]
                return self._values[key]
            with self._lock:
                self.misses += 1
            logger.debug("memo miss for %r", key)
            try:
                value = compute()
            except Exception as ex:
                self._errors[key] = ex
                raise
            self._values[key] = value
            return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def stats(self) -> Dict[str, int]:
        """Return basic statistics about the memo: entries, hits, misses."""
        with self._lock:
            return {'count': len(self._values), 'hits': self.hits, 'misses': self.misses}

    def clear(self):
        with self._lock:
            self._values.clear()
            self._errors.clear()
            self._key_locks.clear()
            self.hits = 0
            self.misses = 0


__all__ = ["ProjectMemo"]
