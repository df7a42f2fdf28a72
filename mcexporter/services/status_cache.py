"""Scrape cache: one immutable CacheEntry swapped atomically on refresh."""
import threading
import time

from mcexporter.state import CacheEntry


class SnapshotCache:
    """Share one FactSnapshot between concurrent scrapes inside the validity window.

    Readers of a fresh entry never take a lock; they read the current entry
    reference, which refresh replaces wholesale. A stale read serializes on
    ``_refresh_lock`` and re-checks freshness, so scrapes that pile up behind
    one refresh reuse its result instead of collecting again.
    """

    def __init__(self, collect, ttl_seconds, clock=time.monotonic):
        self._collect = collect
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._entry = None

    @property
    def entry(self):
        return self._entry

    def get(self):
        """Return a cached snapshot, collecting a new one when stale or missing."""
        entry = self._entry
        if entry is not None and entry.is_fresh(self._clock()):
            return entry.snapshot
        with self._refresh_lock:
            entry = self._entry
            if entry is not None and entry.is_fresh(self._clock()):
                return entry.snapshot
            snapshot = self._collect()
            self._entry = CacheEntry(snapshot=snapshot, captured_at=self._clock(), ttl_seconds=self._ttl_seconds)
            return snapshot
