# src/seeker/services/directory_cache.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from ..core import constants
from ..core.collation import sort_key
from ..core.models import DirectoryEntry, EntryKind
from ..core.path_guard import normalize_path

log = logging.getLogger(__name__)


def read_directory(path: str) -> Tuple[DirectoryEntry, ...]:
    """Blocking read of the raw entries of a directory. No stat calls."""
    entries = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                kind = EntryKind.DIRECTORY if entry.is_dir() else EntryKind.FILE
            except OSError:
                kind = EntryKind.FILE
            entries.append(DirectoryEntry(name=entry.name, kind=kind))
    return tuple(entries)


@dataclass
class DirectoryCacheEntry:
    path: str
    fetched_at: float
    entries: Tuple[DirectoryEntry, ...]
    _sorted_by_name: Optional[List[DirectoryEntry]] = field(default=None, repr=False)

    def sorted_by_name(self) -> List[DirectoryEntry]:
        """Name-sorted snapshot, directories and files intermixed. Computed once."""
        if self._sorted_by_name is None:
            # Concurrent callers may race here; both compute the same list.
            self._sorted_by_name = sorted(self.entries, key=lambda e: sort_key(e.name))
        return self._sorted_by_name


class DirectoryCache:
    """Bounded, time-expiring cache of raw directory listings keyed by absolute path."""

    def __init__(
        self,
        ttl: float = constants.DIRECTORY_CACHE_TTL,
        max_entries: int = constants.DIRECTORY_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        reader: Callable[[str], Tuple[DirectoryEntry, ...]] = read_directory,
    ):
        self.ttl = ttl
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._reader = reader
        self._entries: "OrderedDict[str, DirectoryCacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None

    def get(self, path: str) -> Optional[DirectoryCacheEntry]:
        """Returns the entry for `path` if it is still fresh."""
        key = normalize_path(path)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.fetched_at >= self.ttl:
                del self._entries[key]
                return None
            return entry

    def put(self, path: str, entries: Tuple[DirectoryEntry, ...]) -> DirectoryCacheEntry:
        key = normalize_path(path)
        entry = DirectoryCacheEntry(path=key, fetched_at=self._clock(), entries=tuple(entries))
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug(f"Evicted directory cache entry: {evicted}")
            self._entries[key] = entry
        return entry

    async def snapshot(self, path: str) -> DirectoryCacheEntry:
        """Fresh cached entry for `path`, reading the directory on a miss."""
        cached = self.get(path)
        if cached is not None:
            return cached
        entries = await asyncio.to_thread(self._reader, path)
        return self.put(path, entries)

    def invalidate(self, *paths: str) -> None:
        with self._lock:
            for path in paths:
                if path:
                    self._entries.pop(normalize_path(path), None)

    def invalidate_parent(self, path: str) -> None:
        self.invalidate(os.path.dirname(normalize_path(path)))

    def invalidate_tree(self, path: str) -> None:
        """Drops `path`, its parent and every cached directory below `path`."""
        key = normalize_path(path)
        prefix = key.rstrip("/") + "/"
        with self._lock:
            for cached in [k for k in self._entries if k == key or k.startswith(prefix)]:
                del self._entries[cached]
            self._entries.pop(os.path.dirname(key), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
