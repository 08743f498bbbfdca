# src/seeker/services/neighbor_service.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import os
from bisect import bisect_left
from typing import Callable, List, Optional, get_args

from ..core.collation import natural_key
from ..core.exceptions import InvalidRequest, NotFound
from ..core.models import DirectoryEntry, MediaType, NeighborWindow
from ..core.path_guard import PathGuard
from .file_service import FileService, get_mime_type

log = logging.getLogger(__name__)

MEDIA_TYPES = get_args(MediaType)


def locate_entry(ordered: List[DirectoryEntry], name: str) -> Optional[int]:
    """Index of `name` in a name-sorted snapshot, or None."""
    key = natural_key(name)
    i = bisect_left(ordered, key, key=lambda e: natural_key(e.name))
    # Names that differ only in case or accents share a key; walk that run.
    while i < len(ordered) and natural_key(ordered[i].name) == key:
        if ordered[i].name == name:
            return i
        i += 1
    return None


class NeighborFinder:
    """Previous/next navigation among the files of a directory, for media viewers."""

    def __init__(self, guard: PathGuard, files: FileService):
        self.guard = guard
        self.files = files

    @staticmethod
    def _matcher(media_type: Optional[str], show_hidden: bool) -> Callable[[DirectoryEntry], bool]:
        def matches(entry: DirectoryEntry) -> bool:
            if entry.is_dir:
                return False
            if not show_hidden and entry.name.startswith("."):
                return False
            if media_type is None:
                return True
            return (get_mime_type(entry.name) or "").startswith(f"{media_type}/")
        return matches

    @staticmethod
    def _collect(ordered: List[DirectoryEntry], start: int, step: int, count: int, matches) -> List[int]:
        found = []
        i = start
        while 0 <= i < len(ordered) and len(found) < count:
            if matches(ordered[i]):
                found.append(i)
            i += step
        return found

    @staticmethod
    def _nearest(ordered: List[DirectoryEntry], start: int, step: int, matches) -> Optional[int]:
        i = start
        while 0 <= i < len(ordered):
            if matches(ordered[i]):
                return i
            i += step
        return None

    async def get_neighbors(
        self,
        target_path: str,
        before_count: int = 5,
        after_count: int = 5,
        media_type: Optional[MediaType] = None,
        show_hidden: bool = False,
    ) -> NeighborWindow:
        target = self.guard.ensure_allowed(target_path)
        if media_type is not None and media_type not in MEDIA_TYPES:
            raise InvalidRequest(f"Unsupported media type: {media_type}")
        if before_count < 0 or after_count < 0:
            raise InvalidRequest("before and after counts must not be negative")

        if not await asyncio.to_thread(os.path.lexists, target):
            raise NotFound(f"File not found: {target}")
        if await asyncio.to_thread(os.path.isdir, target):
            raise InvalidRequest("Target is a directory")

        parent, name = os.path.split(target)
        snapshot = await self.files.load_snapshot(parent)
        index = locate_entry(snapshot.sorted_by_name(), name)
        if index is None:
            # The file may be newer than the cached listing.
            self.files.cache.invalidate(parent)
            snapshot = await self.files.load_snapshot(parent)
            index = locate_entry(snapshot.sorted_by_name(), name)
        if index is None:
            raise NotFound("File not found in directory listing")

        ordered = snapshot.sorted_by_name()
        matches = self._matcher(media_type, show_hidden)

        previous_index = self._nearest(ordered, index - 1, -1, matches)
        next_index = self._nearest(ordered, index + 1, 1, matches)

        before = self._collect(ordered, index - 1, -1, before_count, matches)
        after = self._collect(ordered, index + 1, 1, after_count, matches)
        window = [ordered[i] for i in reversed(before)] + [ordered[index]] + [ordered[i] for i in after]

        items = await self.files.stat_entries(parent, window)
        current_index = next((i for i, item in enumerate(items) if item.name == name), None)
        if current_index is None:
            raise NotFound(f"File not found: {target}")

        return NeighborWindow(
            items=items,
            current_index=current_index,
            has_previous=previous_index is not None,
            has_next=next_index is not None,
            previous_path=os.path.join(parent, ordered[previous_index].name) if previous_index is not None else None,
            next_path=os.path.join(parent, ordered[next_index].name) if next_index is not None else None,
        )
