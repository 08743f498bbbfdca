# src/seeker/services/file_service.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import mimetypes
import os
import shutil
from typing import AsyncIterator, Iterable, List, Optional

import aiofiles

from ..core import constants
from ..core.collation import natural_key, sort_key
from ..core.exceptions import (AccessDenied, Conflict, InvalidRequest,
                               NotFound, SeekerError, TransientError)
from ..core.models import (BatchResult, ConflictAction, DirectoryEntry,
                           DirectoryPage, FileContent, FileItem, ItemResult,
                           OperationResult, SortBy, SortOrder)
from ..core.path_guard import PathGuard, is_within, normalize_path
from ..core.validators import validate_filename
from .directory_cache import DirectoryCache

log = logging.getLogger(__name__)

SORT_KEYS = ("name", "date", "size", "type")
SORT_ORDERS = ("asc", "desc")
CONFLICT_ACTIONS = ("overwrite", "skip", "rename")

mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("video/x-matroska", ".mkv")
mimetypes.add_type("text/markdown", ".md")


def get_mime_type(name: str) -> Optional[str]:
    mime, _ = mimetypes.guess_type(name)
    return mime


def get_extension(name: str) -> str:
    return os.path.splitext(name)[1][1:].lower()


def get_item_type(name: str, is_dir: bool) -> str:
    if is_dir: return "folder"
    mime = get_mime_type(name)
    if mime:
        if mime.startswith("video/"): return "video"
        if mime.startswith("image/"): return "image"
        if mime.startswith("audio/"): return "audio"
        if mime == "application/pdf": return "pdf"
        if mime in ("application/zip", "application/x-tar", "application/gzip", "application/x-7z-compressed"):
            return "archive"
    return "file"


def build_file_item(path: str, is_dir: bool, st: os.stat_result) -> FileItem:
    name = os.path.basename(path) or path
    return FileItem(
        name=name,
        path=path,
        is_dir=is_dir,
        size=st.st_size,
        modified_at=st.st_mtime,
        mime_type=None if is_dir else get_mime_type(name),
        extension="" if is_dir else get_extension(name),
        item_type=get_item_type(name, is_dir),
    )


def sort_entries_by_name(entries: Iterable[DirectoryEntry], descending: bool = False) -> List[DirectoryEntry]:
    """Directories first, then natural name order within each group."""
    dirs = sorted((e for e in entries if e.is_dir), key=lambda e: sort_key(e.name), reverse=descending)
    files = sorted((e for e in entries if not e.is_dir), key=lambda e: sort_key(e.name), reverse=descending)
    return dirs + files


def sort_items(items: List[FileItem], sort_by: str, sort_order: str) -> List[FileItem]:
    """Directories always precede files; ties fall back to the name comparator."""
    if sort_by == "date":
        key = lambda i: (i.modified_at, sort_key(i.name))
    elif sort_by == "size":
        key = lambda i: (i.size, sort_key(i.name))
    elif sort_by == "type":
        key = lambda i: (natural_key(i.extension), sort_key(i.name))
    else:
        key = lambda i: sort_key(i.name)

    descending = sort_order == "desc"
    dirs = sorted((i for i in items if i.is_dir), key=key, reverse=descending)
    files = sorted((i for i in items if not i.is_dir), key=key, reverse=descending)
    return dirs + files


def get_unique_path(path: str) -> str:
    if not os.path.lexists(path): return path
    parent, name = os.path.split(path)
    stem, suffix = os.path.splitext(name)
    count = 1
    while os.path.lexists(os.path.join(parent, f"{stem} ({count}){suffix}")): count += 1
    return os.path.join(parent, f"{stem} ({count}){suffix}")


class FileService:
    """Directory listing, search, stats and the mutating file operations."""

    def __init__(
        self,
        guard: PathGuard,
        cache: DirectoryCache,
        large_directory_threshold: int = constants.LARGE_DIRECTORY_THRESHOLD,
        stat_batch_size: int = constants.STAT_BATCH_SIZE,
        max_text_file_bytes: int = constants.MAX_TEXT_FILE_BYTES,
    ):
        self.guard = guard
        self.cache = cache
        self.large_directory_threshold = large_directory_threshold
        self.stat_batch_size = max(1, stat_batch_size)
        self.max_text_file_bytes = max_text_file_bytes

    # --- Stat helpers ---

    @staticmethod
    def _stat_entry(base_path: str, entry: DirectoryEntry) -> FileItem:
        full_path = os.path.join(base_path, entry.name)
        return build_file_item(full_path, entry.is_dir, os.stat(full_path))

    async def stat_entries(self, base_path: str, entries: List[DirectoryEntry]) -> List[FileItem]:
        """Stats entries in parallel batches. Entries that fail to stat are skipped."""
        items: List[FileItem] = []
        for i in range(0, len(entries), self.stat_batch_size):
            batch = entries[i:i + self.stat_batch_size]
            results = await asyncio.gather(
                *(asyncio.to_thread(self._stat_entry, base_path, entry) for entry in batch),
                return_exceptions=True,
            )
            for entry, result in zip(batch, results):
                if isinstance(result, BaseException):
                    log.warning(f"Could not access item {os.path.join(base_path, entry.name)}: {result}")
                    continue
                items.append(result)
        return items

    async def _require_directory(self, path: str) -> None:
        if not await asyncio.to_thread(os.path.isdir, path):
            raise NotFound("Directory not found or not a directory")

    async def load_snapshot(self, path: str):
        """Cached directory snapshot, mapping OS errors onto the service taxonomy."""
        try:
            return await self.cache.snapshot(path)
        except FileNotFoundError:
            raise NotFound(f"Directory not found: {path}")
        except PermissionError:
            raise AccessDenied(f"Read access denied: {path}")
        except OSError as e:
            raise TransientError(f"Error reading directory: {e}") from e

    # --- Listing ---

    async def list_directory(
        self,
        path: str,
        *,
        show_hidden: bool,
        page: int = 1,
        page_size: int = constants.DEFAULT_PAGE_SIZE,
        sort_by: SortBy = "name",
        sort_order: SortOrder = "asc",
        search: Optional[str] = None,
    ) -> DirectoryPage:
        """
        Lists one page of a directory.

        Name sorting needs no stat calls, so the page is sliced first and only
        the visible entries are stat-ed. Other sort keys stat every entry,
        unless the directory is larger than the configured threshold, in which
        case the listing falls back to name order and carries a warning.
        """
        path = self.guard.ensure_allowed(path)
        if page < 1 or page_size < 1:
            raise InvalidRequest("page and page_size must be positive")
        if sort_by not in SORT_KEYS:
            raise InvalidRequest(f"Unsupported sort key: {sort_by}")
        if sort_order not in SORT_ORDERS:
            raise InvalidRequest(f"Unsupported sort order: {sort_order}")
        await self._require_directory(path)

        snapshot = await self.load_snapshot(path)

        needle = search.lower() if search else None
        filtered = [
            e for e in snapshot.entries
            if (show_hidden or not e.name.startswith("."))
            and (needle is None or needle in e.name.lower())
        ]
        total = len(filtered)
        start = (page - 1) * page_size
        has_more = start + page_size < total

        warning = None
        if sort_by != "name" and total > self.large_directory_threshold:
            warning = f"Directory too large ({total} items). Sorted by name only."
            log.info(f"{path}: {warning}")

        if sort_by == "name" or warning:
            ordered = sort_entries_by_name(filtered, descending=sort_order == "desc")
            items = await self.stat_entries(path, ordered[start:start + page_size])
        else:
            all_items = await self.stat_entries(path, filtered)
            items = sort_items(all_items, sort_by, sort_order)[start:start + page_size]

        return DirectoryPage(
            items=items, total=total, page=page, page_size=page_size,
            has_more=has_more, warning=warning,
        )

    # --- Search ---

    def _search_sync(self, base_path: str, needle: str, recursive: bool, show_hidden: bool, limit: int) -> List[FileItem]:
        results: List[FileItem] = []

        def _walk(current: str, depth: int):
            if len(results) >= limit:
                return
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                log.debug(f"Skipping unreadable directory {current}: {e}")
                return

            for entry in entries:
                if len(results) >= limit:
                    return
                if not show_hidden and entry.name.startswith("."):
                    continue
                try:
                    is_dir = entry.is_dir()
                except OSError:
                    continue
                if needle in entry.name.lower():
                    try:
                        results.append(build_file_item(entry.path, is_dir, entry.stat()))
                    except OSError:
                        pass
                # Symlinked directories are not followed to avoid cycles.
                if recursive and is_dir and not entry.is_symlink():
                    _walk(entry.path, depth + 1)

        _walk(base_path, 0)
        return results

    async def search_files(
        self,
        base_path: str,
        query: str,
        *,
        show_hidden: bool,
        recursive: bool = False,
        limit: int = 100,
    ) -> List[FileItem]:
        base_path = self.guard.ensure_allowed(base_path)
        if not query or not query.strip():
            raise InvalidRequest("Search query cannot be empty")
        if limit < 1:
            raise InvalidRequest("limit must be positive")
        await self._require_directory(base_path)
        return await asyncio.to_thread(
            self._search_sync, base_path, query.lower(), recursive, show_hidden, limit
        )

    # --- Stats ---

    @staticmethod
    def _recursive_stats(path: str):
        size = file_count = folder_count = 0
        for root, dirs, files in os.walk(path, onerror=lambda e: log.debug(f"Walk error: {e}")):
            folder_count += len(dirs)
            for f in files:
                try:
                    size += os.lstat(os.path.join(root, f)).st_size
                    file_count += 1
                except OSError:
                    continue
        return size, file_count, folder_count

    async def get_stats(self, path: str, calculate_size: bool = False) -> FileItem:
        path = self.guard.ensure_allowed(path)
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            raise NotFound(f"Path not found: {path}")
        except OSError as e:
            raise TransientError(f"Cannot stat {path}: {e}") from e

        is_dir = await asyncio.to_thread(os.path.isdir, path)
        item = build_file_item(path, is_dir, st)
        if is_dir and calculate_size:
            size, file_count, folder_count = await asyncio.to_thread(self._recursive_stats, path)
            item.size = size
            item.file_count = file_count
            item.folder_count = folder_count
        return item

    # --- Creation ---

    async def create_folder(self, parent_path: str, folder_name: str) -> OperationResult:
        parent_path = self.guard.ensure_allowed(parent_path)
        safe_name = validate_filename(folder_name)
        new_path = self.guard.ensure_allowed(os.path.join(parent_path, safe_name))
        await self._require_directory(parent_path)
        try:
            await asyncio.to_thread(os.mkdir, new_path)
        except FileExistsError:
            raise Conflict("Folder already exists")
        except OSError as e:
            raise TransientError(f"Failed to create folder: {e}") from e
        finally:
            self.cache.invalidate(parent_path)
        return OperationResult(success=True, path=new_path)

    async def create_file(self, parent_path: str, file_name: str) -> OperationResult:
        parent_path = self.guard.ensure_allowed(parent_path)
        safe_name = validate_filename(file_name)
        new_path = self.guard.ensure_allowed(os.path.join(parent_path, safe_name))
        await self._require_directory(parent_path)

        def _touch():
            with open(new_path, "x", encoding="utf-8"):
                pass

        try:
            await asyncio.to_thread(_touch)
        except FileExistsError:
            raise Conflict("File already exists")
        except OSError as e:
            raise TransientError(f"Failed to create file: {e}") from e
        finally:
            self.cache.invalidate(parent_path)
        return OperationResult(success=True, path=new_path)

    # --- Rename / Delete ---

    async def rename(self, path: str, new_name: str) -> OperationResult:
        path = self.guard.ensure_allowed(path)
        safe_name = validate_filename(new_name)
        parent = os.path.dirname(path)
        new_path = self.guard.ensure_allowed(os.path.join(parent, safe_name))

        if self._is_mount_root(path):
            raise InvalidRequest("Cannot rename a mount root")
        if not await asyncio.to_thread(os.path.lexists, path):
            raise NotFound(f"Path not found: {path}")
        if new_path == path:
            return OperationResult(success=True, path=path)
        if await asyncio.to_thread(os.path.lexists, new_path):
            raise Conflict("A file with this name already exists")

        try:
            await asyncio.to_thread(os.rename, path, new_path)
        except OSError as e:
            raise TransientError(f"Failed to rename: {e}") from e
        finally:
            self.cache.invalidate_tree(path)
            self.cache.invalidate(parent)
        return OperationResult(success=True, path=new_path)

    def _is_mount_root(self, path: str) -> bool:
        return any(normalize_path(m.path) == path for m in self.guard.registry.list_mounts())

    async def _delete_one(self, raw_path: str) -> ItemResult:
        try:
            path = self.guard.ensure_allowed(raw_path)
            if self._is_mount_root(path):
                raise InvalidRequest("Cannot delete a mount root")
            if not await asyncio.to_thread(os.path.lexists, path):
                raise NotFound("Not found")
            if await asyncio.to_thread(lambda: os.path.isdir(path) and not os.path.islink(path)):
                await asyncio.to_thread(shutil.rmtree, path)
            else:
                await asyncio.to_thread(os.unlink, path)
            self.cache.invalidate_tree(path)
            return ItemResult(source=raw_path, success=True)
        except SeekerError as e:
            return ItemResult(source=raw_path, success=False, error=str(e))
        except OSError as e:
            log.error(f"Failed to delete item '{raw_path}': {e}")
            self.cache.invalidate_tree(normalize_path(raw_path))
            return ItemResult(source=raw_path, success=False, error="Failed to delete")

    async def delete(self, paths: List[str]) -> BatchResult:
        results = [await self._delete_one(p) for p in paths]
        return BatchResult(success=all(r.success for r in results), results=results)

    # --- Copy / Move ---

    async def _prepare_transfer(self, raw_source: str, dest_dir: str, conflict_action: str, move: bool):
        """Resolves the destination for one source. Returns (source, target) or an ItemResult."""
        source = self.guard.ensure_allowed(raw_source)
        if move and self._is_mount_root(source):
            raise InvalidRequest("Cannot move a mount root")
        if not await asyncio.to_thread(os.path.lexists, source):
            raise NotFound("Source not found")
        if await asyncio.to_thread(os.path.isdir, source) and is_within(dest_dir, source):
            raise InvalidRequest("Cannot place a folder inside itself")

        target = os.path.join(dest_dir, os.path.basename(source))
        if await asyncio.to_thread(os.path.lexists, target):
            if conflict_action == "skip":
                return ItemResult(source=raw_source, destination=target, success=True, error="Skipped (file exists)")
            if conflict_action == "rename" or target == source:
                target = await asyncio.to_thread(get_unique_path, target)
            elif is_within(source, target):
                # Overwriting a parent of the source would delete the source with it.
                raise Conflict("Cannot overwrite a folder that contains the source")
            else:
                await asyncio.to_thread(self._remove, target)
        return source, target

    @staticmethod
    def _remove(path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)

    @staticmethod
    def _copy(source: str, target: str) -> None:
        if os.path.isdir(source) and not os.path.islink(source):
            shutil.copytree(source, target, symlinks=True)
        else:
            shutil.copy2(source, target, follow_symlinks=False)

    async def _transfer(self, sources: List[str], destination_dir: str, conflict_action: ConflictAction, move: bool) -> BatchResult:
        if conflict_action not in CONFLICT_ACTIONS:
            raise InvalidRequest(f"Unsupported conflict action: {conflict_action}")
        try:
            dest_dir = self.guard.ensure_allowed(destination_dir)
            await self._require_directory(dest_dir)
        except SeekerError as e:
            return BatchResult(success=False, results=[
                ItemResult(source=s, success=False, error=str(e)) for s in sources
            ])

        verb = "move" if move else "copy"
        results: List[ItemResult] = []
        for raw_source in sources:
            target = None
            try:
                prepared = await self._prepare_transfer(raw_source, dest_dir, conflict_action, move)
                if isinstance(prepared, ItemResult):
                    results.append(prepared)
                    continue
                source, target = prepared
                if move:
                    # shutil.move renames when possible and copies across devices.
                    await asyncio.to_thread(shutil.move, source, target)
                    self.cache.invalidate_tree(source)
                else:
                    await asyncio.to_thread(self._copy, source, target)
                results.append(ItemResult(source=raw_source, destination=target, success=True))
            except SeekerError as e:
                results.append(ItemResult(source=raw_source, destination=target, success=False, error=str(e)))
            except OSError as e:
                log.error(f"Failed to {verb} '{raw_source}': {e}")
                results.append(ItemResult(source=raw_source, destination=target, success=False, error=f"Failed to {verb}"))
            finally:
                self.cache.invalidate(dest_dir)

        return BatchResult(success=all(r.success for r in results), results=results)

    async def copy(self, sources: List[str], destination_dir: str, conflict_action: ConflictAction = "rename") -> BatchResult:
        return await self._transfer(sources, destination_dir, conflict_action, move=False)

    async def move(self, sources: List[str], destination_dir: str, conflict_action: ConflictAction = "rename") -> BatchResult:
        return await self._transfer(sources, destination_dir, conflict_action, move=True)

    # --- Content ---

    async def read_file_content(self, path: str) -> FileContent:
        path = self.guard.ensure_allowed(path)
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            raise NotFound(f"File not found: {path}")
        if await asyncio.to_thread(os.path.isdir, path):
            raise InvalidRequest("Path is a directory")
        if st.st_size > self.max_text_file_bytes:
            raise InvalidRequest(f"File too large to open as text ({st.st_size} bytes)")

        async with aiofiles.open(path, "rb") as f:
            raw = await f.read()
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidRequest("File is not valid UTF-8 text")
        return FileContent(
            path=path, content=content, size=st.st_size,
            modified_at=st.st_mtime, mime_type=get_mime_type(path),
        )

    async def save_file_content(self, path: str, content: str) -> OperationResult:
        path = self.guard.ensure_allowed(path)
        parent = os.path.dirname(path)
        await self._require_directory(parent)
        if await asyncio.to_thread(os.path.isdir, path):
            raise InvalidRequest("Path is a directory")
        try:
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise TransientError(f"Failed to save file: {e}") from e
        finally:
            self.cache.invalidate(parent)
        return OperationResult(success=True, path=path)

    # --- Streaming ---

    async def open_download(self, path: str) -> FileItem:
        """Validates a path for download and returns its metadata."""
        item = await self.get_stats(path)
        if item.is_dir:
            raise InvalidRequest("The specified path is not a file.")
        return item

    def open_file_stream(self, path: str, start: int = 0, end: Optional[int] = None,
                         chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Authorizes a path and returns an async byte iterator over [start, end]."""
        path = self.guard.ensure_allowed(path)
        if start < 0 or (end is not None and end < start):
            raise InvalidRequest(f"Invalid byte range {start}-{end}")
        return self.get_file_iterator(path, start, end, chunk_size)

    async def get_file_iterator(self, path: str, start: int = 0, end: Optional[int] = None,
                                chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Asynchronous iterator to read an inclusive byte range from a file."""
        async with aiofiles.open(path, "rb") as f:
            await f.seek(start)
            remaining = None if end is None else (end - start) + 1
            while remaining is None or remaining > 0:
                chunk = await f.read(chunk_size if remaining is None else min(chunk_size, remaining))
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk
