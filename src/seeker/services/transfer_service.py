# src/seeker/services/transfer_service.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import os
import time
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional

import aiofiles
from sqlalchemy.exc import SQLAlchemyError

from ..core import constants
from ..core.exceptions import InvalidRequest, NotFound, TransientError
from ..core.models import (ChunkReceipt, FinalizeResult, OperationResult,
                           UploadInitResponse, UploadStatus)
from ..core.path_guard import PathGuard
from ..core.validators import validate_filename
from ..db import UploadSession, UploadSessionStore
from .directory_cache import DirectoryCache

log = logging.getLogger(__name__)


def short_id(length: int) -> str:
    return uuid.uuid4().hex[:length]


def strip_partial(path: str) -> str:
    return path[:-len(constants.PARTIAL_SUFFIX)] if path.endswith(constants.PARTIAL_SUFFIX) else path


def with_suffix_id(path: str, length: int) -> str:
    """'dir/name.ext' -> 'dir/name_<id>.ext'"""
    parent, name = os.path.split(path)
    stem, ext = os.path.splitext(name)
    return os.path.join(parent, f"{stem}_{short_id(length)}{ext}")


class ChunkedUploadManager:
    """
    Resumable uploads of large files split into fixed-size chunks.

    Each chunk lands at offset `chunk_index * chunk_size` of a `.partial` file
    next to its final destination. Chunks may arrive in any order and in
    parallel; only the bookkeeping of received indices is serialized, through a
    per-session lock.
    """

    def __init__(
        self,
        guard: PathGuard,
        store: UploadSessionStore,
        cache: DirectoryCache,
        chunk_size: int = constants.UPLOAD_CHUNK_SIZE,
        max_age_hours: float = constants.UPLOAD_MAX_AGE_HOURS,
        cleanup_interval: float = constants.UPLOAD_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.guard = guard
        self.store = store
        self.cache = cache
        self.chunk_size = chunk_size
        self.max_age = max_age_hours * 3600
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._last_cleanup: Optional[float] = None

        self.transfer_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def lock(self, resource_id: str):
        async with self.transfer_locks[resource_id]:
            yield

    def _release_lock(self, upload_id: str) -> None:
        self.transfer_locks.pop(upload_id, None)

    async def _load_session(self, upload_id: str) -> UploadSession:
        session = await self.store.get(upload_id)
        if session is None:
            raise NotFound("Upload session not found")
        if session.expires_at <= self._clock():
            raise NotFound("Upload session expired")
        return session

    async def _maybe_cleanup(self) -> None:
        now = self._clock()
        if self._last_cleanup is None or now - self._last_cleanup >= self.cleanup_interval:
            await self.cleanup_stale_uploads()

    # --- UPLOAD ---

    async def init_upload(self, dest_dir: str, filename: str, total_chunks: int) -> UploadInitResponse:
        dest = self.guard.ensure_allowed(dest_dir)
        if total_chunks < 0:
            raise InvalidRequest("total_chunks must not be negative")
        await self._maybe_cleanup()
        if not await asyncio.to_thread(os.path.isdir, dest):
            raise NotFound("Destination directory not found")

        safe_name = validate_filename(filename)
        target = os.path.join(dest, safe_name)
        if await asyncio.to_thread(os.path.lexists, target):
            target = with_suffix_id(target, 6)
        if await asyncio.to_thread(os.path.lexists, target + constants.PARTIAL_SUFFIX):
            target = with_suffix_id(target, 8)
        partial = target + constants.PARTIAL_SUFFIX

        def _create_partial():
            with open(partial, "xb"):
                pass

        try:
            await asyncio.to_thread(_create_partial)
        except OSError as e:
            raise TransientError(f"Could not create upload file: {e}") from e

        now = self._clock()
        upload_id = str(uuid.uuid4())
        session = UploadSession(
            id=upload_id,
            file_path=partial,
            original_name=safe_name,
            total_chunks=total_chunks,
            uploaded_chunks="[]",
            created_at=now,
            expires_at=now + self.max_age,
        )
        try:
            await self.store.add(session)
        except SQLAlchemyError as e:
            await asyncio.to_thread(self._unlink_quietly, partial)
            raise TransientError(f"Could not persist upload session: {e}") from e

        self.cache.invalidate(dest)
        log.info(f"Upload {upload_id} initialized: {partial} ({total_chunks} chunks)")
        return UploadInitResponse(
            upload_id=upload_id, file_name=os.path.basename(target), chunk_size=self.chunk_size,
        )

    async def save_chunk(self, upload_id: str, chunk_index: int, data: bytes) -> ChunkReceipt:
        session = await self._load_session(upload_id)
        if not 0 <= chunk_index < session.total_chunks:
            raise InvalidRequest(f"Chunk index {chunk_index} out of range (0-{session.total_chunks - 1})")
        if len(data) > self.chunk_size:
            raise InvalidRequest(f"Chunk exceeds the chunk size of {self.chunk_size} bytes")
        if not await asyncio.to_thread(os.path.exists, session.file_path):
            raise NotFound("Upload file missing")

        # Chunks cover disjoint byte ranges, so writes need no lock.
        try:
            async with aiofiles.open(session.file_path, "r+b") as f:
                await f.seek(chunk_index * self.chunk_size)
                await f.write(data)
        except OSError as e:
            raise TransientError(f"Failed to write chunk {chunk_index}: {e}") from e

        async with self.lock(upload_id):
            current = await self.store.get(upload_id)
            if current is None:
                self._release_lock(upload_id)
                raise NotFound("Upload session not found")
            indices = set(current.chunk_indices)
            if chunk_index not in indices:
                indices.add(chunk_index)
                await self.store.set_chunks(upload_id, indices)

        return ChunkReceipt(
            upload_id=upload_id,
            chunk_index=chunk_index,
            uploaded_chunks=len(indices),
            total_chunks=current.total_chunks,
        )

    async def finalize_upload(self, upload_id: str) -> FinalizeResult:
        # Unknown ids are rejected before a lock is created for them.
        await self._load_session(upload_id)
        async with self.lock(upload_id):
            try:
                session = await self._load_session(upload_id)
            except NotFound:
                self._release_lock(upload_id)
                raise
            uploaded = len(session.chunk_indices)
            if uploaded != session.total_chunks:
                return FinalizeResult(
                    success=False,
                    error=f"Incomplete upload: {uploaded}/{session.total_chunks} chunks",
                    uploaded_chunks=uploaded,
                    total_chunks=session.total_chunks,
                )

            partial = session.file_path
            final_path = strip_partial(partial)
            if await asyncio.to_thread(os.path.lexists, final_path):
                final_path = with_suffix_id(final_path, 4)

            try:
                await asyncio.to_thread(os.rename, partial, final_path)
            except FileNotFoundError:
                raise NotFound("Upload file missing")
            except OSError as e:
                raise TransientError(f"Failed to finalize upload: {e}") from e

            await self.store.delete(upload_id)

        self._release_lock(upload_id)
        self.cache.invalidate(os.path.dirname(final_path))
        log.info(f"Upload {upload_id} finalized: {final_path}")
        return FinalizeResult(
            success=True, path=final_path, uploaded_chunks=uploaded, total_chunks=session.total_chunks,
        )

    async def cancel_upload(self, upload_id: str) -> OperationResult:
        missing = OperationResult(success=False, error="Upload session not found")
        if await self.store.get(upload_id) is None:
            return missing
        async with self.lock(upload_id):
            session = await self.store.get(upload_id)
            if session is None:
                self._release_lock(upload_id)
                return missing
            await asyncio.to_thread(self._unlink_quietly, session.file_path)
            await self.store.delete(upload_id)

        self._release_lock(upload_id)
        self.cache.invalidate(os.path.dirname(session.file_path))
        log.info(f"Upload {upload_id} cancelled")
        return OperationResult(success=True)

    async def get_upload_status(self, upload_id: str) -> UploadStatus:
        session = await self._load_session(upload_id)
        return UploadStatus(
            upload_id=session.id,
            file_name=os.path.basename(strip_partial(session.file_path)),
            total_chunks=session.total_chunks,
            uploaded_chunks=session.chunk_indices,
            created_at=session.created_at,
            expires_at=session.expires_at,
        )

    # --- CLEANUP ---

    @staticmethod
    def _unlink_quietly(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass

    async def cleanup_stale_uploads(self) -> int:
        """Removes sessions older than the maximum age along with their partial files."""
        now = self._clock()
        self._last_cleanup = now
        try:
            stale = await self.store.list_created_before(now - self.max_age)
        except SQLAlchemyError as e:
            log.error(f"Could not list stale uploads: {e}")
            return 0

        removed = 0
        for session in stale:
            try:
                await asyncio.to_thread(self._unlink_quietly, session.file_path)
                await self.store.delete(session.id)
                self._release_lock(session.id)
                self.cache.invalidate(os.path.dirname(session.file_path))
                removed += 1
            except (OSError, SQLAlchemyError) as e:
                log.warning(f"Failed to clean up stale upload {session.id}: {e}")

        if removed:
            log.info(f"Cleaned up {removed} stale upload(s)")
        return removed
