# src/seeker/services/thumbnail_service.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import os
import time
from io import BytesIO
from typing import Callable, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError

from ..core import constants
from ..core.exceptions import NotFound, TransientError
from ..core.models import Thumbnail, ThumbnailCacheStats
from ..core.path_guard import PathGuard, normalize_path
from ..db import ThumbnailEntry, ThumbnailStore
from .file_service import get_mime_type
from .pdf_renderer import PageRenderer

log = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = frozenset({
    "image/jpeg", "image/png", "image/webp", "image/gif", "image/bmp", "image/tiff",
})
PDF_MIME_TYPE = "application/pdf"


def make_thumbnail(source, size: Tuple[int, int], quality: int) -> Tuple[bytes, int, int]:
    """Crops and scales an image to exactly `size` and encodes it as WebP."""
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
        thumb = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        buffer = BytesIO()
        thumb.save(buffer, format="WEBP", quality=quality)
        return buffer.getvalue(), thumb.width, thumb.height


class ThumbnailCache:
    """
    Persistent cache of small WebP previews for images and PDFs.

    Entries are keyed by source path and carry the source modification time in
    nanoseconds; an entry whose time no longer matches the live file is stale
    and gets regenerated. Generation failures degrade to "no thumbnail".
    """

    def __init__(
        self,
        guard: PathGuard,
        store: ThumbnailStore,
        renderer: Optional[PageRenderer] = None,
        size: Tuple[int, int] = constants.THUMBNAIL_SIZE,
        quality: int = constants.THUMBNAIL_QUALITY,
        clock: Callable[[], float] = time.time,
    ):
        self.guard = guard
        self.store = store
        self.renderer = renderer
        self.size = size
        self.quality = quality
        self._clock = clock

    def is_supported(self, mime_type: Optional[str]) -> bool:
        if mime_type in SUPPORTED_IMAGE_TYPES:
            return True
        return mime_type == PDF_MIME_TYPE and self.renderer is not None

    async def get_thumbnail(self, path: str) -> Optional[Thumbnail]:
        path = self.guard.ensure_allowed(path)
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            raise NotFound(f"File not found: {path}")
        except OSError as e:
            raise TransientError(f"Cannot stat {path}: {e}") from e
        if await asyncio.to_thread(os.path.isdir, path):
            return None

        mime_type = get_mime_type(path)
        if not self.is_supported(mime_type):
            return None

        modified_ns = st.st_mtime_ns
        try:
            cached = await self.store.get(path)
        except SQLAlchemyError as e:
            log.error(f"Thumbnail lookup failed for '{path}': {e}")
            cached = None

        if cached is not None:
            if cached.source_modified_ns == modified_ns:
                return Thumbnail(data=cached.data, mime_type=cached.mime_type)
            log.warning(f"Discarding stale thumbnail for '{path}'")
            await self.delete_cached_thumbnail(path)

        generated = await self._generate(path, mime_type)
        if generated is None:
            return None
        data, width, height = generated

        entry = ThumbnailEntry(
            path=path,
            data=data,
            mime_type=constants.THUMBNAIL_MIME_TYPE,
            width=width,
            height=height,
            source_modified_ns=modified_ns,
            created_at=self._clock(),
        )
        try:
            await self.store.upsert(entry)
        except SQLAlchemyError as e:
            log.error(f"Failed to store thumbnail for '{path}': {e}")
        return Thumbnail(data=data, mime_type=constants.THUMBNAIL_MIME_TYPE)

    async def _generate(self, path: str, mime_type: str) -> Optional[Tuple[bytes, int, int]]:
        try:
            if mime_type == PDF_MIME_TYPE:
                page = await self.renderer.render_first_page(path)
                return await asyncio.to_thread(make_thumbnail, BytesIO(page), self.size, self.quality)
            return await asyncio.to_thread(make_thumbnail, path, self.size, self.quality)
        except (TransientError, OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
            log.error(f"Failed to generate thumbnail for '{path}': {e}")
            return None

    # --- Maintenance ---

    async def delete_cached_thumbnail(self, path: str) -> int:
        try:
            return await self.store.delete(path)
        except SQLAlchemyError as e:
            log.error(f"Failed to delete thumbnail for '{path}': {e}")
            return 0

    async def delete_cached_thumbnails_for_path(self, base_path: str) -> int:
        """Deletes the thumbnail of `base_path` and of everything below it."""
        try:
            removed = await self.store.delete_under(normalize_path(base_path))
        except SQLAlchemyError as e:
            log.error(f"Failed to delete thumbnails under '{base_path}': {e}")
            return 0
        if removed:
            log.debug(f"Removed {removed} thumbnail(s) under {base_path}")
        return removed

    async def cleanup_orphaned_thumbnails(self) -> int:
        try:
            paths = await self.store.list_paths()
        except SQLAlchemyError as e:
            log.error(f"Failed to list thumbnails: {e}")
            return 0

        orphans = [p for p in paths if not await asyncio.to_thread(os.path.exists, p)]
        if not orphans:
            return 0
        try:
            removed = await self.store.delete_many(orphans)
        except SQLAlchemyError as e:
            log.error(f"Failed to remove orphaned thumbnails: {e}")
            return 0
        log.info(f"Removed {removed} orphaned thumbnail(s)")
        return removed

    async def get_cache_stats(self) -> ThumbnailCacheStats:
        try:
            count, total_size = await self.store.stats()
        except SQLAlchemyError as e:
            log.error(f"Failed to read thumbnail cache stats: {e}")
            count, total_size = 0, 0
        return ThumbnailCacheStats(count=count, total_size=total_size)

    async def clear_cache(self) -> int:
        try:
            removed = await self.store.clear()
        except SQLAlchemyError as e:
            log.error(f"Failed to clear thumbnail cache: {e}")
            return 0
        log.info(f"Thumbnail cache cleared ({removed} entries)")
        return removed
