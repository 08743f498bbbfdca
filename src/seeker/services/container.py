# src/seeker/services/container.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import logging
from typing import Optional

from ..core import constants
from ..core.config import ConfigManager
from ..core.path_guard import MountRegistry, PathGuard, StaticMountRegistry
from ..db import (Base, Database, ThumbBase, ThumbnailStore,
                  UploadSessionStore)
from .directory_cache import DirectoryCache
from .file_service import FileService
from .neighbor_service import NeighborFinder
from .pdf_renderer import PageRenderer, PdftoppmRenderer
from .thumbnail_service import ThumbnailCache
from .transfer_service import ChunkedUploadManager

log = logging.getLogger(__name__)


class ServiceContainer:
    """Builds and owns every service from a single configuration."""

    def __init__(
        self,
        config: ConfigManager,
        registry: Optional[MountRegistry] = None,
        renderer: Optional[PageRenderer] = None,
    ):
        self.config = config
        data_dir = config.data_dir

        self.registry = registry or StaticMountRegistry(config.mounts)
        self.guard = PathGuard(self.registry)

        self.main_db = Database(data_dir / constants.MAIN_DB_FILENAME, Base)
        self.thumb_db = Database(data_dir / constants.THUMB_DB_FILENAME, ThumbBase)
        self.upload_store = UploadSessionStore(self.main_db.sessionmaker)
        self.thumbnail_store = ThumbnailStore(self.thumb_db.sessionmaker)

        self.cache = DirectoryCache(
            ttl=config.get_int("directory_cache_ttl_seconds"),
            max_entries=config.get_int("directory_cache_max_entries"),
        )
        self.files = FileService(
            self.guard,
            self.cache,
            large_directory_threshold=config.get_int("large_directory_threshold"),
            stat_batch_size=config.get_int("stat_batch_size"),
            max_text_file_bytes=config.get_int("max_text_file_bytes"),
        )
        self.neighbors = NeighborFinder(self.guard, self.files)
        self.uploads = ChunkedUploadManager(
            self.guard,
            self.upload_store,
            self.cache,
            chunk_size=config.get_int("upload_chunk_size"),
            max_age_hours=config.get_int("upload_max_age_hours"),
            cleanup_interval=config.get_int("upload_cleanup_interval_seconds"),
        )

        quality = config.get_int("thumbnail_quality")
        self.renderer = renderer or PdftoppmRenderer(
            timeout=config.get("pdf_render_timeout_seconds"),
            dpi=config.get_int("pdf_render_dpi"),
            quality=quality,
        )
        self.thumbnails = ThumbnailCache(
            self.guard,
            self.thumbnail_store,
            renderer=self.renderer,
            size=(config.get_int("thumbnail_width"), config.get_int("thumbnail_height")),
            quality=quality,
        )

    @property
    def default_page_size(self) -> int:
        return self.config.get("default_page_size", constants.DEFAULT_PAGE_SIZE)

    async def init(self) -> None:
        await self.main_db.init()
        await self.thumb_db.init()
        removed = await self.uploads.cleanup_stale_uploads()
        log.info(f"Services ready ({len(self.registry.list_mounts())} mounts, {removed} stale uploads removed)")

    async def dispose(self) -> None:
        await self.main_db.dispose()
        await self.thumb_db.dispose()
