# src/seeker/services/__init__.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

from .directory_cache import DirectoryCache
from .file_service import FileService
from .neighbor_service import NeighborFinder
from .pdf_renderer import PageRenderer, PdftoppmRenderer
from .thumbnail_service import ThumbnailCache
from .transfer_service import ChunkedUploadManager
from .container import ServiceContainer

__all__ = [
    "DirectoryCache",
    "FileService",
    "NeighborFinder",
    "PageRenderer",
    "PdftoppmRenderer",
    "ThumbnailCache",
    "ChunkedUploadManager",
    "ServiceContainer",
]
