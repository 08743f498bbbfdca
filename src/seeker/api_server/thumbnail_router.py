# src/seeker/api_server/thumbnail_router.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

from fastapi import APIRouter, Request

from ..core.models import ThumbnailCacheStats
from .file_browser import get_container

router = APIRouter()


@router.get("/stats", response_model=ThumbnailCacheStats)
async def thumbnail_stats(request: Request):
    return await get_container(request).thumbnails.get_cache_stats()


@router.post("/cleanup")
async def cleanup_thumbnails(request: Request):
    removed = await get_container(request).thumbnails.cleanup_orphaned_thumbnails()
    return {"success": True, "removed": removed}


@router.delete("")
async def clear_thumbnails(request: Request):
    removed = await get_container(request).thumbnails.clear_cache()
    return {"success": True, "removed": removed}
