# src/seeker/api_server/file_browser.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import hashlib
import logging
import urllib.parse
from typing import List, Optional

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..core.exceptions import InvalidRequest, NotFound, RangeNotSatisfiable
from ..core.models import (BatchResult, ConflictAction, DirectoryPage,
                           FileContent, FileItem, NeighborWindow,
                           OperationResult, SearchResults)
from ..services.container import ServiceContainer

log = logging.getLogger(__name__)
router = APIRouter()


# --- Pydantic Models ---
class CreateFolderPayload(BaseModel):
    parent_path: str
    folder_name: str = Field(..., min_length=1)


class CreateFilePayload(BaseModel):
    parent_path: str
    file_name: str = Field(..., min_length=1)


class RenamePayload(BaseModel):
    path: str
    new_name: str = Field(..., min_length=1)


class PathsPayload(BaseModel):
    paths: List[str] = Field(..., min_length=1)


class TransferPayload(BaseModel):
    source_paths: List[str] = Field(..., min_length=1)
    destination_path: str
    conflict_action: ConflictAction = "rename"


class SaveContentPayload(BaseModel):
    path: str
    content: str


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _encode_filename_for_header(filename: str, disposition: str = "attachment") -> str:
    try:
        filename.encode("ascii")
        return f'{disposition}; filename="{filename}"'
    except UnicodeEncodeError:
        encoded_filename = urllib.parse.quote(filename, safe="")
        return f"{disposition}; filename*=UTF-8''{encoded_filename}"


def parse_range(range_header: str, file_size: int):
    """Parses 'bytes=start-end' (or 'bytes=-suffix') into an inclusive range."""
    try:
        unit, _, byte_range = range_header.partition("=")
        if unit.strip() != "bytes" or "," in byte_range:
            raise ValueError(range_header)
        first, _, last = byte_range.strip().partition("-")
        if first:
            start = int(first)
            end = int(last) if last else file_size - 1
        else:
            start = max(0, file_size - int(last))
            end = file_size - 1
    except ValueError:
        raise InvalidRequest("Invalid Range header")

    end = min(end, file_size - 1)
    if start >= file_size or start > end:
        raise RangeNotSatisfiable(f"Range Not Satisfiable (file size {file_size})")
    return start, end


# --- Browsing ---

@router.get("/", response_model=DirectoryPage)
async def list_directory(
    request: Request,
    path: str = Query(...),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    sort_by: str = Query("name"),
    sort_order: str = Query("asc"),
    show_hidden: bool = Query(False),
    search: Optional[str] = Query(None),
):
    container = get_container(request)
    return await container.files.list_directory(
        path,
        show_hidden=show_hidden,
        page=page,
        page_size=page_size or container.default_page_size,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
    )


@router.get("/search", response_model=SearchResults)
async def search_files(
    request: Request,
    path: str = Query(...),
    query: str = Query(...),
    recursive: bool = Query(False),
    show_hidden: bool = Query(False),
    limit: int = Query(100),
):
    items = await get_container(request).files.search_files(
        path, query, show_hidden=show_hidden, recursive=recursive, limit=limit,
    )
    return SearchResults(items=items, total=len(items))


@router.get("/stats", response_model=FileItem)
async def get_stats(request: Request, path: str = Query(...), calculate_size: bool = Query(False)):
    return await get_container(request).files.get_stats(path, calculate_size=calculate_size)


@router.get("/neighbors", response_model=NeighborWindow)
async def get_neighbors(
    request: Request,
    path: str = Query(...),
    before: int = Query(5),
    after: int = Query(5),
    media_type: Optional[str] = Query(None),
    show_hidden: bool = Query(False),
):
    return await get_container(request).neighbors.get_neighbors(
        path, before_count=before, after_count=after, media_type=media_type, show_hidden=show_hidden,
    )


# --- Content ---

@router.get("/download")
async def download_file(request: Request, path: str = Query(...), inline: bool = Query(False)):
    """Streams a file with Range support for seeking."""
    files = get_container(request).files
    item = await files.open_download(path)
    file_size = item.size

    start, end = 0, file_size - 1
    status_code = 200
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Length": str(file_size),
        "Content-Disposition": _encode_filename_for_header(item.name, "inline" if inline else "attachment"),
    }

    range_header = request.headers.get("Range")
    if range_header and file_size > 0:
        start, end = parse_range(range_header, file_size)
        status_code = 206
        headers["Content-Length"] = str(end - start + 1)
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"

    log.debug(f"Streaming {item.path}: {start}-{end} (status {status_code})")
    return StreamingResponse(
        files.open_file_stream(item.path, start, end if file_size else None),
        status_code=status_code,
        media_type=item.mime_type or "application/octet-stream",
        headers=headers,
    )


@router.get("/content", response_model=FileContent)
async def read_file_content(request: Request, path: str = Query(...)):
    return await get_container(request).files.read_file_content(path)


@router.post("/content", response_model=OperationResult)
async def save_file_content(request: Request, payload: SaveContentPayload):
    return await get_container(request).files.save_file_content(payload.path, payload.content)


@router.get("/thumbnail")
async def get_thumbnail(request: Request, path: str = Query(...)):
    thumbnail = await get_container(request).thumbnails.get_thumbnail(path)
    if thumbnail is None:
        raise NotFound("Thumbnail not available for this file.")
    headers = {
        "Cache-Control": "public, max-age=3600",
        "ETag": hashlib.md5(thumbnail.data).hexdigest(),
    }
    return Response(content=thumbnail.data, media_type=thumbnail.mime_type, headers=headers)


# --- Mutations ---

@router.post("/folder", response_model=OperationResult)
async def create_folder(request: Request, payload: CreateFolderPayload):
    return await get_container(request).files.create_folder(payload.parent_path, payload.folder_name)


@router.post("/file", response_model=OperationResult)
async def create_file(request: Request, payload: CreateFilePayload):
    return await get_container(request).files.create_file(payload.parent_path, payload.file_name)


@router.post("/rename", response_model=OperationResult)
async def rename_item(request: Request, payload: RenamePayload):
    container = get_container(request)
    result = await container.files.rename(payload.path, payload.new_name)
    await container.thumbnails.delete_cached_thumbnails_for_path(payload.path)
    return result


@router.post("/copy", response_model=BatchResult)
async def copy_items(request: Request, payload: TransferPayload):
    return await get_container(request).files.copy(
        payload.source_paths, payload.destination_path, payload.conflict_action,
    )


@router.post("/move", response_model=BatchResult)
async def move_items(request: Request, payload: TransferPayload):
    container = get_container(request)
    result = await container.files.move(payload.source_paths, payload.destination_path, payload.conflict_action)
    for item in result.results:
        if item.success and item.destination and not item.error:
            await container.thumbnails.delete_cached_thumbnails_for_path(item.source)
    return result


@router.delete("/", response_model=BatchResult)
async def delete_items(request: Request, payload: PathsPayload):
    container = get_container(request)
    result = await container.files.delete(payload.paths)
    for item in result.results:
        if item.success:
            await container.thumbnails.delete_cached_thumbnails_for_path(item.source)
    return result
