# src/seeker/api_server/transfer_router.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.requests import ClientDisconnect

from ..core.exceptions import InvalidRequest
from ..core.models import (ChunkReceipt, FinalizeResult, OperationResult,
                           UploadInitResponse, UploadStatus)
from .file_browser import get_container

log = logging.getLogger(__name__)

upload_router = APIRouter()


# --- Models ---
class UploadInitPayload(BaseModel):
    path: str
    filename: str = Field(..., min_length=1)
    total_chunks: int = Field(..., ge=0)


class UploadIdPayload(BaseModel):
    upload_id: str


@upload_router.post("/init", response_model=UploadInitResponse)
async def init_upload(request: Request, payload: UploadInitPayload):
    return await get_container(request).uploads.init_upload(payload.path, payload.filename, payload.total_chunks)


@upload_router.post("/chunk", response_model=ChunkReceipt)
async def upload_chunk(request: Request, upload_id: str = Query(...), chunk_index: int = Query(...)):
    """Receives one chunk as the raw request body."""
    uploads = get_container(request).uploads
    buffer = bytearray()
    try:
        async for piece in request.stream():
            buffer.extend(piece)
            if len(buffer) > uploads.chunk_size:
                raise InvalidRequest(f"Chunk exceeds the chunk size of {uploads.chunk_size} bytes")
    except ClientDisconnect:
        log.warning(f"Client disconnected while sending chunk {chunk_index} of upload {upload_id}")
        raise InvalidRequest("Client disconnected during chunk upload")

    return await uploads.save_chunk(upload_id, chunk_index, bytes(buffer))


@upload_router.post("/finalize", response_model=FinalizeResult)
async def finalize_upload(request: Request, payload: UploadIdPayload):
    result = await get_container(request).uploads.finalize_upload(payload.upload_id)
    if not result.success:
        return JSONResponse(status_code=409, content=result.model_dump())
    return result


@upload_router.post("/cancel", response_model=OperationResult)
async def cancel_upload(request: Request, payload: UploadIdPayload):
    result = await get_container(request).uploads.cancel_upload(payload.upload_id)
    if not result.success:
        return JSONResponse(status_code=404, content=result.model_dump())
    return result


@upload_router.get("/status/{upload_id}", response_model=UploadStatus)
async def get_upload_status(request: Request, upload_id: str):
    return await get_container(request).uploads.get_upload_status(upload_id)
