# src/seeker/core/models.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SortBy = Literal["name", "date", "size", "type"]
SortOrder = Literal["asc", "desc"]
ConflictAction = Literal["overwrite", "skip", "rename"]
MediaType = Literal["image", "video"]


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    FILE = "file"


@dataclass(frozen=True)
class DirectoryEntry:
    """A raw directory entry as read from disk, before any stat call."""

    name: str
    kind: EntryKind

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


class Mount(BaseModel):
    id: str
    path: str
    label: str = ""


class Authorization(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class FileItem(BaseModel):
    name: str
    path: str
    is_dir: bool
    size: int
    modified_at: float
    mime_type: Optional[str] = None
    extension: str = ""
    item_type: str = "file"
    file_count: Optional[int] = None
    folder_count: Optional[int] = None


class DirectoryPage(BaseModel):
    items: List[FileItem]
    total: int
    page: int
    page_size: int
    has_more: bool
    warning: Optional[str] = None


class SearchResults(BaseModel):
    items: List[FileItem]
    total: int


class NeighborWindow(BaseModel):
    items: List[FileItem]
    current_index: int
    has_previous: bool
    has_next: bool
    previous_path: Optional[str] = None
    next_path: Optional[str] = None


class OperationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    path: Optional[str] = None


class ItemResult(BaseModel):
    source: str
    destination: Optional[str] = None
    success: bool
    error: Optional[str] = None


class BatchResult(BaseModel):
    success: bool
    results: List[ItemResult] = Field(default_factory=list)


class FileContent(BaseModel):
    path: str
    content: str
    size: int
    modified_at: float
    mime_type: Optional[str] = None


class UploadInitResponse(BaseModel):
    upload_id: str
    file_name: str
    chunk_size: int


class ChunkReceipt(BaseModel):
    upload_id: str
    chunk_index: int
    uploaded_chunks: int
    total_chunks: int


class UploadStatus(BaseModel):
    upload_id: str
    file_name: str
    total_chunks: int
    uploaded_chunks: List[int]
    created_at: float
    expires_at: float


class FinalizeResult(OperationResult):
    uploaded_chunks: int = 0
    total_chunks: int = 0


class Thumbnail(BaseModel):
    data: bytes
    mime_type: str


class ThumbnailCacheStats(BaseModel):
    count: int
    total_size: int
