"""ORM models for upload sessions and cached thumbnails."""

import json
from typing import List

from sqlalchemy import BigInteger, Float, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, ThumbBase


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)  # <target>.partial
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    total_chunks: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_chunks: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    created_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False)

    @property
    def chunk_indices(self) -> List[int]:
        try:
            return sorted(set(json.loads(self.uploaded_chunks or "[]")))
        except (TypeError, ValueError):
            return []

    @chunk_indices.setter
    def chunk_indices(self, indices) -> None:
        self.uploaded_chunks = json.dumps(sorted(set(indices)))

    def __repr__(self) -> str:
        return f"<UploadSession(id={self.id}, path='{self.file_path}')>"


class ThumbnailEntry(ThumbBase):
    __tablename__ = "thumbnails"

    path: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    source_modified_ns: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<ThumbnailEntry(path='{self.path}', bytes={len(self.data or b'')})>"
