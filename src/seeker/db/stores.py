"""Persistence for upload sessions (main.db) and thumbnails (thumb.db)."""

import json
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import ThumbnailEntry, UploadSession

log = logging.getLogger(__name__)


class UploadSessionStore:
    """CRUD for chunked upload sessions."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def add(self, upload: UploadSession) -> None:
        async with self._sessionmaker() as db:
            db.add(upload)
            await db.commit()

    async def get(self, upload_id: str) -> Optional[UploadSession]:
        async with self._sessionmaker() as db:
            return await db.get(UploadSession, upload_id)

    async def set_chunks(self, upload_id: str, indices: Iterable[int]) -> bool:
        async with self._sessionmaker() as db:
            result = await db.execute(
                update(UploadSession)
                .where(UploadSession.id == upload_id)
                .values(uploaded_chunks=json.dumps(sorted(set(indices))))
            )
            await db.commit()
            return bool(result.rowcount)

    async def delete(self, upload_id: str) -> bool:
        async with self._sessionmaker() as db:
            result = await db.execute(delete(UploadSession).where(UploadSession.id == upload_id))
            await db.commit()
            return bool(result.rowcount)

    async def list_created_before(self, cutoff: float) -> List[UploadSession]:
        async with self._sessionmaker() as db:
            result = await db.execute(select(UploadSession).where(UploadSession.created_at < cutoff))
            return list(result.scalars().all())


def _under(base: str):
    """Exact-case match for `base` and everything below it on a separator boundary."""
    prefix = base if base.endswith("/") else base + "/"
    return or_(
        ThumbnailEntry.path == base,
        func.substr(ThumbnailEntry.path, 1, len(prefix)) == prefix,
    )


class ThumbnailStore:
    """CRUD for cached thumbnails, keyed uniquely by source path."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def get(self, path: str) -> Optional[ThumbnailEntry]:
        async with self._sessionmaker() as db:
            return await db.get(ThumbnailEntry, path)

    async def upsert(self, entry: ThumbnailEntry) -> None:
        """Delete-then-insert in a single transaction."""
        async with self._sessionmaker() as db:
            await db.execute(delete(ThumbnailEntry).where(ThumbnailEntry.path == entry.path))
            db.add(entry)
            await db.commit()

    async def delete(self, path: str) -> int:
        async with self._sessionmaker() as db:
            result = await db.execute(delete(ThumbnailEntry).where(ThumbnailEntry.path == path))
            await db.commit()
            return result.rowcount or 0

    async def delete_under(self, base: str) -> int:
        async with self._sessionmaker() as db:
            result = await db.execute(delete(ThumbnailEntry).where(_under(base)))
            await db.commit()
            return result.rowcount or 0

    async def delete_many(self, paths: List[str]) -> int:
        if not paths:
            return 0
        async with self._sessionmaker() as db:
            result = await db.execute(delete(ThumbnailEntry).where(ThumbnailEntry.path.in_(paths)))
            await db.commit()
            return result.rowcount or 0

    async def list_paths(self) -> List[str]:
        async with self._sessionmaker() as db:
            result = await db.execute(select(ThumbnailEntry.path))
            return list(result.scalars().all())

    async def stats(self) -> Tuple[int, int]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(func.count(ThumbnailEntry.path), func.coalesce(func.sum(func.length(ThumbnailEntry.data)), 0))
            )
            count, total = result.one()
            return int(count), int(total)

    async def clear(self) -> int:
        async with self._sessionmaker() as db:
            result = await db.execute(delete(ThumbnailEntry))
            await db.commit()
            return result.rowcount or 0
