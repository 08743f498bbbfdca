"""SQLAlchemy async engines for the SQLite databases (WAL mode)."""

import logging
from pathlib import Path
from typing import Type, Union

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

log = logging.getLogger(__name__)


def _configure_sqlite(dbapi_conn, _connection_record):
    """Apply SQLite PRAGMAs for concurrent readers and a single writer."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA cache_size=-8000")  # 8 MB
    cursor.close()


class Database:
    """One SQLite file, its async engine and a session factory."""

    def __init__(self, path: Union[str, Path], base: Type[DeclarativeBase], echo: bool = False):
        self.path = Path(path)
        self.base = base
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.url = f"sqlite+aiosqlite:///{self.path}"
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=echo,
            connect_args={"timeout": 15},
        )
        event.listen(self.engine.sync_engine, "connect", _configure_sqlite)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def init(self) -> None:
        """Create all tables (first run). Schema changes are additive only."""
        async with self.engine.begin() as conn:
            await conn.run_sync(self.base.metadata.create_all)
        log.info("Database tables created/verified at %s", self.path)

    async def dispose(self) -> None:
        await self.engine.dispose()
