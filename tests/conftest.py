"""Test fixtures: temporary mount trees, file-backed SQLite stores and a wired API client."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from seeker.api_server.api import create_api_app
from seeker.core.config import ConfigManager
from seeker.core.path_guard import PathGuard, StaticMountRegistry
from seeker.db import (Base, Database, ThumbBase, ThumbnailStore,
                       UploadSessionStore)
from seeker.services import (ChunkedUploadManager, DirectoryCache,
                             FileService, NeighborFinder, ServiceContainer,
                             ThumbnailCache)


class FakeClock:
    """Manually advanced clock for TTL and expiry tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRenderer:
    """Page renderer that returns a fixed image instead of running pdftoppm."""

    def __init__(self, page: bytes = b"", error: Exception = None):
        self.page = page
        self.error = error
        self.calls = []

    def is_available(self) -> bool:
        return True

    async def render_first_page(self, path: str) -> bytes:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.page


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mount_root(tmp_path):
    """A mount with a few folders and files:

    data/
      docs/ (readme.txt)
      photos/
      file1.txt, file2.txt, file10.txt, .hidden
    """
    root = tmp_path / "data"
    root.mkdir()
    (root / "docs").mkdir()
    (root / "docs" / "readme.txt").write_text("hello")
    (root / "photos").mkdir()
    (root / "file1.txt").write_text("a")
    (root / "file2.txt").write_text("bb")
    (root / "file10.txt").write_text("ccc")
    (root / ".hidden").write_text("secret")
    return root


@pytest.fixture
def guard(mount_root):
    return PathGuard(StaticMountRegistry([{"id": "data", "path": str(mount_root), "label": "Data"}]))


@pytest.fixture
def cache():
    return DirectoryCache(ttl=45, max_entries=20)


@pytest.fixture
def file_service(guard, cache):
    return FileService(guard, cache, large_directory_threshold=10_000, stat_batch_size=4)


@pytest.fixture
def neighbor_finder(guard, file_service):
    return NeighborFinder(guard, file_service)


@pytest_asyncio.fixture
async def main_db(tmp_path):
    db = Database(tmp_path / "state" / "main.db", Base)
    await db.init()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def thumb_db(tmp_path):
    db = Database(tmp_path / "state" / "thumb.db", ThumbBase)
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture
def upload_store(main_db):
    return UploadSessionStore(main_db.sessionmaker)


@pytest.fixture
def thumbnail_store(thumb_db):
    return ThumbnailStore(thumb_db.sessionmaker)


@pytest.fixture
def uploads(guard, upload_store, cache, clock):
    return ChunkedUploadManager(
        guard, upload_store, cache, chunk_size=4, max_age_hours=24, cleanup_interval=3600, clock=clock,
    )


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def thumbnails(guard, thumbnail_store, renderer):
    return ThumbnailCache(guard, thumbnail_store, renderer=renderer, size=(32, 32), quality=80)


@pytest.fixture
def config(tmp_path, mount_root):
    return ConfigManager.from_dict({
        "data_dir": str(tmp_path / "state"),
        "mounts": [{"id": "data", "path": str(mount_root), "label": "Data"}],
        "upload_chunk_size": 4,
        "default_page_size": 50,
        "thumbnail_width": 32,
        "thumbnail_height": 32,
    })


@pytest_asyncio.fixture
async def container(config):
    services = ServiceContainer(config, renderer=FakeRenderer())
    await services.init()
    yield services
    await services.dispose()


@pytest_asyncio.fixture
async def client(container):
    """Async test client. ASGITransport skips the lifespan, so the container is initialized above."""
    app = create_api_app(container=container, configure_logging=False)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
