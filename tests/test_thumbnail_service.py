"""Tests for the persistent thumbnail cache."""

import os
from io import BytesIO

import pytest
from PIL import Image

from seeker.core.exceptions import AccessDenied, NotFound, TransientError
from seeker.services.thumbnail_service import make_thumbnail


def _save_image(path, size=(120, 80), color=(200, 40, 40), fmt=None):
    Image.new("RGB", size, color).save(path, format=fmt)


def _jpeg_bytes(size=(60, 90)):
    buffer = BytesIO()
    Image.new("RGB", size, (10, 120, 10)).save(buffer, format="JPEG")
    return buffer.getvalue()


def test_make_thumbnail_covers_target_size(mount_root):
    source = mount_root / "photos" / "wide.png"
    _save_image(source, size=(300, 100))

    data, width, height = make_thumbnail(str(source), (32, 32), 80)
    assert (width, height) == (32, 32)
    with Image.open(BytesIO(data)) as img:
        assert img.format == "WEBP"
        assert img.size == (32, 32)


@pytest.mark.asyncio
async def test_generates_then_serves_from_cache(thumbnails, thumbnail_store, mount_root):
    source = mount_root / "photos" / "cat.jpg"
    _save_image(source, fmt="JPEG")

    first = await thumbnails.get_thumbnail(str(source))
    assert first is not None
    assert first.mime_type == "image/webp"

    entry = await thumbnail_store.get(str(source))
    assert entry.source_modified_ns == os.stat(source).st_mtime_ns
    assert (entry.width, entry.height) == (32, 32)

    second = await thumbnails.get_thumbnail(str(source))
    assert second.data == first.data


@pytest.mark.asyncio
async def test_stale_entry_is_regenerated(thumbnails, thumbnail_store, mount_root):
    source = mount_root / "photos" / "dog.png"
    _save_image(source, color=(255, 0, 0))
    os.utime(source, ns=(1_000_000_000, 1_000_000_000))
    first = await thumbnails.get_thumbnail(str(source))

    _save_image(source, color=(0, 0, 255))
    os.utime(source, ns=(2_000_000_000, 2_000_000_000))
    second = await thumbnails.get_thumbnail(str(source))

    assert second.data != first.data
    entry = await thumbnail_store.get(str(source))
    assert entry.source_modified_ns == 2_000_000_000


@pytest.mark.asyncio
async def test_unsupported_and_broken_files_return_none(thumbnails, thumbnail_store, mount_root):
    assert await thumbnails.get_thumbnail(str(mount_root / "file1.txt")) is None
    assert await thumbnails.get_thumbnail(str(mount_root / "docs")) is None

    broken = mount_root / "photos" / "broken.jpg"
    broken.write_bytes(b"not really a jpeg")
    assert await thumbnails.get_thumbnail(str(broken)) is None
    assert (await thumbnail_store.stats())[0] == 0


@pytest.mark.asyncio
async def test_missing_or_denied_paths_raise(thumbnails, mount_root):
    with pytest.raises(NotFound):
        await thumbnails.get_thumbnail(str(mount_root / "photos" / "gone.png"))
    with pytest.raises(AccessDenied):
        await thumbnails.get_thumbnail("/etc/hosts")


@pytest.mark.asyncio
async def test_pdf_uses_renderer(thumbnails, renderer, mount_root):
    pdf = mount_root / "docs" / "manual.pdf"
    pdf.write_bytes(b"%PDF-1.4 fake")
    renderer.page = _jpeg_bytes()

    thumb = await thumbnails.get_thumbnail(str(pdf))
    assert thumb is not None
    assert renderer.calls == [str(pdf)]


@pytest.mark.asyncio
async def test_pdf_renderer_failure_degrades_to_none(thumbnails, renderer, thumbnail_store, mount_root):
    pdf = mount_root / "docs" / "slow.pdf"
    pdf.write_bytes(b"%PDF-1.4 fake")
    renderer.error = TransientError("pdftoppm timed out after 30s")

    assert await thumbnails.get_thumbnail(str(pdf)) is None
    assert await thumbnail_store.get(str(pdf)) is None


@pytest.mark.asyncio
async def test_prefix_delete_is_separator_bounded(thumbnails, thumbnail_store, mount_root):
    album = mount_root / "photos" / "album"
    album_two = mount_root / "photos" / "album2"
    album.mkdir()
    album_two.mkdir()
    for path in (album / "a.png", album / "b.png", album_two / "c.png"):
        _save_image(path)
        await thumbnails.get_thumbnail(str(path))

    removed = await thumbnails.delete_cached_thumbnails_for_path(str(album))
    assert removed == 2
    assert await thumbnail_store.list_paths() == [str(album_two / "c.png")]


@pytest.mark.asyncio
async def test_orphans_stats_and_clear(thumbnails, mount_root):
    keep = mount_root / "photos" / "keep.png"
    lose = mount_root / "photos" / "lose.png"
    _save_image(keep)
    _save_image(lose)
    await thumbnails.get_thumbnail(str(keep))
    await thumbnails.get_thumbnail(str(lose))

    stats = await thumbnails.get_cache_stats()
    assert stats.count == 2
    assert stats.total_size > 0

    lose.unlink()
    assert await thumbnails.cleanup_orphaned_thumbnails() == 1
    assert (await thumbnails.get_cache_stats()).count == 1

    assert await thumbnails.clear_cache() == 1
    assert (await thumbnails.get_cache_stats()).count == 0


@pytest.mark.asyncio
async def test_directory_check_runs_in_a_thread(thumbnails, mount_root, monkeypatch):
    import asyncio

    calls = []
    original = asyncio.to_thread

    async def recording(func, *args, **kwargs):
        calls.append(func)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording)
    assert await thumbnails.get_thumbnail(str(mount_root / "photos")) is None
    assert os.path.isdir in calls
