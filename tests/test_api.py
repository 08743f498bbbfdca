"""API tests over the ASGI transport."""

import os
from io import BytesIO

import pytest
from httpx import AsyncClient
from PIL import Image


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_list_directory(client: AsyncClient, mount_root):
    resp = await client.get("/api/files/", params={"path": str(mount_root), "page_size": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert [i["name"] for i in body["items"]] == ["docs", "photos"]
    assert body["total"] == 5
    assert body["has_more"] is True


@pytest.mark.asyncio
async def test_errors_use_the_common_shape(client: AsyncClient, mount_root):
    denied = await client.get("/api/files/", params={"path": "/etc"})
    assert denied.status_code == 403
    assert denied.json() == {"success": False, "error": "Access to the specified path is denied"}

    traversal = await client.get("/api/files/", params={"path": f"{mount_root}/../.."})
    assert traversal.status_code == 403

    missing = await client.get("/api/files/stats", params={"path": str(mount_root / "nope")})
    assert missing.status_code == 404
    assert missing.json()["success"] is False

    bad_page = await client.get("/api/files/", params={"path": str(mount_root), "page": 0})
    assert bad_page.status_code == 400


@pytest.mark.asyncio
async def test_create_rename_and_delete(client: AsyncClient, mount_root):
    created = await client.post("/api/files/folder", json={"parent_path": str(mount_root), "folder_name": "new"})
    assert created.status_code == 200
    assert created.json()["success"] is True

    conflict = await client.post("/api/files/folder", json={"parent_path": str(mount_root), "folder_name": "new"})
    assert conflict.status_code == 409

    renamed = await client.post("/api/files/rename", json={"path": str(mount_root / "new"), "new_name": "renamed"})
    assert renamed.json()["path"] == str(mount_root / "renamed")

    deleted = await client.request("DELETE", "/api/files/", json={"paths": [str(mount_root / "renamed")]})
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True
    assert not (mount_root / "renamed").exists()


@pytest.mark.asyncio
async def test_copy_and_move(client: AsyncClient, mount_root):
    copied = await client.post("/api/files/copy", json={
        "source_paths": [str(mount_root / "file1.txt")],
        "destination_path": str(mount_root / "photos"),
    })
    assert copied.json()["success"] is True
    assert (mount_root / "photos" / "file1.txt").exists()

    moved = await client.post("/api/files/move", json={
        "source_paths": [str(mount_root / "file1.txt")],
        "destination_path": str(mount_root / "photos"),
        "conflict_action": "rename",
    })
    result = moved.json()["results"][0]
    assert result["destination"] == str(mount_root / "photos" / "file1 (1).txt")
    assert not (mount_root / "file1.txt").exists()


@pytest.mark.asyncio
async def test_content_endpoints(client: AsyncClient, mount_root):
    path = str(mount_root / "docs" / "readme.txt")
    saved = await client.post("/api/files/content", json={"path": path, "content": "# Title"})
    assert saved.json()["success"] is True

    read = await client.get("/api/files/content", params={"path": path})
    assert read.json()["content"] == "# Title"


@pytest.mark.asyncio
async def test_download_supports_ranges(client: AsyncClient, mount_root):
    (mount_root / "digits.txt").write_text("0123456789")
    path = str(mount_root / "digits.txt")

    full = await client.get("/api/files/download", params={"path": path})
    assert full.status_code == 200
    assert full.content == b"0123456789"
    assert full.headers["content-disposition"] == 'attachment; filename="digits.txt"'

    partial = await client.get("/api/files/download", params={"path": path}, headers={"Range": "bytes=3-5"})
    assert partial.status_code == 206
    assert partial.content == b"345"
    assert partial.headers["content-range"] == "bytes 3-5/10"

    unsatisfiable = await client.get("/api/files/download", params={"path": path}, headers={"Range": "bytes=50-"})
    assert unsatisfiable.status_code == 416


@pytest.mark.asyncio
async def test_search_and_neighbors(client: AsyncClient, mount_root):
    search = await client.get("/api/files/search", params={"path": str(mount_root), "query": "readme", "recursive": True})
    assert search.json()["total"] == 1

    neighbors = await client.get("/api/files/neighbors", params={"path": str(mount_root / "file2.txt"), "before": 1, "after": 1})
    body = neighbors.json()
    assert [i["name"] for i in body["items"]] == ["file1.txt", "file2.txt", "file10.txt"]
    assert body["current_index"] == 1


@pytest.mark.asyncio
async def test_chunked_upload_flow(client: AsyncClient, mount_root):
    init = await client.post("/api/files/upload/init", json={
        "path": str(mount_root), "filename": "upload.bin", "total_chunks": 3,
    })
    assert init.status_code == 200
    upload_id = init.json()["upload_id"]
    assert init.json()["chunk_size"] == 4

    for index, chunk in ((2, b"ij"), (0, b"abcd")):
        resp = await client.post("/api/files/upload/chunk", params={"upload_id": upload_id, "chunk_index": index},
                                 content=chunk)
        assert resp.status_code == 200

    status = await client.get(f"/api/files/upload/status/{upload_id}")
    assert status.json()["uploaded_chunks"] == [0, 2]

    incomplete = await client.post("/api/files/upload/finalize", json={"upload_id": upload_id})
    assert incomplete.status_code == 409
    assert incomplete.json()["error"] == "Incomplete upload: 2/3 chunks"

    await client.post("/api/files/upload/chunk", params={"upload_id": upload_id, "chunk_index": 1}, content=b"efgh")
    done = await client.post("/api/files/upload/finalize", json={"upload_id": upload_id})
    assert done.status_code == 200
    assert (mount_root / "upload.bin").read_bytes() == b"abcdefghij"


@pytest.mark.asyncio
async def test_oversized_chunk_is_rejected(client: AsyncClient, mount_root):
    init = await client.post("/api/files/upload/init", json={"path": str(mount_root), "filename": "big.bin", "total_chunks": 1})
    upload_id = init.json()["upload_id"]
    resp = await client.post("/api/files/upload/chunk", params={"upload_id": upload_id, "chunk_index": 0},
                             content=b"way more than four bytes")
    assert resp.status_code == 400

    cancelled = await client.post("/api/files/upload/cancel", json={"upload_id": upload_id})
    assert cancelled.json()["success"] is True
    assert not (mount_root / "big.bin.partial").exists()


@pytest.mark.asyncio
async def test_thumbnail_endpoints(client: AsyncClient, mount_root):
    image_path = mount_root / "photos" / "pic.png"
    Image.new("RGB", (64, 48), (0, 128, 255)).save(image_path)

    resp = await client.get("/api/files/thumbnail", params={"path": str(image_path)})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/webp"
    with Image.open(BytesIO(resp.content)) as img:
        assert img.size == (32, 32)

    not_an_image = await client.get("/api/files/thumbnail", params={"path": str(mount_root / "file1.txt")})
    assert not_an_image.status_code == 404

    stats = await client.get("/api/thumbnails/stats")
    assert stats.json()["count"] == 1

    # Deleting the folder drops its cached thumbnails too
    await client.request("DELETE", "/api/files/", json={"paths": [str(mount_root / "photos")]})
    assert (await client.get("/api/thumbnails/stats")).json()["count"] == 0

    cleanup = await client.post("/api/thumbnails/cleanup")
    assert cleanup.json() == {"success": True, "removed": 0}
    cleared = await client.delete("/api/thumbnails")
    assert cleared.json()["success"] is True
