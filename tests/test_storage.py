# tests/test_storage.py
import os

import httpx
import pytest

from crosspost.infrastructure.storage import MediaStorage, StorageError


async def test_save_read_and_delete(storage):
    saved = await storage.save("user-1", "my clip (1).mp4", "video/mp4", b"abc")

    assert saved.size_bytes == 3
    assert saved.original_filename == "my clip (1).mp4"
    assert os.path.basename(saved.location).endswith("-my_clip__1_.mp4")
    assert await storage.read_bytes(saved.location) == b"abc"

    await storage.delete(saved.location)
    assert not os.path.exists(saved.location)
    # deleting twice is fine
    await storage.delete(saved.location)


async def test_public_url(storage, tmp_path):
    saved = await storage.save("user-1", "a.jpg", "image/jpeg", b"x")
    url = storage.public_url(saved.location)
    assert url.startswith("https://cdn.example.com/media/user-1/")
    assert storage.public_url("https://blob.example.com/a.jpg") == "https://blob.example.com/a.jpg"
    assert MediaStorage(root=str(tmp_path), public_base_url="").public_url(saved.location) is None


async def test_remote_objects_are_fetched_and_never_deleted(tmp_path):
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/missing.mp4":
            return httpx.Response(404)
        return httpx.Response(200, content=b"remote")

    storage = MediaStorage(root=str(tmp_path), transport=httpx.MockTransport(handler))

    assert await storage.read_bytes("https://blob.example.com/a.mp4") == b"remote"
    with pytest.raises(StorageError):
        await storage.read_bytes("https://blob.example.com/missing.mp4")
    await storage.delete("https://blob.example.com/a.mp4")
    assert [r.method for r in seen] == ["GET", "GET"]


async def test_missing_local_file(storage):
    with pytest.raises(StorageError):
        await storage.read_bytes(str(storage.root / "nope.mp4"))
