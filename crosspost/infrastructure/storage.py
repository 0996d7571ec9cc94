# crosspost/infrastructure/storage.py
import asyncio
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import structlog

from crosspost import config

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class StorageError(Exception):
    pass


@dataclass
class SavedFile:
    location: str
    original_filename: str
    mime_type: str
    size_bytes: int


class MediaStorage:
    """
    Local-disk media storage. Locations are absolute paths; anything starting
    with http(s):// is treated as a remote object and fetched over HTTP.
    """

    def __init__(
        self,
        root: Optional[str] = None,
        public_base_url: Optional[str] = None,
        timeout: float = config.PLATFORM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.root = Path(root or config.MEDIA_UPLOAD_ROOT)
        self.public_base_url = public_base_url if public_base_url is not None else config.MEDIA_PUBLIC_BASE_URL
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def _is_remote(location: str) -> bool:
        return location.startswith("http://") or location.startswith("https://")

    async def save(self, user_id: str, filename: Optional[str], content_type: Optional[str], data: bytes) -> SavedFile:
        original = filename or "upload"
        safe_name = _UNSAFE_CHARS.sub("_", original)
        user_dir = self.root / str(user_id)
        path = user_dir / f"{int(time.time() * 1000)}-{safe_name}"

        def _write() -> None:
            user_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.exception("media_save_failed", user_id=str(user_id), error=str(e))
            raise StorageError(f"could not store {original}") from e

        logger.info("media_saved", user_id=str(user_id), location=str(path), size_bytes=len(data))
        return SavedFile(
            location=str(path),
            original_filename=original,
            mime_type=content_type or "application/octet-stream",
            size_bytes=len(data),
        )

    async def read_bytes(self, location: str) -> bytes:
        if self._is_remote(location):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    resp = await client.get(location)
                    resp.raise_for_status()
                    return resp.content
            except httpx.HTTPError as e:
                raise StorageError(f"could not fetch {location}: {e}") from e
        try:
            return await asyncio.to_thread(Path(location).read_bytes)
        except OSError as e:
            raise StorageError(f"could not read {location}") from e

    def public_url(self, location: str) -> Optional[str]:
        """URL a third party can fetch the media from, if there is one."""
        if self._is_remote(location):
            return location
        if not self.public_base_url:
            return None
        try:
            relative = Path(location).resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        return f"{self.public_base_url.rstrip('/')}/{relative.as_posix()}"

    async def delete(self, location: str) -> None:
        if self._is_remote(location):
            # remote objects are owned by whoever issued the url
            logger.info("media_delete_skipped_remote", location=location)
            return
        try:
            await asyncio.to_thread(os.remove, location)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"could not delete {location}") from e
        logger.info("media_deleted", location=location)
