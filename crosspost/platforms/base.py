# crosspost/platforms/base.py
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import httpx
import structlog

from crosspost import config
from crosspost.infrastructure.storage import MediaStorage, StorageError
from crosspost.models.connection import Connection
from crosspost.models.post import MediaItem
from crosspost.platforms.errors import PlatformError
from crosspost.UAA.models import User

if TYPE_CHECKING:
    from crosspost.services.token_store import TokenStore

logger = structlog.get_logger(__name__)


@dataclass
class PublishContext:
    user: User
    connection: Connection
    media_item: MediaItem
    caption: str


@dataclass
class PublishResult:
    external_post_id: Optional[str] = None


class PlatformClient:
    """
    Publishing contract shared by every platform.

    Subclasses implement ``publish_video``; platforms whose tokens can be
    refreshed also override ``refresh_token``. HTTP goes through ``_http()`` so
    every call carries the configured timeout (and tests can swap the transport).
    """

    platform: str = ""
    error_prefix: str = ""

    def __init__(
        self,
        token_store: "TokenStore",
        storage: MediaStorage,
        timeout: float = config.PLATFORM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_store = token_store
        self.storage = storage
        self.timeout = timeout
        self.transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _error(self, suffix: str, message: str) -> PlatformError:
        return PlatformError(f"{self.error_prefix}_{suffix}", message)

    def _json(self, resp: httpx.Response, error_suffix: str, what: str) -> dict:
        """Body of a successful response; anything but a JSON object is a classified failure."""
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error(
                "platform_response_not_json",
                platform=self.platform,
                status=resp.status_code,
                body=response_snippet(resp, 200),
            )
            raise self._error(error_suffix, f"{what} returned an unreadable response")
        return data

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        raise NotImplementedError

    async def refresh_token(self, connection: Connection) -> Connection:
        # long-lived or non-refreshable tokens
        logger.debug("token_refresh_not_supported", platform=self.platform, connection_id=str(connection.id))
        return connection

    async def _ensure_fresh(self, connection: Connection) -> Connection:
        return await self.token_store.refresh_if_expired(connection, self.refresh_token)

    def _require_access_token(self, connection: Connection) -> str:
        token = connection.access_token
        if not token:
            raise self._error("NO_ACCESS_TOKEN", f"Missing access token for {self.platform}")
        return token

    async def _read_media(self, media_item: MediaItem, error_suffix: str) -> bytes:
        try:
            return await self.storage.read_bytes(media_item.storage_location)
        except StorageError as e:
            logger.error("media_fetch_failed", platform=self.platform, error=str(e))
            raise self._error(error_suffix, "Failed to fetch media from storage") from e

    def _public_media_url(self, media_item: MediaItem) -> str:
        url = self.storage.public_url(media_item.storage_location)
        if not url:
            raise self._error("MEDIA_NOT_PUBLIC", f"{self.platform} needs a publicly reachable media URL")
        return url


def is_video(media_item: MediaItem) -> bool:
    return bool(media_item.mime_type) and media_item.mime_type.startswith("video/")


def is_image(media_item: MediaItem) -> bool:
    return bool(media_item.mime_type) and media_item.mime_type.startswith("image/")


def response_snippet(resp: httpx.Response, limit: int = 300) -> str:
    try:
        return resp.text[:limit]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return "<unreadable body>"
