# crosspost/platforms/youtube.py
import json
from datetime import timedelta

import structlog

from crosspost import config
from crosspost.models.connection import Connection
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient, PublishContext, PublishResult, is_video, response_snippet
from crosspost.UAA.utils import utcnow

logger = structlog.get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YOUTUBE_UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
YOUTUBE_TITLE_LIMIT = 100
MULTIPART_BOUNDARY = "crosspost_youtube_upload_boundary"


def build_title(caption: str, fallback: str) -> str:
    return ((caption or "").strip() or fallback or "Untitled")[:YOUTUBE_TITLE_LIMIT]


def build_multipart_body(metadata: dict, video: bytes, mime_type: str, boundary: str = MULTIPART_BOUNDARY) -> bytes:
    """multipart/related: JSON metadata part followed by the raw video part."""
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + video + tail


class YouTubeClient(PlatformClient):
    platform = Platform.youtube.value
    error_prefix = "YOUTUBE"

    async def refresh_token(self, connection: Connection) -> Connection:
        refresh_token = connection.refresh_token
        if not refresh_token:
            raise self._error("NO_REFRESH_TOKEN", "YouTube token expired and no refresh token is stored; reconnect YouTube")
        if not config.YOUTUBE_CLIENT_ID or not config.YOUTUBE_CLIENT_SECRET:
            raise self._error("NOT_CONFIGURED", "YouTube OAuth credentials are not configured")

        async with self._http() as client:
            resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": config.YOUTUBE_CLIENT_ID,
                    "client_secret": config.YOUTUBE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        if resp.status_code != 200:
            logger.warning("youtube_token_refresh_failed", status=resp.status_code, body=response_snippet(resp, 200))
            raise self._error("TOKEN_REFRESH_FAILED", "Failed to refresh YouTube access token")

        data = self._json(resp, "TOKEN_REFRESH_FAILED", "YouTube token refresh")
        expires_at = utcnow() + timedelta(seconds=int(data.get("expires_in", 3600)))
        updated = await self.token_store.update_tokens(connection.id, data["access_token"], expires_at)
        logger.info("youtube_token_refreshed", connection_id=str(connection.id))
        return updated

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = await self._ensure_fresh(ctx.connection)
        access_token = self._require_access_token(connection)

        if not is_video(media_item):
            raise self._error("MEDIA_NOT_VIDEO", f"YouTube requires video files. Current mime type: {media_item.mime_type}")

        video = await self._read_media(media_item, "FETCH_VIDEO_FAILED")
        metadata = {
            "snippet": {
                "title": build_title(ctx.caption, media_item.original_filename),
                "description": ctx.caption or "",
                "categoryId": "22",
            },
            "status": {
                "privacyStatus": config.YOUTUBE_PRIVACY_STATUS,
                "selfDeclaredMadeForKids": False,
            },
        }
        body = build_multipart_body(metadata, video, media_item.mime_type)

        async with self._http() as client:
            resp = await client.post(
                YOUTUBE_UPLOAD_URL,
                params={"uploadType": "multipart", "part": "snippet,status"},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}",
                },
                content=body,
            )

        if resp.status_code not in (200, 201):
            logger.error("youtube_upload_failed", status=resp.status_code, body=response_snippet(resp))
            raise self._error("UPLOAD_FAILED", f"YouTube upload failed: {response_snippet(resp)}")

        video_id = self._json(resp, "UPLOAD_FAILED", "YouTube upload").get("id")
        logger.info("youtube_upload_accepted", video_id=video_id)
        return PublishResult(external_post_id=video_id)
