# crosspost/platforms/tiktok.py
from datetime import timedelta

import structlog

from crosspost import config
from crosspost.models.connection import Connection
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient, PublishContext, PublishResult, is_video, response_snippet
from crosspost.UAA.utils import utcnow

logger = structlog.get_logger(__name__)

TIKTOK_API_BASE = "https://open.tiktokapis.com"
TIKTOK_TOKEN_URL = f"{TIKTOK_API_BASE}/v2/oauth/token/"
TIKTOK_CAPTION_LIMIT = 2200


class TikTokClient(PlatformClient):
    """
    Content Posting API, FILE_UPLOAD source: init declaring the size, then one
    PUT of the whole file. Posts land with the configured privacy level
    (SELF_ONLY by default), so they are not public straight away.
    """

    platform = Platform.tiktok.value
    error_prefix = "TIKTOK"

    async def refresh_token(self, connection: Connection) -> Connection:
        refresh_token = connection.refresh_token
        if not refresh_token:
            raise self._error("NO_REFRESH_TOKEN", "TikTok token expired and no refresh token is stored; reconnect TikTok")
        if not config.TIKTOK_CLIENT_KEY or not config.TIKTOK_CLIENT_SECRET:
            raise self._error("NOT_CONFIGURED", "TikTok client credentials are not configured")

        async with self._http() as client:
            resp = await client.post(
                TIKTOK_TOKEN_URL,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "client_key": config.TIKTOK_CLIENT_KEY,
                    "client_secret": config.TIKTOK_CLIENT_SECRET,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        if resp.status_code != 200:
            logger.warning("tiktok_token_refresh_failed", status=resp.status_code, body=response_snippet(resp, 200))
            raise self._error("TOKEN_REFRESH_FAILED", "Failed to refresh TikTok access token")

        data = self._json(resp, "TOKEN_REFRESH_FAILED", "TikTok token refresh")
        access_token = data.get("access_token")
        if not access_token:
            raise self._error("TOKEN_REFRESH_FAILED", "TikTok refresh returned no access token")
        expires_in = data.get("expires_in")
        expires_at = utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None

        updated = await self.token_store.update_tokens(
            connection.id,
            access_token,
            expires_at,
            refresh_token=data.get("refresh_token") or refresh_token,
        )
        logger.info("tiktok_token_refreshed", connection_id=str(connection.id))
        return updated

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = await self._ensure_fresh(ctx.connection)
        access_token = self._require_access_token(connection)

        if not is_video(media_item):
            raise self._error(
                "MEDIA_NOT_VIDEO",
                f"TikTok requires video files. Current mime type: {media_item.mime_type or 'undefined'}",
            )

        file_bytes = await self._read_media(media_item, "FETCH_VIDEO_FAILED")
        size = len(file_bytes)
        caption = ctx.caption[:TIKTOK_CAPTION_LIMIT] if ctx.caption else ""

        logger.info("tiktok_upload_init", video_size=size, connection_id=str(connection.id))

        async with self._http() as client:
            init_resp = await client.post(
                f"{TIKTOK_API_BASE}/v2/post/publish/video/init/",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                json={
                    "post_info": {
                        "title": caption,
                        "privacy_level": config.TIKTOK_PRIVACY_LEVEL,
                        "disable_comment": False,
                        "disable_duet": False,
                        "disable_stitch": False,
                    },
                    "source_info": {
                        "source": "FILE_UPLOAD",
                        "video_size": size,
                        "chunk_size": size,
                        "total_chunk_count": 1,
                    },
                },
            )

            if init_resp.status_code >= 400:
                logger.error("tiktok_init_failed", status=init_resp.status_code, body=response_snippet(init_resp))
                raise self._error("INIT_FAILED", f"Failed to start TikTok video upload: {response_snippet(init_resp)}")

            try:
                init_json = init_resp.json()
            except ValueError:
                init_json = {}

            error_code = (init_json.get("error") or {}).get("code")
            if error_code and error_code != "ok":
                logger.error("tiktok_init_error_payload", error_code=error_code)
                raise self._error("INIT_ERROR", f"TikTok video init returned an error: {error_code}")

            data = init_json.get("data") or {}
            upload_url = data.get("upload_url")
            publish_id = data.get("publish_id")
            if not upload_url or not publish_id:
                raise self._error("INIT_MISSING_FIELDS", "TikTok did not return upload_url or publish_id")

            upload_resp = await client.put(
                upload_url,
                content=file_bytes,
                headers={
                    "Content-Range": f"bytes 0-{size - 1}/{size}",
                    "Content-Type": media_item.mime_type,
                },
            )
            if upload_resp.status_code >= 400:
                logger.error("tiktok_upload_failed", status=upload_resp.status_code)
                raise self._error("UPLOAD_FAILED", f"Failed to upload video to TikTok ({upload_resp.status_code})")

        logger.info("tiktok_upload_accepted", publish_id=publish_id)
        return PublishResult(external_post_id=publish_id)
