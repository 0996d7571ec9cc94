# crosspost/platforms/instagram.py
import asyncio

import structlog

from crosspost import config
from crosspost.models.enums import Platform
from crosspost.platforms.base import (
    PlatformClient,
    PublishContext,
    PublishResult,
    is_image,
    is_video,
    response_snippet,
)

logger = structlog.get_logger(__name__)

GRAPH_BASE = f"https://graph.facebook.com/{config.META_GRAPH_VERSION}"


class InstagramClient(PlatformClient):
    """
    Graph API content publishing: create a media container, wait for it to be
    ready, then publish it. The page token obtained at connect time is
    long-lived, so there is no refresh.
    """

    platform = Platform.instagram.value
    error_prefix = "INSTAGRAM"

    # video container polling: 5s x 30 = 2.5 minutes
    poll_interval = 5.0
    max_poll_attempts = 30
    # images are usually ready almost immediately
    image_settle_seconds = 3.0

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = ctx.connection
        access_token = self._require_access_token(connection)

        ig_user_id = connection.account_identifier
        if not ig_user_id:
            raise self._error("NO_ACCOUNT_ID", "Missing Instagram business account id; reconnect Instagram")

        video = is_video(media_item)
        if not video and not is_image(media_item):
            raise self._error(
                "UNSUPPORTED_MEDIA_TYPE",
                f"Instagram accepts images or REELS videos, got {media_item.mime_type}",
            )

        location = (media_item.meta or {}).get("location")
        if location:
            # location tagging needs a Facebook place id; not forwarded yet
            logger.info("instagram_location_not_applied", location=location)

        media_url = self._public_media_url(media_item)
        container_params = {"caption": ctx.caption or "", "access_token": access_token}
        if video:
            container_params.update({"media_type": "REELS", "video_url": media_url})
        else:
            container_params["image_url"] = media_url

        async with self._http() as client:
            create_resp = await client.post(f"{GRAPH_BASE}/{ig_user_id}/media", data=container_params)
            if create_resp.status_code >= 400:
                logger.error("instagram_container_failed", status=create_resp.status_code, body=response_snippet(create_resp))
                raise self._error("CONTAINER_FAILED", f"Instagram media container creation failed: {response_snippet(create_resp)}")

            container_id = self._json(create_resp, "CONTAINER_FAILED", "Instagram container creation").get("id")
            if not container_id:
                raise self._error("CONTAINER_FAILED", "Instagram returned no container id")

            if video:
                await self._wait_for_container(client, container_id, access_token)
            else:
                await self._sleep(self.image_settle_seconds)

            publish_resp = await client.post(
                f"{GRAPH_BASE}/{ig_user_id}/media_publish",
                data={"creation_id": container_id, "access_token": access_token},
            )
            if publish_resp.status_code >= 400:
                logger.error("instagram_publish_failed", status=publish_resp.status_code, body=response_snippet(publish_resp))
                raise self._error("PUBLISH_FAILED", f"Instagram publish failed: {response_snippet(publish_resp)}")

        media_id = self._json(publish_resp, "PUBLISH_FAILED", "Instagram publish").get("id")
        logger.info("instagram_published", media_id=media_id, container_id=container_id)
        return PublishResult(external_post_id=media_id)

    async def _wait_for_container(self, client, container_id: str, access_token: str) -> None:
        for attempt in range(1, self.max_poll_attempts + 1):
            await self._sleep(self.poll_interval)
            resp = await client.get(
                f"{GRAPH_BASE}/{container_id}",
                params={"fields": "status_code", "access_token": access_token},
            )
            if resp.status_code >= 400:
                logger.warning("instagram_status_check_failed", attempt=attempt, status=resp.status_code)
                continue

            try:
                status_code = resp.json().get("status_code")
            except (ValueError, AttributeError):
                logger.warning("instagram_status_unreadable", attempt=attempt)
                continue
            logger.debug("instagram_container_status", attempt=attempt, status_code=status_code)
            if status_code == "FINISHED":
                return
            if status_code == "ERROR":
                raise self._error("VIDEO_PROCESSING_FAILED", "Instagram could not process the video")

        raise self._error(
            "VIDEO_TIMEOUT",
            f"Instagram video was not ready after {self.max_poll_attempts} checks",
        )
