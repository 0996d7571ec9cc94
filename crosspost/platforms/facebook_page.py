# crosspost/platforms/facebook_page.py
import structlog

from crosspost import config
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient, PublishContext, PublishResult, is_image, response_snippet

logger = structlog.get_logger(__name__)

GRAPH_BASE = f"https://graph.facebook.com/{config.META_GRAPH_VERSION}"


class FacebookPageClient(PlatformClient):
    platform = Platform.facebook_page.value
    error_prefix = "FACEBOOK_PAGE"

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = ctx.connection
        access_token = self._require_access_token(connection)

        page_id = connection.account_identifier
        if not page_id:
            raise self._error("NO_ID", "Missing Facebook Page ID")

        if not is_image(media_item):
            raise self._error(
                "UNSUPPORTED_MEDIA_TYPE",
                "Facebook Page posting currently supports images only. Please upload an image.",
            )

        media_url = self._public_media_url(media_item)
        logger.info("facebook_page_photo_publish", page_id=page_id, caption_length=len(ctx.caption or ""))

        async with self._http() as client:
            resp = await client.post(
                f"{GRAPH_BASE}/{page_id}/photos",
                data={"url": media_url, "caption": ctx.caption or "", "access_token": access_token},
            )

        if resp.status_code >= 400:
            logger.error("facebook_page_publish_failed", status=resp.status_code, body=response_snippet(resp))
            raise self._error("PUBLISH_FAILED", f"Facebook Page photo publish failed: {response_snippet(resp)}")

        data = self._json(resp, "PUBLISH_FAILED", "Facebook Page photo publish")
        post_id = data.get("post_id") or data.get("id")
        logger.info("facebook_page_photo_published", page_id=page_id, post_id=post_id)
        return PublishResult(external_post_id=post_id)
