# crosspost/platforms/x.py
import base64

import structlog

from crosspost import config
from crosspost.models.enums import Platform
from crosspost.platforms import oauth1
from crosspost.platforms.base import (
    PlatformClient,
    PublishContext,
    PublishResult,
    is_image,
    is_video,
    response_snippet,
)

logger = structlog.get_logger(__name__)

X_MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
X_TWEETS_URL = "https://api.twitter.com/2/tweets"
X_TEXT_LIMIT = 280


def truncate_text(text: str, limit: int = X_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class XClient(PlatformClient):
    """
    OAuth 1.0a user context. The connection's access token is the oauth token
    and its refresh slot holds the token secret; neither expires, so the
    default no-op refresh applies.
    """

    platform = Platform.x.value
    error_prefix = "X"

    def _auth_header(self, method: str, url: str, token: str, token_secret: str, body_params=None) -> str:
        return oauth1.authorization_header(
            method,
            url,
            consumer_key=config.X_CONSUMER_KEY,
            consumer_secret=config.X_CONSUMER_SECRET,
            token=token,
            token_secret=token_secret,
            body_params=body_params,
        )

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = ctx.connection

        if not config.X_CONSUMER_KEY or not config.X_CONSUMER_SECRET:
            raise self._error("NOT_CONFIGURED", "X consumer key/secret are not configured")
        token = self._require_access_token(connection)
        token_secret = connection.refresh_token
        if not token_secret:
            raise self._error("NO_TOKEN_SECRET", "Missing OAuth token secret for X; reconnect X")

        if not (is_image(media_item) or is_video(media_item)):
            raise self._error("UNSUPPORTED_MEDIA_TYPE", f"X accepts images or videos, got {media_item.mime_type}")

        media_bytes = await self._read_media(media_item, "FETCH_MEDIA_FAILED")
        upload_params = {
            "media_data": base64.b64encode(media_bytes).decode(),
            "media_category": "tweet_video" if is_video(media_item) else "tweet_image",
        }

        async with self._http() as client:
            upload_resp = await client.post(
                X_MEDIA_UPLOAD_URL,
                headers={
                    "Authorization": self._auth_header("POST", X_MEDIA_UPLOAD_URL, token, token_secret, upload_params),
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data=upload_params,
            )
            if upload_resp.status_code >= 400:
                logger.error("x_media_upload_failed", status=upload_resp.status_code, body=response_snippet(upload_resp))
                raise self._error("MEDIA_UPLOAD_FAILED", f"X media upload failed: {response_snippet(upload_resp)}")

            media_id = self._json(upload_resp, "MEDIA_UPLOAD_FAILED", "X media upload").get("media_id_string")
            if not media_id:
                raise self._error("MEDIA_ID_MISSING", "X media upload returned no media id")

            text = truncate_text(ctx.caption or "")
            # JSON bodies are not part of the OAuth 1.0a signature
            tweet_resp = await client.post(
                X_TWEETS_URL,
                headers={"Authorization": self._auth_header("POST", X_TWEETS_URL, token, token_secret)},
                json={"text": text, "media": {"media_ids": [media_id]}},
            )
            if tweet_resp.status_code >= 400:
                logger.error("x_post_failed", status=tweet_resp.status_code, body=response_snippet(tweet_resp))
                raise self._error("POST_FAILED", f"X post failed: {response_snippet(tweet_resp)}")

        tweet_id = (self._json(tweet_resp, "POST_FAILED", "X post").get("data") or {}).get("id")
        logger.info("x_post_created", tweet_id=tweet_id, media_id=media_id)
        return PublishResult(external_post_id=tweet_id)
