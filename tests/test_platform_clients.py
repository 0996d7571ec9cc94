# tests/test_platform_clients.py
import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import json_response
from crosspost import config
from crosspost.platforms.base import PublishContext
from crosspost.platforms.errors import PlatformError
from crosspost.platforms.youtube import MULTIPART_BOUNDARY

GRAPH = f"https://graph.facebook.com/{config.META_GRAPH_VERSION}"


def ctx(user, conn, media, caption="Caption"):
    return PublishContext(user=user, connection=conn, media_item=media, caption=caption)


def form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


async def no_sleep(seconds):
    return None


# ---------- YouTube ----------

async def test_youtube_multipart_upload(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("youtube", access_token="yt-token")
    media = await make_media(data=b"VIDEOBYTES")
    http_router.add("POST", "https://www.googleapis.com/upload/youtube/v3/videos", json_response({"id": "vid-1"}))

    result = await clients["youtube"].publish_video(ctx(user, conn, media, "My title\nlong description"))

    assert result.external_post_id == "vid-1"
    request = http_router.requests[0]
    assert request.url.params["uploadType"] == "multipart"
    assert request.headers["Authorization"] == "Bearer yt-token"
    assert request.headers["Content-Type"] == f"multipart/related; boundary={MULTIPART_BOUNDARY}"
    assert b'"title": "My title\\nlong description"' in request.content
    assert b"VIDEOBYTES" in request.content


async def test_youtube_rejects_images(clients, make_connection, make_media, user):
    conn = await make_connection("youtube")
    media = await make_media(mime_type="image/png", filename="p.png")
    with pytest.raises(PlatformError) as exc:
        await clients["youtube"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "YOUTUBE_MEDIA_NOT_VIDEO"


async def test_youtube_upload_failure(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("youtube")
    media = await make_media()
    http_router.add("POST", "https://www.googleapis.com/upload/", json_response({"error": "quota"}, 403))
    with pytest.raises(PlatformError) as exc:
        await clients["youtube"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "YOUTUBE_UPLOAD_FAILED"


async def test_youtube_success_without_json_body_is_classified(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("youtube")
    media = await make_media()
    http_router.add("POST", "https://www.googleapis.com/upload/", httpx.Response(200, text="<html>ok</html>"))
    with pytest.raises(PlatformError) as exc:
        await clients["youtube"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "YOUTUBE_UPLOAD_FAILED"


# ---------- TikTok ----------

async def test_tiktok_rejects_images(clients, make_connection, make_media, user):
    conn = await make_connection("tiktok")
    media = await make_media(mime_type="image/jpeg", filename="a.jpg")
    with pytest.raises(PlatformError) as exc:
        await clients["tiktok"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "TIKTOK_MEDIA_NOT_VIDEO"


async def test_tiktok_init_error_payload(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("tiktok")
    media = await make_media()
    http_router.add(
        "POST",
        "https://open.tiktokapis.com/v2/post/publish/video/init/",
        json_response({"data": {}, "error": {"code": "spam_risk_too_many_posts"}}),
    )
    with pytest.raises(PlatformError) as exc:
        await clients["tiktok"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "TIKTOK_INIT_ERROR"


async def test_tiktok_caption_is_capped(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("tiktok")
    media = await make_media()
    http_router.add(
        "POST",
        "https://open.tiktokapis.com/v2/post/publish/video/init/",
        json_response({"data": {"upload_url": "https://upload.tiktok.test/1", "publish_id": "p"}}),
    )
    http_router.add("PUT", "https://upload.tiktok.test/", json_response({}))

    await clients["tiktok"].publish_video(ctx(user, conn, media, "x" * 3000))

    body = json.loads(http_router.requests[0].content)
    assert len(body["post_info"]["title"]) == 2200
    assert body["post_info"]["privacy_level"] == config.TIKTOK_PRIVACY_LEVEL
    assert body["source_info"]["total_chunk_count"] == 1


# ---------- X ----------

@pytest.fixture
def x_credentials(monkeypatch):
    monkeypatch.setattr(config, "X_CONSUMER_KEY", "consumer-key")
    monkeypatch.setattr(config, "X_CONSUMER_SECRET", "consumer-secret")


async def test_x_upload_then_tweet(x_credentials, clients, http_router, make_connection, make_media, user):
    conn = await make_connection("x", access_token="tok", refresh_token="tok-secret")
    media = await make_media(mime_type="image/png", data=b"PNG", filename="a.png")
    http_router.add("POST", "https://upload.twitter.com/1.1/media/upload.json", json_response({"media_id_string": "m-1"}))
    http_router.add("POST", "https://api.twitter.com/2/tweets", json_response({"data": {"id": "t-1"}}, 201))

    result = await clients["x"].publish_video(ctx(user, conn, media, "z" * 300))

    assert result.external_post_id == "t-1"
    upload, tweet = http_router.requests
    assert form(upload) == {"media_data": base64.b64encode(b"PNG").decode(), "media_category": "tweet_image"}
    for request in (upload, tweet):
        assert request.headers["Authorization"].startswith("OAuth ")
        assert 'oauth_token="tok"' in request.headers["Authorization"]
    payload = json.loads(tweet.content)
    assert payload["media"] == {"media_ids": ["m-1"]}
    assert len(payload["text"]) == 280


async def test_x_upload_without_json_body_is_classified(x_credentials, clients, http_router, make_connection, make_media, user):
    conn = await make_connection("x", access_token="tok", refresh_token="tok-secret")
    media = await make_media(mime_type="image/png", data=b"PNG", filename="a.png")
    http_router.add("POST", "https://upload.twitter.com/", httpx.Response(200, text="Service Unavailable"))
    with pytest.raises(PlatformError) as exc:
        await clients["x"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "X_MEDIA_UPLOAD_FAILED"
    assert not http_router.sent("POST", "https://api.twitter.com/2/tweets")


async def test_x_requires_token_secret(x_credentials, clients, make_connection, make_media, user):
    conn = await make_connection("x", refresh_token=None)
    media = await make_media(mime_type="image/png", filename="a.png")
    with pytest.raises(PlatformError) as exc:
        await clients["x"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "X_NO_TOKEN_SECRET"


async def test_x_missing_media_id(x_credentials, clients, http_router, make_connection, make_media, user):
    conn = await make_connection("x", refresh_token="s")
    media = await make_media()
    http_router.add("POST", "https://upload.twitter.com/", json_response({}))
    with pytest.raises(PlatformError) as exc:
        await clients["x"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "X_MEDIA_ID_MISSING"


# ---------- LinkedIn ----------

async def test_linkedin_publishing_not_available(clients, make_connection, make_media, user):
    conn = await make_connection("linkedin")
    media = await make_media()
    with pytest.raises(PlatformError) as exc:
        await clients["linkedin"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "NOT_IMPLEMENTED"


# ---------- Instagram ----------

@pytest.fixture
def instagram(clients):
    client = clients["instagram"]
    client._sleep = no_sleep
    client.max_poll_attempts = 3
    return client


async def test_instagram_image_publish(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", access_token="page-token", account_identifier="ig-1")
    media = await make_media(mime_type="image/jpeg", filename="a.jpg")
    http_router.add("POST", f"{GRAPH}/ig-1/media_publish", json_response({"id": "ig-media-1"}))
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "container-1"}))

    result = await instagram.publish_video(ctx(user, conn, media))

    assert result.external_post_id == "ig-media-1"
    container = form(http_router.requests[0])
    assert container["image_url"].startswith("https://cdn.example.com/media/")
    assert "media_type" not in container
    assert form(http_router.requests[1])["creation_id"] == "container-1"


async def test_instagram_publish_without_json_body_is_classified(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="image/jpeg", filename="a.jpg")
    http_router.add("POST", f"{GRAPH}/ig-1/media_publish", httpx.Response(200, text="not json"))
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "container-1"}))
    with pytest.raises(PlatformError) as exc:
        await instagram.publish_video(ctx(user, conn, media))
    assert exc.value.code == "INSTAGRAM_PUBLISH_FAILED"


async def test_instagram_reel_waits_for_processing(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="video/mp4")
    statuses = iter(["IN_PROGRESS", "FINISHED"])
    http_router.add("POST", f"{GRAPH}/ig-1/media_publish", json_response({"id": "reel-1"}))
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "c-1"}))
    http_router.add("GET", f"{GRAPH}/c-1", lambda request: json_response({"status_code": next(statuses)}))

    result = await instagram.publish_video(ctx(user, conn, media))

    assert result.external_post_id == "reel-1"
    assert form(http_router.requests[0])["media_type"] == "REELS"
    assert len(http_router.sent("GET", f"{GRAPH}/c-1")) == 2


async def test_instagram_processing_error(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="video/mp4")
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "c-1"}))
    http_router.add("GET", f"{GRAPH}/c-1", json_response({"status_code": "ERROR"}))

    with pytest.raises(PlatformError) as exc:
        await instagram.publish_video(ctx(user, conn, media))
    assert exc.value.code == "INSTAGRAM_VIDEO_PROCESSING_FAILED"
    assert not http_router.sent("POST", f"{GRAPH}/ig-1/media_publish")


async def test_instagram_processing_timeout(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="video/mp4")
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "c-1"}))
    http_router.add("GET", f"{GRAPH}/c-1", json_response({"status_code": "IN_PROGRESS"}))

    with pytest.raises(PlatformError) as exc:
        await instagram.publish_video(ctx(user, conn, media))
    assert exc.value.code == "INSTAGRAM_VIDEO_TIMEOUT"
    assert len(http_router.sent("GET", f"{GRAPH}/c-1")) == 3


async def test_instagram_location_is_not_forwarded(instagram, http_router, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="image/jpeg", filename="a.jpg", meta={"location": {"description": "Cafe"}})
    http_router.add("POST", f"{GRAPH}/ig-1/media_publish", json_response({"id": "m"}))
    http_router.add("POST", f"{GRAPH}/ig-1/media", json_response({"id": "c"}))

    await instagram.publish_video(ctx(user, conn, media))

    assert "location_id" not in form(http_router.requests[0])


async def test_instagram_needs_public_media_url(clients, make_connection, make_media, user):
    conn = await make_connection("instagram", account_identifier="ig-1")
    media = await make_media(mime_type="image/jpeg", filename="a.jpg")
    clients["instagram"].storage.public_base_url = None
    with pytest.raises(PlatformError) as exc:
        await clients["instagram"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "INSTAGRAM_MEDIA_NOT_PUBLIC"


# ---------- Facebook Page ----------

async def test_facebook_page_photo(clients, http_router, make_connection, make_media, user):
    conn = await make_connection("facebook_page", access_token="page-token", account_identifier="page-1")
    media = await make_media(mime_type="image/png", filename="a.png")
    http_router.add("POST", f"{GRAPH}/page-1/photos", json_response({"id": "photo-1", "post_id": "page-1_post-9"}))

    result = await clients["facebook_page"].publish_video(ctx(user, conn, media, "Hi"))

    assert result.external_post_id == "page-1_post-9"
    sent = form(http_router.requests[0])
    assert sent["caption"] == "Hi"
    assert sent["access_token"] == "page-token"


async def test_facebook_page_requires_page_id(clients, make_connection, make_media, user):
    conn = await make_connection("facebook_page", account_identifier=None)
    media = await make_media(mime_type="video/mp4")
    with pytest.raises(PlatformError) as exc:
        await clients["facebook_page"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "FACEBOOK_PAGE_NO_ID"


# ---------- Google Business Profile ----------

GBP_V4 = "https://mybusiness.googleapis.com/v4"
ACCOUNTS_URL = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"
INFO = "https://mybusinessbusinessinformation.googleapis.com/v1"


async def test_gbp_three_step_upload(clients, http_router, make_connection, make_media, user):
    location = "accounts/1/locations/2"
    conn = await make_connection("google_business_profile", meta={"locationName": location})
    media = await make_media(mime_type="image/jpeg", data=b"JPEG", filename="a.jpg")
    http_router.add("POST", f"{GBP_V4}/{location}/media:startUpload", json_response({"resourceName": "ref-1"}))
    http_router.add("POST", f"{GBP_V4}/{location}/media", json_response({"name": f"{location}/media/m-1"}))
    http_router.add("POST", "https://mybusiness.googleapis.com/upload/v1/media/ref-1", json_response({}))

    result = await clients["google_business_profile"].publish_video(ctx(user, conn, media))

    assert result.external_post_id == f"{location}/media/m-1"
    start, upload, create = http_router.requests
    assert upload.url.params["upload_type"] == "media"
    assert upload.content == b"JPEG"
    body = json.loads(create.content)
    assert body == {
        "mediaFormat": "PHOTO",
        "locationAssociation": {"category": "COVER"},
        "dataRef": {"resourceName": "ref-1"},
    }


async def test_gbp_needs_location(clients, make_connection, make_media, user):
    conn = await make_connection("google_business_profile", meta={"locationName": None})
    media = await make_media(mime_type="image/jpeg", filename="a.jpg")
    with pytest.raises(PlatformError) as exc:
        await clients["google_business_profile"].publish_video(ctx(user, conn, media))
    assert exc.value.code == "GBP_NO_LOCATION_NAME"


def _accounts_and_locations(http_router, locations_by_account):
    http_router.add("GET", ACCOUNTS_URL, json_response({"accounts": [{"name": a} for a in locations_by_account]}))
    for account, locations in locations_by_account.items():
        http_router.add("GET", f"{INFO}/{account}/locations", json_response({"locations": locations}))


async def test_gbp_store_code_resolves_to_single_location(clients, http_router, make_connection):
    conn = await make_connection("google_business_profile", meta={"locationName": "S1"})
    _accounts_and_locations(http_router, {
        "accounts/1": [{"name": "locations/9", "storeCode": "S1"}],
        "accounts/2": [{"name": "locations/10", "storeCode": "OTHER"}],
    })

    name = await clients["google_business_profile"].resolve_location_name(conn, "token")

    assert name == "accounts/1/locations/9"


async def test_gbp_store_code_not_found(clients, http_router, make_connection):
    conn = await make_connection("google_business_profile", meta={"locationName": "S1"})
    _accounts_and_locations(http_router, {"accounts/1": []})
    with pytest.raises(PlatformError) as exc:
        await clients["google_business_profile"].resolve_location_name(conn, "token")
    assert exc.value.code == "GBP_STORE_CODE_NOT_FOUND"


async def test_gbp_store_code_ambiguous(clients, http_router, make_connection):
    conn = await make_connection("google_business_profile", meta={"locationName": "S1"})
    _accounts_and_locations(http_router, {
        "accounts/1": [{"name": "locations/9", "storeCode": "S1"}],
        "accounts/2": [{"name": "locations/10", "storeCode": "S1"}],
    })
    with pytest.raises(PlatformError) as exc:
        await clients["google_business_profile"].resolve_location_name(conn, "token")
    assert exc.value.code == "GBP_STORE_CODE_NOT_UNIQUE"


async def test_gbp_list_locations(clients, http_router, make_connection):
    conn = await make_connection("google_business_profile")
    _accounts_and_locations(http_router, {
        "accounts/1": [{"name": "locations/9", "storeCode": "S1", "title": "Downtown"}],
    })

    locations = await clients["google_business_profile"].list_locations(conn)

    assert locations == [{"locationName": "accounts/1/locations/9", "title": "Downtown", "storeCode": "S1"}]
