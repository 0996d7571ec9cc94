# crosspost/services/oauth_connect.py
"""
Connect flows for every supported platform.

``authorization_url`` builds the provider URL the browser is sent to, with a
signed ``state`` naming the user. ``complete`` handles the provider callback:
it checks state, exchanges the code, fetches whatever identity the platform
needs for publishing and upserts the Connection. Failures are raised as
``OAuthFlowError`` carrying a short code that ends up in the
``/connections?error=`` redirect.
"""
import base64
import hashlib
import json
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Mapping, Optional
from urllib.parse import parse_qsl

import httpx
import structlog

from crosspost import config
from crosspost.infrastructure.redis_cache import pop_oauth_side_data, put_oauth_side_data
from crosspost.models.enums import Platform
from crosspost.platforms import oauth1
from crosspost.platforms.base import response_snippet
from crosspost.services.token_store import TokenStore
from crosspost.UAA.oauth_state import create_oauth_state, verify_oauth_state
from crosspost.UAA.utils import utcnow

logger = structlog.get_logger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YOUTUBE_CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels"
TIKTOK_AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"
TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
LINKEDIN_AUTH_URL = "https://www.linkedin.com/oauth/v2/authorization"
LINKEDIN_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
LINKEDIN_ORG_ACLS_URL = (
    "https://api.linkedin.com/v2/organizationalEntityAcls?q=roleAssignee&role=ADMINISTRATOR"
    "&projection=(elements*(organizationalTarget~(id,localizedName,vanityName)))"
)
X_REQUEST_TOKEN_URL = "https://api.twitter.com/oauth/request_token"
X_AUTHORIZE_URL = "https://api.twitter.com/oauth/authorize"
X_ACCESS_TOKEN_URL = "https://api.twitter.com/oauth/access_token"
FACEBOOK_DIALOG_URL = f"https://www.facebook.com/{config.META_GRAPH_VERSION}/dialog/oauth"
GRAPH_BASE = f"https://graph.facebook.com/{config.META_GRAPH_VERSION}"

# Facebook long-lived user tokens last about 60 days
FACEBOOK_DEFAULT_EXPIRES_IN = 60 * 24 * 3600

PKCE_NAMESPACE = "tiktok_pkce"
X_REQUEST_NAMESPACE = "x_request_token"


class OAuthFlowError(Exception):
    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


def _expires_at(expires_in) -> Optional[datetime]:
    if not expires_in:
        return None
    return utcnow() + timedelta(seconds=int(expires_in))


def _pkce_pair():
    verifier = secrets.token_urlsafe(64)
    challenge = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=").decode()
    return verifier, challenge


def decode_id_token_claims(id_token: str) -> dict:
    """Unverified claims of a Google id_token; the token came straight from Google's token endpoint."""
    try:
        segment = id_token.split(".")[1]
        segment += "=" * (-len(segment) % 4)
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except (IndexError, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


class OAuthConnectService:
    def __init__(
        self,
        token_store: TokenStore,
        redis,
        timeout: float = config.PLATFORM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_store = token_store
        self.redis = redis
        self.timeout = timeout
        self.transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    # ---------- start ----------

    async def authorization_url(self, platform: str, user_id: uuid.UUID) -> str:
        builders = {
            Platform.tiktok.value: self._tiktok_url,
            Platform.youtube.value: self._youtube_url,
            Platform.google_business_profile.value: self._gbp_url,
            Platform.instagram.value: self._instagram_url,
            Platform.facebook_page.value: self._facebook_page_url,
            Platform.linkedin.value: self._linkedin_url,
            Platform.x.value: self._x_url,
        }
        builder = builders.get(platform)
        if builder is None:
            raise OAuthFlowError("unknown_platform")
        state = create_oauth_state(str(user_id))
        url = await builder(state)
        logger.info("oauth_connect_started", platform=platform, user_id=str(user_id))
        return url

    async def _tiktok_url(self, state: str) -> str:
        if not config.TIKTOK_CLIENT_KEY or not config.TIKTOK_REDIRECT_URI:
            raise OAuthFlowError("tiktok_not_configured")
        verifier, challenge = _pkce_pair()
        await put_oauth_side_data(self.redis, PKCE_NAMESPACE, state, {"code_verifier": verifier})
        return str(httpx.URL(TIKTOK_AUTH_URL).copy_merge_params({
            "client_key": config.TIKTOK_CLIENT_KEY,
            "redirect_uri": config.TIKTOK_REDIRECT_URI,
            "response_type": "code",
            "scope": config.TIKTOK_SCOPES,
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }))

    def _google_url(self, client_id: str, redirect_uri: str, scopes: str, state: str) -> str:
        return str(httpx.URL(GOOGLE_AUTH_URL).copy_merge_params({
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scopes,
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }))

    async def _youtube_url(self, state: str) -> str:
        if not config.YOUTUBE_CLIENT_ID or not config.YOUTUBE_REDIRECT_URI:
            raise OAuthFlowError("youtube_not_configured")
        return self._google_url(config.YOUTUBE_CLIENT_ID, config.YOUTUBE_REDIRECT_URI, config.YOUTUBE_SCOPES, state)

    async def _gbp_url(self, state: str) -> str:
        if not config.GOOGLE_GBP_CLIENT_ID or not config.GOOGLE_GBP_REDIRECT_URI:
            raise OAuthFlowError("google_business_profile_not_configured")
        return self._google_url(
            config.GOOGLE_GBP_CLIENT_ID, config.GOOGLE_GBP_REDIRECT_URI, config.GOOGLE_GBP_SCOPES, state
        )

    def _facebook_dialog(self, redirect_uri: str, scopes: str, state: str) -> str:
        return str(httpx.URL(FACEBOOK_DIALOG_URL).copy_merge_params({
            "client_id": config.FACEBOOK_CLIENT_ID,
            "redirect_uri": redirect_uri,
            "scope": scopes,
            "response_type": "code",
            "state": state,
        }))

    async def _instagram_url(self, state: str) -> str:
        if not config.FACEBOOK_CLIENT_ID or not config.INSTAGRAM_REDIRECT_URI:
            raise OAuthFlowError("instagram_not_configured")
        return self._facebook_dialog(config.INSTAGRAM_REDIRECT_URI, config.INSTAGRAM_SCOPES, state)

    async def _facebook_page_url(self, state: str) -> str:
        if not config.FACEBOOK_CLIENT_ID or not config.FACEBOOK_PAGE_REDIRECT_URI:
            raise OAuthFlowError("facebook_page_not_configured")
        return self._facebook_dialog(config.FACEBOOK_PAGE_REDIRECT_URI, config.FACEBOOK_PAGE_SCOPES, state)

    async def _linkedin_url(self, state: str) -> str:
        if not config.LINKEDIN_CLIENT_ID or not config.LINKEDIN_REDIRECT_URI:
            raise OAuthFlowError("linkedin_not_configured")
        return str(httpx.URL(LINKEDIN_AUTH_URL).copy_merge_params({
            "response_type": "code",
            "client_id": config.LINKEDIN_CLIENT_ID,
            "redirect_uri": config.LINKEDIN_REDIRECT_URI,
            "state": state,
            "scope": config.LINKEDIN_SCOPES,
        }))

    async def _x_url(self, state: str) -> str:
        if not config.X_CONSUMER_KEY or not config.X_CONSUMER_SECRET or not config.X_CALLBACK_URL:
            raise OAuthFlowError("x_not_configured")
        # X echoes nothing back but the callback URL, so the state rides on it
        callback = str(httpx.URL(config.X_CALLBACK_URL).copy_merge_params({"state": state}))
        header = oauth1.authorization_header(
            "POST",
            X_REQUEST_TOKEN_URL,
            consumer_key=config.X_CONSUMER_KEY,
            consumer_secret=config.X_CONSUMER_SECRET,
            extra_oauth_params={"oauth_callback": callback},
        )
        async with self._http() as client:
            resp = await client.post(X_REQUEST_TOKEN_URL, headers={"Authorization": header})
        if resp.status_code >= 400:
            logger.error("x_request_token_failed", status=resp.status_code, body=response_snippet(resp, 200))
            raise OAuthFlowError("x_request_token_failed")

        data = dict(parse_qsl(resp.text))
        oauth_token = data.get("oauth_token")
        oauth_token_secret = data.get("oauth_token_secret")
        if not oauth_token or not oauth_token_secret:
            raise OAuthFlowError("x_invalid_token_response")

        await put_oauth_side_data(
            self.redis, X_REQUEST_NAMESPACE, oauth_token, {"oauth_token_secret": oauth_token_secret}
        )
        return str(httpx.URL(X_AUTHORIZE_URL).copy_merge_params({"oauth_token": oauth_token}))

    # ---------- callback ----------

    async def complete(self, platform: str, params: Mapping[str, str]) -> uuid.UUID:
        """Finish a connect flow; returns the id of the upserted connection."""
        handlers = {
            Platform.tiktok.value: self._complete_tiktok,
            Platform.youtube.value: self._complete_youtube,
            Platform.google_business_profile.value: self._complete_gbp,
            Platform.instagram.value: self._complete_instagram,
            Platform.facebook_page.value: self._complete_facebook_page,
            Platform.linkedin.value: self._complete_linkedin,
            Platform.x.value: self._complete_x,
        }
        handler = handlers.get(platform)
        if handler is None:
            raise OAuthFlowError("unknown_platform")

        provider_error = params.get("error")
        if provider_error:
            raise OAuthFlowError(provider_error)
        if params.get("denied"):
            raise OAuthFlowError(f"{platform}_auth_denied")

        if platform == Platform.x.value:
            code = params.get("oauth_verifier") if params.get("oauth_token") else None
        else:
            code = params.get("code")
        state = params.get("state")
        if not code or not state:
            raise OAuthFlowError(f"{platform}_missing_code_or_state")

        check = verify_oauth_state(state)
        if not check.valid or not check.user_id:
            raise OAuthFlowError(f"{platform}_invalid_state")
        try:
            user_id = uuid.UUID(check.user_id)
        except ValueError:
            raise OAuthFlowError(f"{platform}_invalid_state")

        conn = await handler(user_id, params, state)
        logger.info("oauth_connect_completed", platform=platform, user_id=str(user_id), connection_id=str(conn.id))
        return conn.id

    async def _complete_tiktok(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        if not config.TIKTOK_CLIENT_KEY or not config.TIKTOK_CLIENT_SECRET or not config.TIKTOK_REDIRECT_URI:
            raise OAuthFlowError("tiktok_not_configured")
        side = await pop_oauth_side_data(self.redis, PKCE_NAMESPACE, state)
        form = {
            "client_key": config.TIKTOK_CLIENT_KEY,
            "client_secret": config.TIKTOK_CLIENT_SECRET,
            "code": params["code"],
            "grant_type": "authorization_code",
            "redirect_uri": config.TIKTOK_REDIRECT_URI,
        }
        if side and side.get("code_verifier"):
            form["code_verifier"] = side["code_verifier"]

        async with self._http() as client:
            resp = await client.post(TIKTOK_TOKEN_URL, data=form)
        if resp.status_code >= 400:
            logger.error("tiktok_token_exchange_failed", status=resp.status_code)
            raise OAuthFlowError("tiktok_token_exchange_failed")
        data = resp.json()
        if not data.get("access_token"):
            raise OAuthFlowError("tiktok_token_exchange_failed")

        return await self.token_store.upsert(
            user_id,
            Platform.tiktok.value,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_expires_at(data.get("expires_in")),
            account_identifier=data.get("open_id"),
            scopes=data.get("scope"),
        )

    async def _google_exchange(self, client, client_id, client_secret, redirect_uri, code, prefix) -> dict:
        if not client_id or not client_secret or not redirect_uri:
            raise OAuthFlowError(f"{prefix}_not_configured")
        resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        if resp.status_code >= 400:
            logger.error("google_token_exchange_failed", platform=prefix, status=resp.status_code)
            raise OAuthFlowError(f"{prefix}_token_exchange_failed")
        data = resp.json()
        if not data.get("access_token"):
            raise OAuthFlowError(f"{prefix}_token_exchange_failed")
        return data

    async def _complete_youtube(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        async with self._http() as client:
            data = await self._google_exchange(
                client,
                config.YOUTUBE_CLIENT_ID,
                config.YOUTUBE_CLIENT_SECRET,
                config.YOUTUBE_REDIRECT_URI,
                params["code"],
                "youtube",
            )
            channel_resp = await client.get(
                YOUTUBE_CHANNELS_URL,
                params={"part": "snippet", "mine": "true"},
                headers={"Authorization": f"Bearer {data['access_token']}"},
            )
        if channel_resp.status_code >= 400:
            logger.error("youtube_channel_fetch_failed", status=channel_resp.status_code)
            raise OAuthFlowError("youtube_channel_fetch_failed")
        items = channel_resp.json().get("items") or []
        channel = items[0] if items else {}
        if not channel.get("id"):
            raise OAuthFlowError("youtube_no_channel")

        return await self.token_store.upsert(
            user_id,
            Platform.youtube.value,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_expires_at(data.get("expires_in")),
            account_identifier=channel["id"],
            scopes=data.get("scope"),
            meta={"channelId": channel["id"], "channelTitle": (channel.get("snippet") or {}).get("title")},
        )

    async def _complete_gbp(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        async with self._http() as client:
            data = await self._google_exchange(
                client,
                config.GOOGLE_GBP_CLIENT_ID,
                config.GOOGLE_GBP_CLIENT_SECRET,
                config.GOOGLE_GBP_REDIRECT_URI,
                params["code"],
                "google_business_profile",
            )
        claims = decode_id_token_claims(data["id_token"]) if data.get("id_token") else {}
        account_identifier = claims.get("sub") or claims.get("email") or Platform.google_business_profile.value

        # a reconnect keeps the location picked earlier
        existing = await self.token_store.get(user_id, Platform.google_business_profile.value)
        location_name = (existing.meta or {}).get("locationName") if existing else None

        return await self.token_store.upsert(
            user_id,
            Platform.google_business_profile.value,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_expires_at(data.get("expires_in")),
            account_identifier=account_identifier,
            scopes=data.get("scope"),
            meta={"locationName": location_name},
        )

    async def _facebook_user_token(self, client, redirect_uri: Optional[str], code: str, prefix: str) -> dict:
        if not config.FACEBOOK_CLIENT_ID or not config.FACEBOOK_CLIENT_SECRET or not redirect_uri:
            raise OAuthFlowError(f"{prefix}_not_configured")
        short_resp = await client.get(
            f"{GRAPH_BASE}/oauth/access_token",
            params={
                "client_id": config.FACEBOOK_CLIENT_ID,
                "client_secret": config.FACEBOOK_CLIENT_SECRET,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        if short_resp.status_code >= 400:
            logger.error("facebook_token_exchange_failed", platform=prefix, status=short_resp.status_code)
            raise OAuthFlowError(f"{prefix}_token_exchange_failed")

        long_resp = await client.get(
            f"{GRAPH_BASE}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": config.FACEBOOK_CLIENT_ID,
                "client_secret": config.FACEBOOK_CLIENT_SECRET,
                "fb_exchange_token": short_resp.json().get("access_token", ""),
            },
        )
        if long_resp.status_code >= 400:
            logger.error("facebook_long_lived_token_failed", platform=prefix, status=long_resp.status_code)
            raise OAuthFlowError(f"{prefix}_long_lived_token_failed")
        return long_resp.json()

    async def _facebook_pages(self, client, user_token: str, fields: str, prefix: str) -> list:
        resp = await client.get(
            f"{GRAPH_BASE}/me/accounts",
            params={"access_token": user_token, "fields": fields},
        )
        if resp.status_code >= 400:
            logger.error("facebook_pages_fetch_failed", platform=prefix, status=resp.status_code)
            raise OAuthFlowError(f"{prefix}_failed_to_fetch_pages")
        return resp.json().get("data") or []

    async def _complete_instagram(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        async with self._http() as client:
            token = await self._facebook_user_token(client, config.INSTAGRAM_REDIRECT_URI, params["code"], "instagram")
            pages = await self._facebook_pages(
                client, token.get("access_token", ""), "id,name,access_token,instagram_business_account", "instagram"
            )
            page = next((p for p in pages if p.get("instagram_business_account")), None)
            if page is None:
                raise OAuthFlowError("instagram_no_instagram_account")

            ig_account_id = page["instagram_business_account"]["id"]
            ig_resp = await client.get(
                f"{GRAPH_BASE}/{ig_account_id}",
                params={"fields": "username,profile_picture_url", "access_token": page["access_token"]},
            )
        if ig_resp.status_code >= 400:
            logger.error("instagram_account_fetch_failed", status=ig_resp.status_code)
            raise OAuthFlowError("instagram_failed_to_fetch_ig_account")
        ig = ig_resp.json()

        return await self.token_store.upsert(
            user_id,
            Platform.instagram.value,
            access_token=page["access_token"],
            expires_at=_expires_at(token.get("expires_in") or FACEBOOK_DEFAULT_EXPIRES_IN),
            account_identifier=ig_account_id,
            scopes=config.INSTAGRAM_SCOPES,
            meta={
                "username": ig.get("username"),
                "profilePicture": ig.get("profile_picture_url"),
                "pageId": page.get("id"),
            },
        )

    async def _complete_facebook_page(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        async with self._http() as client:
            token = await self._facebook_user_token(
                client, config.FACEBOOK_PAGE_REDIRECT_URI, params["code"], "facebook_page"
            )
            pages = await self._facebook_pages(client, token.get("access_token", ""), "id,name,access_token", "facebook_page")
        if not pages:
            raise OAuthFlowError("facebook_page_no_pages")

        page = pages[0]
        return await self.token_store.upsert(
            user_id,
            Platform.facebook_page.value,
            access_token=page["access_token"],
            expires_at=_expires_at(token.get("expires_in") or FACEBOOK_DEFAULT_EXPIRES_IN),
            account_identifier=page["id"],
            scopes=config.FACEBOOK_PAGE_SCOPES,
            meta={"page_name": page.get("name")},
        )

    async def _complete_linkedin(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        if not config.LINKEDIN_CLIENT_ID or not config.LINKEDIN_CLIENT_SECRET or not config.LINKEDIN_REDIRECT_URI:
            raise OAuthFlowError("linkedin_not_configured")
        async with self._http() as client:
            resp = await client.post(
                LINKEDIN_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": params["code"],
                    "client_id": config.LINKEDIN_CLIENT_ID,
                    "client_secret": config.LINKEDIN_CLIENT_SECRET,
                    "redirect_uri": config.LINKEDIN_REDIRECT_URI,
                },
            )
            if resp.status_code >= 400:
                logger.error("linkedin_token_exchange_failed", status=resp.status_code)
                raise OAuthFlowError("linkedin_token_exchange_failed")
            data = resp.json()
            headers = {"Authorization": f"Bearer {data.get('access_token', '')}"}

            profile_resp = await client.get(LINKEDIN_USERINFO_URL, headers=headers)
            if profile_resp.status_code >= 400:
                logger.error("linkedin_profile_failed", status=profile_resp.status_code)
                raise OAuthFlowError("linkedin_profile_failed")
            profile = profile_resp.json()

            orgs_resp = await client.get(LINKEDIN_ORG_ACLS_URL, headers={**headers, "X-Restli-Protocol-Version": "2.0.0"})

        organizations = []
        if orgs_resp.status_code < 400:
            for element in orgs_resp.json().get("elements") or []:
                target = element.get("organizationalTarget~") or {}
                if target.get("id") and target.get("localizedName"):
                    organizations.append({
                        "id": target["id"],
                        "name": target["localizedName"],
                        "vanityName": target.get("vanityName"),
                    })
        else:
            logger.warning("linkedin_organizations_fetch_failed", status=orgs_resp.status_code)

        return await self.token_store.upsert(
            user_id,
            Platform.linkedin.value,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_expires_at(data.get("expires_in")),
            account_identifier=profile.get("sub"),
            scopes=data.get("scope") or config.LINKEDIN_SCOPES,
            meta={"name": profile.get("name"), "email": profile.get("email"), "organizations": organizations},
        )

    async def _complete_x(self, user_id: uuid.UUID, params: Mapping[str, str], state: str):
        if not config.X_CONSUMER_KEY or not config.X_CONSUMER_SECRET:
            raise OAuthFlowError("x_not_configured")
        oauth_token = params["oauth_token"]
        side = await pop_oauth_side_data(self.redis, X_REQUEST_NAMESPACE, oauth_token)
        if not side or not side.get("oauth_token_secret"):
            raise OAuthFlowError("x_session_expired")

        header = oauth1.authorization_header(
            "POST",
            X_ACCESS_TOKEN_URL,
            consumer_key=config.X_CONSUMER_KEY,
            consumer_secret=config.X_CONSUMER_SECRET,
            token=oauth_token,
            token_secret=side["oauth_token_secret"],
            extra_oauth_params={"oauth_verifier": params["oauth_verifier"]},
        )
        async with self._http() as client:
            resp = await client.post(X_ACCESS_TOKEN_URL, headers={"Authorization": header})
        if resp.status_code >= 400:
            logger.error("x_token_exchange_failed", status=resp.status_code, body=response_snippet(resp, 200))
            raise OAuthFlowError("x_token_exchange_failed")

        data = dict(parse_qsl(resp.text))
        if not data.get("oauth_token") or not data.get("oauth_token_secret"):
            raise OAuthFlowError("x_invalid_token_response")

        screen_name = data.get("screen_name")
        x_user_id = data.get("user_id")
        return await self.token_store.upsert(
            user_id,
            Platform.x.value,
            access_token=data["oauth_token"],
            # OAuth 1.0a: the refresh slot carries the token secret
            refresh_token=data["oauth_token_secret"],
            expires_at=None,
            account_identifier=x_user_id or screen_name or "",
            scopes="read write",
            meta={"username": screen_name, "user_id": x_user_id},
        )
