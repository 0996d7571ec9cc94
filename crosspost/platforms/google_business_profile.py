# crosspost/platforms/google_business_profile.py
"""
Google Business Profile photos (the ones shown on Google Maps).

The target location comes from ``connection.meta["locationName"]``: either the
full ``accounts/{a}/locations/{l}`` resource name or a store code, which is
resolved by searching every account the user can see.
"""
from datetime import timedelta
from typing import List
from urllib.parse import quote

import structlog

from crosspost import config
from crosspost.models.connection import Connection
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient, PublishContext, PublishResult, is_image, response_snippet
from crosspost.UAA.utils import utcnow

logger = structlog.get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
ACCOUNT_MANAGEMENT_BASE = "https://mybusinessaccountmanagement.googleapis.com/v1"
BUSINESS_INFO_BASE = "https://mybusinessbusinessinformation.googleapis.com/v1"
MY_BUSINESS_BASE = "https://mybusiness.googleapis.com"


class GoogleBusinessProfileClient(PlatformClient):
    platform = Platform.google_business_profile.value
    error_prefix = "GBP"

    async def refresh_token(self, connection: Connection) -> Connection:
        refresh_token = connection.refresh_token
        if not refresh_token:
            raise self._error("NO_REFRESH_TOKEN", "No refresh token available for Google Business Profile")
        if not config.GOOGLE_GBP_CLIENT_ID or not config.GOOGLE_GBP_CLIENT_SECRET:
            raise self._error("NOT_CONFIGURED", "Missing Google Business Profile OAuth credentials")

        async with self._http() as client:
            resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": config.GOOGLE_GBP_CLIENT_ID,
                    "client_secret": config.GOOGLE_GBP_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        if resp.status_code != 200:
            logger.error("gbp_token_refresh_failed", status=resp.status_code, body=response_snippet(resp, 200))
            raise self._error("TOKEN_REFRESH_FAILED", "Failed to refresh Google Business Profile access token")

        data = self._json(resp, "TOKEN_REFRESH_FAILED", "Google token refresh")
        expires_at = utcnow() + timedelta(seconds=int(data.get("expires_in", 3600)))
        updated = await self.token_store.update_tokens(connection.id, data["access_token"], expires_at)
        logger.info("gbp_token_refreshed", connection_id=str(connection.id))
        return updated

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        media_item = ctx.media_item
        connection = await self._ensure_fresh(ctx.connection)
        access_token = self._require_access_token(connection)

        photo = is_image(media_item) or not media_item.mime_type
        if not photo:
            logger.warning(
                "gbp_non_image_upload",
                mime_type=media_item.mime_type,
                original_filename=media_item.original_filename,
            )

        location_name = await self.resolve_location_name(connection, access_token)
        data = await self._read_media(media_item, "FETCH_MEDIA_FAILED")
        headers = {"Authorization": f"Bearer {access_token}"}

        async with self._http() as client:
            # 1. reserve a data ref
            start_resp = await client.post(
                f"{MY_BUSINESS_BASE}/v4/{location_name}/media:startUpload",
                headers=headers,
                json={},
            )
            if start_resp.status_code >= 400:
                logger.error("gbp_start_upload_failed", status=start_resp.status_code, body=response_snippet(start_resp))
                raise self._error("START_UPLOAD_FAILED", f"Failed to start Business Profile upload: {response_snippet(start_resp)}")
            data_ref = self._json(start_resp, "START_UPLOAD_FAILED", "Business Profile upload start").get("resourceName")
            if not data_ref:
                raise self._error("START_UPLOAD_FAILED", "Business Profile returned no upload resource name")

            # 2. raw bytes to the data ref
            upload_resp = await client.post(
                f"{MY_BUSINESS_BASE}/upload/v1/media/{quote(data_ref, safe='/')}",
                params={"upload_type": "media"},
                headers={**headers, "Content-Type": media_item.mime_type or "application/octet-stream"},
                content=data,
            )
            if upload_resp.status_code >= 400:
                logger.error("gbp_upload_bytes_failed", status=upload_resp.status_code)
                raise self._error("UPLOAD_BYTES_FAILED", f"Failed to upload media bytes ({upload_resp.status_code})")

            # 3. media entity pointing at the uploaded bytes
            create_resp = await client.post(
                f"{MY_BUSINESS_BASE}/v4/{location_name}/media",
                headers=headers,
                json={
                    "mediaFormat": "PHOTO" if photo else "VIDEO",
                    "locationAssociation": {"category": "COVER" if photo else "ADDITIONAL"},
                    "dataRef": {"resourceName": data_ref},
                },
            )
            if create_resp.status_code >= 400:
                logger.error("gbp_create_media_failed", status=create_resp.status_code, body=response_snippet(create_resp))
                raise self._error(
                    "CREATE_MEDIA_FAILED",
                    f"Failed to create media item in Google Business Profile: {response_snippet(create_resp)}",
                )

        media_name = self._json(create_resp, "CREATE_MEDIA_FAILED", "Business Profile media creation").get("name")
        logger.info("gbp_media_created", media_name=media_name, location_name=location_name)
        return PublishResult(external_post_id=media_name)

    async def resolve_location_name(self, connection: Connection, access_token: str) -> str:
        raw = (connection.meta or {}).get("locationName")
        if not isinstance(raw, str) or not raw.strip():
            raise self._error(
                "NO_LOCATION_NAME",
                "Google Business Profile location is not configured. Set it from the Connections page.",
            )
        identifier = raw.strip()
        if identifier.startswith("accounts/"):
            return identifier
        return await self._resolve_store_code(access_token, identifier)

    async def _list_accounts(self, client, access_token: str) -> List[str]:
        resp = await client.get(
            f"{ACCOUNT_MANAGEMENT_BASE}/accounts",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if resp.status_code >= 400:
            logger.error("gbp_accounts_list_failed", status=resp.status_code)
            raise self._error("ACCOUNTS_LIST_FAILED", "Failed to list Google Business Profile accounts")
        accounts = self._json(resp, "ACCOUNTS_LIST_FAILED", "Business Profile account listing").get("accounts") or []
        return [a["name"] for a in accounts if a.get("name")]

    async def _resolve_store_code(self, access_token: str, store_code: str) -> str:
        candidates = []
        async with self._http() as client:
            for account_name in await self._list_accounts(client, access_token):
                resp = await client.get(
                    f"{BUSINESS_INFO_BASE}/{account_name}/locations",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params={"readMask": "name,storeCode,title", "filter": f'storeCode="{store_code}"'},
                )
                if resp.status_code >= 400:
                    logger.warning("gbp_locations_list_failed", account_name=account_name, status=resp.status_code)
                    continue
                try:
                    found = resp.json().get("locations") or []
                except (ValueError, AttributeError):
                    logger.warning("gbp_locations_unreadable", account_name=account_name)
                    continue
                for loc in found:
                    name = loc.get("name")
                    if not name or loc.get("storeCode") != store_code:
                        continue
                    location_id = name[len("locations/"):] if name.startswith("locations/") else name
                    candidates.append(f"{account_name}/locations/{location_id}")

        if not candidates:
            raise self._error(
                "STORE_CODE_NOT_FOUND",
                "Could not find a Google Business Profile location for the given store code.",
            )
        if len(candidates) > 1:
            raise self._error(
                "STORE_CODE_NOT_UNIQUE",
                "Store code matched multiple Google Business Profile locations. Please specify a more precise identifier.",
            )
        return candidates[0]

    async def list_locations(self, connection: Connection) -> List[dict]:
        """Every location across the user's accounts, for the location picker."""
        connection = await self._ensure_fresh(connection)
        access_token = self._require_access_token(connection)
        locations = []
        async with self._http() as client:
            for account_name in await self._list_accounts(client, access_token):
                resp = await client.get(
                    f"{BUSINESS_INFO_BASE}/{account_name}/locations",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params={"readMask": "name,storeCode,title", "pageSize": 100},
                )
                if resp.status_code >= 400:
                    logger.warning("gbp_locations_list_failed", account_name=account_name, status=resp.status_code)
                    continue
                try:
                    found = resp.json().get("locations") or []
                except (ValueError, AttributeError):
                    logger.warning("gbp_locations_unreadable", account_name=account_name)
                    continue
                for loc in found:
                    name = loc.get("name") or ""
                    location_id = name[len("locations/"):] if name.startswith("locations/") else name
                    locations.append({
                        "locationName": f"{account_name}/locations/{location_id}",
                        "title": loc.get("title"),
                        "storeCode": loc.get("storeCode"),
                    })
        return locations
