# crosspost/routers/platforms_router.py
from typing import List

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from crosspost import config
from crosspost.dependencies.auth import get_current_user
from crosspost.dependencies.services import (
    get_oauth_connect_service,
    get_platform_clients,
    get_token_store,
)
from crosspost.models.enums import Platform
from crosspost.platforms.errors import PlatformError
from crosspost.schemas.connection_schema import BusinessLocation, BusinessLocationUpdate, ConnectionRead
from crosspost.services.oauth_connect import OAuthConnectService, OAuthFlowError
from crosspost.services.token_store import TokenStore

logger = structlog.get_logger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["oauth"])
connections_router = APIRouter(prefix="/connections", tags=["connections"])

PLATFORM_VALUES = {p.value for p in Platform}


def _connections_redirect(**params) -> RedirectResponse:
    url = httpx.URL(f"{config.APP_BASE_URL.rstrip('/')}/connections").copy_merge_params(params)
    return RedirectResponse(str(url), status_code=status.HTTP_302_FOUND)


@auth_router.get("/{platform}/start")
async def connect_start(
    platform: str,
    current_user=Depends(get_current_user),
    service: OAuthConnectService = Depends(get_oauth_connect_service),
):
    if platform not in PLATFORM_VALUES:
        raise HTTPException(status_code=404, detail="Unknown platform")
    try:
        url = await service.authorization_url(platform, current_user.id)
    except OAuthFlowError as exc:
        logger.error("oauth_connect_start_failed", platform=platform, code=exc.code)
        if exc.code.endswith("_not_configured"):
            raise HTTPException(status_code=500, detail=f"{platform} OAuth not configured")
        raise HTTPException(status_code=502, detail={"code": exc.code, "message": "Could not start authorization"})
    return {"auth_url": url}


@auth_router.get("/{platform}/callback")
async def connect_callback(
    platform: str,
    request: Request,
    service: OAuthConnectService = Depends(get_oauth_connect_service),
):
    # the browser always lands back on the connections page
    try:
        await service.complete(platform, dict(request.query_params))
    except OAuthFlowError as exc:
        logger.warning("oauth_connect_failed", platform=platform, code=exc.code)
        return _connections_redirect(error=exc.code)
    except Exception as exc:
        logger.exception("oauth_connect_unexpected_error", platform=platform, error=str(exc))
        return _connections_redirect(error=f"{platform}_unexpected_error")
    return _connections_redirect(connected=platform)


@connections_router.get("", response_model=List[ConnectionRead])
async def list_connections(current_user=Depends(get_current_user), token_store: TokenStore = Depends(get_token_store)):
    return await token_store.list_for_user(current_user.id)


@connections_router.delete("/{platform}")
async def disconnect(
    platform: str,
    current_user=Depends(get_current_user),
    token_store: TokenStore = Depends(get_token_store),
):
    if platform not in PLATFORM_VALUES:
        raise HTTPException(status_code=400, detail="Unknown platform")
    deleted = await token_store.delete(current_user.id, platform)
    return {"ok": True, "deleted": deleted}


@connections_router.get("/google_business_profile/locations", response_model=List[BusinessLocation])
async def list_business_locations(
    current_user=Depends(get_current_user),
    token_store: TokenStore = Depends(get_token_store),
    clients=Depends(get_platform_clients),
):
    conn = await token_store.get(current_user.id, Platform.google_business_profile.value)
    if conn is None:
        raise HTTPException(status_code=404, detail="Google Business Profile is not connected")
    client = clients[Platform.google_business_profile.value]
    try:
        return await client.list_locations(conn)
    except PlatformError as exc:
        logger.warning("gbp_locations_fetch_failed", code=exc.code)
        raise HTTPException(status_code=502, detail={"code": exc.code, "message": exc.message})


@connections_router.put("/google_business_profile/location", response_model=ConnectionRead)
async def set_business_location(
    payload: BusinessLocationUpdate,
    current_user=Depends(get_current_user),
    token_store: TokenStore = Depends(get_token_store),
):
    conn = await token_store.get(current_user.id, Platform.google_business_profile.value)
    if conn is None:
        raise HTTPException(status_code=404, detail="Google Business Profile is not connected")
    updated = await token_store.update_meta(conn.id, {"locationName": payload.location_name.strip()})
    logger.info("gbp_location_set", connection_id=str(conn.id))
    return updated
