# crosspost/dependencies/services.py
from typing import Dict

from fastapi import Depends

from crosspost import config
from crosspost.dependencies.db import get_session_factory
from crosspost.infrastructure.database import SessionFactory
from crosspost.infrastructure.redis_cache import get_redis
from crosspost.infrastructure.storage import MediaStorage
from crosspost.platforms.base import PlatformClient
from crosspost.platforms.registry import build_platform_clients
from crosspost.services.oauth_connect import OAuthConnectService
from crosspost.services.publish_service import PublishOrchestrator
from crosspost.services.token_store import TokenStore

_storage = MediaStorage()


def get_storage() -> MediaStorage:
    return _storage


def get_token_store(session_factory: SessionFactory = Depends(get_session_factory)) -> TokenStore:
    return TokenStore(session_factory)


def get_platform_clients(
    token_store: TokenStore = Depends(get_token_store),
    storage: MediaStorage = Depends(get_storage),
) -> Dict[str, PlatformClient]:
    return build_platform_clients(token_store, storage, timeout=config.PLATFORM_HTTP_TIMEOUT)


def get_publish_orchestrator(
    session_factory: SessionFactory = Depends(get_session_factory),
    clients: Dict[str, PlatformClient] = Depends(get_platform_clients),
    storage: MediaStorage = Depends(get_storage),
) -> PublishOrchestrator:
    return PublishOrchestrator(session_factory, clients, storage)


def get_oauth_connect_service(
    token_store: TokenStore = Depends(get_token_store),
    redis=Depends(get_redis),
) -> OAuthConnectService:
    return OAuthConnectService(token_store, redis, timeout=config.PLATFORM_HTTP_TIMEOUT)
