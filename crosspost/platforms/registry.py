# crosspost/platforms/registry.py
from typing import Dict, Mapping, Optional

import httpx

from crosspost import config
from crosspost.infrastructure.storage import MediaStorage
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient
from crosspost.platforms.facebook_page import FacebookPageClient
from crosspost.platforms.google_business_profile import GoogleBusinessProfileClient
from crosspost.platforms.instagram import InstagramClient
from crosspost.platforms.linkedin import LinkedInClient
from crosspost.platforms.tiktok import TikTokClient
from crosspost.platforms.x import XClient
from crosspost.platforms.youtube import YouTubeClient
from crosspost.services.token_store import TokenStore

PLATFORM_CLIENT_CLASSES = {
    Platform.tiktok: TikTokClient,
    Platform.youtube: YouTubeClient,
    Platform.x: XClient,
    Platform.linkedin: LinkedInClient,
    Platform.instagram: InstagramClient,
    Platform.facebook_page: FacebookPageClient,
    Platform.google_business_profile: GoogleBusinessProfileClient,
}


def build_platform_clients(
    token_store: TokenStore,
    storage: MediaStorage,
    timeout: float = config.PLATFORM_HTTP_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, PlatformClient]:
    return {
        platform.value: cls(token_store, storage, timeout=timeout, transport=transport)
        for platform, cls in PLATFORM_CLIENT_CLASSES.items()
    }


def get_platform_client(clients: Mapping[str, PlatformClient], platform: str) -> Optional[PlatformClient]:
    return clients.get(platform)
