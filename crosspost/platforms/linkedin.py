# crosspost/platforms/linkedin.py
from crosspost.models.enums import Platform
from crosspost.platforms.base import PlatformClient, PublishContext, PublishResult
from crosspost.platforms.errors import PlatformError


class LinkedInClient(PlatformClient):
    """Connections are stored (organization pages only) but publishing is not available yet."""

    platform = Platform.linkedin.value
    error_prefix = "LINKEDIN"

    async def publish_video(self, ctx: PublishContext) -> PublishResult:
        raise PlatformError("NOT_IMPLEMENTED", "LinkedIn publishing is not implemented")
