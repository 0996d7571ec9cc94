# crosspost/services/publish_service.py
"""
Fan-out publishing of one media item to every connected platform.

One PostJob per publish request, one PostJobResult per connection. Results are
written as ``pending`` before any network call, then each platform runs in its
own task and settles its own row. The job status is computed only after every
task has finished.
"""
import asyncio
import uuid
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import structlog

from crosspost.infrastructure.connections_repo import ConnectionsRepository
from crosspost.infrastructure.database import SessionFactory
from crosspost.infrastructure.posts_repo import MediaItemRepository, PostJobRepository
from crosspost.infrastructure.storage import MediaStorage, SavedFile
from crosspost.models.connection import Connection
from crosspost.models.enums import PostJobStatus, ResultStatus
from crosspost.models.post import MediaItem, PostJob, PostJobResult
from crosspost.platforms.base import PlatformClient, PublishContext
from crosspost.platforms.errors import PlatformError
from crosspost.platforms.registry import get_platform_client
from crosspost.UAA.models import User
from crosspost.UAA.repository import UserRepository

logger = structlog.get_logger(__name__)

GENERIC_PUBLISH_ERROR = "Failed to publish to platform."


class PublishPreconditionError(Exception):
    """Caller-fixable problems detected before any job row exists."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class PostJobWithResults:
    post_job: PostJob
    results: List[PostJobResult]


def build_caption_with_footer(base_caption: str, user: User) -> str:
    parts = [(base_caption or "").strip()]
    website = (user.company_website or "").strip()
    if website:
        parts.append(f"For more info visit {website}")
    hashtags = (user.default_hashtags or "").strip()
    if hashtags:
        parts.append(hashtags)
    return "\n\n".join(parts)


def resolve_overrides(
    explicit: Optional[Mapping[str, str]],
    stored: Optional[Mapping[str, str]],
) -> Dict[str, str]:
    """A non-empty explicit map wins over the media item's stored one."""
    if explicit:
        return dict(explicit)
    if stored:
        return dict(stored)
    return {}


def compute_job_status(results: List[PostJobResult]) -> PostJobStatus:
    statuses = [r.status for r in results]
    if ResultStatus.pending.value in statuses:
        return PostJobStatus.in_progress
    if ResultStatus.success.value in statuses:
        return PostJobStatus.completed
    return PostJobStatus.failed


class PublishOrchestrator:
    def __init__(
        self,
        session_factory: SessionFactory,
        clients: Mapping[str, PlatformClient],
        storage: MediaStorage,
    ):
        self.session_factory = session_factory
        self.clients = clients
        self.storage = storage

    async def create_and_run(
        self,
        user_id: uuid.UUID,
        saved: SavedFile,
        base_caption: str,
        location: Optional[str] = None,
        per_platform_overrides: Optional[Mapping[str, str]] = None,
    ) -> PostJobWithResults:
        """Record a freshly uploaded file as a MediaItem and publish it."""
        meta = {"location": {"description": location}} if location else None
        item = MediaItem(
            user_id=user_id,
            storage_location=saved.location,
            original_filename=saved.original_filename,
            mime_type=saved.mime_type,
            size_bytes=saved.size_bytes,
            base_caption=base_caption,
            per_platform_overrides=dict(per_platform_overrides) if per_platform_overrides else None,
            meta=meta,
        )
        async with self.session_factory() as session:
            item = await MediaItemRepository(session).create(item)
        logger.info("media_item_created", media_item_id=str(item.id), user_id=str(user_id))
        return await self.run_for_media_item(user_id, item, base_caption, per_platform_overrides)

    async def run_for_existing_media(
        self,
        user_id: uuid.UUID,
        media_item_id: uuid.UUID,
        base_caption: str,
        location: Optional[str] = None,
        per_platform_overrides: Optional[Mapping[str, str]] = None,
    ) -> PostJobWithResults:
        async with self.session_factory() as session:
            repo = MediaItemRepository(session)
            item = await repo.get_for_user(media_item_id, user_id)
            if not item:
                raise PublishPreconditionError("MEDIA_ITEM_NOT_FOUND", "Media item not found")
            if location:
                item = await repo.update_meta(item, {**(item.meta or {}), "location": {"description": location}})
        return await self.run_for_media_item(user_id, item, base_caption, per_platform_overrides)

    async def run_for_media_item(
        self,
        user_id: uuid.UUID,
        media_item: MediaItem,
        base_caption: str,
        per_platform_overrides: Optional[Mapping[str, str]] = None,
    ) -> PostJobWithResults:
        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_id(user_id)
            if not user:
                raise PublishPreconditionError("USER_NOT_FOUND", "User not found")

            connections = await ConnectionsRepository(session).list_by_user(user_id)
            if not connections:
                raise PublishPreconditionError(
                    "NO_CONNECTIONS", "Connect at least one platform before creating a post."
                )

            full_base_caption = build_caption_with_footer(base_caption, user)
            overrides = resolve_overrides(per_platform_overrides, media_item.per_platform_overrides)

            job = PostJob(user_id=user_id, media_item_id=media_item.id, status=PostJobStatus.pending.value)
            pending = [
                PostJobResult(
                    post_job_id=job.id,
                    platform=conn.platform,
                    connection_id=conn.id,
                    status=ResultStatus.pending.value,
                )
                for conn in connections
            ]
            # every result row exists before the first network call
            job = await PostJobRepository(session).create_job_with_results(job, pending)

        log = logger.bind(post_job_id=str(job.id), user_id=str(user_id))
        log.info("post_job_started", platforms=[c.platform for c in connections])

        tasks = []
        for conn, result in zip(connections, pending):
            override = overrides.get(conn.platform)
            caption = build_caption_with_footer(override, user) if override else full_base_caption
            tasks.append(self._publish_one(user, conn, media_item, caption, result.id))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for conn, outcome in zip(connections, outcomes):
            if isinstance(outcome, BaseException):
                # the row could not be settled and stays pending
                log.error("publish_result_not_settled", platform=conn.platform, error=repr(outcome))

        async with self.session_factory() as session:
            repo = PostJobRepository(session)
            results = await repo.list_results(job.id)
            status = compute_job_status(results)
            job = await repo.set_job_status(job.id, status.value)
        log.info(
            "post_job_finished",
            status=status.value,
            succeeded=sum(1 for r in results if r.status == ResultStatus.success.value),
            total=len(results),
        )

        if status == PostJobStatus.completed:
            await self._cleanup_media(media_item, log)

        return PostJobWithResults(post_job=job, results=results)

    async def _publish_one(
        self,
        user: User,
        connection: Connection,
        media_item: MediaItem,
        caption: str,
        result_id: uuid.UUID,
    ) -> PostJobResult:
        log = logger.bind(platform=connection.platform, result_id=str(result_id))
        client = get_platform_client(self.clients, connection.platform)

        if client is None:
            log.warning("platform_client_not_found")
            return await self._settle(
                result_id, ResultStatus.failed,
                error_code="CLIENT_NOT_FOUND",
                error_message="No client configured for this platform.",
            )

        try:
            published = await client.publish_video(
                PublishContext(user=user, connection=connection, media_item=media_item, caption=caption)
            )
        except PlatformError as e:
            log.warning("publish_result_failed", code=e.code, error=e.message)
            return await self._settle(result_id, ResultStatus.failed, error_code=e.code, error_message=e.message)
        except Exception as e:
            log.exception("publish_result_unexpected_error", error=str(e))
            return await self._settle(
                result_id, ResultStatus.failed,
                error_code="PUBLISH_FAILED",
                error_message=str(e) or GENERIC_PUBLISH_ERROR,
            )

        log.info("publish_result_succeeded", external_post_id=published.external_post_id)
        return await self._settle(result_id, ResultStatus.success, external_post_id=published.external_post_id)

    async def _settle(self, result_id: uuid.UUID, status: ResultStatus, **fields) -> PostJobResult:
        async with self.session_factory() as session:
            return await PostJobRepository(session).complete_result(result_id, status, **fields)

    async def _cleanup_media(self, media_item: MediaItem, log) -> None:
        # status is already persisted; nothing here may change it
        try:
            await self.storage.delete(media_item.storage_location)
        except Exception as e:
            log.warning("media_cleanup_failed", location=media_item.storage_location, error=str(e))

    async def get_job(self, user_id: uuid.UUID, job_id: uuid.UUID) -> Optional[PostJobWithResults]:
        async with self.session_factory() as session:
            repo = PostJobRepository(session)
            job = await repo.get_job_for_user(job_id, user_id)
            if not job:
                return None
            return PostJobWithResults(post_job=job, results=await repo.list_results(job.id))
