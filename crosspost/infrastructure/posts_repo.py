# crosspost/infrastructure/posts_repo.py
from typing import Optional, List
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from crosspost.models.post import MediaItem, PostJob, PostJobResult
from crosspost.models.enums import ResultStatus
import uuid

from crosspost.UAA.utils import utcnow


class MediaItemRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, item: MediaItem) -> MediaItem:
        self.session.add(item)
        await self.session.commit()
        await self.session.refresh(item)
        return item

    async def get_for_user(self, item_id: uuid.UUID, user_id: uuid.UUID) -> Optional[MediaItem]:
        q = select(MediaItem).where(MediaItem.id == item_id, MediaItem.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def update_meta(self, item: MediaItem, meta: dict) -> MediaItem:
        item.meta = dict(meta)
        self.session.add(item)
        await self.session.commit()
        await self.session.refresh(item)
        return item


class PostJobRepository:
    """
    Job and per-platform result rows. Result rows are only ever written by the
    publish orchestrator.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_job_with_results(self, job: PostJob, results: List[PostJobResult]) -> PostJob:
        """Persist the job and all of its pending results in one commit."""
        self.session.add(job)
        for result in results:
            self.session.add(result)
        await self.session.commit()
        await self.session.refresh(job)
        return job

    async def get_job_for_user(self, job_id: uuid.UUID, user_id: uuid.UUID) -> Optional[PostJob]:
        q = select(PostJob).where(PostJob.id == job_id, PostJob.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_results(self, job_id: uuid.UUID) -> List[PostJobResult]:
        q = select(PostJobResult).where(PostJobResult.post_job_id == job_id).order_by(PostJobResult.created_at)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def complete_result(
        self,
        result_id: uuid.UUID,
        status: ResultStatus,
        external_post_id: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> PostJobResult:
        result = await self.session.get(PostJobResult, result_id)
        if result is None:
            raise LookupError(f"post job result {result_id} not found")
        result.status = status.value
        result.external_post_id = external_post_id
        result.error_code = error_code
        result.error_message = error_message
        result.updated_at = utcnow()
        self.session.add(result)
        await self.session.commit()
        await self.session.refresh(result)
        return result

    async def set_job_status(self, job_id: uuid.UUID, status: str) -> PostJob:
        job = await self.session.get(PostJob, job_id)
        if job is None:
            raise LookupError(f"post job {job_id} not found")
        job.status = status
        job.updated_at = utcnow()
        self.session.add(job)
        await self.session.commit()
        await self.session.refresh(job)
        return job
