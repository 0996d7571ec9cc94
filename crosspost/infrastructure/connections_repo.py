# crosspost/infrastructure/connections_repo.py
from typing import Optional, List
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from crosspost.models.connection import Connection
import uuid
from datetime import datetime

from crosspost.UAA.utils import utcnow


class ConnectionsRepository:
    """
    Repository for Connection entity.
    All methods are async and expect an AsyncSession to be injected from the outside.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, conn: Connection) -> Connection:
        self.session.add(conn)
        await self.session.commit()
        await self.session.refresh(conn)
        return conn

    async def get_by_id(self, id: uuid.UUID) -> Optional[Connection]:
        q = select(Connection).where(Connection.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_user_and_platform(self, user_id: uuid.UUID, platform: str) -> Optional[Connection]:
        q = select(Connection).where(
            Connection.user_id == user_id,
            Connection.platform == platform
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_user(self, user_id: uuid.UUID) -> List[Connection]:
        q = select(Connection).where(Connection.user_id == user_id).order_by(Connection.created_at)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def update_tokens(
        self,
        conn: Connection,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: Optional[datetime],
        meta: Optional[dict] = None
    ) -> Connection:
        """
        Update token fields and optionally meta. Commits and returns refreshed instance.
        """
        conn.access_token_enc = access_token_enc
        conn.refresh_token_enc = refresh_token_enc
        conn.expires_at = expires_at
        if meta is not None:
            conn.meta = meta
        conn.updated_at = utcnow()
        self.session.add(conn)
        await self.session.commit()
        await self.session.refresh(conn)
        return conn

    async def update_meta(self, conn: Connection, meta: dict) -> Connection:
        # reassign so the JSON column is flagged dirty
        conn.meta = dict(meta)
        conn.updated_at = utcnow()
        self.session.add(conn)
        await self.session.commit()
        await self.session.refresh(conn)
        return conn

    async def delete_by_user_and_platform(self, user_id: uuid.UUID, platform: str) -> int:
        conn = await self.get_by_user_and_platform(user_id, platform)
        if not conn:
            return 0
        await self.session.delete(conn)
        await self.session.commit()
        return 1
