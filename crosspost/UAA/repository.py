# crosspost/UAA/repository.py
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from .models import User
from typing import Optional
import uuid


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        q = select(User).where(User.id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_caption_settings(
        self,
        user: User,
        company_website: Optional[str],
        default_hashtags: Optional[str],
    ) -> User:
        user.company_website = company_website
        user.default_hashtags = default_hashtags
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user
