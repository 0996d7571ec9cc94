# crosspost/routers/user_router.py
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from crosspost.dependencies.auth import get_current_user
from crosspost.dependencies.db import get_session_dep
from crosspost.UAA.repository import UserRepository
from crosspost.UAA.schemas import CaptionSettingsUpdate, UserRead

router = APIRouter(prefix="/users", tags=["users"])


def _clean(value):
    value = (value or "").strip()
    return value or None


@router.get("/me", response_model=UserRead)
async def me(current_user=Depends(get_current_user)):
    return {
        "id": current_user.id,
        "email": current_user.email,
        "username": current_user.username,
        "is_active": current_user.is_active,
        "company_website": current_user.company_website,
        "default_hashtags": current_user.default_hashtags,
        "created_at": current_user.created_at,
    }


@router.patch("/me/settings", response_model=UserRead)
async def update_settings(
    payload: CaptionSettingsUpdate,
    current_user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session_dep),
):
    """Caption footer settings appended to every published caption."""
    repo = UserRepository(session)
    user = await repo.get_by_id(current_user.id)
    user = await repo.update_caption_settings(
        user,
        company_website=_clean(payload.company_website),
        default_hashtags=_clean(payload.default_hashtags),
    )
    return await me(user)
