# crosspost/UAA/schemas.py
from pydantic import BaseModel, EmailStr
from typing import Optional
import uuid
from datetime import datetime


class UserRead(BaseModel):
    id: uuid.UUID
    email: EmailStr
    username: str
    is_active: bool
    company_website: Optional[str] = None
    default_hashtags: Optional[str] = None
    created_at: datetime


class CaptionSettingsUpdate(BaseModel):
    company_website: Optional[str] = None
    default_hashtags: Optional[str] = None
