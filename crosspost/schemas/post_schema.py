# crosspost/schemas/post_schema.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
import uuid
from datetime import datetime


class PostJobResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    platform: str
    connection_id: Optional[uuid.UUID] = None
    status: str
    external_post_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PostJobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    media_item_id: uuid.UUID
    status: str
    created_at: datetime
    updated_at: datetime


class PostJobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_job: PostJobRead = Field(alias="postJob")
    results: List[PostJobResultRead]


class PublishFromMediaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    media_item_id: uuid.UUID = Field(alias="mediaItemId")
    base_caption: str = Field(alias="baseCaption", min_length=1)
    location: Optional[str] = None
    per_platform_overrides: Optional[Dict[str, str]] = Field(default=None, alias="perPlatformOverrides")
