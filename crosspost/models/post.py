# crosspost/models/post.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
import uuid
from datetime import datetime
from sqlalchemy import DateTime, String, JSON, Text

from crosspost.models.enums import PostJobStatus, ResultStatus
from crosspost.UAA.utils import utcnow


class MediaItem(SQLModel, table=True):
    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    storage_location: str  # url or path owned by the storage collaborator
    original_filename: str
    mime_type: str
    size_bytes: int
    base_caption: str = Field(sa_column=Column(Text, nullable=False))
    per_platform_overrides: Optional[dict] = Field(sa_column=Column(JSON), default=None)
    meta: Optional[dict] = Field(sa_column=Column(JSON), default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class PostJob(SQLModel, table=True):
    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    media_item_id: uuid.UUID = Field(foreign_key="mediaitem.id", index=True)
    status: str = Field(sa_column=Column(String, nullable=False, default=PostJobStatus.pending.value))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class PostJobResult(SQLModel, table=True):
    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    post_job_id: uuid.UUID = Field(foreign_key="postjob.id", index=True)
    platform: str = Field(sa_column=Column(String, nullable=False))
    # survives as history after the connection is removed
    connection_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="connection.id", ondelete="SET NULL", index=True
    )
    status: str = Field(sa_column=Column(String, nullable=False, default=ResultStatus.pending.value))
    external_post_id: Optional[str] = Field(default=None)
    error_code: Optional[str] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
