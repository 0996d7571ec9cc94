# crosspost/models/connection.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import DateTime, String, JSON, UniqueConstraint

from crosspost.UAA.utils import decrypt_token, utcnow


class Connection(SQLModel, table=True):
    """
    One authorized link between a user and one third-party account.
    Tokens are stored Fernet-encrypted; read them through ``access_token`` /
    ``refresh_token``. For X the refresh slot holds the OAuth 1.0a token secret.
    """
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_connection_user_platform"),)

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    platform: str = Field(sa_column=Column(String, index=True, nullable=False))
    account_identifier: Optional[str] = Field(default=None)
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))  # None means non-expiring
    scopes: Optional[str] = None
    meta: Optional[dict] = Field(sa_column=Column(JSON), default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    @property
    def access_token(self) -> Optional[str]:
        return decrypt_token(self.access_token_enc)

    @property
    def refresh_token(self) -> Optional[str]:
        return decrypt_token(self.refresh_token_enc)
