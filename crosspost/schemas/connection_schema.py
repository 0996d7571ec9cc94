# crosspost/schemas/connection_schema.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
import uuid
from datetime import datetime


class ConnectionRead(BaseModel):
    """A connected account as shown to its owner. Tokens never leave the server."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    platform: str
    account_identifier: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Optional[str] = None
    meta: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime


class BusinessLocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location_name: str = Field(alias="locationName")
    title: Optional[str] = None
    store_code: Optional[str] = Field(default=None, alias="storeCode")


class BusinessLocationUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location_name: str = Field(alias="locationName", min_length=1)
