from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaRef(BaseModel):
    """Backend-specific handle for one stored media blob."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    storage_key: Optional[str] = Field(default=None, alias="storageKey")
    content_type: str = Field(default="application/octet-stream", alias="contentType")
    original_name: Optional[str] = Field(default=None, alias="originalName")


@dataclass
class MediaUpload:
    filename: Optional[str]
    content_type: str
    payload: bytes


class ListingSubmission(BaseModel):
    title: str
    description: str
    category: str
    location: str
    price: float
    media: List[MediaUpload] = []


class StoredListing(BaseModel):
    id: str
    owner_id: int
    title: str
    description: str
    category: str
    location: str
    price: float
    media: List[MediaRef]
    created_at: datetime
