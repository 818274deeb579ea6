from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone


class Listing(SQLModel, table=True):
    id: Optional[str] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: str
    category: str
    location: str
    price: float
    # JSON-encoded list of MediaRef dicts, in upload order
    media: str = Field(default="[]")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
