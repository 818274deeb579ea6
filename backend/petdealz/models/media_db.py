from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone


class MediaBlob(SQLModel, table=True):
    id: str = Field(primary_key=True)
    filename: Optional[str] = None
    content_type: str
    length: int
    data: bytes
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
