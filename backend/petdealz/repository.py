import json
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from petdealz.errors import NoMedia, PersistenceFailure, TooManyMedia
from petdealz.models.listing import MediaRef, StoredListing
from petdealz.models.listing_db import Listing as DBListing
from petdealz.models.user_db import User as DBUser

logger = logging.getLogger(__name__)

MAX_MEDIA_PER_LISTING = 6


def _to_stored(row: DBListing) -> StoredListing:
    created_at = row.created_at
    if created_at.tzinfo is None:
        # SQLite drops tzinfo; values are always written as UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    return StoredListing(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description,
        category=row.category,
        location=row.location,
        price=row.price,
        media=[MediaRef.model_validate(m) for m in json.loads(row.media or "[]")],
        created_at=created_at,
    )


class ListingRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(
        self,
        owner_id: int,
        title: str,
        description: str,
        category: str,
        location: str,
        price: float,
        media: List[MediaRef],
    ) -> StoredListing:
        """Insert a listing row, assigning its id and created_at."""
        if not media:
            raise NoMedia()
        if len(media) > MAX_MEDIA_PER_LISTING:
            raise TooManyMedia(len(media), MAX_MEDIA_PER_LISTING)
        if not math.isfinite(price) or price < 0:
            raise PersistenceFailure("Listing price must be a non-negative number")

        row = DBListing(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            description=description,
            category=category,
            location=location,
            price=price,
            media=json.dumps([m.model_dump(by_alias=True) for m in media]),
            created_at=datetime.now(timezone.utc),
        )
        try:
            with Session(self.engine) as session:
                if session.get(DBUser, owner_id) is None:
                    raise PersistenceFailure(f"Owner {owner_id} does not exist")
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_stored(row)
        except SQLAlchemyError as e:
            logger.exception("Failed to insert listing for owner %s", owner_id)
            raise PersistenceFailure("Failed to save listing") from e

    def _query(self, owner_id: Optional[int] = None) -> List[StoredListing]:
        statement = select(DBListing)
        if owner_id is not None:
            statement = statement.where(DBListing.owner_id == owner_id)
        statement = statement.order_by(DBListing.created_at, DBListing.id)
        try:
            with Session(self.engine) as session:
                return [_to_stored(row) for row in session.exec(statement).all()]
        except SQLAlchemyError as e:
            logger.exception("Failed to read listings")
            raise PersistenceFailure("Failed to read listings") from e

    def find_all(self) -> List[StoredListing]:
        return self._query()

    def find_by_owner(self, owner_id: int) -> List[StoredListing]:
        return self._query(owner_id)

    def count(self) -> int:
        try:
            with Session(self.engine) as session:
                return session.exec(select(func.count()).select_from(DBListing)).one()
        except SQLAlchemyError as e:
            raise PersistenceFailure("Failed to count listings") from e
