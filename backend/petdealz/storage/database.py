from io import BytesIO
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from petdealz.errors import MediaNotFound, StorageFailure
from petdealz.models.listing import MediaRef
from petdealz.models.media_db import MediaBlob
from petdealz.storage.base import MediaStore, ResolvedMedia, is_valid_storage_key, new_storage_key


class DatabaseMediaStore(MediaStore):
    """Keeps blobs as rows in the application database and streams them back on read."""

    def __init__(self, engine: Engine, public_base_url: str = ""):
        super().__init__(public_base_url)
        self.engine = engine

    def put(self, payload: bytes, filename: Optional[str], content_type: str) -> MediaRef:
        storage_key = new_storage_key(filename)
        blob = MediaBlob(
            id=storage_key,
            filename=filename,
            content_type=content_type,
            length=len(payload),
            data=payload,
        )
        try:
            with Session(self.engine) as session:
                session.add(blob)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to store media in database: {e}") from e
        return MediaRef(storage_key=storage_key, content_type=content_type, original_name=filename)

    def exists(self, storage_key: str) -> bool:
        if not is_valid_storage_key(storage_key):
            return False
        try:
            with Session(self.engine) as session:
                found = session.exec(select(MediaBlob.id).where(MediaBlob.id == storage_key)).first()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to look up media: {e}") from e
        return found is not None

    def resolve(self, storage_key: str) -> ResolvedMedia:
        if not is_valid_storage_key(storage_key):
            raise MediaNotFound(storage_key)
        try:
            with Session(self.engine) as session:
                blob = session.get(MediaBlob, storage_key)
                if blob is None:
                    raise MediaNotFound(storage_key)
                return ResolvedMedia(content_type=blob.content_type, stream=BytesIO(blob.data))
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to read media from database: {e}") from e

    def delete(self, ref: MediaRef):
        if not is_valid_storage_key(ref.storage_key):
            return
        try:
            with Session(self.engine) as session:
                blob = session.get(MediaBlob, ref.storage_key)
                if blob is not None:
                    session.delete(blob)
                    session.commit()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Failed to delete media from database: {e}") from e
