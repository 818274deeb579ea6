from sqlalchemy.engine import Engine

from petdealz.config import Settings
from petdealz.storage.base import MediaStore
from petdealz.storage.database import DatabaseMediaStore
from petdealz.storage.local import LocalMediaStore
from petdealz.storage.s3 import S3MediaStore


def build_media_store(settings: Settings, engine: Engine) -> MediaStore:
    if settings.media_backend == "local":
        return LocalMediaStore(settings.media_root, public_base_url=settings.public_base_url)
    if settings.media_backend == "database":
        return DatabaseMediaStore(engine, public_base_url=settings.public_base_url)
    if settings.media_backend == "s3":
        return S3MediaStore(
            settings.s3_bucket,
            settings.s3_region,
            presign_seconds=settings.s3_presign_seconds,
        )
    raise RuntimeError(f"Unknown MEDIA_BACKEND {settings.media_backend!r}")
