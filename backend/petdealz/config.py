import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

AUTH_MODES = ("token", "session")
MEDIA_BACKENDS = ("local", "database", "s3")


@dataclass
class Settings:
    database_url: str = "sqlite:///petdealz.db"
    secret_key: Optional[str] = None
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    auth_mode: str = "token"
    session_cookie_name: str = "session_id"
    session_ttl_minutes: int = 1440
    media_backend: str = "local"
    media_root: str = "./media"
    s3_bucket: str = "petdealz-media"
    s3_region: str = "us-east-1"
    s3_presign_seconds: int = 0
    public_base_url: str = "http://localhost:8000"
    placeholder_media_url: str = "default.jpg"
    media_upload_workers: int = 4
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            secret_key=os.getenv("SECRET_KEY"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
            auth_mode=os.getenv("AUTH_MODE", cls.auth_mode).lower(),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", cls.session_cookie_name),
            session_ttl_minutes=int(os.getenv("SESSION_TTL_MINUTES", "1440")),
            media_backend=os.getenv("MEDIA_BACKEND", cls.media_backend).lower(),
            media_root=os.getenv("MEDIA_ROOT", cls.media_root),
            s3_bucket=os.getenv("S3_BUCKET", cls.s3_bucket),
            s3_region=os.getenv("S3_REGION", cls.s3_region),
            s3_presign_seconds=int(os.getenv("S3_PRESIGN_SECONDS", "0")),
            public_base_url=os.getenv("PUBLIC_BASE_URL", cls.public_base_url),
            placeholder_media_url=os.getenv("PLACEHOLDER_MEDIA_URL", cls.placeholder_media_url),
            media_upload_workers=int(os.getenv("MEDIA_UPLOAD_WORKERS", "4")),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )

    def validate(self):
        """Raise RuntimeError for settings the service cannot start with."""
        if not self.secret_key:
            raise RuntimeError("SECRET_KEY is not set")
        if self.auth_mode not in AUTH_MODES:
            raise RuntimeError(f"Unknown AUTH_MODE {self.auth_mode!r}, expected one of {AUTH_MODES}")
        if self.media_backend not in MEDIA_BACKENDS:
            raise RuntimeError(f"Unknown MEDIA_BACKEND {self.media_backend!r}, expected one of {MEDIA_BACKENDS}")
        if self.media_upload_workers < 1:
            raise RuntimeError("MEDIA_UPLOAD_WORKERS must be at least 1")


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
