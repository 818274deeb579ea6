import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Optional

from petdealz.errors import MediaNotFound
from petdealz.models.listing import MediaRef

STORAGE_KEY_RE = re.compile(r"^[0-9a-f]{32}(\.[a-z0-9]{1,10})?$")


def new_storage_key(filename: Optional[str]) -> str:
    key = uuid.uuid4().hex
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext.isalnum() and len(ext) <= 10:
            key = f"{key}.{ext}"
    return key


def is_valid_storage_key(storage_key) -> bool:
    return isinstance(storage_key, str) and bool(STORAGE_KEY_RE.match(storage_key))


@dataclass
class ResolvedMedia:
    """Either a URL the client should fetch directly, or a stream to pipe through the app."""

    content_type: str
    url: Optional[str] = None
    stream: Optional[BinaryIO] = None

    @property
    def is_redirect(self) -> bool:
        return self.url is not None


class MediaStore(ABC):
    """
    Uniform contract over blob backends.

    Streaming backends (local disk, database) serve bytes through
    GET /image/{key}; URL backends (S3) hand out object URLs.
    """

    streams_through_app = True

    def __init__(self, public_base_url: str = ""):
        self.public_base_url = public_base_url.rstrip("/")

    @abstractmethod
    def put(self, payload: bytes, filename: Optional[str], content_type: str) -> MediaRef:
        """Store payload under a fresh key. Raises StorageFailure."""

    @abstractmethod
    def resolve(self, storage_key: str) -> ResolvedMedia:
        """Raises MediaNotFound if the key is unknown."""

    @abstractmethod
    def exists(self, storage_key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, ref: MediaRef):
        """Remove the blob behind ref. Missing blobs are ignored."""

    def url_for(self, ref: MediaRef) -> str:
        """Public URL for a stored ref, used when listings are serialized."""
        if not is_valid_storage_key(ref.storage_key):
            raise MediaNotFound(ref.storage_key)
        if self.streams_through_app:
            if not self.exists(ref.storage_key):
                raise MediaNotFound(ref.storage_key)
            return f"{self.public_base_url}/image/{ref.storage_key}"
        return self._object_url(ref.storage_key)

    def _object_url(self, storage_key: str) -> str:
        raise NotImplementedError
