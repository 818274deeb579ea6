import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from petdealz.errors import MediaNotFound, StorageFailure
from petdealz.models.listing import MediaRef
from petdealz.storage.base import MediaStore, ResolvedMedia, is_valid_storage_key, new_storage_key

logger = logging.getLogger(__name__)


class LocalMediaStore(MediaStore):
    """
    Stores each blob as {root}/{key} with a {key}.meta.json sidecar
    holding the content type and original filename.
    """

    def __init__(self, root, public_base_url: str = ""):
        super().__init__(public_base_url)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _paths(self, storage_key: str):
        if not is_valid_storage_key(storage_key):
            raise MediaNotFound(storage_key)
        return self.root / storage_key, self.root / f"{storage_key}.meta.json"

    def _write_atomic(self, path: Path, data: bytes):
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def put(self, payload: bytes, filename: Optional[str], content_type: str) -> MediaRef:
        storage_key = new_storage_key(filename)
        data_path, meta_path = self._paths(storage_key)
        meta = {"contentType": content_type, "originalName": filename, "length": len(payload)}
        try:
            self._write_atomic(data_path, payload)
            self._write_atomic(meta_path, json.dumps(meta).encode("utf-8"))
        except OSError as e:
            data_path.unlink(missing_ok=True)
            raise StorageFailure(f"Failed to write media to disk: {e}") from e
        return MediaRef(storage_key=storage_key, content_type=content_type, original_name=filename)

    def exists(self, storage_key: str) -> bool:
        if not is_valid_storage_key(storage_key):
            return False
        return (self.root / storage_key).is_file()

    def resolve(self, storage_key: str) -> ResolvedMedia:
        data_path, meta_path = self._paths(storage_key)
        try:
            stream = open(data_path, "rb")
        except FileNotFoundError:
            raise MediaNotFound(storage_key)
        except OSError as e:
            raise StorageFailure(f"Failed to read media from disk: {e}") from e

        content_type = "application/octet-stream"
        try:
            with open(meta_path) as f:
                content_type = json.load(f).get("contentType") or content_type
        except (OSError, ValueError):
            logger.warning("Missing or unreadable metadata for %s", storage_key)
        return ResolvedMedia(content_type=content_type, stream=stream)

    def delete(self, ref: MediaRef):
        if not is_valid_storage_key(ref.storage_key):
            return
        data_path, meta_path = self._paths(ref.storage_key)
        try:
            data_path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageFailure(f"Failed to delete media from disk: {e}") from e
