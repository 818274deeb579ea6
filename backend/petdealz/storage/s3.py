import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from petdealz.errors import MediaNotFound, StorageFailure
from petdealz.models.listing import MediaRef
from petdealz.storage.base import MediaStore, ResolvedMedia, is_valid_storage_key, new_storage_key

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def get_s3_client(region: str):
    """Get S3 client; credentials come from the standard AWS environment/config chain"""
    return boto3.client("s3", region_name=region)


class S3MediaStore(MediaStore):
    """Object store backend: clients fetch blobs straight from S3."""

    streams_through_app = False

    def __init__(self, bucket: str, region: str, presign_seconds: int = 0, client=None):
        super().__init__()
        self.bucket = bucket
        self.region = region
        self.presign_seconds = presign_seconds
        self.client = client or get_s3_client(region)

    def put(self, payload: bytes, filename: Optional[str], content_type: str) -> MediaRef:
        storage_key = new_storage_key(filename)
        extra = {}
        if filename:
            extra["Metadata"] = {"original-name": filename}
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=storage_key,
                Body=payload,
                ContentType=content_type,
                **extra,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure(f"Failed to upload file to S3: {e}") from e
        return MediaRef(storage_key=storage_key, content_type=content_type, original_name=filename)

    def _head(self, storage_key: str):
        if not is_valid_storage_key(storage_key):
            return None
        try:
            return self.client.head_object(Bucket=self.bucket, Key=storage_key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
                return None
            raise StorageFailure(f"Failed to look up file in S3: {e}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Failed to look up file in S3: {e}") from e

    def exists(self, storage_key: str) -> bool:
        return self._head(storage_key) is not None

    def resolve(self, storage_key: str) -> ResolvedMedia:
        head = self._head(storage_key)
        if head is None:
            raise MediaNotFound(storage_key)
        return ResolvedMedia(
            content_type=head.get("ContentType", "application/octet-stream"),
            url=self._object_url(storage_key),
        )

    def _object_url(self, storage_key: str) -> str:
        if self.presign_seconds > 0:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": storage_key},
                ExpiresIn=self.presign_seconds,
            )
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{storage_key}"

    def delete(self, ref: MediaRef):
        if not is_valid_storage_key(ref.storage_key):
            return
        try:
            self.client.delete_object(Bucket=self.bucket, Key=ref.storage_key)
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure(f"Failed to delete file from S3: {e}") from e
