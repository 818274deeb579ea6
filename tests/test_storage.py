import boto3
import pytest
from botocore.stub import ANY, Stubber

from petdealz.errors import MediaNotFound, StorageFailure
from petdealz.models.listing import MediaRef
from petdealz.storage.base import is_valid_storage_key, new_storage_key
from petdealz.storage.database import DatabaseMediaStore
from petdealz.storage.local import LocalMediaStore
from petdealz.storage.s3 import S3MediaStore

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_new_storage_key_keeps_extension():
    key = new_storage_key("Puppy.JPG")
    assert key.endswith(".jpg")
    assert is_valid_storage_key(key)


def test_new_storage_key_drops_odd_extension():
    key = new_storage_key("../../etc/passwd")
    assert "/" not in key
    assert is_valid_storage_key(key)


@pytest.mark.parametrize("key", [None, "", "../secret", "abc", "0" * 32 + "/x", "A" * 32])
def test_invalid_storage_keys(key):
    assert not is_valid_storage_key(key)


@pytest.fixture(params=["local", "database"])
def streaming_store(request, tmp_path, engine):
    if request.param == "local":
        return LocalMediaStore(tmp_path / "media", public_base_url="http://testserver/")
    return DatabaseMediaStore(engine, public_base_url="http://testserver/")


class TestStreamingStores:
    def test_put_then_resolve_returns_same_bytes(self, streaming_store):
        ref = streaming_store.put(PNG, "cat.png", "image/png")

        resolved = streaming_store.resolve(ref.storage_key)
        try:
            assert not resolved.is_redirect
            assert resolved.content_type == "image/png"
            assert resolved.stream.read() == PNG
        finally:
            resolved.stream.close()

        assert ref.original_name == "cat.png"
        assert ref.content_type == "image/png"

    def test_each_put_gets_its_own_key(self, streaming_store):
        first = streaming_store.put(b"a", "a.png", "image/png")
        second = streaming_store.put(b"a", "a.png", "image/png")
        assert first.storage_key != second.storage_key

    def test_unknown_key_is_not_found(self, streaming_store):
        with pytest.raises(MediaNotFound):
            streaming_store.resolve(new_storage_key("x.png"))

    def test_malformed_key_is_not_found(self, streaming_store):
        with pytest.raises(MediaNotFound):
            streaming_store.resolve("../../etc/passwd")

    def test_url_points_at_image_route(self, streaming_store):
        ref = streaming_store.put(PNG, "cat.png", "image/png")
        assert streaming_store.url_for(ref) == f"http://testserver/image/{ref.storage_key}"

    def test_url_for_missing_blob_is_not_found(self, streaming_store):
        ref = MediaRef(storage_key=new_storage_key("gone.png"), content_type="image/png")
        with pytest.raises(MediaNotFound):
            streaming_store.url_for(ref)

    def test_delete_removes_blob(self, streaming_store):
        ref = streaming_store.put(PNG, "cat.png", "image/png")
        streaming_store.delete(ref)

        assert not streaming_store.exists(ref.storage_key)
        with pytest.raises(MediaNotFound):
            streaming_store.resolve(ref.storage_key)

    def test_delete_missing_blob_is_ignored(self, streaming_store):
        streaming_store.delete(MediaRef(storage_key=new_storage_key("x.png")))
        streaming_store.delete(MediaRef(storage_key=None))


def test_local_store_write_failure_is_storage_failure(tmp_path, monkeypatch):
    store = LocalMediaStore(tmp_path / "media")

    def boom(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(store, "_write_atomic", boom)
    with pytest.raises(StorageFailure):
        store.put(PNG, "cat.png", "image/png")
    assert list((tmp_path / "media").iterdir()) == []


def test_local_store_without_metadata_falls_back_to_octet_stream(tmp_path):
    store = LocalMediaStore(tmp_path)
    ref = store.put(PNG, "cat.png", "image/png")
    (tmp_path / f"{ref.storage_key}.meta.json").unlink()

    resolved = store.resolve(ref.storage_key)
    resolved.stream.close()
    assert resolved.content_type == "application/octet-stream"


BUCKET = "pets-bucket"
REGION = "us-east-1"


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name=REGION,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def s3_store(s3_client):
    return S3MediaStore(BUCKET, REGION, client=s3_client)


class TestS3Store:
    def test_put_uploads_object(self, s3_store, s3_client):
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "put_object",
                {"ETag": '"etag"'},
                {
                    "Bucket": BUCKET,
                    "Key": ANY,
                    "Body": PNG,
                    "ContentType": "image/png",
                    "Metadata": {"original-name": "cat.png"},
                },
            )
            ref = s3_store.put(PNG, "cat.png", "image/png")
            stubber.assert_no_pending_responses()

        assert ref.storage_key.endswith(".png")
        assert ref.content_type == "image/png"

    def test_put_client_error_is_storage_failure(self, s3_store, s3_client):
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(StorageFailure):
                s3_store.put(PNG, "cat.png", "image/png")

    def test_resolve_returns_object_url(self, s3_store, s3_client):
        key = new_storage_key("cat.png")
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "head_object",
                {"ContentType": "image/png", "ContentLength": len(PNG)},
                {"Bucket": BUCKET, "Key": key},
            )
            resolved = s3_store.resolve(key)

        assert resolved.is_redirect
        assert resolved.url == f"https://{BUCKET}.s3.{REGION}.amazonaws.com/{key}"
        assert resolved.content_type == "image/png"

    def test_resolve_missing_object_is_not_found(self, s3_store, s3_client):
        key = new_storage_key("cat.png")
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
            with pytest.raises(MediaNotFound):
                s3_store.resolve(key)

    def test_url_for_does_not_call_s3(self, s3_store, s3_client):
        ref = MediaRef(storage_key=new_storage_key("cat.png"), content_type="image/png")
        with Stubber(s3_client):
            # No responses queued: any network call would fail the stubber.
            url = s3_store.url_for(ref)
        assert url == f"https://{BUCKET}.s3.{REGION}.amazonaws.com/{ref.storage_key}"

    def test_presigned_urls(self, s3_client):
        store = S3MediaStore(BUCKET, REGION, presign_seconds=300, client=s3_client)
        ref = MediaRef(storage_key=new_storage_key("cat.png"), content_type="image/png")

        url = store.url_for(ref)

        assert ref.storage_key in url
        assert "Signature" in url

    def test_delete_removes_object(self, s3_store, s3_client):
        ref = MediaRef(storage_key=new_storage_key("cat.png"), content_type="image/png")
        with Stubber(s3_client) as stubber:
            stubber.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": ref.storage_key})
            s3_store.delete(ref)
            stubber.assert_no_pending_responses()
