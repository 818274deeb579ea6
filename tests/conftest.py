import threading
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from petdealz.auth.auth_handler import hash_password
from petdealz.config import Settings
from petdealz.db import create_db_and_tables, create_db_engine
from petdealz.errors import AuthFailure, MediaNotFound, StorageFailure
from petdealz.main import create_app
from petdealz.models.listing import MediaRef, MediaUpload
from petdealz.models.user_db import User as DBUser
from petdealz.policy import PhoneNumberPolicy
from petdealz.repository import ListingRepository
from petdealz.service import ListingService
from petdealz.storage.base import MediaStore, ResolvedMedia, new_storage_key


class CountingMediaStore(MediaStore):
    """In-memory store that records calls and can fail the n-th put (1-based)."""

    def __init__(self, fail_on_put=None):
        super().__init__("http://media.test")
        self.fail_on_put = fail_on_put
        self.blobs = {}
        self.put_calls = 0
        self.deleted = []
        self._lock = threading.Lock()

    def put(self, payload, filename, content_type):
        with self._lock:
            self.put_calls += 1
            call = self.put_calls
        if call == self.fail_on_put:
            raise StorageFailure("disk full")
        key = new_storage_key(filename)
        with self._lock:
            self.blobs[key] = (payload, content_type)
        return MediaRef(storage_key=key, content_type=content_type, original_name=filename)

    def exists(self, storage_key):
        return storage_key in self.blobs

    def resolve(self, storage_key):
        if storage_key not in self.blobs:
            raise MediaNotFound(storage_key)
        payload, content_type = self.blobs[storage_key]
        return ResolvedMedia(content_type=content_type, stream=BytesIO(payload))

    def delete(self, ref):
        with self._lock:
            self.deleted.append(ref.storage_key)
            self.blobs.pop(ref.storage_key, None)


class FakeIdentity:
    """Resolves every request to a fixed user, or fails when user_id is None."""

    def __init__(self, user_id):
        self.user_id = user_id

    def current_user_id(self, request):
        if self.user_id is None:
            raise AuthFailure("Not authenticated")
        return self.user_id


def make_upload(name="pet.jpg", payload=None, content_type="image/jpeg"):
    return MediaUpload(filename=name, content_type=content_type, payload=payload or name.encode())


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_user(engine):
    def _make_user(email="owner@example.com", name="Owner", password="secret"):
        with Session(engine) as session:
            user = DBUser(name=name, email=email, hashed_password=hash_password(password))
            session.add(user)
            session.commit()
            session.refresh(user)
            return user.id

    return _make_user


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def store():
    return CountingMediaStore()


@pytest.fixture
def repository(engine):
    return ListingRepository(engine)


@pytest.fixture
def service(store, repository, user_id):
    return ListingService(
        store=store,
        repository=repository,
        policy=PhoneNumberPolicy(),
        identity=FakeIdentity(user_id),
        placeholder_url="default.jpg",
        upload_workers=1,
    )


@pytest.fixture
def api_settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        secret_key="test-secret",
        media_backend="local",
        media_root=str(tmp_path / "media"),
        public_base_url="http://testserver",
    )


@pytest.fixture
def client(api_settings):
    app = create_app(api_settings)
    with TestClient(app) as client:
        yield client
