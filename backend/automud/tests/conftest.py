import os
import tempfile
os.environ["TESTING"] = "1"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="automud-blobs-")
for key in ("MINIO_ENDPOINT", "MINIO_ACCESS_KEY", "MINIO_SECRET_KEY"):
    os.environ.pop(key, None)
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from datetime import datetime
from pathlib import Path
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from automud.main import app
from automud.database import Base, get_db
from automud.storage import BlobStoreConfig, LocalBlobStore, get_blob_store
from automud import models, notify

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_automud.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

REQUEST_CREATED_AT = datetime(2024, 5, 1, 9, 30)


class FlakyBlobStore(LocalBlobStore):
    """Local store whose operations can be switched to fail."""

    def __init__(self, *, config):
        super().__init__(config=config)
        self.fail_put = False
        self.fail_delete = False
        self.fail_stat = False
        self.calls = 0

    def put_object(self, key, data, *, content_type=None):
        self.calls += 1
        if self.fail_put:
            raise OSError("blob store unreachable")
        super().put_object(key, data, content_type=content_type)

    def delete_object(self, key):
        self.calls += 1
        if self.fail_delete:
            raise OSError("blob store unreachable")
        super().delete_object(key)

    def stat_object(self, key):
        self.calls += 1
        if self.fail_stat:
            raise OSError("blob store unreachable")
        return super().stat_object(key)


def make_blob_config(root) -> BlobStoreConfig:
    return BlobStoreConfig(
        backend="local",
        bucket="automud-images",
        root=str(root),
        endpoint="",
        access_key="",
        secret_key="",
        secure=False,
        public_base_url="/blobs",
    )


@pytest.fixture(autouse=True)
def blob_store(tmp_path):
    store = FlakyBlobStore(config=make_blob_config(tmp_path / "blobs"))
    app.dependency_overrides[get_blob_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_blob_store, None)


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.EMAIL_OUTBOX.clear()
    yield
    notify.EMAIL_OUTBOX.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_request(**fields) -> str:
    """Insert a request row the way the intake form would and return its id."""

    request_id = fields.pop("id", f"req-{uuid.uuid4().hex[:12]}")
    values = {
        "created_at": REQUEST_CREATED_AT,
        "license_plate": "AB123CD",
        "make": "Fiat",
        "model": "Panda",
        "km": 120000,
        "registration_year": 2012,
        "first_name": "Giulia",
        "last_name": "Rossi",
        "email": "giulia@example.com",
        "phone": "3331234567",
        "desired_price": 2500.0,
    }
    values.update(fields)
    session = TestingSessionLocal()
    try:
        session.add(models.Request(id=request_id, **values))
        session.commit()
    finally:
        session.close()
    return request_id


def png_file(name="photo.png", size=64):
    return (name, b"\x89PNG\r\n\x1a\n" + b"\x00" * size, "image/png")
