"""Blob store clients holding the binary side of request images."""

from __future__ import annotations

import hashlib
import io
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional
from uuid import uuid4

from fastapi import Request
from minio import Minio

# purpose: centralize object storage reads and writes for request images
# status: active

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobStoreConfig:
    backend: str
    bucket: str
    root: str
    endpoint: str
    access_key: str
    secret_key: str
    secure: bool
    public_base_url: str


@dataclass(frozen=True)
class BlobInfo:
    size: int
    content_type: Optional[str]
    etag: Optional[str]
    last_modified: Optional[datetime]


def build_blob_key(request_id: str, name: str) -> str:
    """Return the object key for an image; public URLs are derived from it."""

    return f"{request_id}/{name}"


def generate_blob_name(original_filename: str | None) -> str:
    """Generate a unique object name that keeps the uploaded file's extension."""

    _, ext = os.path.splitext(os.path.basename(original_filename or ""))
    return f"{uuid4()}{ext}"


class BlobStore:
    backend_name = "base"

    def __init__(self, *, config: BlobStoreConfig) -> None:
        self._bucket = config.bucket
        self._public_base_url = config.public_base_url.rstrip("/")

    @property
    def bucket(self) -> str:
        return self._bucket

    def put_object(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def get_object(self, key: str) -> bytes:
        raise NotImplementedError

    def delete_object(self, key: str) -> None:
        raise NotImplementedError

    def stat_object(self, key: str) -> BlobInfo:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{self._bucket}/{key}"


class LocalBlobStore(BlobStore):
    """Filesystem-backed store used for development and tests."""

    backend_name = "local"

    def __init__(self, *, config: BlobStoreConfig) -> None:
        super().__init__(config=config)
        self._root = Path(config.root)
        (self._root / self._bucket).mkdir(parents=True, exist_ok=True)

    def put_object(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        path = self._path_for_key(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self._write_meta(
            path,
            {
                "content_type": content_type or "application/octet-stream",
                "etag": hashlib.md5(data).hexdigest(),
            },
        )

    def get_object(self, key: str) -> bytes:
        path = self._path_for_key(key)
        if not path.exists():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def delete_object(self, key: str) -> None:
        path = self._path_for_key(key)
        if not path.exists():
            raise FileNotFoundError(key)
        path.unlink()
        meta = self._meta_path(path)
        if meta.exists():
            meta.unlink()

    def stat_object(self, key: str) -> BlobInfo:
        path = self._path_for_key(key)
        if not path.exists():
            raise FileNotFoundError(key)
        stat = path.stat()
        meta = self._read_meta(path)
        return BlobInfo(
            size=stat.st_size,
            content_type=meta.get("content_type") or mimetypes.guess_type(path.name)[0],
            etag=meta.get("etag"),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def object_path(self, key: str) -> Path:
        return self._path_for_key(key)

    def _path_for_key(self, key: str) -> Path:
        base = (self._root / self._bucket).resolve()
        path = (base / key).resolve()
        if base not in path.parents:
            raise ValueError(f"object key escapes bucket: {key}")
        return path

    def _meta_path(self, path: Path) -> Path:
        return Path(f"{path}.meta.json")

    def _read_meta(self, path: Path) -> dict[str, Any]:
        meta_path = self._meta_path(path)
        if not meta_path.exists():
            return {}
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}

    def _write_meta(self, path: Path, meta: dict[str, Any]) -> None:
        self._meta_path(path).write_text(json.dumps(meta, sort_keys=True), encoding="utf-8")


class MinioBlobStore(BlobStore):
    backend_name = "minio"

    def __init__(self, *, config: BlobStoreConfig, client: Minio | None = None) -> None:
        super().__init__(config=config)
        self._client = client or Minio(
            config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key,
            secure=config.secure,
        )
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except Exception:
            # Operations against the bucket will surface the failure to callers
            _logger.warning("Could not verify blob bucket %s at startup", self._bucket, exc_info=True)

    def put_object(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        self._client.put_object(
            self._bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type or "application/octet-stream",
        )

    def get_object(self, key: str) -> bytes:
        response = self._client.get_object(self._bucket, key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def delete_object(self, key: str) -> None:
        self._client.remove_object(self._bucket, key)

    def stat_object(self, key: str) -> BlobInfo:
        stat = self._client.stat_object(self._bucket, key)
        return BlobInfo(
            size=stat.size,
            content_type=stat.content_type,
            etag=stat.etag,
            last_modified=stat.last_modified,
        )


def _split_endpoint(raw: str) -> tuple[str, bool]:
    endpoint = raw.strip()
    if endpoint.startswith("https://"):
        return endpoint[len("https://") :].rstrip("/"), True
    if endpoint.startswith("http://"):
        return endpoint[len("http://") :].rstrip("/"), False
    return endpoint.rstrip("/"), False


def load_blob_store_config(environ: Mapping[str, str] | None = None) -> BlobStoreConfig:
    env = os.environ if environ is None else environ
    endpoint, secure = _split_endpoint(env.get("MINIO_ENDPOINT", ""))
    access_key = env.get("MINIO_ACCESS_KEY", "")
    secret_key = env.get("MINIO_SECRET_KEY", "")
    backend = "minio" if endpoint and access_key and secret_key else "local"
    default_base = f"{'https' if secure else 'http'}://{endpoint}" if backend == "minio" else "/blobs"
    return BlobStoreConfig(
        backend=backend,
        bucket=env.get("MINIO_BUCKET", "automud-images").strip() or "automud-images",
        root=env.get("UPLOAD_DIR", "uploaded_files"),
        endpoint=endpoint,
        access_key=access_key,
        secret_key=secret_key,
        secure=secure,
        public_base_url=env.get("BLOB_PUBLIC_BASE_URL", default_base),
    )


def create_blob_store_from_env(environ: Mapping[str, str] | None = None) -> BlobStore:
    config = load_blob_store_config(environ)
    if config.backend == "minio":
        _logger.info("Using MinIO blob store at %s (bucket %s)", config.endpoint, config.bucket)
        return MinioBlobStore(config=config)
    _logger.info("Using local blob store under %s (bucket %s)", config.root, config.bucket)
    return LocalBlobStore(config=config)


def get_blob_store(request: Request) -> BlobStore:
    """FastAPI dependency returning the process-wide blob store built in ``main``."""

    return request.app.state.blob_store
