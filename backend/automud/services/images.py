"""Request images kept across the relational table and the blob store.

Neither store can roll the other back, so every operation orders its calls
to keep the damage of a half-finished write small:

* create writes the blob first and the row second, so a failure leaves at
  worst an orphaned blob which is logged by key;
* delete and replace treat the row as authoritative and only try the blob,
  reporting blob failures instead of failing the operation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..errors import InvalidInput, NotFound, StoreUnavailable
from ..storage import BlobInfo, BlobStore, build_blob_key, generate_blob_name
from . import intake

# purpose: keep request image rows and their blobs in step
# status: active

_logger = logging.getLogger(__name__)

MAX_IMAGES_PER_UPLOAD = int(os.getenv("MAX_IMAGES_PER_UPLOAD", "10"))
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))

ALLOWED_IMAGE_TYPES = ("jpeg", "jpg", "png", "gif", "webp")


@dataclass(slots=True)
class IncomingImage:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class StoredImage:
    id: int
    name: str
    request_id: str
    url: str
    blob_info: Optional[BlobInfo] = None


@dataclass(slots=True)
class UploadedImage:
    id: int
    name: str
    original_name: Optional[str]
    size: int
    url: str


@dataclass(slots=True)
class UploadError:
    index: int
    filename: Optional[str]
    error: str


@dataclass(slots=True)
class UploadResult:
    uploaded: list[UploadedImage] = field(default_factory=list)
    errors: list[UploadError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.uploaded) > 0


@dataclass(slots=True)
class DeleteResult:
    image_id: int
    image_name: str
    blob_deleted: bool


@dataclass(slots=True)
class BlobDeleteError:
    image_name: str
    error: str


@dataclass(slots=True)
class DeleteAllResult:
    rows_deleted: int = 0
    blobs_deleted: int = 0
    errors: list[BlobDeleteError] = field(default_factory=list)


@dataclass(slots=True)
class ReplaceResult:
    image_id: int
    old_name: str
    new_name: str
    url: str
    warnings: list[str] = field(default_factory=list)


Validator = Callable[[IncomingImage], None]


def validate_image_upload(image: IncomingImage) -> None:
    """Reject files that are not small, non-empty JPEG/PNG/GIF/WebP images."""

    ext = os.path.splitext(image.filename or "")[1].lower().lstrip(".")
    mime = (image.content_type or "").lower()
    mime_subtype = mime.split("/", 1)[1] if mime.startswith("image/") else ""
    if ext not in ALLOWED_IMAGE_TYPES or mime_subtype not in ALLOWED_IMAGE_TYPES:
        raise InvalidInput("Only image files are allowed (jpeg, jpg, png, gif, webp)")
    if image.size == 0:
        raise InvalidInput("Image file is empty")
    if image.size > MAX_IMAGE_BYTES:
        raise InvalidInput(f"Image exceeds the maximum size of {MAX_IMAGE_BYTES} bytes")


def check_batch_size(count: int) -> None:
    if count == 0:
        raise InvalidInput("No images were uploaded")
    if count > MAX_IMAGES_PER_UPLOAD:
        raise InvalidInput(f"At most {MAX_IMAGES_PER_UPLOAD} images can be uploaded at once")


def _get_row(db: Session, request_id: str, image_id: int) -> models.RequestImage:
    row = (
        db.query(models.RequestImage)
        .filter(models.RequestImage.id == image_id, models.RequestImage.request_id == request_id)
        .first()
    )
    if row is None:
        raise NotFound("Image", image_id)
    return row


def upload(
    db: Session,
    blobs: BlobStore,
    request_id: str,
    files: Sequence[IncomingImage],
    validate: Validator | None = None,
) -> UploadResult:
    """Store each file as a blob and record it, continuing past per-file failures."""

    check_batch_size(len(files))
    intake.require_request(db, request_id)

    result = UploadResult()
    for index, image in enumerate(files):
        if validate is not None:
            try:
                validate(image)
            except InvalidInput as exc:
                result.errors.append(UploadError(index=index, filename=image.filename, error=exc.message))
                continue

        name = generate_blob_name(image.filename)
        key = build_blob_key(request_id, name)
        try:
            blobs.put_object(key, image.data, content_type=image.content_type)
        except Exception as exc:
            _logger.warning("Blob upload failed for %s (request %s)", image.filename, request_id, exc_info=True)
            result.errors.append(UploadError(index=index, filename=image.filename, error=f"Upload failed: {exc}"))
            continue

        row = models.RequestImage(request_id=request_id, name=name)
        db.add(row)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            _logger.error("Image row insert failed; orphaned blob %s", key, exc_info=True)
            raise StoreUnavailable("Could not record the uploaded image") from exc
        db.refresh(row)
        result.uploaded.append(
            UploadedImage(
                id=row.id,
                name=name,
                original_name=image.filename,
                size=image.size,
                url=blobs.public_url(key),
            )
        )

    _logger.info(
        "Uploaded %d of %d images for request %s", len(result.uploaded), len(files), request_id
    )
    return result


def list_images(db: Session, blobs: BlobStore, request_id: str) -> list[StoredImage]:
    intake.require_request(db, request_id)
    rows = (
        db.query(models.RequestImage)
        .filter(models.RequestImage.request_id == request_id)
        .order_by(models.RequestImage.id.asc())
        .all()
    )
    return [
        StoredImage(
            id=row.id,
            name=row.name,
            request_id=row.request_id,
            url=blobs.public_url(build_blob_key(row.request_id, row.name)),
        )
        for row in rows
    ]


def info(db: Session, blobs: BlobStore, request_id: str, image_id: int) -> StoredImage:
    row = _get_row(db, request_id, image_id)
    key = build_blob_key(row.request_id, row.name)
    try:
        blob_info = blobs.stat_object(key)
    except Exception:
        _logger.warning("Blob metadata unavailable for %s", key, exc_info=True)
        blob_info = None
    return StoredImage(
        id=row.id,
        name=row.name,
        request_id=row.request_id,
        url=blobs.public_url(key),
        blob_info=blob_info,
    )


def delete(db: Session, blobs: BlobStore, request_id: str, image_id: int) -> DeleteResult:
    row = _get_row(db, request_id, image_id)
    key = build_blob_key(row.request_id, row.name)
    blob_deleted = True
    try:
        blobs.delete_object(key)
    except Exception:
        blob_deleted = False
        _logger.warning("Blob delete failed for %s; removing the row anyway", key, exc_info=True)

    result = DeleteResult(image_id=row.id, image_name=row.name, blob_deleted=blob_deleted)
    db.delete(row)
    db.commit()
    return result


def delete_all(db: Session, blobs: BlobStore, request_id: str) -> DeleteAllResult:
    intake.require_request(db, request_id)
    rows = (
        db.query(models.RequestImage)
        .filter(models.RequestImage.request_id == request_id)
        .order_by(models.RequestImage.id.asc())
        .all()
    )
    result = DeleteAllResult()
    if not rows:
        return result

    for row in rows:
        key = build_blob_key(row.request_id, row.name)
        try:
            blobs.delete_object(key)
            result.blobs_deleted += 1
        except Exception as exc:
            _logger.warning("Blob delete failed for %s", key, exc_info=True)
            result.errors.append(BlobDeleteError(image_name=row.name, error=str(exc) or exc.__class__.__name__))

    result.rows_deleted = (
        db.query(models.RequestImage)
        .filter(models.RequestImage.request_id == request_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    _logger.info(
        "Deleted %d image rows and %d blobs for request %s",
        result.rows_deleted,
        result.blobs_deleted,
        request_id,
    )
    return result


def replace(
    db: Session,
    blobs: BlobStore,
    request_id: str,
    image_id: int,
    new_file: IncomingImage | None,
    validate: Validator | None = None,
) -> ReplaceResult:
    """Swap the content of an image under a fresh name.

    The old blob is removed only after the row points at the new one.
    """

    if new_file is None:
        raise InvalidInput("No image was uploaded")
    if validate is not None:
        validate(new_file)
    row = _get_row(db, request_id, image_id)

    old_name = row.name
    new_name = generate_blob_name(new_file.filename)
    new_key = build_blob_key(request_id, new_name)
    try:
        blobs.put_object(new_key, new_file.data, content_type=new_file.content_type)
    except Exception as exc:
        _logger.error("Blob upload failed while replacing image %s", image_id, exc_info=True)
        raise StoreUnavailable("Could not upload the replacement image") from exc

    row.name = new_name
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _logger.error("Image row update failed; orphaned blob %s", new_key, exc_info=True)
        raise StoreUnavailable("Could not record the replacement image") from exc

    result = ReplaceResult(
        image_id=image_id,
        old_name=old_name,
        new_name=new_name,
        url=blobs.public_url(new_key),
    )
    old_key = build_blob_key(request_id, old_name)
    try:
        blobs.delete_object(old_key)
    except Exception as exc:
        _logger.warning("Old blob %s was not removed after replace", old_key, exc_info=True)
        result.warnings.append(f"Old image blob not deleted: {exc}")
    return result
