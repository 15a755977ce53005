from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..services import images as image_store
from ..storage import BlobStore, get_blob_store
from .. import schemas

router = APIRouter(prefix="/api/request", tags=["images"])


async def _incoming(upload: UploadFile) -> image_store.IncomingImage:
    data = await upload.read()
    return image_store.IncomingImage(filename=upload.filename, content_type=upload.content_type, data=data)


def _image_out(stored: image_store.StoredImage) -> schemas.ImageOut:
    return schemas.ImageOut(id=stored.id, name=stored.name, url=stored.url)


@router.post("/{request_id}/images", response_model=schemas.UploadOut, status_code=201)
async def upload_images(
    request_id: str,
    response: Response,
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    uploads = images or []
    image_store.check_batch_size(len(uploads))
    incoming = [await _incoming(upload) for upload in uploads]
    result = image_store.upload(db, blobs, request_id, incoming, validate=image_store.validate_image_upload)
    if result.success:
        message = f"{len(result.uploaded)} of {len(incoming)} images uploaded"
    else:
        response.status_code = 400
        message = "No images were uploaded"
    return schemas.UploadOut(
        success=result.success,
        message=message,
        request_id=request_id,
        uploaded=[schemas.UploadedImageOut(**asdict(u)) for u in result.uploaded],
        errors=[schemas.UploadErrorOut(index=e.index, filename=e.filename, error=e.error) for e in result.errors],
    )


@router.get("/{request_id}/images", response_model=schemas.ImageListOut)
def list_images(
    request_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    stored = image_store.list_images(db, blobs, request_id)
    return schemas.ImageListOut(
        request_id=request_id,
        count=len(stored),
        images=[_image_out(s) for s in stored],
    )


@router.get("/{request_id}/images/{image_id}/info", response_model=schemas.ImageInfoResponse)
def image_info(
    request_id: str,
    image_id: int,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    stored = image_store.info(db, blobs, request_id, image_id)
    blob_info = schemas.BlobInfoOut.model_validate(stored.blob_info) if stored.blob_info else None
    return schemas.ImageInfoResponse(
        image=schemas.ImageInfoOut(
            id=stored.id,
            name=stored.name,
            request_id=stored.request_id,
            url=stored.url,
            blob_info=blob_info,
        )
    )


@router.put("/{request_id}/images/{image_id}/replace", response_model=schemas.ImageReplaceOut)
async def replace_image(
    request_id: str,
    image_id: int,
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    incoming = await _incoming(image) if image is not None else None
    result = image_store.replace(db, blobs, request_id, image_id, incoming, validate=image_store.validate_image_upload)
    return schemas.ImageReplaceOut(
        message="Image replaced",
        image_id=result.image_id,
        old_name=result.old_name,
        new_name=result.new_name,
        url=result.url,
        warnings=result.warnings,
    )


@router.delete("/{request_id}/images/{image_id}", response_model=schemas.ImageDeleteOut)
def delete_image(
    request_id: str,
    image_id: int,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    result = image_store.delete(db, blobs, request_id, image_id)
    message = "Image deleted" if result.blob_deleted else "Image deleted; blob removal failed"
    return schemas.ImageDeleteOut(
        message=message,
        image_id=result.image_id,
        image_name=result.image_name,
        blob_deleted=result.blob_deleted,
    )


@router.delete("/{request_id}/images", response_model=schemas.ImageDeleteAllOut)
def delete_all_images(
    request_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    result = image_store.delete_all(db, blobs, request_id)
    return schemas.ImageDeleteAllOut(
        message=f"{result.rows_deleted} images deleted",
        rows_deleted=result.rows_deleted,
        blobs_deleted=result.blobs_deleted,
        errors=[schemas.BlobDeleteErrorOut(image_name=e.image_name, error=e.error) for e in result.errors],
    )
