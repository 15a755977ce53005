from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator


class RequestOut(BaseModel):
    id: str
    created_at: datetime
    license_plate: Optional[str] = None
    km: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    registration_year: Optional[int] = None
    engine_size: Optional[int] = None
    fuel_type: Optional[int] = None
    transmission_type: Optional[int] = None
    car_condition: Optional[int] = None
    engine_condition: Optional[int] = None
    interior_conditions: Optional[str] = None
    exterior_conditions: Optional[str] = None
    mechanical_conditions: Optional[str] = None
    cap: Optional[str] = None
    city: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    desired_price: Optional[float] = None
    model_config = ConfigDict(from_attributes=True)


class StatusRecordOut(BaseModel):
    id: int
    request_id: str
    status: int
    change_date: datetime
    final_outcome: Optional[int] = None
    close_reason: Optional[int] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class StatusChangeIn(BaseModel):
    new_status: StrictInt
    final_outcome: Optional[StrictInt] = None
    close_reason: Optional[StrictInt] = None
    notes: Optional[str] = None


class StatusChangeOut(BaseModel):
    success: bool = True
    message: str
    new_status: StatusRecordOut
    warnings: List[str] = Field(default_factory=list)
    automatic_action: Optional[str] = None


class ManagementOut(BaseModel):
    request_id: str
    notes: str = ""
    range_min: float = 0
    range_max: float = 0
    registration_cost: float = 0
    transport_cost: float = 0
    purchase_price: float = 0
    sale_price: float = 0
    close_reason: int = 0
    model_config = ConfigDict(from_attributes=True)


class NotesUpdate(BaseModel):
    notes: str


class PricingUpdate(BaseModel):
    purchase_price: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    registration_cost: Optional[float] = Field(default=None, ge=0)
    transport_cost: Optional[float] = Field(default=None, ge=0)


class RangeUpdate(BaseModel):
    range_min: Optional[float] = Field(default=None, ge=0)
    range_max: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.range_min is not None and self.range_max is not None and self.range_min > self.range_max:
            raise ValueError("range_min cannot be greater than range_max")
        return self


class ManagementWriteOut(BaseModel):
    success: bool = True
    message: str
    management: ManagementOut


class OfferCreate(BaseModel):
    description: str = Field(min_length=1)
    price: float = Field(ge=0)


class OfferUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)


class OfferOut(BaseModel):
    id: int
    request_id: str
    description: str
    price: float
    offer_date: datetime
    model_config = ConfigDict(from_attributes=True)


class OfferWriteOut(BaseModel):
    success: bool = True
    message: str
    offer: OfferOut


class RequestDetailOut(RequestOut):
    management: ManagementOut
    offers: List[OfferOut] = Field(default_factory=list)
    status_history: List[StatusRecordOut]
    current_status: StatusRecordOut


class ImageOut(BaseModel):
    id: int
    name: str
    url: str


class ImageListOut(BaseModel):
    success: bool = True
    request_id: str
    count: int
    images: List[ImageOut]


class UploadedImageOut(BaseModel):
    id: int
    name: str
    original_name: Optional[str] = None
    size: int
    url: str


class UploadErrorOut(BaseModel):
    index: int
    filename: Optional[str] = None
    error: str


class UploadOut(BaseModel):
    success: bool
    message: str
    request_id: str
    uploaded: List[UploadedImageOut]
    errors: List[UploadErrorOut] = Field(default_factory=list)


class BlobInfoOut(BaseModel):
    size: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ImageInfoOut(BaseModel):
    id: int
    name: str
    request_id: str
    url: str
    blob_info: Optional[BlobInfoOut] = None


class ImageInfoResponse(BaseModel):
    success: bool = True
    image: ImageInfoOut


class ImageReplaceOut(BaseModel):
    success: bool = True
    message: str
    image_id: int
    old_name: str
    new_name: str
    url: str
    warnings: List[str] = Field(default_factory=list)


class ImageDeleteOut(BaseModel):
    success: bool = True
    message: str
    image_id: int
    image_name: str
    blob_deleted: bool


class BlobDeleteErrorOut(BaseModel):
    image_name: str
    error: str


class ImageDeleteAllOut(BaseModel):
    success: bool = True
    message: str
    rows_deleted: int
    blobs_deleted: int
    errors: List[BlobDeleteErrorOut] = Field(default_factory=list)
