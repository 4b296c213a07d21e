# src/account/schemas.py
from pydantic import BaseModel, Field


class Base64PhotoUpload(BaseModel):
    base64_data: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str = Field(..., min_length=1)
    file_size: int = Field(0, ge=0)


class PhotoUploadResponse(BaseModel):
    message: str
    url: str
    old_photo_deleted: bool = False
    compressed: bool = False
    compression_ratio: int = 0
