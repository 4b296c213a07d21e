# src/upload/schemas.py
from enum import Enum

from pydantic import BaseModel

from src.compression.constants import ALLOWED_EXTENSIONS


class ImageType(str, Enum):
    PROFILE_PHOTO = "profile_photo"
    ORGANIZATION_LOGO = "organization_logo"


class ImageConfig(BaseModel):
    container: str
    folder: str
    filename_prefix: str
    preset: str
    allowed_extensions: list[str] = ALLOWED_EXTENSIONS
    max_file_size: int = 5 * 1024 * 1024


class PreparedImage(BaseModel):
    content: bytes
    content_type: str
    extension: str
    compressed: bool = False
    compression_ratio: int = 0


class UploadResult(BaseModel):
    url: str
    blob_name: str
    file_size: int
    content_type: str
    compressed: bool
    compression_ratio: int
