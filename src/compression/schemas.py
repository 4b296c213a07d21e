# src/compression/schemas.py
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"


class FitMode(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"


class ProgressStatus(str, Enum):
    IDLE = "idle"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"


class ClientCompressionOptions(BaseModel):
    max_size_mb: float | None = Field(None, gt=0)
    max_width_or_height: int | None = Field(None, gt=0)
    initial_quality: float | None = Field(None, gt=0, le=1)
    always_keep_resolution: bool | None = None
    use_web_worker: bool | None = None
    preserve_exif: bool | None = None

    model_config = ConfigDict(frozen=True)


class ServerCompressionOptions(BaseModel):
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)
    quality: int | None = Field(None, ge=1, le=100)
    format: ImageFormat | None = None
    fit: FitMode | None = None
    without_enlargement: bool | None = None

    model_config = ConfigDict(frozen=True)


class CompressionPreset(BaseModel):
    name: str
    description: str
    client: ClientCompressionOptions
    server: ServerCompressionOptions

    model_config = ConfigDict(frozen=True)


class ImageFile(BaseModel):
    """An image as seen by the uploader before it leaves the process."""

    filename: str
    content_type: str
    content: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def size(self) -> int:
        return len(self.content)


class CompressionResult(BaseModel):
    original_size: int
    compressed_size: int
    compression_ratio: int
    file: ImageFile
    data_url: str | None = None


class UploadProgress(BaseModel):
    loaded: int = 0
    total: int = 0
    percentage: int = Field(0, ge=0, le=100)
    status: ProgressStatus = ProgressStatus.IDLE


class FileValidationResult(BaseModel):
    is_valid: bool
    error: str | None = None


class OutputInfo(BaseModel):
    format: str
    width: int
    height: int
    channels: int
    size: int


class ServerCompressionResult(BaseModel):
    buffer: bytes
    info: OutputInfo
    original_size: int
    compressed_size: int
    compression_ratio: int


class PresetCompressionResult(ServerCompressionResult):
    preset: CompressionPreset


class ImageMetadata(BaseModel):
    format: str | None = None
    width: int
    height: int
    mode: str
    has_alpha: bool


class ImageValidationResult(BaseModel):
    is_valid: bool
    format: str | None = None
    width: int | None = None
    height: int | None = None
    size: int
    error: str | None = None


class CompressionSummary(BaseModel):
    original_size: int
    compressed_size: int
    compression_ratio: int
    original_size_label: str
    compressed_size_label: str
    format: str
    width: int
    height: int
