# src/organization/schemas.py
from pydantic import BaseModel


class LogoUploadResponse(BaseModel):
    message: str
    url: str
    old_logo_deleted: bool = False
    compressed: bool = False
    compression_ratio: int = 0
