# src/upload/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class UploadSettings(BaseSettings):
    AZURE_STORAGE_ACCOUNT: str
    AZURE_STORAGE_KEY: str

    # Container names
    PROFILE_PHOTOS_CONTAINER: str = "profile-photos"
    LOGO_CONTAINER: str = "logo"

    # Common settings
    MAX_PROFILE_PHOTO_SIZE: int = 8 * 1024 * 1024  # 8MB
    MAX_LOGO_SIZE: int = 5 * 1024 * 1024  # 5MB
    CACHE_CONTROL: str = "public, max-age=3600"
    COMPRESSION_ENABLED: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


upload_settings = UploadSettings()
