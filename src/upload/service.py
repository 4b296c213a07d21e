# src/upload/service.py
import logging
import os
import re
import time
from typing import Optional
from urllib.parse import unquote, urlparse

from azure.core.exceptions import AzureError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient
from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from src.compression.service import ImageCompressor, image_compressor
from src.compression.utils import content_type_for, extension_for, format_file_size
from .config import upload_settings
from .schemas import ImageConfig, ImageType, PreparedImage, UploadResult

logger = logging.getLogger(__name__)


class ImageUploadService:
    def __init__(self, compressor: ImageCompressor = image_compressor):
        self.blob_service_client = BlobServiceClient(
            account_url=f"https://{upload_settings.AZURE_STORAGE_ACCOUNT}.blob.core.windows.net",
            credential=upload_settings.AZURE_STORAGE_KEY
        )
        self.compressor = compressor

        self.configs = {
            ImageType.PROFILE_PHOTO: ImageConfig(
                container=upload_settings.PROFILE_PHOTOS_CONTAINER,
                folder="users",
                filename_prefix="profile",
                preset="avatar",
                max_file_size=upload_settings.MAX_PROFILE_PHOTO_SIZE
            ),
            ImageType.ORGANIZATION_LOGO: ImageConfig(
                container=upload_settings.LOGO_CONTAINER,
                folder="organization",
                filename_prefix="logo",
                preset="standard",
                max_file_size=upload_settings.MAX_LOGO_SIZE
            ),
        }

    async def upload_image(
            self,
            content: bytes,
            filename: str,
            content_type: str,
            image_type: ImageType,
            owner_id: str
    ) -> UploadResult:
        config = self.configs[image_type]

        self._validate_upload(content, filename, content_type, config)

        prepared = await self._prepare_image(content, filename, content_type, config.preset)

        blob_name = self._generate_blob_name(config, owner_id, prepared.extension)

        url = await self._upload_to_azure(prepared.content, blob_name, config.container, prepared.content_type)

        logger.info("Uploaded %s for %s to %s (%s)", image_type.value, owner_id, blob_name,
                    format_file_size(len(prepared.content)))

        return UploadResult(
            url=url,
            blob_name=blob_name,
            file_size=len(prepared.content),
            content_type=prepared.content_type,
            compressed=prepared.compressed,
            compression_ratio=prepared.compression_ratio
        )

    async def delete_image(self, url: str, image_type: ImageType) -> bool:
        container = self.configs[image_type].container
        blob_name = self._extract_blob_name(url, container)

        if not blob_name:
            logger.warning("Invalid %s URL, nothing deleted: %s", image_type.value, url)
            return False

        try:
            blob_client = self.blob_service_client.get_blob_client(
                container=container,
                blob=blob_name
            )
            await blob_client.delete_blob()
            logger.info("Deleted %s blob %s", image_type.value, blob_name)
            return True
        except AzureError as e:
            logger.error("Failed to delete blob %s: %s", blob_name, e)
            return False

    def _validate_upload(self, content: bytes, filename: str, content_type: str, config: ImageConfig):
        if not filename or not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No file provided"
            )

        if not content_type or not content_type.startswith("image/"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only image files are allowed"
            )

        if len(content) > config.max_file_size:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File too large. Max: {config.max_file_size // (1024 * 1024)}MB"
            )

        file_ext = os.path.splitext(filename)[1].lower()
        if file_ext not in config.allowed_extensions:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid file type. Allowed: {', '.join(config.allowed_extensions)}"
            )

    async def _prepare_image(self, content: bytes, filename: str, content_type: str, preset: str) -> PreparedImage:
        original = PreparedImage(
            content=content,
            content_type=content_type,
            extension=self._file_extension(filename)
        )

        if not upload_settings.COMPRESSION_ENABLED:
            return original

        # Compression is best effort: whatever goes wrong, the original is uploaded
        try:
            result = await run_in_threadpool(self.compressor.compress_with_preset, content, preset)
        except Exception as e:
            logger.warning("Image compression unavailable, uploading original buffer: %s", e)
            return original

        if result.compressed_size >= len(content):
            logger.info("Compression skipped (no size benefit): %d -> %d bytes",
                        len(content), result.compressed_size)
            return original

        logger.info("Compression applied: %d -> %d bytes (%d%%)",
                    result.original_size, result.compressed_size, result.compression_ratio)

        return PreparedImage(
            content=result.buffer,
            content_type=content_type_for(result.info.format),
            extension=extension_for(result.info.format),
            compressed=True,
            compression_ratio=result.compression_ratio
        )

    def _generate_blob_name(self, config: ImageConfig, owner_id: str, extension: str) -> str:
        timestamp = int(time.time() * 1000)
        return f"{config.folder}/{owner_id}/{config.filename_prefix}_{timestamp}.{extension}"

    async def _upload_to_azure(self, content: bytes, blob_name: str, container: str, content_type: str) -> str:
        try:
            blob_client = self.blob_service_client.get_blob_client(
                container=container,
                blob=blob_name
            )

            await blob_client.upload_blob(
                content,
                overwrite=False,
                content_settings=ContentSettings(
                    content_type=content_type,
                    cache_control=upload_settings.CACHE_CONTROL
                )
            )

            return f"https://{upload_settings.AZURE_STORAGE_ACCOUNT}.blob.core.windows.net/{container}/{blob_name}"

        except AzureError as e:
            logger.error("Upload of %s failed: %s", blob_name, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Upload failed: {str(e)}"
            )

    def _file_extension(self, filename: str) -> str:
        ext = re.sub(r"[^a-z0-9]", "", os.path.splitext(filename)[1].lower())
        return ext or "jpg"

    def _extract_blob_name(self, url: str, container: str) -> Optional[str]:
        path = unquote(urlparse(url).path)
        marker = f"/{container}/"
        if marker not in path:
            return None
        return path.split(marker, 1)[1] or None


image_upload_service = ImageUploadService()
