# src/account/service.py
import base64
import binascii
import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.account.models import UserProfile
from src.account.schemas import Base64PhotoUpload, PhotoUploadResponse
from src.upload.schemas import ImageType
from src.upload.service import image_upload_service

logger = logging.getLogger(__name__)


def decode_base64_image(data: str) -> bytes:
    # Accept both raw base64 and a full data URL
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid upload data"
        ) from None


async def get_user_profile(user_id: UUID, db: AsyncSession) -> UserProfile:
    result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
    profile = result.scalars().first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found"
        )
    return profile


async def upload_profile_photo(
    user_id: UUID, upload_data: Base64PhotoUpload, db: AsyncSession
) -> PhotoUploadResponse:
    profile = await get_user_profile(user_id, db)
    content = decode_base64_image(upload_data.base64_data)

    upload_result = await image_upload_service.upload_image(
        content=content,
        filename=upload_data.file_name,
        content_type=upload_data.file_type,
        image_type=ImageType.PROFILE_PHOTO,
        owner_id=str(user_id),
    )

    old_photo_url = profile.profile_photo_url

    try:
        profile.profile_photo_url = upload_result.url
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Profile update failed for %s, removing uploaded photo: %s", user_id, e)
        # The new blob would be orphaned without a profile pointing at it
        await image_upload_service.delete_image(upload_result.url, ImageType.PROFILE_PHOTO)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update profile photo: {str(e)}",
        ) from e

    old_photo_deleted = False
    if old_photo_url:
        old_photo_deleted = await image_upload_service.delete_image(
            old_photo_url, ImageType.PROFILE_PHOTO
        )
        if not old_photo_deleted:
            logger.warning(
                "Failed to delete old photo, but continuing with upload: %s", old_photo_url
            )

    return PhotoUploadResponse(
        message="Profile photo uploaded successfully",
        url=upload_result.url,
        old_photo_deleted=old_photo_deleted,
        compressed=upload_result.compressed,
        compression_ratio=upload_result.compression_ratio,
    )


async def delete_profile_photo(user_id: UUID, db: AsyncSession) -> None:
    profile = await get_user_profile(user_id, db)
    if not profile.profile_photo_url:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No profile photo found"
        )

    try:
        deleted = await image_upload_service.delete_image(
            profile.profile_photo_url, ImageType.PROFILE_PHOTO
        )
        if not deleted:
            logger.warning("Stored photo could not be removed: %s", profile.profile_photo_url)

        profile.profile_photo_url = None
        await db.commit()

    except Exception:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete profile photo",
        ) from None
