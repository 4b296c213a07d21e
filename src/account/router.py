# src/account/router.py
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.account.schemas import Base64PhotoUpload, PhotoUploadResponse
from src.account.service import delete_profile_photo, upload_profile_photo
from src.database import get_async_session

router = APIRouter()


@router.post("/{user_id}/photo", response_model=PhotoUploadResponse)
async def upload_photo(
    user_id: UUID,
    upload_data: Base64PhotoUpload,
    db: AsyncSession = Depends(get_async_session),
):
    return await upload_profile_photo(user_id, upload_data, db)


@router.delete("/{user_id}/photo")
async def delete_photo(
    user_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    await delete_profile_photo(user_id, db)
    return {"message": "Profile photo deleted successfully"}
