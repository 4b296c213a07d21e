# src/organization/router.py
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_async_session
from src.organization.schemas import LogoUploadResponse
from src.organization.service import delete_organization, upload_organization_logo

router = APIRouter()


@router.post("/{organization_id}/logo", response_model=LogoUploadResponse)
async def upload_logo(
    organization_id: UUID,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_async_session),
):
    return await upload_organization_logo(organization_id, file, db)


@router.delete("/{organization_id}")
async def remove_organization(
    organization_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    await delete_organization(organization_id, db)
    return {"message": "Organization deleted successfully"}
