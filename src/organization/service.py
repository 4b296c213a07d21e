# src/organization/service.py
import logging
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.organization.models import Organization
from src.organization.schemas import LogoUploadResponse
from src.upload.schemas import ImageType
from src.upload.service import image_upload_service

logger = logging.getLogger(__name__)


async def get_organization(organization_id: UUID, db: AsyncSession) -> Organization:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    organization = result.scalars().first()
    if not organization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
        )
    return organization


async def upload_organization_logo(
    organization_id: UUID, file: UploadFile, db: AsyncSession
) -> LogoUploadResponse:
    organization = await get_organization(organization_id, db)
    content = await file.read()

    upload_result = await image_upload_service.upload_image(
        content=content,
        filename=file.filename or "",
        content_type=file.content_type or "",
        image_type=ImageType.ORGANIZATION_LOGO,
        owner_id=str(organization_id),
    )

    old_logo_url = organization.logo_url

    try:
        organization.logo_url = upload_result.url
        await db.commit()
    except Exception as e:
        await db.rollback()
        await image_upload_service.delete_image(upload_result.url, ImageType.ORGANIZATION_LOGO)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update organization logo: {str(e)}",
        ) from e

    old_logo_deleted = False
    if old_logo_url:
        old_logo_deleted = await image_upload_service.delete_image(
            old_logo_url, ImageType.ORGANIZATION_LOGO
        )
        if not old_logo_deleted:
            logger.warning("Old logo left in storage: %s", old_logo_url)

    return LogoUploadResponse(
        message="Organization logo uploaded successfully",
        url=upload_result.url,
        old_logo_deleted=old_logo_deleted,
        compressed=upload_result.compressed,
        compression_ratio=upload_result.compression_ratio,
    )


async def delete_organization(organization_id: UUID, db: AsyncSession) -> None:
    organization = await get_organization(organization_id, db)

    if organization.logo_url:
        await image_upload_service.delete_image(organization.logo_url, ImageType.ORGANIZATION_LOGO)

    try:
        await db.delete(organization)
        await db.commit()
    except Exception:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete organization",
        ) from None
