# src/api.py
from fastapi import APIRouter

from src.account.router import router as account_router
from src.compression.router import router as compression_router
from src.organization.router import router as organization_router

api_router = APIRouter()
api_router.include_router(compression_router, prefix="/compression", tags=["compression"])
api_router.include_router(account_router, prefix="/account", tags=["account"])
api_router.include_router(organization_router, prefix="/organization", tags=["organization"])
