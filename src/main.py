# src/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.account import models as account_models  # noqa
from src.api import api_router
from src.config import settings
from src.organization import models as organization_models  # noqa

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title=settings.PROJECT_NAME)

app.include_router(api_router)

origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.get("/")
async def read_root():
    return {"msg": "Welcome to the Attendance Image Service!"}


@app.get("/health-check")
async def health_check():
    return {"status": "healthy"}
