# src/account/models.py
from sqlalchemy import Column, DateTime, String, Uuid, func

from src.database import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(Uuid, primary_key=True)
    display_name = Column(String, nullable=True)
    profile_photo_url = Column(String, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
