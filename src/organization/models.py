# src/organization/models.py
from sqlalchemy import Column, DateTime, String, Uuid, func

from src.database import Base


class Organization(Base):
    __tablename__ = "organizations"
    id = Column(Uuid, primary_key=True)
    name = Column(String, nullable=False)
    logo_url = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
