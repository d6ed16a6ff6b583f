"""Notification model definitions."""

from sqlalchemy import BigInteger, Boolean, Column, ForeignKey, Integer, String
from clinic_backend.database import Base


class Notification(Base):
    """A message shown in a user's notification panel."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(String, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
