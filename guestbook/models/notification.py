"""Notification model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from guestbook.database import Base


class Notification(Base):
    """A message addressed to one staff member."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
