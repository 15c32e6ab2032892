"""User model definitions."""

from sqlalchemy import Column, Integer, String
from guestbook.database import Base


class User(Base):
    """Represents a school staff account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True)
    hashed_password = Column(String(255))
    role = Column(String, nullable=False)  # Admin/PenerimaTamu/Guru
