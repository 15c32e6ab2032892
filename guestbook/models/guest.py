"""Guest model definitions."""

from sqlalchemy import Column, Integer, String
from guestbook.database import Base


class Guest(Base):
    """Represents a visitor. Guests are tracked, they never log in."""
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(255), nullable=False)
