"""Appointment model definitions."""

from __future__ import annotations

from datetime import date, time

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from guestbook.core import datetime_utils
from guestbook.core.enums import RescheduleMarker
from guestbook.database import Base


class Appointment(Base):
    """Represents a scheduled meeting between a guest and a teacher.

    The schedule is stored as one ``scheduled_at`` timestamp; everything
    outside this class reads and writes it through ``date`` and ``time``.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    purpose = Column(String(255), nullable=False)
    status = Column(String, nullable=False)
    qr_code = Column(String(50), nullable=False, unique=True, index=True)
    reschedule = Column(String, nullable=True)

    guest = relationship("Guest")
    staff = relationship("User")

    @property
    def date(self) -> date:
        return self.scheduled_at.date()

    @property
    def time(self) -> time:
        return self.scheduled_at.time().replace(second=0, microsecond=0)

    def set_schedule(self, day: date, moment: time) -> None:
        self.scheduled_at = datetime_utils.combine(day, moment)

    @property
    def reschedule_marker(self) -> RescheduleMarker | None:
        if not self.reschedule:
            return None
        return RescheduleMarker(self.reschedule)
