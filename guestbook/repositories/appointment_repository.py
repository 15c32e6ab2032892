from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Query, Session, joinedload

from guestbook.core import datetime_utils
from guestbook.core.enums import AppointmentStatus
from guestbook.models.appointment import Appointment


class AppointmentRepository:
    """Read/write access to the ``appointments`` table.

    Date filters arrive as calendar dates and are turned into timestamp
    ranges here, so callers never touch ``scheduled_at`` directly.
    """

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(Appointment).options(
            joinedload(Appointment.guest),
            joinedload(Appointment.staff),
        )

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        return self.save(appointment)

    def save(self, appointment: Appointment) -> Appointment:
        """Commit and reload ``appointment`` with its guest and staff."""
        self.db.commit()
        return self.get(appointment.id)

    def get(self, appointment_id: int) -> Appointment | None:
        return self._base_query().filter(Appointment.id == appointment_id).first()

    def get_by_qr_code(self, qr_code: str) -> Appointment | None:
        return self._base_query().filter(Appointment.qr_code == qr_code).first()

    def qr_code_exists(self, qr_code: str) -> bool:
        return self.db.query(Appointment.id).filter(Appointment.qr_code == qr_code).first() is not None

    def query(
        self,
        day: date | None = None,
        status: AppointmentStatus | str | None = None,
        staff_id: int | None = None,
    ) -> Query:
        query = self._base_query()

        if day is not None:
            start, end = datetime_utils.day_bounds(day)
            query = query.filter(Appointment.scheduled_at >= start, Appointment.scheduled_at < end)

        if status:
            query = query.filter(Appointment.status == AppointmentStatus(status).value)

        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)

        return query.order_by(Appointment.scheduled_at.asc(), Appointment.id.asc())

    def page(
        self,
        page: int,
        limit: int,
        day: date | None = None,
        status: AppointmentStatus | str | None = None,
    ) -> tuple[list[Appointment], int]:
        query = self.query(day=day, status=status)
        total = query.order_by(None).count()
        items = query.offset((page - 1) * limit).limit(limit).all()
        return items, total

    def list_for_date(self, day: date) -> list[Appointment]:
        return self.query(day=day).all()
