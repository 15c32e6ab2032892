"""Appointment lifecycle: booking, status changes, rescheduling and QR checks.

Status changes and reschedules that a teacher should hear about are stored
as notifications first and pushed to live subscribers second. In the async
operations every store round trip runs in a worker thread so the event loop
only ever waits on the hub.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, time
from typing import Callable

from sqlalchemy.orm import Session

from guestbook.core import config, datetime_utils
from guestbook.core.enums import RESOLVED_STATUSES, AppointmentStatus, RescheduleMarker, Role
from guestbook.core.exceptions import ErrorKind, ServiceError
from guestbook.models.appointment import Appointment
from guestbook.models.guest import Guest
from guestbook.models.user import User
from guestbook.repositories.appointment_repository import AppointmentRepository
from guestbook.services.notification_hub import NotificationHub
from guestbook.services.notification_service import MAX_MESSAGE_LENGTH, NotificationService

logger = logging.getLogger(__name__)

QR_CODE_LENGTH = 10
MAX_PURPOSE_LENGTH = 255

ARRIVED_MESSAGE = 'Janji temu dengan {guest} pada {schedule} telah sampai di lobby sekolah, segera temui!'
LATE_MESSAGE = 'Tamu {guest} untuk janji temu {schedule} datang terlambat dan sudah menunggu di lobby sekolah.'
RESCHEDULED_AFTER_CANCEL_MESSAGE = (
    'Janji temu dengan {guest} pada {schedule} yang sebelumnya dibatalkan akan dijadwalkan ulang.'
)
RESCHEDULED_MESSAGE = 'Janji temu dengan {guest} telah dijadwalkan ulang ke {schedule}.'

STATUS_MESSAGES = {
    AppointmentStatus.COMPLETED: ARRIVED_MESSAGE,
    AppointmentStatus.LATE: LATE_MESSAGE,
}


def _random_token() -> str:
    return uuid.uuid4().hex[:QR_CODE_LENGTH].upper()


def generate_qr_code(exists: Callable[[str], bool], token_factory: Callable[[], str] = _random_token) -> str:
    """Return a fresh code for which ``exists`` is false."""
    while True:
        code = token_factory()
        if not exists(code):
            return code
        logger.debug('QR code collision on %s, drawing again.', code)


def parse_status(value: str | AppointmentStatus) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError as exc:
        allowed = ', '.join(status.value for status in AppointmentStatus)
        raise ServiceError(ErrorKind.INVALID_INPUT, f'Status must be one of: {allowed}.') from exc


class AppointmentService:
    def __init__(self, db: Session, hub: NotificationHub):
        self.db = db
        self.hub = hub
        self.appointments = AppointmentRepository(db)
        self.notifications = NotificationService(db)

    def _get_or_404(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise ServiceError(ErrorKind.NOT_FOUND, 'Appointment not found.')
        return appointment

    async def _notify(self, staff_id: int, message: str) -> None:
        message = message[:MAX_MESSAGE_LENGTH]
        await asyncio.to_thread(self.notifications.create_notification, staff_id, message)
        await self.hub.broadcast(staff_id, message)

    def list_appointments(
        self,
        day: date | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = config.DEFAULT_PAGE_LIMIT,
    ) -> tuple[list[Appointment], int]:
        if page < 1 or limit < 1:
            raise ServiceError(ErrorKind.INVALID_INPUT, 'Page and limit must be positive.')

        status_filter = parse_status(status) if status else None
        return self.appointments.page(page, limit, day=day, status=status_filter)

    def list_appointments_for_staff(
        self,
        staff_id: int,
        day: date | None = None,
        status: str | None = None,
    ) -> list[Appointment]:
        status_filter = parse_status(status) if status else None
        return self.appointments.query(day=day, status=status_filter, staff_id=staff_id).all()

    def today_appointments(self) -> list[Appointment]:
        return self.appointments.list_for_date(datetime_utils.today())

    def create_appointment(
        self,
        guest_id: int,
        date_string: str,
        time_string: str,
        purpose: str,
        staff_id: int,
    ) -> Appointment:
        day = datetime_utils.parse_date_string(date_string)
        moment = datetime_utils.parse_time_string(time_string)

        normalized_purpose = (purpose or '').strip()
        if not normalized_purpose:
            raise ServiceError(ErrorKind.INVALID_INPUT, 'Purpose is required.')
        if len(normalized_purpose) > MAX_PURPOSE_LENGTH:
            raise ServiceError(
                ErrorKind.INVALID_INPUT,
                f'Purpose must be {MAX_PURPOSE_LENGTH} characters or fewer.',
            )

        guest = self.db.get(Guest, guest_id)
        if guest is None:
            raise ServiceError(ErrorKind.INVALID_INPUT, f'Guest with ID {guest_id} not found.')

        staff = self.db.get(User, staff_id)
        if staff is None or staff.role != Role.TEACHER.value:
            raise ServiceError(
                ErrorKind.INVALID_INPUT,
                f'Staff with ID {staff_id} not found or not a teacher.',
            )

        appointment = Appointment(
            guest_id=guest.id,
            staff_id=staff.id,
            purpose=normalized_purpose,
            status=AppointmentStatus.WAITING.value,
            qr_code=generate_qr_code(self.appointments.qr_code_exists),
        )
        appointment.set_schedule(day, moment)
        appointment = self.appointments.add(appointment)

        logger.info(
            'Created appointment %s for guest %s with staff %s on %s %s',
            appointment.id,
            guest.id,
            staff.id,
            datetime_utils.format_date(day),
            datetime_utils.format_time(moment),
        )
        return appointment

    def _apply_status(self, appointment_id: int, new_status: str) -> tuple[Appointment, str | None]:
        appointment = self._get_or_404(appointment_id)
        status = parse_status(new_status)

        previous = appointment.status
        appointment.status = status.value
        appointment = self.appointments.save(appointment)

        logger.info(
            'Appointment %s status %s -> %s',
            appointment.id,
            previous,
            status.value,
        )

        if previous != AppointmentStatus.WAITING.value or status not in RESOLVED_STATUSES:
            return appointment, None

        message = STATUS_MESSAGES[status].format(
            guest=appointment.guest.name,
            schedule=datetime_utils.format_long_datetime(appointment.date, appointment.time),
        )
        return appointment, message

    async def update_status(self, appointment_id: int, new_status: str) -> Appointment:
        appointment, message = await asyncio.to_thread(self._apply_status, appointment_id, new_status)
        if message is None:
            return appointment

        await self._notify(appointment.staff_id, message)
        # the notification commit expired the row; reload it off the loop
        return await asyncio.to_thread(self._get_or_404, appointment_id)

    def _load_for_reschedule(self, appointment_id: int) -> tuple[Appointment, str | None]:
        appointment = self._get_or_404(appointment_id)
        if appointment.reschedule_marker is not RescheduleMarker.CANCELLED:
            return appointment, None

        message = RESCHEDULED_AFTER_CANCEL_MESSAGE.format(
            guest=appointment.guest.name,
            schedule=datetime_utils.format_long_datetime(appointment.date, appointment.time),
        )
        return appointment, message

    def _move(self, appointment: Appointment, day: date, moment: time) -> tuple[Appointment, str]:
        appointment.set_schedule(day, moment)
        appointment.reschedule = RescheduleMarker.PENDING.value
        appointment = self.appointments.save(appointment)

        logger.info(
            'Rescheduled appointment %s to %s %s',
            appointment.id,
            datetime_utils.format_date(day),
            datetime_utils.format_time(moment),
        )

        message = RESCHEDULED_MESSAGE.format(
            guest=appointment.guest.name,
            schedule=datetime_utils.format_long_datetime(day, moment),
        )
        return appointment, message

    async def reschedule_appointment(
        self,
        appointment_id: int,
        date_string: str,
        time_string: str,
    ) -> Appointment:
        day = datetime_utils.parse_date_string(date_string)
        moment = datetime_utils.parse_time_string(time_string)

        appointment, cancelled_message = await asyncio.to_thread(self._load_for_reschedule, appointment_id)
        if cancelled_message is not None:
            await self._notify(appointment.staff_id, cancelled_message)

        appointment, message = await asyncio.to_thread(self._move, appointment, day, moment)
        await self._notify(appointment.staff_id, message)

        return await asyncio.to_thread(self._get_or_404, appointment_id)

    def get_by_qr_code(self, qr_code: str) -> Appointment:
        appointment = self.appointments.get_by_qr_code(qr_code)
        if appointment is None:
            raise ServiceError(ErrorKind.NOT_FOUND, 'Invalid QR code.')
        return appointment

    def verify_qr_code(self, qr_code: str) -> Appointment:
        """Check that ``qr_code`` may be used to check in right now.

        The appointment must be dated today and still waiting. Nothing is
        modified; marking the guest as arrived goes through ``update_status``.
        """
        appointment = self.get_by_qr_code(qr_code)

        if appointment.date != datetime_utils.today():
            logger.warning('Rejected check-in for appointment %s: not scheduled today.', appointment.id)
            raise ServiceError(ErrorKind.CONFLICT, 'Appointment is not scheduled for today.')

        if appointment.status != AppointmentStatus.WAITING.value:
            logger.warning(
                'Rejected check-in for appointment %s: status is %s.',
                appointment.id,
                appointment.status,
            )
            raise ServiceError(ErrorKind.CONFLICT, f'Appointment is already {appointment.status}.')

        return appointment
