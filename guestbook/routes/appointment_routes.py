import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from guestbook.auth.dependencies import get_current_user, require_teacher
from guestbook.core import config, datetime_utils
from guestbook.core.enums import AppointmentStatus
from guestbook.database import ensure_appointment_schema, get_db
from guestbook.models.appointment import Appointment
from guestbook.models.user import User
from guestbook.services.appointment_service import MAX_PURPOSE_LENGTH, AppointmentService
from guestbook.services.notification_hub import NotificationHub, get_notification_hub

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class CreateAppointmentRequest(BaseModel):
    guest_id: int
    date: str
    time: str
    purpose: str

    @field_validator('purpose')
    @classmethod
    def validate_purpose(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Purpose is required.')

        if len(normalized) > MAX_PURPOSE_LENGTH:
            raise ValueError(f'Purpose must be {MAX_PURPOSE_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(BaseModel):
    status: str


class RescheduleRequest(BaseModel):
    date: str
    time: str


class GuestSummary(BaseModel):
    id: int
    name: str
    phone: str

    model_config = ConfigDict(from_attributes=True)


class StaffSummary(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class AppointmentResponse(BaseModel):
    id: int
    date: str
    time: str
    status: str
    purpose: str
    qr_code: str
    reschedule: str | None = None
    guest: GuestSummary | None = None
    staff: StaffSummary | None = None


class PagedAppointmentResponse(BaseModel):
    total: int
    page: int
    limit: int
    data: list[AppointmentResponse] = Field(default_factory=list)


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        date=datetime_utils.format_date(appointment.date),
        time=datetime_utils.format_time(appointment.time),
        status=appointment.status,
        purpose=appointment.purpose,
        qr_code=appointment.qr_code,
        reschedule=appointment.reschedule,
        guest=GuestSummary.model_validate(appointment.guest) if appointment.guest else None,
        staff=StaffSummary.model_validate(appointment.staff) if appointment.staff else None,
    )


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def get_appointment_service(
    db: Session = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
) -> AppointmentService:
    return AppointmentService(db, hub)


def database_unavailable(service: AppointmentService, action: str) -> HTTPException:
    service.db.rollback()
    logger.exception('Database error while %s.', action)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE,
    )


@router.get('', response_model=PagedAppointmentResponse)
def list_appointments(
    date: date | None = Query(default=None),
    status: AppointmentStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointments, total = service.list_appointments(day=date, status=status, page=page, limit=limit)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, 'listing appointments') from exc

    return PagedAppointmentResponse(
        total=total,
        page=page,
        limit=limit,
        data=[to_appointment_response(appointment) for appointment in appointments],
    )


@router.get('/today', response_model=list[AppointmentResponse])
def list_today_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointments = service.today_appointments()
    except SQLAlchemyError as exc:
        raise database_unavailable(service, "listing today's appointments") from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/guru/{staff_id}', response_model=list[AppointmentResponse])
def list_staff_appointments(
    staff_id: int,
    date: date | None = Query(default=None),
    status: AppointmentStatus | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointments = service.list_appointments_for_staff(staff_id, day=date, status=status)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, f'listing appointments for staff {staff_id}') from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_teacher),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = service.create_appointment(
            guest_id=data.guest_id,
            date_string=data.date,
            time_string=data.time,
            purpose=data.purpose,
            staff_id=current_user.id,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(service, 'creating an appointment') from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/status', response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = await service.update_status(appointment_id, data.status)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, f'updating status of appointment {appointment_id}') from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/reschedule', response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = await service.reschedule_appointment(appointment_id, data.date, data.time)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, f'rescheduling appointment {appointment_id}') from exc

    return to_appointment_response(appointment)


@router.get('/qr/{qr_code}', response_model=AppointmentResponse)
def get_appointment_by_qr_code(
    qr_code: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = service.get_by_qr_code(qr_code)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, 'looking up a QR code') from exc

    return to_appointment_response(appointment)


@router.get('/qr/{qr_code}/verify', response_model=AppointmentResponse)
def verify_appointment_qr_code(
    qr_code: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = service.verify_qr_code(qr_code)
    except SQLAlchemyError as exc:
        raise database_unavailable(service, 'verifying a QR code') from exc

    return to_appointment_response(appointment)
