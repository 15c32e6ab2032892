import os
from datetime import date, datetime, time

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from guestbook.core.enums import AppointmentStatus, Role  # noqa: E402
from guestbook.database import Base  # noqa: E402
from guestbook.models.appointment import Appointment  # noqa: E402
from guestbook.models.guest import Guest  # noqa: E402
from guestbook.models.notification import Notification  # noqa: E402
from guestbook.models.user import User  # noqa: E402

ADMIN_ID = 1
RECEPTIONIST_ID = 2
TEACHER_ID = 3
OTHER_TEACHER_ID = 4
GUEST_ID = 1

TABLES = [User.__table__, Guest.__table__, Appointment.__table__, Notification.__table__]


class RecordingHub:
    """Stands in for the live hub and remembers every broadcast."""

    def __init__(self):
        self.broadcasts: list[tuple[int, str]] = []

    async def broadcast(self, staff_id: int, message: str) -> int:
        self.broadcasts.append((staff_id, message))
        return 1


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    db.add_all([
        User(id=ADMIN_ID, name='Admin Utama', email='admin@school.test', hashed_password='', role=Role.ADMIN.value),
        User(
            id=RECEPTIONIST_ID,
            name='Operator',
            email='operator@school.test',
            hashed_password='',
            role=Role.RECEPTIONIST.value,
        ),
        User(id=TEACHER_ID, name='Bu Sari', email='sari@school.test', hashed_password='', role=Role.TEACHER.value),
        User(
            id=OTHER_TEACHER_ID,
            name='Pak Budi',
            email='budi@school.test',
            hashed_password='',
            role=Role.TEACHER.value,
        ),
        Guest(id=GUEST_ID, name='Havid', phone='085233445459'),
    ])
    db.commit()
    return db


@pytest.fixture
def hub():
    return RecordingHub()


_qr_counter = iter(range(1, 1_000_000))


def make_appointment(
    db,
    day: date,
    moment: time,
    status: AppointmentStatus = AppointmentStatus.WAITING,
    reschedule: str | None = None,
    staff_id: int = TEACHER_ID,
    guest_id: int = GUEST_ID,
    purpose: str = 'consultation',
) -> Appointment:
    appointment = Appointment(
        guest_id=guest_id,
        staff_id=staff_id,
        scheduled_at=datetime.combine(day, moment),
        purpose=purpose,
        status=status.value,
        qr_code=f'QR{next(_qr_counter):08d}',
        reschedule=reschedule,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment
