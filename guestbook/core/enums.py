from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Closed set of user roles as stored in ``users.role``."""

    ADMIN = "Admin"
    RECEPTIONIST = "PenerimaTamu"
    TEACHER = "Guru"


class AppointmentStatus(str, Enum):
    """Appointment status values. ``WAITING`` is initial, the others resolve it."""

    WAITING = "Menunggu"
    COMPLETED = "Selesai"
    LATE = "Telat"


class RescheduleMarker(str, Enum):
    """Reschedule side channel. A NULL column means the appointment was never moved."""

    PENDING = "Tunggu"
    CANCELLED = "Batal"


RESOLVED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.LATE})
