"""
Scheduling rules for the appointment ledger.

Two pieces live here: the half-open interval overlap test used to prevent
double-booking a doctor, and the status state machine with its per-role
permissions. Both are pure so they can be tested without a database.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus

# Allowed moves of the status state machine; terminal states map to nothing.
TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

# Transitions each non-admin role may perform on appointments they belong to.
ROLE_TRANSITIONS = {
    UserRole.PATIENT: {
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
    },
    UserRole.DOCTOR: {
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
    },
}

def end_of(start: datetime, duration: int) -> datetime:
    return start + timedelta(minutes=duration)

def intervals_overlap(
    start_a: datetime, duration_a: int,
    start_b: datetime, duration_b: int
) -> bool:
    """Half-open overlap test; touching endpoints do not overlap."""
    return start_a < end_of(start_b, duration_b) and start_b < end_of(start_a, duration_a)

def find_conflicts(
    existing: Iterable[Appointment],
    start: datetime,
    duration: int,
    exclude_id: Optional[int] = None
) -> List[Appointment]:
    """Return the non-cancelled appointments that overlap [start, start+duration)."""
    return [
        appt for appt in existing
        if appt.status != AppointmentStatus.CANCELLED
        and appt.id != exclude_id
        and intervals_overlap(appt.appointment_date, appt.duration, start, duration)
    ]

def is_valid_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]

def role_may_transition(
    role: UserRole,
    current: AppointmentStatus,
    target: AppointmentStatus
) -> bool:
    """Whether a caller with `role` may move an appointment from `current` to `target`.

    Admins may perform any move the state machine allows; ownership is
    checked separately.
    """
    if role == UserRole.ADMIN:
        return is_valid_transition(current, target)
    return (current, target) in ROLE_TRANSITIONS.get(role, set())

def can_access(user, appointment: Appointment) -> bool:
    """Admins see everything; others only appointments they are party to."""
    if user.role == UserRole.ADMIN:
        return True
    return user.id in (appointment.patient_id, appointment.doctor_id)
