from datetime import datetime

import pytest

from app.core.security import UserRole
from app.models import Appointment, AppointmentStatus
from app.services.scheduling import (
    can_access, find_conflicts, intervals_overlap, is_valid_transition,
    role_may_transition
)

TEN = datetime(2030, 1, 15, 10, 0)

def at(hour, minute=0):
    return datetime(2030, 1, 15, hour, minute)

def booking(id, start, duration=30, status=AppointmentStatus.CONFIRMED):
    return Appointment(
        id=id, patient_id=1, doctor_id=2,
        appointment_date=start, duration=duration, status=status
    )

class TestIntervalOverlap:

    @pytest.mark.parametrize("start,duration,expected", [
        (at(10, 15), 30, True),    # starts inside
        (at(9, 45), 30, True),     # ends inside
        (at(9, 30), 120, True),    # contains
        (at(10, 5), 10, True),     # contained
        (at(10), 30, True),        # identical
        (at(10, 30), 30, False),   # touches the end
        (at(9, 30), 30, False),    # touches the start
        (at(11), 30, False),       # well after
    ])
    def test_against_ten_to_half_past(self, start, duration, expected):
        assert intervals_overlap(TEN, 30, start, duration) is expected
        assert intervals_overlap(start, duration, TEN, 30) is expected

class TestFindConflicts:

    def test_cancelled_appointments_are_ignored(self):
        existing = [booking(1, TEN, status=AppointmentStatus.CANCELLED)]
        assert find_conflicts(existing, TEN, 30) == []

    def test_returns_overlapping_bookings(self):
        existing = [booking(1, TEN), booking(2, at(11)), booking(3, at(12))]
        conflicts = find_conflicts(existing, at(10, 45), 30)
        assert [a.id for a in conflicts] == [2]

    def test_exclude_self_when_rescheduling(self):
        existing = [booking(1, TEN)]
        assert find_conflicts(existing, at(10, 10), 30, exclude_id=1) == []

class TestTransitions:

    @pytest.mark.parametrize("current,target", [
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
    ])
    def test_valid(self, current, target):
        assert is_valid_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
        (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CANCELLED, AppointmentStatus.PENDING),
        (AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING),
    ])
    def test_invalid(self, current, target):
        assert not is_valid_transition(current, target)

    def test_patient_may_only_cancel_pending(self):
        assert role_may_transition(UserRole.PATIENT, AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
        assert not role_may_transition(UserRole.PATIENT, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED)
        assert not role_may_transition(UserRole.PATIENT, AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

    def test_doctor_moves(self):
        assert role_may_transition(UserRole.DOCTOR, AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
        assert role_may_transition(UserRole.DOCTOR, AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
        assert role_may_transition(UserRole.DOCTOR, AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
        assert not role_may_transition(UserRole.DOCTOR, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED)

    def test_admin_follows_state_machine(self):
        assert role_may_transition(UserRole.ADMIN, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED)
        assert not role_may_transition(UserRole.ADMIN, AppointmentStatus.COMPLETED, AppointmentStatus.PENDING)

class TestAccess:

    class Caller:
        def __init__(self, id, role):
            self.id = id
            self.role = role

    def test_parties_and_admin(self):
        appointment = booking(1, TEN)
        assert can_access(self.Caller(1, UserRole.PATIENT), appointment)
        assert can_access(self.Caller(2, UserRole.DOCTOR), appointment)
        assert can_access(self.Caller(99, UserRole.ADMIN), appointment)
        assert not can_access(self.Caller(3, UserRole.PATIENT), appointment)
        assert not can_access(self.Caller(4, UserRole.DOCTOR), appointment)
