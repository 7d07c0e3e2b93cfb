from sqlalchemy.orm import Session, joinedload
from datetime import datetime
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError, NotFoundError, SchedulingConflictError, ValidationFailed
)
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate
from .scheduling import (
    can_access, end_of, find_conflicts, is_valid_transition, role_may_transition
)

logger = logging.getLogger(__name__)

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Appointment).options(
            joinedload(Appointment.patient),
            joinedload(Appointment.doctor)
        )

    def list_for_user(self, user: User) -> List[Appointment]:
        """Role-scoped listing: own bookings, own schedule, or everything."""
        query = self._query()
        if user.role == UserRole.PATIENT:
            query = query.filter(Appointment.patient_id == user.id)
        elif user.role == UserRole.DOCTOR:
            query = query.filter(Appointment.doctor_id == user.id)
        return query.order_by(Appointment.appointment_date.desc()).all()

    def search(
        self,
        status: Optional[AppointmentStatus] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> List[Appointment]:
        """Unscoped filtered listing for the admin panel."""
        query = self._query()
        if status is not None:
            query = query.filter(Appointment.status == status)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if date_from is not None:
            query = query.filter(Appointment.appointment_date >= date_from)
        if date_to is not None:
            query = query.filter(Appointment.appointment_date <= date_to)
        return query.order_by(Appointment.appointment_date.desc()).all()

    def get_appointment(self, user: User, appointment_id: int) -> Appointment:
        appointment = self._query().filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        if not can_access(user, appointment):
            raise AuthorizationError("Access denied")
        return appointment

    def create_appointment(self, user: User, data: AppointmentCreate) -> Appointment:
        """Book a slot with a doctor. New appointments start as pending."""
        patient_id = self._resolve_patient(user, data.patient_id)
        duration = data.duration or settings.DEFAULT_APPOINTMENT_DURATION

        try:
            doctor = self._lock_doctor(data.doctor_id)
            if not doctor or doctor.role != UserRole.DOCTOR or not doctor.is_active:
                raise ValidationFailed("Invalid doctor")

            self._ensure_slot_free(doctor.id, data.appointment_date, duration)

            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor.id,
                appointment_date=data.appointment_date,
                duration=duration,
                reason=data.reason,
                status=AppointmentStatus.PENDING
            )
            self.db.add(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} booked: patient={patient_id} "
            f"doctor={doctor.id} at {appointment.appointment_date} ({duration} min)"
        )
        return appointment

    def update_appointment(
        self,
        user: User,
        appointment_id: int,
        data: AppointmentUpdate
    ) -> Appointment:
        appointment = self.get_appointment(user, appointment_id)

        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key == "notes"
        }
        if not changes:
            raise ValidationFailed("No changes provided")

        try:
            if "status" in changes:
                self._apply_status(user, appointment, changes["status"])

            if "notes" in changes:
                appointment.notes = changes["notes"]

            if "appointment_date" in changes or "duration" in changes:
                if user.role == UserRole.PATIENT:
                    raise AuthorizationError("Patients cannot reschedule appointments")
                start = changes.get("appointment_date", appointment.appointment_date)
                duration = changes.get("duration", appointment.duration)
                if appointment.status != AppointmentStatus.CANCELLED:
                    self._lock_doctor(appointment.doctor_id)
                    self._ensure_slot_free(
                        appointment.doctor_id, start, duration, exclude_id=appointment.id
                    )
                appointment.appointment_date = start
                appointment.duration = duration

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return appointment

    def delete_appointment(self, user: User, appointment_id: int) -> None:
        appointment = self.get_appointment(user, appointment_id)
        self.db.delete(appointment)
        self.db.commit()
        logger.info(f"Appointment {appointment_id} deleted by user {user.id}")

    def _resolve_patient(self, user: User, requested_id: Optional[int]) -> int:
        if user.role == UserRole.DOCTOR:
            raise AuthorizationError("Only patients can book appointments")

        if user.role == UserRole.ADMIN:
            if requested_id is None:
                raise ValidationFailed("patient_id is required when booking as admin")
            patient = self.db.query(User).filter(User.id == requested_id).first()
            if not patient or patient.role != UserRole.PATIENT:
                raise ValidationFailed("Invalid patient")
            return patient.id

        if requested_id is not None and requested_id != user.id:
            raise AuthorizationError("Patients can only book for themselves")
        return user.id

    def _lock_doctor(self, doctor_id: int) -> Optional[User]:
        """Row-lock the doctor so concurrent bookings for them serialize."""
        if self.db.get_bind().dialect.name == "sqlite":
            # SQLite ignores FOR UPDATE; a write takes the database write lock instead
            self.db.query(User).filter(User.id == doctor_id).update(
                {User.updated_at: User.updated_at}, synchronize_session=False
            )
        return self.db.query(User).filter(User.id == doctor_id).with_for_update().first()

    def _ensure_slot_free(
        self,
        doctor_id: int,
        start: datetime,
        duration: int,
        exclude_id: Optional[int] = None
    ) -> None:
        candidates = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.appointment_date < end_of(start, duration)
        ).all()

        conflicts = find_conflicts(candidates, start, duration, exclude_id=exclude_id)
        if conflicts:
            logger.warning(
                f"Scheduling conflict for doctor {doctor_id} at {start} "
                f"({duration} min) with appointment(s) {[a.id for a in conflicts]}"
            )
            raise SchedulingConflictError()

    def _apply_status(
        self,
        user: User,
        appointment: Appointment,
        target: AppointmentStatus
    ) -> None:
        current = appointment.status
        if target == current:
            return

        if user.role == UserRole.PATIENT and target in (
            AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED
        ):
            raise AuthorizationError("Patients cannot confirm or complete appointments")

        if not is_valid_transition(current, target):
            raise ValidationFailed(
                f"Cannot change status from {current.value} to {target.value}"
            )

        if not role_may_transition(user.role, current, target):
            raise AuthorizationError(
                f"Not allowed to change status from {current.value} to {target.value}"
            )

        appointment.status = target
        logger.info(
            f"Appointment {appointment.id} status {current.value} -> {target.value} "
            f"by user {user.id} ({user.role.value})"
        )
