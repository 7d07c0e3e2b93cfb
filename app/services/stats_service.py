from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional

from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User
from ..schemas.stats import AdminStats, PersonalStats, StatusCounts, UserCounts

class StatsService:
    def __init__(self, db: Session):
        self.db = db

    def personal_stats(self, user: User) -> dict:
        """Counts over the caller's own appointments; admins get an empty dict."""
        if user.role == UserRole.PATIENT:
            column = Appointment.patient_id
        elif user.role == UserRole.DOCTOR:
            column = Appointment.doctor_id
        else:
            return {}

        counts = self._status_counts(column == user.id)
        stats = PersonalStats(**counts.model_dump())
        if user.role == UserRole.DOCTOR:
            stats.total_patients = self.db.query(
                func.count(func.distinct(Appointment.patient_id))
            ).filter(Appointment.doctor_id == user.id).scalar() or 0
            return stats.model_dump()
        return stats.model_dump(exclude={"total_patients"})

    def admin_stats(self, now: Optional[datetime] = None) -> AdminStats:
        now = now or datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today_start - timedelta(days=today_start.weekday())

        return AdminStats(
            users=self._user_counts(),
            appointments=self._status_counts(),
            today=self._count_between(today_start, today_start + timedelta(days=1)),
            week=self._count_between(week_start, week_start + timedelta(days=7))
        )

    def _user_counts(self) -> UserCounts:
        rows = self.db.query(User.role, func.count(User.id)).group_by(User.role).all()
        by_role = {UserRole(role): count for role, count in rows}
        return UserCounts(
            total_users=sum(by_role.values()),
            total_patients=by_role.get(UserRole.PATIENT, 0),
            total_doctors=by_role.get(UserRole.DOCTOR, 0),
            total_admins=by_role.get(UserRole.ADMIN, 0)
        )

    def _status_counts(self, *criteria) -> StatusCounts:
        rows = self.db.query(
            Appointment.status, func.count(Appointment.id)
        ).filter(*criteria).group_by(Appointment.status).all()
        by_status = {AppointmentStatus(status): count for status, count in rows}
        return StatusCounts(
            total_appointments=sum(by_status.values()),
            pending=by_status.get(AppointmentStatus.PENDING, 0),
            confirmed=by_status.get(AppointmentStatus.CONFIRMED, 0),
            completed=by_status.get(AppointmentStatus.COMPLETED, 0),
            cancelled=by_status.get(AppointmentStatus.CANCELLED, 0)
        )

    def _count_between(self, start: datetime, end: datetime) -> int:
        return self.db.query(func.count(Appointment.id)).filter(
            Appointment.appointment_date >= start,
            Appointment.appointment_date < end
        ).scalar() or 0
