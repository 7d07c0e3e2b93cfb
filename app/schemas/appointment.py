from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.appointment import AppointmentStatus

def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Appointments are stored as naive UTC timestamps."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_date: datetime
    duration: Optional[int] = Field(None, ge=5, le=480)
    reason: Optional[str] = None
    patient_id: Optional[int] = None  # admin bookings only

    @field_validator("appointment_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v):
        if v is None:
            return v
        return v.strip() or None

class AppointmentUpdate(BaseModel):
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None
    appointment_date: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=5, le=480)

    @field_validator("appointment_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    appointment_date: datetime
    end_time: datetime
    duration: int
    status: AppointmentStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_email: Optional[str] = None
    doctor_phone: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment) -> "AppointmentOut":
        out = cls.model_validate(appointment)
        if appointment.patient is not None:
            out.patient_name = appointment.patient.full_name
            out.patient_email = appointment.patient.email
            out.patient_phone = appointment.patient.phone
        if appointment.doctor is not None:
            out.doctor_name = appointment.doctor.full_name
            out.doctor_email = appointment.doctor.email
            out.doctor_phone = appointment.doctor.phone
        return out

class AppointmentEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    appointment: AppointmentOut

class AppointmentListResponse(BaseModel):
    success: bool = True
    appointments: List[AppointmentOut]
