from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentEnvelope, AppointmentListResponse,
    AppointmentOut, AppointmentUpdate
)
from ...schemas.stats import MessageResponse
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Own bookings for patients, own schedule for doctors, everything for admins."""
    appointments = AppointmentService(db).list_for_user(current_user)
    return AppointmentListResponse(
        appointments=[AppointmentOut.from_appointment(a) for a in appointments]
    )

@router.get("/{appointment_id}", response_model=AppointmentEnvelope)
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    appointment = AppointmentService(db).get_appointment(current_user, appointment_id)
    return AppointmentEnvelope(appointment=AppointmentOut.from_appointment(appointment))

@router.post("", response_model=AppointmentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Book a slot; rejected when it overlaps the doctor's existing bookings."""
    appointment = AppointmentService(db).create_appointment(current_user, appointment_data)
    return AppointmentEnvelope(
        message="Appointment created successfully",
        appointment=AppointmentOut.from_appointment(appointment)
    )

@router.put("/{appointment_id}", response_model=AppointmentEnvelope)
async def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    appointment = AppointmentService(db).update_appointment(
        current_user, appointment_id, appointment_data
    )
    return AppointmentEnvelope(
        message="Appointment updated successfully",
        appointment=AppointmentOut.from_appointment(appointment)
    )

@router.delete("/{appointment_id}", response_model=MessageResponse)
async def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    AppointmentService(db).delete_appointment(current_user, appointment_id)
    return MessageResponse(message="Appointment deleted successfully")
