from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import get_admin_user
from ...services.appointment_service import AppointmentService
from ...services.stats_service import StatsService
from ...services.user_service import UserService
from ...schemas.appointment import AppointmentListResponse, AppointmentOut, to_naive_utc
from ...schemas.auth import UserResponse
from ...schemas.stats import AdminStatsResponse, MessageResponse
from ...schemas.user import (
    AdminUserCreate, AdminUserUpdate, PasswordResetByAdmin,
    UserEnvelope, UserListResponse, UserStatusUpdate
)
from ...models.appointment import AppointmentStatus
from ...models.user import User

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_admin_user)]
)

@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(db: Session = Depends(get_db)):
    """Dashboard counters: users by role, appointments by status, today, this week."""
    return AdminStatsResponse(stats=StatsService(db).admin_stats())

@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = None,
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db)
):
    users = UserService(db).list_users(role=role, search=search)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])

@router.post("/users", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: AdminUserCreate,
    db: Session = Depends(get_db)
):
    """Create an account with any role, including admin."""
    user = UserService(db).create_user(
        email=user_data.email,
        password=user_data.password,
        full_name=user_data.full_name,
        role=user_data.role,
        phone=user_data.phone
    )
    return UserEnvelope(
        message="User created successfully",
        user=UserResponse.model_validate(user)
    )

@router.put("/users/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: int,
    user_data: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    user = UserService(db).admin_update_user(admin, user_id, user_data)
    return UserEnvelope(
        message="User updated successfully",
        user=UserResponse.model_validate(user)
    )

@router.patch("/users/{user_id}/status", response_model=UserEnvelope)
async def update_user_status(
    user_id: int,
    status_data: UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    """Activate or deactivate an account."""
    user = UserService(db).set_active(admin, user_id, status_data.is_active)
    return UserEnvelope(
        message=f"User {'activated' if user.is_active else 'deactivated'} successfully",
        user=UserResponse.model_validate(user)
    )

@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    UserService(db).delete_user(admin, user_id)
    return MessageResponse(message="User deleted successfully")

@router.post("/users/{user_id}/reset-password", response_model=MessageResponse)
async def reset_user_password(
    user_id: int,
    reset_data: PasswordResetByAdmin,
    db: Session = Depends(get_db)
):
    UserService(db).reset_password(user_id, reset_data.new_password)
    return MessageResponse(message="Password reset successfully")

@router.get("/appointments", response_model=AppointmentListResponse)
async def search_appointments(
    status: Optional[AppointmentStatus] = None,
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    """All appointments, optionally filtered."""
    appointments = AppointmentService(db).search(
        status=status,
        doctor_id=doctor_id,
        patient_id=patient_id,
        date_from=to_naive_utc(date_from),
        date_to=to_naive_utc(date_to)
    )
    return AppointmentListResponse(
        appointments=[AppointmentOut.from_appointment(a) for a in appointments]
    )
