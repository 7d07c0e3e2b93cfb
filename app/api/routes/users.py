from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user
from ...services.user_service import UserService
from ...services.stats_service import StatsService
from ...schemas.auth import ChangePassword, UserResponse
from ...schemas.stats import MessageResponse, PersonalStatsResponse
from ...schemas.user import DoctorListResponse, ProfileUpdate, UserEnvelope
from ...models.user import User

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("/doctors", response_model=DoctorListResponse)
async def list_doctors(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Doctors available for booking, ordered by name."""
    doctors = UserService(db).list_doctors()
    return DoctorListResponse(
        doctors=[UserResponse.model_validate(d) for d in doctors]
    )

@router.get("/profile", response_model=UserEnvelope)
async def get_profile(
    current_user: User = Depends(get_current_user)
):
    return UserEnvelope(user=UserResponse.model_validate(current_user))

@router.put("/profile", response_model=UserEnvelope)
async def update_profile(
    profile_data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    user = UserService(db).update_profile(current_user, profile_data)
    return UserEnvelope(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user)
    )

@router.put("/password", response_model=MessageResponse)
async def change_password(
    password_data: ChangePassword,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change user password."""
    UserService(db).change_password(
        current_user,
        password_data.current_password,
        password_data.new_password
    )
    return MessageResponse(message="Password changed successfully")

@router.get("/stats", response_model=PersonalStatsResponse)
async def my_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Appointment counts for the caller's own bookings or schedule."""
    return PersonalStatsResponse(stats=StatsService(db).personal_stats(current_user))
