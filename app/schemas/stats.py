from pydantic import BaseModel
from typing import Optional

class StatusCounts(BaseModel):
    total_appointments: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0

class PersonalStats(StatusCounts):
    total_patients: Optional[int] = None  # doctors only

class UserCounts(BaseModel):
    total_users: int = 0
    total_patients: int = 0
    total_doctors: int = 0
    total_admins: int = 0

class AdminStats(BaseModel):
    users: UserCounts
    appointments: StatusCounts
    today: int = 0
    week: int = 0

class PersonalStatsResponse(BaseModel):
    success: bool = True
    stats: dict

class AdminStatsResponse(BaseModel):
    success: bool = True
    stats: AdminStats

class MessageResponse(BaseModel):
    success: bool = True
    message: str
