from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List

from ..core.security import UserRole
from .auth import UserResponse

def _stripped_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Full name must be at least 2 characters")
    return v

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _stripped_name(v)

class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=2)
    role: UserRole
    phone: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _stripped_name(v)

class AdminUserUpdate(ProfileUpdate):
    role: Optional[UserRole] = None

class UserStatusUpdate(BaseModel):
    is_active: bool

class PasswordResetByAdmin(BaseModel):
    new_password: str = Field(..., min_length=6)

class UserEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    user: UserResponse

class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserResponse]

class DoctorListResponse(BaseModel):
    success: bool = True
    doctors: List[UserResponse]
