from .user import User, RefreshToken
from .appointment import Appointment, AppointmentStatus

__all__ = ["User", "RefreshToken", "Appointment", "AppointmentStatus"]
