"""
Medical Appointment Booking

A FastAPI backend for booking medical appointments, with JWT authentication,
role-scoped appointment views, double-booking protection and admin reporting.
"""

__version__ = "1.0.0"
