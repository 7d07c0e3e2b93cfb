"""
Test suite for the Medical Appointment Booking API.

Contains unit tests for the scheduling rules and API tests for every router.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
