"""
Test suite for the Clinic Appointment Booking service.

Contains unit and integration tests for the application's functionality.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
os.environ["RATE_LIMIT_ENABLED"] = "false"
# Cheap hashes keep the suite fast
os.environ["BCRYPT_ROUNDS"] = "4"
