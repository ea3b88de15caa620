"""
Clinic Appointment Booking

A FastAPI service where patients reserve open appointment slots and admins
review bookings. Reservations are atomic: a slot is never booked twice.
"""

__version__ = "1.0.0"
