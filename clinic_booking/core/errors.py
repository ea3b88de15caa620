from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base for every error the API reports as ``{"error": {...}}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "Something went wrong"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, details: Any = None):
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Invalid input data"


class MissingParameters(ValidationError):
    code = "MISSING_PARAMS"
    message = 'Both "from" and "to" query parameters are required'


class EmailAlreadyRegistered(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "EMAIL_EXISTS"
    message = "User with this email already exists"


# Security exceptions
class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Not enough permissions"


class RateLimitExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "TOO_MANY_REQUESTS"
    message = "Too many requests. Please try again later."


# Booking rules
class SlotNotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "SLOT_NOT_FOUND"
    message = "Slot not found"


class SlotAlreadyBooked(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "SLOT_TAKEN"
    message = "This slot is already booked"


class SlotExpired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "SLOT_EXPIRED"
    message = "Cannot book slots in the past"


class InternalError(AppError):
    pass
