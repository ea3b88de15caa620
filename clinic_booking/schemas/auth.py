from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ..core.security import UserRole
from .base import APIModel


class UserRegister(APIModel):
    name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserLogin(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserSummary(APIModel):
    id: int
    name: str
    email: str
    role: UserRole


class UserResponse(UserSummary):
    created_at: Optional[datetime] = None


class LoginResponse(APIModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    role: UserRole
    user: UserSummary
