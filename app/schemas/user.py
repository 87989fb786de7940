"""
Pydantic schemas for registration, login, and user profiles.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.user import KYCStatus, UserRole

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    """Schema for creating a new account."""
    name: str = Field(..., min_length=2, max_length=100, examples=["John Doe"])
    email: str = Field(..., pattern=_EMAIL_PATTERN, examples=["user@example.com"])
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(BaseModel):
    """Schema for email/password login."""
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class UserRead(BaseModel):
    """Schema returned when reading user data (never includes secrets)."""
    id: UUID
    name: str
    email: str
    role: UserRole
    account_number: str
    kyc_status: KYCStatus
    phone_number: str | None = None
    address: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Token plus profile, returned by register and login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


class UserListResponse(BaseModel):
    """Paginated user list (admin)."""
    items: list[UserRead]
    total: int
    page: int
    limit: int
