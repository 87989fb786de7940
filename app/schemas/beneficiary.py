"""
Pydantic schemas for beneficiary management.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.services.beneficiary_service import validate_indian_mobile

_IFSC_PATTERN = r"^[A-Z]{4}0[A-Z0-9]{6}$"


class BeneficiaryBase(BaseModel):
    email: str | None = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    country: str = Field("IN", min_length=2, max_length=2)
    currency: str = Field("INR", pattern=r"^[A-Z]{3}$")
    mobile_number: str | None = Field(None, examples=["+91-9876543210"])
    address: str | None = Field(None, max_length=255)

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v: str | None) -> str | None:
        if v is not None and not validate_indian_mobile(v):
            raise ValueError("Invalid Indian mobile number")
        return v


class BeneficiaryCreateRequest(BeneficiaryBase):
    """Schema for adding a beneficiary."""
    name: str = Field(..., min_length=2, max_length=100, examples=["Rajesh Kumar"])
    bank_name: str = Field(..., min_length=1, max_length=100, examples=["State Bank of India"])
    account_number: str = Field(..., pattern=r"^\d{10,20}$", examples=["12345678901234"])
    ifsc_code: str = Field(..., pattern=_IFSC_PATTERN, examples=["SBIN0001234"])


class BeneficiaryUpdateRequest(BaseModel):
    """Partial update — every field optional."""
    name: str | None = Field(None, min_length=2, max_length=100)
    email: str | None = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    bank_name: str | None = Field(None, min_length=1, max_length=100)
    account_number: str | None = Field(None, pattern=r"^\d{10,20}$")
    ifsc_code: str | None = Field(None, pattern=_IFSC_PATTERN)
    mobile_number: str | None = None
    address: str | None = Field(None, max_length=255)


class BeneficiaryResponse(BaseModel):
    id: UUID
    name: str
    email: str | None
    bank_name: str
    account_number: str  # masked
    ifsc_code: str
    country: str
    currency: str
    mobile_number: str | None
    address: str | None
    created_at: datetime
