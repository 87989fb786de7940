"""
Pydantic schemas for KYC submission, documents, and admin review.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.kyc_document import DocumentStatus, DocumentType
from app.models.user import KYCStatus


class KYCVerificationRequest(BaseModel):
    """Identity details submitted for review."""
    ssn: str = Field(..., pattern=r"^\d{4}$", description="Last 4 digits of SSN")
    date_of_birth: datetime
    address: str = Field(..., min_length=10, max_length=255)
    phone_number: str = Field(..., pattern=r"^\+?[\d\s\-\(\)]+$")


class KYCStatusResponse(BaseModel):
    status: KYCStatus
    kyc_data: dict | None = None


class KYCProcessResponse(BaseModel):
    status: KYCStatus
    approved: bool


class KYCDocumentUpload(BaseModel):
    document_type: DocumentType
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., gt=0)
    mime_type: str = Field(..., min_length=1, max_length=100)


class KYCDocumentRead(BaseModel):
    id: UUID
    type: DocumentType
    file_name: str
    file_size: int
    mime_type: str
    status: DocumentStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class KYCStatusUpdate(BaseModel):
    status: KYCStatus


class DocumentStatusUpdate(BaseModel):
    status: DocumentStatus


class PendingReview(BaseModel):
    id: UUID
    name: str
    email: str
    kyc_status: KYCStatus
    created_at: datetime
    documents: list[KYCDocumentRead]
