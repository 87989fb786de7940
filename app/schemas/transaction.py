"""
Pydantic schemas for transaction creation, listing, and status management.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.transaction import RiskLevel, TransactionStatus


class TransactionCreateRequest(BaseModel):
    """Schema for sending money to a beneficiary (amount in USD)."""
    beneficiary_id: UUID
    amount: Decimal = Field(..., examples=[1000])
    purpose: str | None = Field(None, max_length=255, examples=["Family Support"])


class TransactionResponse(BaseModel):
    id: UUID
    reference: str
    user_id: UUID
    beneficiary_id: UUID
    amount: Decimal
    currency: str
    exchange_rate: Decimal
    fee: Decimal
    recipient_amount: Decimal
    total_debit: Decimal
    purpose: str | None
    status: str
    risk_level: str
    risk_flags: list[str]
    created_at: datetime
    updated_at: datetime


class TransactionListResponse(BaseModel):
    """Paginated transaction list."""
    items: list[TransactionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class TransactionStatusUpdate(BaseModel):
    """Admin status change."""
    status: TransactionStatus


class TransactionStats(BaseModel):
    total_transactions: int
    completed_transactions: int
    total_volume: Decimal
    pending_transactions: int
    high_risk_transactions: int
    success_rate: Decimal


class TransactionQuery(BaseModel):
    """Query filters accepted by the list endpoints."""
    status: TransactionStatus | None = None
    beneficiary_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_amount: Decimal | None = Field(None, gt=0)
    max_amount: Decimal | None = Field(None, gt=0)
    risk_level: RiskLevel | None = None
