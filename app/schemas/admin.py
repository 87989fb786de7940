"""
Pydantic schemas for the admin dashboard and audit log listing.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_users: int
    total_transactions: int
    total_volume: Decimal
    success_rate: Decimal
    pending_reviews: int
    high_risk_transactions: int


class AuditLogRead(BaseModel):
    id: UUID
    user_id: UUID | None
    action: str
    resource: str
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    items: list[AuditLogRead]
    total: int
    page: int
    limit: int
