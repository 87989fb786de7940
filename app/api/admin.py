"""
Admin dashboard endpoints.

Platform-wide analytics, user and transaction listings, KYC review
and the audit trail. Every route requires the ADMIN role.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.transactions import _list_response, list_filters
from app.core.errors import NotFoundError
from app.database import get_db
from app.models.user import KYCStatus, User
from app.schemas.admin import AuditLogListResponse, AuditLogRead, DashboardStats
from app.schemas.kyc import (
    DocumentStatusUpdate,
    KYCDocumentRead,
    KYCStatusUpdate,
    PendingReview,
)
from app.schemas.transaction import TransactionListResponse
from app.schemas.user import UserListResponse, UserRead
from app.services import audit_service
from app.services.kyc_service import KYCService
from app.services.transaction_service import TransactionFilters, TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()

_REVIEW_STATES = [KYCStatus.PENDING, KYCStatus.UNDER_REVIEW]


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users, transaction volume, success rate, and the KYC review queue."""
    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
    stats = await TransactionService(db).get_transaction_stats()
    pending_reviews = (
        await db.execute(select(func.count(User.id)).where(User.kyc_status.in_(_REVIEW_STATES)))
    ).scalar_one()

    return DashboardStats(
        total_users=total_users,
        total_transactions=stats["total_transactions"],
        total_volume=stats["total_volume"],
        success_rate=stats["success_rate"],
        pending_reviews=pending_reviews,
        high_risk_transactions=stats["high_risk_transactions"],
    )


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    kyc_status: KYCStatus | None = Query(None, alias="kycStatus"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    clauses = [User.kyc_status == kyc_status] if kyc_status else []
    total = (await db.execute(select(func.count(User.id)).where(*clauses))).scalar_one()
    result = await db.execute(
        select(User)
        .where(*clauses)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return UserListResponse(
        items=[UserRead.model_validate(u) for u in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_all_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    filters: TransactionFilters = Depends(list_filters),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All transactions across the platform."""
    items, total = await TransactionService(db).list_transactions(
        None, filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    )
    return _list_response(items, total, page, limit)


@router.get("/kyc/pending", response_model=list[PendingReview])
async def pending_kyc_reviews(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await KYCService(db).pending_reviews()
    return [
        PendingReview(
            id=u.id,
            name=u.name,
            email=u.email,
            kyc_status=u.kyc_status,
            created_at=u.created_at,
            documents=[KYCDocumentRead.model_validate(d) for d in u.kyc_documents],
        )
        for u in users
    ]


@router.patch("/kyc/{user_id}/status", response_model=UserRead)
async def update_kyc_status(
    user_id: UUID,
    payload: KYCStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Manually approve or reject a user's KYC."""
    try:
        user = await KYCService(db).update_kyc_status(user_id, payload.status, admin.id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return UserRead.model_validate(user)


@router.patch("/kyc/documents/{document_id}/status", response_model=KYCDocumentRead)
async def update_document_status(
    document_id: UUID,
    payload: DocumentStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        document = await KYCService(db).update_document_status(document_id, payload.status, admin.id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return KYCDocumentRead.model_validate(document)


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: str | None = None,
    user_id: UUID | None = Query(None, alias="userId"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entries, total = await audit_service.list_entries(db, page, limit, action, user_id)
    return AuditLogListResponse(
        items=[AuditLogRead.model_validate(e) for e in entries],
        total=total,
        page=page,
        limit=limit,
    )
