"""
Transaction endpoints — send money, list, fetch, stats, and admin status changes.

Create flow:
  1. Require APPROVED KYC
  2. Enforce the per-user rate limit (10 transfers / hour)
  3. Quote the transfer (amount check, rate, fee, risk tier, initial status)
  4. Persist the transaction and audit entry
"""

import logging
import math
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_quote_engine, require_admin, require_kyc
from app.config import settings
from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.database import get_db
from app.models.transaction import RiskLevel, Transaction, TransactionStatus
from app.models.user import User
from app.redis_client import get_redis
from app.schemas.transaction import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionStats,
    TransactionStatusUpdate,
)
from app.services.auth_service import check_rate_limit
from app.services.quote_engine import TransferQuoteEngine
from app.services.transaction_service import TransactionFilters, TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(txn: Transaction) -> TransactionResponse:
    """Build a TransactionResponse from an ORM Transaction object."""
    status_val = txn.status.value if isinstance(txn.status, TransactionStatus) else txn.status
    risk_val = txn.risk_level.value if isinstance(txn.risk_level, RiskLevel) else txn.risk_level

    return TransactionResponse(
        id=txn.id,
        reference=txn.reference,
        user_id=txn.user_id,
        beneficiary_id=txn.beneficiary_id,
        amount=txn.amount,
        currency=txn.currency,
        exchange_rate=txn.exchange_rate,
        fee=txn.fee,
        recipient_amount=txn.recipient_amount,
        total_debit=txn.amount + txn.fee,
        purpose=txn.purpose,
        status=status_val,
        risk_level=risk_val,
        risk_flags=list(txn.risk_flags or []),
        created_at=txn.created_at,
        updated_at=txn.updated_at,
    )


def list_filters(
    status_filter: TransactionStatus | None = Query(None, alias="status"),
    beneficiary_id: UUID | None = Query(None, alias="beneficiaryId"),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    min_amount: Decimal | None = Query(None, alias="minAmount", gt=0),
    max_amount: Decimal | None = Query(None, alias="maxAmount", gt=0),
    risk_level: RiskLevel | None = Query(None, alias="riskLevel"),
) -> TransactionFilters:
    return TransactionFilters(
        status=status_filter,
        beneficiary_id=beneficiary_id,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        risk_level=risk_level,
    )


def _list_response(items: list[Transaction], total: int, page: int, limit: int) -> TransactionListResponse:
    return TransactionListResponse(
        items=[_build_response(t) for t in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


async def enforce_transaction_rate_limit(
    user: User = Depends(require_kyc),
    redis=Depends(get_redis),
) -> User:
    within_limit = await check_rate_limit(
        f"transactions:{user.id}",
        settings.TRANSACTION_RATE_LIMIT,
        settings.TRANSACTION_RATE_WINDOW_SECONDS,
        redis,
    )
    if not within_limit:
        logger.warning("Transaction rate limit hit for user %s", user.id)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Transaction limit exceeded, please try again later",
        )
    return user


# ---------------------------------------------------------------------------
# POST /transactions: send money
# ---------------------------------------------------------------------------


@router.post("/", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionCreateRequest,
    user: User = Depends(enforce_transaction_rate_limit),
    quote_engine: TransferQuoteEngine = Depends(get_quote_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a USD → INR transfer to one of the caller's beneficiaries.

    Transfers below $10,000 start PROCESSING; larger ones are held
    PENDING for review.
    """
    service = TransactionService(db, quote_engine)
    try:
        txn = await service.create_transaction(
            user, payload.beneficiary_id, payload.amount, payload.purpose,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    return _build_response(txn)


# ---------------------------------------------------------------------------
# GET /transactions/stats
# ---------------------------------------------------------------------------


@router.get("/stats", response_model=TransactionStats)
async def transaction_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await TransactionService(db).get_transaction_stats(user.id)
    return TransactionStats(**stats)


# ---------------------------------------------------------------------------
# GET /transactions: paginated list
# ---------------------------------------------------------------------------


@router.get("/", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    filters: TransactionFilters = Depends(list_filters),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await TransactionService(db).list_transactions(
        user.id, filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    )
    return _list_response(items, total, page, limit)


# ---------------------------------------------------------------------------
# GET /transactions/{id}
# ---------------------------------------------------------------------------


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        txn = await TransactionService(db).get_transaction(user.id, transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return _build_response(txn)


# ---------------------------------------------------------------------------
# PATCH /transactions/{id}/status: admin only
# ---------------------------------------------------------------------------


@router.patch("/{transaction_id}/status", response_model=TransactionResponse)
async def update_transaction_status(
    transaction_id: UUID,
    payload: TransactionStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Move a transaction along PENDING → PROCESSING → COMPLETED (or FAILED/CANCELLED)."""
    try:
        txn = await TransactionService(db).update_transaction_status(
            transaction_id, payload.status, admin.id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return _build_response(txn)
