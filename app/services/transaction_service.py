"""
Transaction service — create, list, fetch, status updates and statistics.

Create flow:
  1. Verify the beneficiary belongs to the user
  2. Quote the transfer (amount validation, rate, fee, risk, initial status)
  3. Persist the transaction from the quote
  4. Write a TRANSACTION_CREATED audit entry
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidTransitionError, NotFoundError
from app.models.beneficiary import Beneficiary
from app.models.transaction import RiskLevel, Transaction, TransactionStatus
from app.models.user import User
from app.services import audit_service
from app.services.quote_engine import TransferQuoteEngine

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

SORTABLE_FIELDS = {
    "createdAt": Transaction.created_at,
    "created_at": Transaction.created_at,
    "amount": Transaction.amount,
    "status": Transaction.status,
}


@dataclass
class TransactionFilters:
    status: TransactionStatus | None = None
    beneficiary_id: uuid.UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    risk_level: RiskLevel | None = None

    def clauses(self) -> list:
        clauses = []
        if self.status:
            clauses.append(Transaction.status == self.status)
        if self.beneficiary_id:
            clauses.append(Transaction.beneficiary_id == self.beneficiary_id)
        if self.start_date:
            clauses.append(Transaction.created_at >= self.start_date)
        if self.end_date:
            clauses.append(Transaction.created_at <= self.end_date)
        if self.min_amount is not None:
            clauses.append(Transaction.amount >= self.min_amount)
        if self.max_amount is not None:
            clauses.append(Transaction.amount <= self.max_amount)
        if self.risk_level:
            clauses.append(Transaction.risk_level == self.risk_level)
        return clauses


class TransactionService:

    def __init__(self, db: AsyncSession, quote_engine: TransferQuoteEngine | None = None):
        self.db = db
        self.quote_engine = quote_engine

    # --- Create ---

    async def create_transaction(
        self,
        user: User,
        beneficiary_id: uuid.UUID,
        amount,
        purpose: str | None = None,
    ) -> Transaction:
        if self.quote_engine is None:
            raise RuntimeError("TransactionService needs a quote engine to create transfers")

        # Validate before touching the beneficiary or the rate cache
        self.quote_engine.validate_amount(amount)

        result = await self.db.execute(
            select(Beneficiary).where(
                Beneficiary.id == beneficiary_id,
                Beneficiary.user_id == user.id,
            )
        )
        beneficiary = result.scalar_one_or_none()
        if beneficiary is None:
            raise NotFoundError("Beneficiary not found")

        quote = await self.quote_engine.quote(amount, beneficiary.currency)

        txn = Transaction(
            reference=quote.reference,
            user_id=user.id,
            beneficiary_id=beneficiary.id,
            amount=quote.requested_amount_usd,
            currency=quote.destination_currency,
            exchange_rate=quote.exchange_rate,
            fee=quote.fee_usd.quantize(CENTS, rounding=ROUND_HALF_UP),
            recipient_amount=quote.recipient_amount.quantize(CENTS, rounding=ROUND_HALF_UP),
            purpose=purpose,
            status=quote.initial_status,
            risk_level=quote.risk_level,
            risk_flags=sorted(quote.risk_flags),
        )
        self.db.add(txn)

        await audit_service.record(
            self.db,
            action="TRANSACTION_CREATED",
            resource="TRANSACTION",
            user_id=user.id,
            details={
                "reference": txn.reference,
                "amount": str(txn.amount),
                "currency": txn.currency,
                "risk_level": txn.risk_level.value,
            },
        )
        await self.db.flush()

        logger.info(
            "Transaction %s created for user %s: $%s -> %s %s (fee %s, risk %s, %s)",
            txn.reference, user.id, txn.amount, txn.recipient_amount, txn.currency,
            txn.fee, txn.risk_level.value, txn.status.value,
        )
        return txn

    # --- Read ---

    async def list_transactions(
        self,
        user_id: uuid.UUID | None,
        filters: TransactionFilters | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: str = "desc",
    ) -> tuple[list[Transaction], int]:
        """Paginated transactions; ``user_id=None`` lists across all users (admin)."""
        clauses = (filters or TransactionFilters()).clauses()
        if user_id is not None:
            clauses.append(Transaction.user_id == user_id)

        total = (
            await self.db.execute(select(func.count(Transaction.id)).where(*clauses))
        ).scalar_one()

        column = SORTABLE_FIELDS.get(sort_by or "created_at", Transaction.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        result = await self.db.execute(
            select(Transaction)
            .where(*clauses)
            .order_by(order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_transaction(self, user_id: uuid.UUID, transaction_id: uuid.UUID) -> Transaction:
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
            )
        )
        txn = result.scalar_one_or_none()
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn

    # --- Status updates (admin) ---

    async def update_transaction_status(
        self,
        transaction_id: uuid.UUID,
        new_status: TransactionStatus,
        admin_id: uuid.UUID | None = None,
    ) -> Transaction:
        result = await self.db.execute(
            select(Transaction).where(Transaction.id == transaction_id)
        )
        txn = result.scalar_one_or_none()
        if txn is None:
            raise NotFoundError("Transaction not found")

        previous = txn.status
        try:
            txn.transition_to(new_status)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc

        await audit_service.record(
            self.db,
            action="TRANSACTION_STATUS_UPDATED",
            resource="TRANSACTION",
            user_id=admin_id,
            details={
                "reference": txn.reference,
                "from": previous.value,
                "to": new_status.value,
            },
        )
        await self.db.flush()

        logger.info(
            "Transaction %s status %s -> %s by %s",
            txn.reference, previous.value, new_status.value, admin_id or "system",
        )
        return txn

    # --- Statistics ---

    async def get_transaction_stats(self, user_id: uuid.UUID | None = None) -> dict:
        scope = [Transaction.user_id == user_id] if user_id is not None else []

        async def count(*clauses) -> int:
            stmt = select(func.count(Transaction.id)).where(*scope, *clauses)
            return (await self.db.execute(stmt)).scalar_one()

        total = await count()
        completed = await count(Transaction.status == TransactionStatus.COMPLETED)
        volume = (
            await self.db.execute(
                select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                    *scope, Transaction.status == TransactionStatus.COMPLETED,
                )
            )
        ).scalar_one()
        pending = await count(
            Transaction.status.in_([TransactionStatus.PENDING, TransactionStatus.PROCESSING])
        )
        high_risk = await count(
            Transaction.risk_level.in_([RiskLevel.HIGH, RiskLevel.CRITICAL])
        )

        success_rate = (
            (Decimal(completed) / Decimal(total) * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
            if total > 0
            else Decimal("0")
        )

        return {
            "total_transactions": total,
            "completed_transactions": completed,
            "total_volume": Decimal(volume),
            "pending_transactions": pending,
            "high_risk_transactions": high_risk,
            "success_rate": success_rate,
        }
