"""
Transaction model — a USD→INR transfer to a beneficiary.

- TXN + 6 time digits + 4 random characters reference format
- Risk level and risk flags fixed at creation from the quote
- 5-state lifecycle with validated transitions
"""

import enum
import secrets
import string
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Enum as SAEnum,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ---------------------------------------------------------------------------
# Status transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {
        TransactionStatus.PROCESSING,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    },
    TransactionStatus.PROCESSING: {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    },
    TransactionStatus.COMPLETED: set(),
    TransactionStatus.FAILED: set(),
    TransactionStatus.CANCELLED: set(),
}


# ---------------------------------------------------------------------------
# Reference generation
# ---------------------------------------------------------------------------

_REFERENCE_CHARS = string.ascii_uppercase + string.digits


def generate_reference(now: datetime | None = None) -> str:
    """
    Generate a TXN reference from the clock plus a random suffix.

    The last six digits of the epoch milliseconds are followed by four
    characters from ``secrets``; uniqueness is enforced by the DB constraint.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))
    suffix = "".join(secrets.choice(_REFERENCE_CHARS) for _ in range(4))
    return f"TXN{millis[-6:]}{suffix}"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("exchange_rate > 0", name="ck_transactions_rate_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    reference: Mapped[str] = mapped_column(
        String(16), unique=True, index=True, nullable=False,
    )

    # Owner / recipient
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    beneficiary_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("beneficiaries.id"), index=True, nullable=False,
    )

    # Amounts: amount and fee in USD, recipient_amount in `currency`
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=6), nullable=False,
    )
    fee: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    recipient_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False,
    )
    purpose: Mapped[str | None] = mapped_column(String(255))

    # Status and risk
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transactionstatus"),
        default=TransactionStatus.PENDING,
    )
    risk_level: Mapped[RiskLevel] = mapped_column(
        SAEnum(RiskLevel, name="risklevel"), default=RiskLevel.LOW,
    )
    risk_flags: Mapped[list[str]] = mapped_column(JSONB, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="transactions")
    beneficiary = relationship("Beneficiary", back_populates="transactions")

    # ------------------------------------------------------------------
    # Status transition validation
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(from_status: TransactionStatus, to_status: TransactionStatus) -> bool:
        """Check whether a status transition is allowed."""
        allowed = VALID_TRANSITIONS.get(from_status, set())
        return to_status in allowed

    def transition_to(self, new_status: TransactionStatus) -> None:
        """
        Transition to *new_status* if the move is valid.

        Raises ValueError if the transition is not allowed.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise ValueError(
                f"Invalid transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        self.updated_at = datetime.now(timezone.utc)

    @property
    def is_high_risk(self) -> bool:
        return self.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.reference} "
            f"{self.amount} USD "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(Transaction, "init")
def _set_transaction_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "reference" not in kwargs:
        target.reference = generate_reference()
    if "status" not in kwargs:
        target.status = TransactionStatus.PENDING
    if "risk_level" not in kwargs:
        target.risk_level = RiskLevel.LOW
    if "risk_flags" not in kwargs:
        target.risk_flags = []
    if "currency" not in kwargs:
        target.currency = "INR"
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
