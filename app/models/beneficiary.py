"""
Beneficiary model — a registered payment recipient with Indian bank details.

Account numbers are Fernet-encrypted at rest; only the last four digits
are ever returned by the API.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Beneficiary(Base):
    __tablename__ = "beneficiaries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"),
        index=True, nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(256), nullable=False)  # encrypted
    ifsc_code: Mapped[str] = mapped_column(String(11), nullable=False)
    country: Mapped[str] = mapped_column(String(2), default="IN")
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    mobile_number: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="beneficiaries")
    transactions = relationship("Transaction", back_populates="beneficiary")

    # ------------------------------------------------------------------
    # Encrypted account helpers
    # ------------------------------------------------------------------

    def set_account_number(self, plaintext: str) -> None:
        """Encrypt and store the bank account number."""
        from app.models.user import User
        self.account_number = User.encrypt_value(plaintext)

    def get_account_number(self) -> str:
        """Decrypt and return the bank account number."""
        from app.models.user import User
        return User.decrypt_value(self.account_number)

    @property
    def masked_account_number(self) -> str:
        plain = self.get_account_number()
        return f"****{plain[-4:]}"

    def __repr__(self) -> str:
        return f"<Beneficiary {self.name!r} {self.bank_name} {self.ifsc_code}>"


@event.listens_for(Beneficiary, "init")
def _set_beneficiary_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "country" not in kwargs:
        target.country = "IN"
    if "currency" not in kwargs:
        target.currency = "INR"
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
