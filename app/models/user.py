"""
User model — a registered PayFlow customer or administrator.

- Email/password registration with PFxxxxxxxxx account numbers
- KYC status gating transfer eligibility
- Fernet-encrypted SSN (last 4) inside the KYC payload
- Password hashing with bcrypt
"""

import enum
import secrets
import string
import time
import uuid
from datetime import datetime, timezone

import bcrypt as _bcrypt
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import DateTime, String, Enum as SAEnum, event
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.config import settings
from app.database import Base

# ---------------------------------------------------------------------------
# Fernet cipher: lazily initialised from settings
# ---------------------------------------------------------------------------

_fernet: Fernet | None = None


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        _fernet = Fernet(settings.FERNET_KEY.encode())
    return _fernet


def configure_fernet(key: str | bytes) -> None:
    """Override the Fernet key at runtime (used in tests)."""
    global _fernet
    if isinstance(key, str):
        key = key.encode()
    _fernet = Fernet(key)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class KYCStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="userrole"), default=UserRole.USER,
    )
    account_number: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)

    # Contact / profile
    phone_number: Mapped[str | None] = mapped_column(String(30))
    address: Mapped[str | None] = mapped_column(String(255))
    date_of_birth: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # KYC
    kyc_status: Mapped[KYCStatus] = mapped_column(
        SAEnum(KYCStatus, name="kycstatus"), default=KYCStatus.PENDING,
    )
    kyc_data: Mapped[dict | None] = mapped_column(JSONB)

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
    beneficiaries = relationship("Beneficiary", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")
    kyc_documents = relationship("KYCDocument", back_populates="user")

    # ------------------------------------------------------------------
    # Account number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_account_number() -> str:
        """Generate a PF + 6 time digits + 3 random digits account number."""
        millis = str(int(time.time() * 1000))
        suffix = "".join(secrets.choice(string.digits) for _ in range(3))
        return f"PF{millis[-6:]}{suffix}"

    # ------------------------------------------------------------------
    # Encryption helpers
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt_value(plaintext: str) -> str:
        """Encrypt a string value using Fernet. Returns base64-encoded ciphertext."""
        return _get_fernet().encrypt(plaintext.encode()).decode()

    @staticmethod
    def decrypt_value(ciphertext: str) -> str:
        """Decrypt a Fernet-encrypted value. Raises ValueError on failure."""
        try:
            return _get_fernet().decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            raise ValueError("Failed to decrypt value — invalid key or corrupted data")

    def set_kyc_data(self, data: dict) -> None:
        """Store KYC details with the SSN fragment encrypted."""
        stored = dict(data)
        if stored.get("ssn"):
            stored["ssn"] = self.encrypt_value(stored["ssn"])
        self.kyc_data = stored

    def get_kyc_data(self) -> dict | None:
        """Return the KYC payload with the SSN decrypted."""
        if self.kyc_data is None:
            return None
        data = dict(self.kyc_data)
        if data.get("ssn"):
            data["ssn"] = self.decrypt_value(data["ssn"])
        return data

    # ------------------------------------------------------------------
    # Password helpers
    # ------------------------------------------------------------------

    def set_password(self, plain_password: str) -> None:
        """Hash and store a password using bcrypt."""
        hashed = _bcrypt.hashpw(plain_password.encode(), _bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
        self.password_hash = hashed.decode()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return (
            f"<User {self.account_number} "
            f"email={self.email!r} "
            f"kyc={self.kyc_status.value if self.kyc_status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(User, "init")
def _set_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "account_number" not in kwargs:
        target.account_number = User.generate_account_number()
    if "role" not in kwargs:
        target.role = UserRole.USER
    if "kyc_status" not in kwargs:
        target.kyc_status = KYCStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
