"""SQLAlchemy ORM models for PayFlow."""

from app.models.user import User, UserRole, KYCStatus
from app.models.beneficiary import Beneficiary
from app.models.transaction import Transaction, TransactionStatus, RiskLevel
from app.models.exchange_rate import ExchangeRate
from app.models.kyc_document import KYCDocument, DocumentType, DocumentStatus
from app.models.audit_log import AuditLog

__all__ = [
    "User", "UserRole", "KYCStatus",
    "Beneficiary",
    "Transaction", "TransactionStatus", "RiskLevel",
    "ExchangeRate",
    "KYCDocument", "DocumentType", "DocumentStatus",
    "AuditLog",
]
