"""
KYC verification service — submission, review decisions, and documents.

Architecture:
  - KYCDecisionStrategy (protocol) decides approve/reject for a submission
  - RandomKYCDecision approves with KYC_APPROVAL_RATE probability (mock review)
  - FixedKYCDecision always returns the same outcome (tests, manual override)

The strategy is injected per service instance, or globally via
set_kyc_decision(); nothing reads ambient randomness directly.
"""

from __future__ import annotations

import logging
import random
import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.kyc_document import DocumentStatus, DocumentType, KYCDocument
from app.models.user import KYCStatus, User
from app.services import audit_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Decision strategies
# ---------------------------------------------------------------------------


class KYCDecisionStrategy(Protocol):
    def decide(self, user: User) -> bool: ...


class RandomKYCDecision:
    """Approve with a fixed probability, using an injectable RNG."""

    def __init__(self, approval_rate: float | None = None, rng: random.Random | None = None):
        self.approval_rate = (
            approval_rate if approval_rate is not None else settings.KYC_APPROVAL_RATE
        )
        self._rng = rng or random.Random()

    def decide(self, user: User) -> bool:
        return self._rng.random() < self.approval_rate


class FixedKYCDecision:
    """Always returns the configured outcome."""

    def __init__(self, approved: bool):
        self.approved = approved

    def decide(self, user: User) -> bool:
        return self.approved


_decision: KYCDecisionStrategy | None = None


def get_kyc_decision() -> KYCDecisionStrategy:
    """Return the configured decision strategy (cached after first call)."""
    global _decision
    if _decision is None:
        _decision = RandomKYCDecision()
    return _decision


def set_kyc_decision(strategy: KYCDecisionStrategy | None) -> None:
    """Override the decision strategy (used in tests)."""
    global _decision
    _decision = strategy


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class KYCService:

    def __init__(self, db: AsyncSession, decision: KYCDecisionStrategy | None = None):
        self.db = db
        self.decision = decision

    async def _get_user(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    # --- User-facing ---

    async def submit_verification(self, user: User, kyc_data: dict) -> User:
        user.set_kyc_data(kyc_data)
        user.kyc_status = KYCStatus.UNDER_REVIEW
        if kyc_data.get("phone_number"):
            user.phone_number = kyc_data["phone_number"]
        if kyc_data.get("address"):
            user.address = kyc_data["address"]

        await audit_service.record(
            self.db,
            action="KYC_SUBMITTED",
            resource="USER",
            user_id=user.id,
            details={"fields": sorted(k for k in kyc_data if k != "ssn")},
        )
        await self.db.flush()

        logger.info("KYC verification submitted for user %s", user.id)
        return user

    def get_status(self, user: User) -> tuple[KYCStatus, dict | None]:
        """Current status and the decrypted submission, if any."""
        return user.kyc_status, user.get_kyc_data()

    async def process_verification(
        self, user: User, decision: KYCDecisionStrategy | None = None,
    ) -> tuple[KYCStatus, bool]:
        """Run the decision strategy and record APPROVED / REJECTED."""
        strategy = decision or self.decision or get_kyc_decision()
        approved = strategy.decide(user)
        status = KYCStatus.APPROVED if approved else KYCStatus.REJECTED
        user.kyc_status = status

        await audit_service.record(
            self.db,
            action="KYC_PROCESSED",
            resource="USER",
            user_id=user.id,
            details={"status": status.value, "approved": approved},
        )
        await self.db.flush()

        logger.info("KYC verification processed for user %s: %s", user.id, status.value)
        return status, approved

    async def process_verification_for(self, user_id: uuid.UUID) -> tuple[KYCStatus, bool]:
        return await self.process_verification(await self._get_user(user_id))

    async def upload_document(
        self,
        user: User,
        document_type: str,
        file_name: str,
        file_size: int,
        mime_type: str,
    ) -> KYCDocument:
        try:
            doc_type = DocumentType(document_type)
        except ValueError:
            raise ValidationError("Invalid document type")

        document = KYCDocument(
            user_id=user.id,
            type=doc_type,
            file_name=file_name,
            file_path=f"/uploads/kyc/{user.id}/{file_name}",
            file_size=file_size,
            mime_type=mime_type,
        )
        self.db.add(document)

        await audit_service.record(
            self.db,
            action="KYC_DOCUMENT_UPLOADED",
            resource="KYC_DOCUMENT",
            user_id=user.id,
            details={"document_type": doc_type.value, "file_name": file_name, "file_size": file_size},
        )
        await self.db.flush()

        logger.info("KYC document uploaded for user %s: %s", user.id, doc_type.value)
        return document

    async def list_documents(self, user_id: uuid.UUID) -> list[KYCDocument]:
        result = await self.db.execute(
            select(KYCDocument)
            .where(KYCDocument.user_id == user_id)
            .order_by(KYCDocument.created_at.desc())
        )
        return list(result.scalars().all())

    # --- Admin ---

    async def update_document_status(
        self, document_id: uuid.UUID, status: DocumentStatus, admin_id: uuid.UUID,
    ) -> KYCDocument:
        result = await self.db.execute(select(KYCDocument).where(KYCDocument.id == document_id))
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError("Document not found")

        document.status = status
        await audit_service.record(
            self.db,
            action="KYC_DOCUMENT_STATUS_UPDATED",
            resource="KYC_DOCUMENT",
            user_id=admin_id,
            details={
                "document_id": str(document_id),
                "status": status.value,
                "user_id": str(document.user_id),
            },
        )
        await self.db.flush()

        logger.info("KYC document %s set to %s by admin %s", document_id, status.value, admin_id)
        return document

    async def update_kyc_status(
        self, user_id: uuid.UUID, status: KYCStatus, admin_id: uuid.UUID,
    ) -> User:
        user = await self._get_user(user_id)
        user.kyc_status = status

        await audit_service.record(
            self.db,
            action="KYC_STATUS_UPDATED",
            resource="USER",
            user_id=admin_id,
            details={"target_user_id": str(user_id), "status": status.value},
        )
        await self.db.flush()

        logger.info("KYC status for user %s set to %s by admin %s", user_id, status.value, admin_id)
        return user

    async def pending_reviews(self) -> list[User]:
        """Users awaiting a KYC decision, oldest first, with their documents."""
        result = await self.db.execute(
            select(User)
            .where(User.kyc_status.in_([KYCStatus.PENDING, KYCStatus.UNDER_REVIEW]))
            .options(selectinload(User.kyc_documents))
            .order_by(User.created_at.asc())
        )
        return list(result.scalars().all())
