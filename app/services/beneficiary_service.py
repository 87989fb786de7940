"""
Beneficiary service — CRUD and search over a user's payment recipients.
"""

import logging
import re
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.models.beneficiary import Beneficiary
from app.models.transaction import Transaction
from app.services import audit_service

logger = logging.getLogger(__name__)

# 4 letters (bank), literal 0, 6 alphanumerics (branch)
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

_INDIAN_MOBILE_RE = re.compile(r"^(\+91|91)?[6-9]\d{9}$")

UPDATABLE_FIELDS = (
    "name", "email", "bank_name", "ifsc_code", "country",
    "currency", "mobile_number", "address",
)


def validate_ifsc(ifsc_code: str) -> bool:
    return bool(IFSC_RE.match(ifsc_code))


def validate_indian_mobile(mobile: str) -> bool:
    cleaned = re.sub(r"[\s\-]", "", mobile)
    return bool(_INDIAN_MOBILE_RE.match(cleaned))


def escape_like(text: str) -> str:
    """Make ``%`` and ``_`` in user input match literally (escape char ``\\``)."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BeneficiaryService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_beneficiary(self, user_id: uuid.UUID, data: dict) -> Beneficiary:
        if not validate_ifsc(data["ifsc_code"]):
            raise ValidationError("Invalid IFSC code format")

        fields = {k: v for k, v in data.items() if k != "account_number" and v is not None}
        beneficiary = Beneficiary(user_id=user_id, **fields)
        beneficiary.set_account_number(data["account_number"])
        self.db.add(beneficiary)

        await audit_service.record(
            self.db,
            action="BENEFICIARY_CREATED",
            resource="BENEFICIARY",
            user_id=user_id,
            details={"beneficiary_id": str(beneficiary.id), "bank": beneficiary.bank_name},
        )
        await self.db.flush()

        logger.info("Beneficiary created: %s for user %s", beneficiary.name, user_id)
        return beneficiary

    async def list_beneficiaries(
        self, user_id: uuid.UUID, search: str | None = None,
    ) -> list[Beneficiary]:
        """All of a user's beneficiaries, newest first; *search* matches name/email/bank."""
        stmt = select(Beneficiary).where(Beneficiary.user_id == user_id)
        if search:
            pattern = f"%{escape_like(search)}%"
            stmt = stmt.where(
                or_(
                    Beneficiary.name.ilike(pattern, escape="\\"),
                    Beneficiary.email.ilike(pattern, escape="\\"),
                    Beneficiary.bank_name.ilike(pattern, escape="\\"),
                )
            )
        result = await self.db.execute(stmt.order_by(Beneficiary.created_at.desc()))
        return list(result.scalars().all())

    async def get_beneficiary(self, user_id: uuid.UUID, beneficiary_id: uuid.UUID) -> Beneficiary:
        result = await self.db.execute(
            select(Beneficiary).where(
                Beneficiary.id == beneficiary_id,
                Beneficiary.user_id == user_id,
            )
        )
        beneficiary = result.scalar_one_or_none()
        if beneficiary is None:
            raise NotFoundError("Beneficiary not found")
        return beneficiary

    async def update_beneficiary(
        self, user_id: uuid.UUID, beneficiary_id: uuid.UUID, updates: dict,
    ) -> Beneficiary:
        if updates.get("ifsc_code") and not validate_ifsc(updates["ifsc_code"]):
            raise ValidationError("Invalid IFSC code format")

        beneficiary = await self.get_beneficiary(user_id, beneficiary_id)

        for field in UPDATABLE_FIELDS:
            if field in updates and updates[field] is not None:
                setattr(beneficiary, field, updates[field])
        if updates.get("account_number"):
            beneficiary.set_account_number(updates["account_number"])

        await self.db.flush()
        logger.info("Beneficiary updated: %s for user %s", beneficiary.name, user_id)
        return beneficiary

    async def delete_beneficiary(self, user_id: uuid.UUID, beneficiary_id: uuid.UUID) -> None:
        beneficiary = await self.get_beneficiary(user_id, beneficiary_id)

        txn_count = (
            await self.db.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.beneficiary_id == beneficiary.id
                )
            )
        ).scalar_one()
        if txn_count > 0:
            raise ValidationError("Cannot delete beneficiary with existing transactions")

        await self.db.delete(beneficiary)
        await audit_service.record(
            self.db,
            action="BENEFICIARY_DELETED",
            resource="BENEFICIARY",
            user_id=user_id,
            details={"beneficiary_id": str(beneficiary_id)},
        )
        await self.db.flush()
        logger.info("Beneficiary deleted: %s for user %s", beneficiary_id, user_id)
