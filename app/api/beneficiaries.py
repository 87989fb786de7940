"""
Beneficiary endpoints — the Indian bank accounts a user sends money to.

Account numbers are stored encrypted and only ever returned masked.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_kyc
from app.core.errors import NotFoundError, ValidationError
from app.database import get_db
from app.models.beneficiary import Beneficiary
from app.models.user import User
from app.schemas.beneficiary import (
    BeneficiaryCreateRequest,
    BeneficiaryResponse,
    BeneficiaryUpdateRequest,
)
from app.services.beneficiary_service import BeneficiaryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_response(beneficiary: Beneficiary) -> BeneficiaryResponse:
    return BeneficiaryResponse(
        id=beneficiary.id,
        name=beneficiary.name,
        email=beneficiary.email,
        bank_name=beneficiary.bank_name,
        account_number=beneficiary.masked_account_number,
        ifsc_code=beneficiary.ifsc_code,
        country=beneficiary.country,
        currency=beneficiary.currency,
        mobile_number=beneficiary.mobile_number,
        address=beneficiary.address,
        created_at=beneficiary.created_at,
    )


@router.get("/", response_model=list[BeneficiaryResponse])
async def list_beneficiaries(
    search: str | None = Query(None, max_length=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await BeneficiaryService(db).list_beneficiaries(user.id, search)
    return [_build_response(b) for b in items]


@router.post("/", response_model=BeneficiaryResponse, status_code=status.HTTP_201_CREATED)
async def create_beneficiary(
    payload: BeneficiaryCreateRequest,
    user: User = Depends(require_kyc),
    db: AsyncSession = Depends(get_db),
):
    try:
        beneficiary = await BeneficiaryService(db).create_beneficiary(user.id, payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return _build_response(beneficiary)


@router.get("/{beneficiary_id}", response_model=BeneficiaryResponse)
async def get_beneficiary(
    beneficiary_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        beneficiary = await BeneficiaryService(db).get_beneficiary(user.id, beneficiary_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return _build_response(beneficiary)


@router.put("/{beneficiary_id}", response_model=BeneficiaryResponse)
async def update_beneficiary(
    beneficiary_id: UUID,
    payload: BeneficiaryUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        beneficiary = await BeneficiaryService(db).update_beneficiary(
            user.id, beneficiary_id, payload.model_dump(exclude_unset=True),
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return _build_response(beneficiary)


@router.delete("/{beneficiary_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_beneficiary(
    beneficiary_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Refused while any transaction still references the beneficiary."""
    try:
        await BeneficiaryService(db).delete_beneficiary(user.id, beneficiary_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
