"""
KYC endpoints — identity submission, decision processing, and documents.

  1. POST /verify    — submit details (status → UNDER_REVIEW)
  2. POST /process   — run the automated decision (APPROVED / REJECTED)
  3. GET  /status    — current status plus decrypted submission
  4. POST /documents — register an uploaded document's metadata
  5. GET  /documents — list the caller's documents
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.errors import ValidationError
from app.database import get_db
from app.models.user import User
from app.schemas.kyc import (
    KYCDocumentRead,
    KYCDocumentUpload,
    KYCProcessResponse,
    KYCStatusResponse,
    KYCVerificationRequest,
)
from app.services.kyc_service import KYCService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=KYCStatusResponse)
async def kyc_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    kyc_state, kyc_data = KYCService(db).get_status(user)
    return KYCStatusResponse(status=kyc_state, kyc_data=kyc_data)


@router.post("/verify", response_model=KYCStatusResponse)
async def submit_verification(
    payload: KYCVerificationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump(mode="json")
    service = KYCService(db)
    user = await service.submit_verification(user, data)
    kyc_state, kyc_data = service.get_status(user)
    return KYCStatusResponse(status=kyc_state, kyc_data=kyc_data)


@router.post("/process", response_model=KYCProcessResponse)
async def process_verification(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    kyc_state, approved = await KYCService(db).process_verification(user)
    return KYCProcessResponse(status=kyc_state, approved=approved)


@router.post("/documents", response_model=KYCDocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(
    payload: KYCDocumentUpload,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        document = await KYCService(db).upload_document(
            user,
            payload.document_type.value,
            payload.file_name,
            payload.file_size,
            payload.mime_type,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return KYCDocumentRead.model_validate(document)


@router.get("/documents", response_model=list[KYCDocumentRead])
async def list_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    documents = await KYCService(db).list_documents(user.id)
    return [KYCDocumentRead.model_validate(d) for d in documents]
