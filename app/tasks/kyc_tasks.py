"""
KYC Celery tasks — run the automated decision outside the request cycle.
"""

import asyncio
import logging
import uuid

from app.tasks.celery_app import KYC_PROCESS_TASK, celery_app

logger = logging.getLogger(__name__)


async def _process_kyc_verification_async(user_id: str) -> dict:
    from app.database import session_scope
    from app.services.kyc_service import KYCService

    async with session_scope() as session:
        status, approved = await KYCService(session).process_verification_for(uuid.UUID(user_id))

    return {"user_id": user_id, "status": status.value, "approved": approved}


@celery_app.task(name=KYC_PROCESS_TASK)
def process_kyc_verification(user_id: str):
    """Approve or reject a submitted KYC application."""
    logger.info("Processing KYC verification for user %s", user_id)
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_process_kyc_verification_async(user_id))
        logger.info("KYC for user %s: %s", user_id, result["status"])
        return result
    except Exception:
        logger.exception("KYC processing failed for user %s", user_id)
        raise
    finally:
        loop.close()
