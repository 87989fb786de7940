"""Audit trail helpers — every write goes through the caller's session."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def record(
    db: AsyncSession,
    action: str,
    resource: str,
    user_id: uuid.UUID | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Add an audit entry to the current unit of work."""
    entry = AuditLog(user_id=user_id, action=action, resource=resource, details=details)
    db.add(entry)
    logger.debug("Audit %s on %s by %s", action, resource, user_id)
    return entry


async def list_entries(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    action: str | None = None,
    user_id: uuid.UUID | None = None,
) -> tuple[list[AuditLog], int]:
    """Newest-first audit entries with optional filters."""
    filters = []
    if action:
        filters.append(AuditLog.action == action)
    if user_id:
        filters.append(AuditLog.user_id == user_id)

    total = (await db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total
