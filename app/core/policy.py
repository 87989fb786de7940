"""
Authorization policy — role and KYC gates evaluated before any service call.

These are plain functions over a User so they can be unit-tested without
a request; ``app.api.deps`` wraps them into FastAPI dependencies.
"""

import logging
from collections.abc import Iterable

from app.models.user import KYCStatus, User, UserRole

logger = logging.getLogger(__name__)


class PolicyViolation(Exception):
    """Raised when a user is not allowed to perform an action."""


def ensure_role(user: User, roles: Iterable[UserRole]) -> None:
    """Raise PolicyViolation unless *user* holds one of *roles*."""
    allowed = set(roles)
    if user.role not in allowed:
        logger.warning("User %s with role %s denied (needs %s)", user.id, user.role, allowed)
        raise PolicyViolation("Insufficient permissions")


def ensure_kyc_approved(user: User) -> None:
    """Raise PolicyViolation unless the user's KYC has been approved."""
    if user.kyc_status != KYCStatus.APPROVED:
        logger.warning("User %s blocked by KYC gate (status=%s)", user.id, user.kyc_status)
        raise PolicyViolation("KYC verification required")
