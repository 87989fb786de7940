"""
Reusable FastAPI dependencies for authentication, authorization and services.

Dependencies:
  - get_current_user   — extracts user from JWT header or cookie (401 if invalid)
  - require_role       — factory that enforces a role via the policy module (403)
  - require_kyc        — rejects users whose KYC is not APPROVED (403)
  - get_rate_source    — ExchangeRateSource bound to the request's session
  - get_quote_engine   — TransferQuoteEngine over that rate source
"""

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.policy import PolicyViolation, ensure_kyc_approved, ensure_role
from app.core.security import extract_token, verify_token
from app.database import get_db
from app.models.user import User, UserRole
from app.services.quote_engine import TransferQuoteEngine
from app.services.rate_service import ExchangeRateSource, SQLAlchemyExchangeRateRepository


# ---------------------------------------------------------------------------
# Core: extract user from JWT
# ---------------------------------------------------------------------------


async def get_current_user(
    authorization: str | None = Header(None, description="Bearer <access_token>"),
    token: str | None = Cookie(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Read the token from ``Authorization: Bearer`` (or the ``token`` cookie),
    verify it, and load the User.

    Raises 401 if the token is missing, malformed, expired, or the user
    no longer exists.
    """
    raw = extract_token(authorization, token)
    if raw is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
        )

    payload = verify_token(raw, expected_type="access")
    user_id = payload.get("sub")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


# ---------------------------------------------------------------------------
# Policy guards
# ---------------------------------------------------------------------------


def require_role(*roles: UserRole):
    """
    Factory that returns a dependency enforcing one of *roles*.

    Usage::

        @router.get("/stats")
        async def stats(admin: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        try:
            ensure_role(user, roles)
        except PolicyViolation as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        return user

    return _check


require_admin = require_role(UserRole.ADMIN)


async def require_kyc(user: User = Depends(get_current_user)) -> User:
    """Only users with APPROVED KYC may move money or add beneficiaries."""
    try:
        ensure_kyc_approved(user)
    except PolicyViolation as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return user


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


async def get_rate_source(db: AsyncSession = Depends(get_db)) -> ExchangeRateSource:
    return ExchangeRateSource(SQLAlchemyExchangeRateRepository(db))


async def get_quote_engine(
    rate_source: ExchangeRateSource = Depends(get_rate_source),
) -> TransferQuoteEngine:
    return TransferQuoteEngine(rate_source)
