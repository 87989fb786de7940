"""
Credentials for PayFlow customers and admins.

Access tokens are JWTs signed with the RSA keypair from
``scripts/generate_keys.py``; without key files we sign HS256 with
SECRET_KEY so local development works out of the box. A token travels
either as ``Authorization: Bearer`` or in the httponly ``token`` cookie
set at register/login. Passwords are bcrypt hashes.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import bcrypt as _bcrypt
import jwt
from fastapi import HTTPException, Response, status

from app.config import settings

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
BEARER_PREFIX = "Bearer "

# ---------------------------------------------------------------------------
# Signing keys
# ---------------------------------------------------------------------------

_signing_key: str | bytes | None = None
_verify_key: str | bytes | None = None
_algorithm: str = settings.JWT_ALGORITHM


def _read_keypair() -> tuple[bytes, bytes] | None:
    private_path = Path(settings.JWT_PRIVATE_KEY_PATH)
    public_path = Path(settings.JWT_PUBLIC_KEY_PATH)
    if not (private_path.exists() and public_path.exists()):
        return None
    return private_path.read_bytes(), public_path.read_bytes()


def _init_keys() -> None:
    global _signing_key, _verify_key, _algorithm

    keypair = _read_keypair()
    if keypair is not None:
        _signing_key, _verify_key = keypair
        _algorithm = "RS256"
        logger.info("JWT signing with RSA keypair from %s", settings.JWT_PRIVATE_KEY_PATH)
        return

    _signing_key = _verify_key = settings.SECRET_KEY
    _algorithm = "HS256"
    if settings.APP_ENV == "production":
        logger.error("No RSA keypair in production; tokens are signed HS256 with SECRET_KEY")
    else:
        logger.warning("No RSA keypair found, signing HS256 (run scripts/generate_keys.py)")


_init_keys()


def configure_keys(
    *, private_key: str | bytes, public_key: str | bytes, algorithm: str = "RS256"
) -> None:
    """Swap the signing keys at runtime. Tests install a throwaway keypair."""
    global _signing_key, _verify_key, _algorithm
    _signing_key = private_key
    _verify_key = public_key
    _algorithm = algorithm


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------


def token_lifetime_seconds() -> int:
    return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def create_access_token(user_id: str, email: str, role: str) -> str:
    """Sign an access token; ``sub`` is the user id, ``role`` drives admin checks."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=token_lifetime_seconds()),
    }
    return jwt.encode(claims, _signing_key, algorithm=_algorithm)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_token(token: str) -> dict:
    """Return the claims of a valid token, or raise 401."""
    try:
        return jwt.decode(token, _verify_key, algorithms=[_algorithm])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")


def verify_token(token: str, expected_type: str = "access") -> dict:
    claims = decode_token(token)
    if claims.get("type") != expected_type:
        raise _unauthorized(f"Expected {expected_type} token")
    return claims


# ---------------------------------------------------------------------------
# Token transport
# ---------------------------------------------------------------------------


def extract_token(authorization: str | None, cookie_token: str | None) -> str | None:
    """The Bearer header wins over the cookie when both are present."""
    if authorization and authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):]
    return cookie_token


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=token_lifetime_seconds(),
        httponly=True,
        secure=settings.APP_ENV == "production",
        samesite="lax",
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(TOKEN_COOKIE)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(plain_password: str) -> str:
    salt = _bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return _bcrypt.hashpw(plain_password.encode(), salt).decode()


def verify_password(plain_password: str, password_hash: str) -> bool:
    return _bcrypt.checkpw(plain_password.encode(), password_hash.encode())
