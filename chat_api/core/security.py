"""
core/security.py
----------------
Password hashing and JWT token utilities.

Design decisions:
  - bcrypt work factor from settings (12 in production, lowered in tests).
  - JWT payload carries userId, username and email so most endpoints can
    identify the caller without a DB round-trip; the required-auth
    dependency still confirms the user exists.
  - Tokens are signed with HS256 and scoped by issuer + audience.
  - Verification never raises: callers receive None for any bad token.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from jose.exceptions import JOSEError
from passlib.context import CryptContext

from chat_api.core.config import settings
from chat_api.core.logging import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)

BEARER_SCHEME = "Bearer"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    username: str
    email: str
    issued_at: int
    expires_at: int


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # Unrecognised or empty hash
        return False


# ── JWT Utilities ─────────────────────────────────────────────────────────────

def create_access_token(
    user_id: str,
    username: str,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a JWT access token.

    Args:
        user_id: User UUID (stored in both 'userId' and 'sub').
        username: Public username at issue time.
        email: Email at issue time.
        expires_delta: Optional custom expiry; defaults to settings value.

    Returns:
        Signed JWT string.
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": user_id,
        "userId": user_id,
        "username": username,
        "email": email,
        "iat": now,
        "exp": expire,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """
    Validate signature, expiry, issuer and audience.

    Returns:
        TokenClaims, or None if the token is malformed, expired, tampered
        with or missing identity claims.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JOSEError as exc:
        logger.debug("JWT verification failed", error=str(exc))
        return None

    user_id = payload.get("userId")
    username = payload.get("username")
    email = payload.get("email")
    if not user_id or not username or not email:
        return None

    return TokenClaims(
        user_id=user_id,
        username=username,
        email=email,
        issued_at=int(payload.get("iat", 0)),
        expires_at=int(payload["exp"]),
    )


def peek_token_claims(token: str) -> Optional[Dict[str, Any]]:
    """Decode claims WITHOUT verifying the signature. Diagnostics only."""
    try:
        return jwt.get_unverified_claims(token)
    except JOSEError:
        return None


def is_token_expired(token: str) -> bool:
    claims = peek_token_claims(token)
    if not claims or "exp" not in claims:
        return True
    return claims["exp"] < time.time()


def extract_bearer(header_value: Optional[str]) -> Optional[str]:
    """
    Parse an ``Authorization: Bearer <token>`` header value.
    Anything other than exactly two space-separated parts with the
    ``Bearer`` scheme yields None.
    """
    if not header_value:
        return None

    parts = header_value.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        return None

    return parts[1]
