"""
Password hashing and signed tokens for Bookshelf.

Handles:
- bcrypt password hashes
- Session tokens (JWT, purpose "session")
- Password reset tokens (JWT, purpose "reset", persisted by digest)
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

SESSION_PURPOSE = "session"
RESET_PURPOSE = "reset"

DEFAULT_BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72

_dummy_hash: Optional[str] = None


class TokenError(ValueError):
    """Token is malformed, expired, forged, or meant for another purpose."""


@dataclass
class SessionClaims:
    """Identity carried by a session token. The role is a hint only."""

    user_id: int
    email: str
    role: str


# =============================================================================
# Passwords
# =============================================================================

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a password with a fresh salt."""
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Check a password against a stored hash.

    With no stored hash (unknown account) a dummy hash is still checked so
    both failure paths cost the same time.
    """
    global _dummy_hash

    if not password_hash:
        if _dummy_hash is None:
            _dummy_hash = get_password_hash(secrets.token_hex(16))
        bcrypt.checkpw(_password_bytes(password), _dummy_hash.encode("utf-8"))
        return False

    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# =============================================================================
# Session tokens
# =============================================================================

def create_access_token(
    user_id: int,
    email: str,
    role: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(days=7),
) -> str:
    """Sign a session token for a user."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "purpose": SESSION_PURPOSE,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> SessionClaims:
    """
    Verify a session token.

    Raises:
        TokenError: If the token is invalid, expired, or not a session token.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise TokenError(str(e)) from e

    if payload.get("purpose") != SESSION_PURPOSE:
        raise TokenError("Not a session token")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError("Token has no valid subject") from e

    if user_id < 1:
        raise TokenError("Token has no valid subject")

    return SessionClaims(
        user_id=user_id,
        email=str(payload.get("email", "")),
        role=str(payload.get("role", "user")),
    )


# =============================================================================
# Password reset tokens
# =============================================================================

def create_reset_token(
    email: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=1),
) -> tuple[str, datetime]:
    """
    Sign a single-use password reset token.

    Returns:
        (token, naive UTC expiry) - the expiry is what gets persisted.
    """
    expires_at = datetime.now(timezone.utc) + expires_delta
    claims = {
        "email": email,
        "purpose": RESET_PURPOSE,
        "jti": secrets.token_urlsafe(16),
        "exp": expires_at,
    }
    token = jwt.encode(claims, secret_key, algorithm=algorithm)
    return token, expires_at.replace(tzinfo=None)


def decode_reset_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> str:
    """
    Verify a reset token's signature, expiry and purpose.

    Returns:
        The email the token was issued for.

    Raises:
        TokenError: If the token cannot be used for a reset.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise TokenError(str(e)) from e

    if payload.get("purpose") != RESET_PURPOSE:
        raise TokenError("Not a reset token")

    email = payload.get("email")
    if not email:
        raise TokenError("Reset token has no email")
    return email


def hash_reset_token(token: str) -> str:
    """Digest under which a reset token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
