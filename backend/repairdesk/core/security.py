"""Security utilities: password hashing, JWT access tokens and revocation."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from jwt.exceptions import InvalidSignatureError, PyJWTError
from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.core.exceptions import BadSignature, ExpiredToken, MalformedToken

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except (ValueError, TypeError) as e:
        logger.warning(f"Password verification error: {e}")
        return False


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int
    jti: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    jti: str
    issued_at: datetime
    expires_at: datetime


def issue_access_token(
    user_id: int,
    ttl_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> IssuedToken:
    """Create a signed access token for ``user_id`` valid for ``ttl_seconds``."""
    if ttl_seconds is None:
        ttl_seconds = settings.access_token_ttl_seconds
    now = now or datetime.now(timezone.utc)
    expire = now + timedelta(seconds=ttl_seconds)
    jti = secrets.token_urlsafe(16)

    token = jwt.encode(
        {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "jti": jti,
        },
        settings.secret_key,
        algorithm=settings.algorithm,
    )
    return IssuedToken(
        token=token,
        expires_in=ttl_seconds,
        jti=jti,
        expires_at=datetime.fromtimestamp(int(expire.timestamp()), tz=timezone.utc),
    )


def verify_access_token(token: str, now: Optional[datetime] = None) -> TokenClaims:
    """Decode and validate an access token.

    The signature is checked first; expiry is compared against ``now`` so
    callers (and tests) control the clock.

    Raises:
        MalformedToken: not a JWT, or required claims missing/invalid.
        BadSignature: signature does not verify with the current secret.
        ExpiredToken: ``now`` is at or past the ``exp`` claim.
    """
    if not token:
        raise MalformedToken("empty token")
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={
                "verify_exp": False,
                "verify_iat": False,
                "require": ["sub", "exp", "iat", "jti"],
            },
        )
    except InvalidSignatureError as e:
        raise BadSignature(str(e)) from e
    except PyJWTError as e:
        raise MalformedToken(str(e)) from e

    try:
        user_id = int(payload["sub"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (TypeError, ValueError) as e:
        raise MalformedToken(f"invalid claim: {e}") from e

    now = now or datetime.now(timezone.utc)
    if now >= expires_at:
        raise ExpiredToken(f"token expired at {expires_at.isoformat()}")

    return TokenClaims(
        user_id=user_id,
        jti=str(payload["jti"]),
        issued_at=issued_at,
        expires_at=expires_at,
    )


def revoke_token(db: Session, claims: TokenClaims) -> None:
    """Add a token to the revocation list so it can no longer authenticate.

    Revocations whose token has already expired are purged at the same time.
    """
    from repairdesk.models.revoked_token import RevokedToken

    now = datetime.now(timezone.utc)
    db.query(RevokedToken).filter(RevokedToken.expires_at < now).delete(
        synchronize_session=False
    )
    if db.get(RevokedToken, claims.jti) is None:
        db.add(RevokedToken(
            jti=claims.jti,
            user_id=claims.user_id,
            expires_at=claims.expires_at,
        ))
    db.commit()


def is_token_revoked(db: Session, jti: str) -> bool:
    """Check if a token JTI is on the revocation list."""
    from repairdesk.models.revoked_token import RevokedToken

    return db.get(RevokedToken, jti) is not None


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------

def generate_reset_token() -> str:
    """Generate a random password reset token (48 bytes of entropy)."""
    return secrets.token_urlsafe(48)


def hash_reset_token(token: str) -> str:
    """One-way hash stored in place of the plaintext reset token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def reset_token_matches(token: str, token_hash: str) -> bool:
    """Constant-time comparison of a presented token against a stored hash."""
    return hmac.compare_digest(hash_reset_token(token), token_hash)
