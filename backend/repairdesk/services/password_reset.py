"""Password reset ledger.

One hashed token per email. Requesting a new token replaces the previous
one; consuming a token deletes it before the password is changed so it can
never be used twice.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.core.exceptions import TokenExpired, TokenMismatch, TokenNotFound, UserNotFound
from repairdesk.core.notifications import (
    NotificationDispatcher,
    password_reset_success_notification,
    reset_password_notification,
)
from repairdesk.core.security import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    reset_token_matches,
)
from repairdesk.models.password_reset import PasswordResetToken
from repairdesk.models.user import User

logger = logging.getLogger("auth")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PasswordResetLedger:
    """Issues and consumes password reset tokens."""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        now: Optional[datetime] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=settings.password_reset_expire_minutes)

    def _find_user(self, email: str) -> User:
        user = (
            self.db.query(User)
            .filter(User.email == email.strip().lower(), User.not_deleted())
            .first()
        )
        if user is None:
            raise UserNotFound(email)
        return user

    def reset_url(self, token: str, email: str) -> str:
        query = urlencode({"token": token, "email": email})
        return f"{settings.app_url.rstrip('/')}/reset-password?{query}"

    def request(self, email: str) -> None:
        """Issue a new token for ``email`` and send the reset link.

        Raises:
            UserNotFound: no live account uses this email.
        """
        user = self._find_user(email)
        token = generate_reset_token()

        record = self.db.get(PasswordResetToken, user.email)
        if record is None:
            record = PasswordResetToken(email=user.email)
            self.db.add(record)
        record.token_hash = hash_reset_token(token)
        record.created_at = self.now
        self.db.commit()

        logger.info(f"Password reset requested for user ID {user.id}")
        self.dispatcher.dispatch(reset_password_notification(user, self.reset_url(token, user.email)))

    def consume(self, email: str, token: str, new_password: str) -> User:
        """Reset the password of ``email`` if ``token`` is the current one.

        Raises:
            TokenNotFound: no outstanding token for this email.
            TokenExpired: the token is older than the reset TTL.
            TokenMismatch: the token is not the one issued last.
            UserNotFound: the account disappeared after the token was issued.
        """
        email = email.strip().lower()
        record = self.db.get(PasswordResetToken, email)
        if record is None:
            raise TokenNotFound(email)

        if self.now - _as_utc(record.created_at) >= self.ttl:
            self.db.delete(record)
            self.db.commit()
            logger.info("Expired password reset token presented")
            raise TokenExpired(email)

        if not reset_token_matches(token, record.token_hash):
            logger.warning("Password reset token mismatch")
            raise TokenMismatch(email)

        self.db.delete(record)
        self.db.commit()

        user = self._find_user(email)
        user.password_hash = hash_password(new_password)
        self.db.commit()

        logger.info(f"Password reset completed for user ID {user.id}")
        self.dispatcher.dispatch(password_reset_success_notification(user))
        return user
