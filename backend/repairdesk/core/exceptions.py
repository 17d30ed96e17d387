"""Error taxonomy.

``ApiError`` subclasses carry an HTTP status and are turned into error
envelopes by the handlers registered in ``repairdesk.main``. Domain errors
below them are raised by the security and password-reset layers and are
translated by the routes that call those layers.
"""

from typing import Dict, List, Optional


class ApiError(Exception):
    """Base class for errors rendered as an error envelope."""

    status_code: int = 400
    default_message: str = "Bad request."

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Dict[str, List[str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.errors = errors or {}
        self.headers = headers
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    default_message = "Bad request."


class ValidationFailed(ApiError):
    status_code = 422
    default_message = "The given data was invalid."


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Unauthenticated."

    def __init__(self, message: Optional[str] = None, errors=None):
        super().__init__(message, errors, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403
    default_message = "This action is unauthorized."


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found."


class MethodNotAllowed(ApiError):
    status_code = 405
    default_message = "Method not allowed."


class ServerError(ApiError):
    status_code = 500
    default_message = "Internal server error."


# ---------------------------------------------------------------------------
# Token errors (raised by repairdesk.core.security)
# ---------------------------------------------------------------------------

class TokenError(Exception):
    """A bearer token could not be accepted."""


class MalformedToken(TokenError):
    pass


class BadSignature(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


# ---------------------------------------------------------------------------
# Password reset errors (raised by repairdesk.services.password_reset)
# ---------------------------------------------------------------------------

class UserNotFound(Exception):
    """No live user matches the given email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"No user with email {email}")


class ResetTokenInvalid(Exception):
    """The presented password reset token cannot be used."""


class TokenNotFound(ResetTokenInvalid):
    pass


class TokenMismatch(ResetTokenInvalid):
    pass


class TokenExpired(ResetTokenInvalid):
    pass
