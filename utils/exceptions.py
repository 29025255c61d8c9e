"""
Error taxonomy for the token codec, the refresh token store and the
session service.

Codec and store errors stay inside their layer. The session service
translates them into AuthError subclasses, which carry a stable code and an
HTTP status that api/errors.py renders.
"""
from __future__ import annotations


# --- token codec -----------------------------------------------------------

class TokenError(Exception):
    """Base class for access token decoding failures."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


class InsufficientEntropy(RuntimeError):
    """The operating system cannot provide secure random bytes."""


# --- refresh token store ---------------------------------------------------

class RefreshTokenError(Exception):
    """Base class for refresh token validation failures."""

    def __init__(self, message: str = "", record=None):
        super().__init__(message or self.__class__.__name__)
        self.record = record


class NotFound(RefreshTokenError):
    pass


class Expired(RefreshTokenError):
    pass


class Revoked(RefreshTokenError):
    """Raised when a revoked token is presented again (possible reuse)."""


class StorageError(Exception):
    """Persistence failed; the transaction was rolled back."""


# --- session service -------------------------------------------------------

class AuthError(Exception):
    code = "auth_error"
    message = "Authentication failed"
    status = 401

    def __init__(self, message: str | None = None, code: str | None = None, status: int | None = None):
        if message:
            self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        super().__init__(self.message)


class MissingCredentials(AuthError):
    code = "missing_credentials"
    message = "Username and password are required"
    status = 400


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid username or password"
    status = 403


class MissingRefreshToken(AuthError):
    code = "missing_refresh_token"
    message = "Refresh token not found"


class InvalidRefreshToken(AuthError):
    code = "invalid_refresh_token"
    message = "Invalid or expired refresh token"


class RefreshTokenReused(AuthError):
    code = "refresh_token_reused"
    message = "Refresh token has been revoked"


class InvalidUser(AuthError):
    code = "invalid_user"
    message = "User not found"


class MissingSecret(AuthError):
    code = "jwt_secret_missing"
    message = "JWT secret not configured"
    status = 500


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid or expired JWT token"


class InvalidSubject(AuthError):
    code = "invalid_token_subject"
    message = "Invalid token subject"


class UnknownUser(AuthError):
    code = "invalid_token_user"
    message = "User not found"


class NotAuthenticated(AuthError):
    code = "not_authenticated"
    message = "No valid token provided"


class StorageFailure(AuthError):
    code = "storage_error"
    message = "Session storage is unavailable"
    status = 500
