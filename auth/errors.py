"""
auth/errors.py -- Exception taxonomy for the identity and access layer.

Every error here is scoped to a single request. None of them is fatal to the
process.

  ProvisioningError    -- registration rejected; the form is re-rendered.
  AuthenticationError  -- login rejected; every subclass collapses to one
                          user-visible message so usernames cannot be
                          enumerated. The subclass is for logs only.
  Forbidden            -- authenticated, but the policy denies the request.
  InvalidTransition    -- LoginFlow driven out of order (programming error).
"""

from __future__ import annotations

BAD_CREDENTIALS_MESSAGE = "Invalid username or password"


class AuthError(Exception):
    """Base class for identity and access errors."""

    message: str = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------


class ProvisioningError(AuthError):
    code = "invalid_registration"
    message = "Registration failed"


class DuplicateUsername(ProvisioningError):
    code = "duplicate_username"
    message = "Username already exists"


class DuplicateEmail(ProvisioningError):
    code = "duplicate_email"
    message = "Email already exists"


class InvalidRole(ProvisioningError):
    code = "invalid_role"
    message = "Invalid role"


class PasswordTooLong(ProvisioningError):
    code = "password_too_long"
    message = "Password must be at most 72 bytes"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationError(AuthError):
    message = BAD_CREDENTIALS_MESSAGE

    @property
    def public_message(self) -> str:
        return BAD_CREDENTIALS_MESSAGE


class PrincipalNotFound(AuthenticationError):
    pass


class BadPassword(AuthenticationError):
    pass


class AccountDisabled(AuthenticationError):
    pass


# ---------------------------------------------------------------------------
# Authorization / login flow
# ---------------------------------------------------------------------------


class Forbidden(AuthError):
    code = "forbidden"
    message = "Access denied."


class InvalidTransition(AuthError):
    message = "Invalid login state transition"
