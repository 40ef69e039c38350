"""
auth/errors.py -- Failure taxonomy for the login core.

Every failure a caller can observe is one of these types. Each carries a
stable machine-readable ``code`` that the API layer copies into the error
envelope. The human message is deliberately generic for the authentication
failures; the distinctions that matter for debugging go to the log, never
to the response.

  MissingInput        caller error, user-correctable
  InvalidCredentials  unknown email, OAuth-only account, or wrong password
  DuplicateEmail      registration conflict on the unique email key
  StoreUnavailable    user store failure or timeout; retryable by caller
  TokenInvalid        expired, tampered, or malformed session token
  SigningUnavailable  missing/malformed signing secret; fatal at startup

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all login-core failures."""

    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class MissingInput(AuthError):
    code = "missing_input"
    message = "Required input is missing."


class InvalidCredentials(AuthError):
    """Raised for every credential mismatch.

    Callers must not be able to tell an unknown email from a wrong password,
    so the message is fixed and never parameterized.
    """

    code = "bad_credentials"
    message = "Invalid email or password."

    def __init__(self) -> None:
        super().__init__(self.message)


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    message = "A user with that email already exists."


class StoreUnavailable(AuthError):
    code = "store_unavailable"
    message = "The user store is temporarily unavailable."


class TokenInvalid(AuthError):
    """Raised for expired, tampered, and malformed tokens alike."""

    code = "token_invalid"
    message = "Session token is invalid or expired."

    def __init__(self) -> None:
        super().__init__(self.message)


class SigningUnavailable(AuthError):
    code = "signing_unavailable"
    message = "Token signing secret is missing or malformed."
