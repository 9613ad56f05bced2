"""Error kinds for authentication and authorization failures.

Every failure the core signals carries an ErrorKind so that callers
(the HTTP layer, the CLI, tests) branch on the kind instead of on
message text. Messages are human-readable and never include token
contents or secret values.

Storage/transport failures are NOT wrapped — they propagate unchanged
as fatal errors for the current operation.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    UNVERIFIED = "unverified"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"


class AccessError(Exception):
    """Base class for recoverable auth/authz failures."""

    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCredentialError(AccessError):
    """Bad, expired or already-used token, or no session."""

    kind = ErrorKind.INVALID_CREDENTIAL


class UnverifiedAccountError(AccessError):
    """Credential is fine but the account has not been verified."""

    kind = ErrorKind.UNVERIFIED


class ForbiddenError(AccessError):
    """Missing permission, or resource belongs to a different team."""

    kind = ErrorKind.FORBIDDEN


class NotFoundError(AccessError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(AccessError):
    kind = ErrorKind.CONFLICT


class InvalidInputError(AccessError, ValueError):
    kind = ErrorKind.INVALID


class InvalidPermissionError(InvalidInputError):
    """Module or action outside the closed permission universe."""
