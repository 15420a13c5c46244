"""
Typed errors raised by the membership and access-control services.

Every error carries a stable ``code`` and the HTTP status a transport layer
should map it to. Services never build responses; the API layer renders
``to_response()``.
"""

from __future__ import annotations


class VaultOrgError(Exception):
    """Base exception for all organization/membership failures."""

    code = "VAULTORG_ERROR"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.http_status,
            }
        }


class NotFound(VaultOrgError):
    """Referenced org, membership or collection is absent or not in the expected org."""

    code = "NOT_FOUND"
    http_status = 404


class Forbidden(VaultOrgError):
    """The actor's role may not perform this change."""

    code = "FORBIDDEN"
    http_status = 403


class LastOwnerViolation(VaultOrgError):
    """The change would leave the organization without a confirmed owner."""

    code = "LAST_OWNER_VIOLATION"
    http_status = 409

    def __init__(self, message: str = "Can't remove or demote the last owner"):
        super().__init__(message)


class AlreadyMember(VaultOrgError):
    code = "ALREADY_MEMBER"
    http_status = 409

    def __init__(self, email: str | None = None):
        message = "User already in organization"
        if email:
            message = f"User {email} already in organization"
        super().__init__(message)
        self.email = email


class InvalidState(VaultOrgError):
    code = "INVALID_STATE"
    http_status = 409


class InvalidInput(VaultOrgError):
    code = "INVALID_INPUT"
    http_status = 400


class InvalidCredentials(VaultOrgError):
    code = "INVALID_CREDENTIALS"
    http_status = 401

    def __init__(self, message: str = "Invalid password"):
        super().__init__(message)


class StorageFailure(VaultOrgError):
    """The store rejected or failed a write. The original exception is ``__cause__``."""

    code = "STORAGE_FAILURE"
    http_status = 503

    def __init__(self, operation: str):
        super().__init__(f"Storage failure during {operation}")
        self.operation = operation
