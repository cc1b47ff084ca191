"""
Domain exception hierarchy shared by every service.

Each exception carries a machine-readable ``error_code`` and the HTTP status
a view should answer with. Services raise these from their internal helpers
and convert them into ``ServiceResult`` failures at their public boundary, so
callers can always tell the kind of failure apart from the message text.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError          - Malformed input (400)
    ├── NotFoundError            - Referenced conversation/message/user missing (404)
    ├── PermissionDeniedError    - Caller lacks the required role (403)
    ├── BlockedRelationshipError - Either side of a direct chat blocked the other (403)
    └── InvalidStateError        - Operation not allowed in the record's current state (409)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError("Conversation not found")

    try:
        ...
    except BaseApplicationError as e:
        return ServiceResult.from_exception(e)

Note:
    Authentication failures never reach these classes; DRF rejects
    unauthenticated requests with 401 before any service runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, offending ids)
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {"error": "Message not found", "error_code": "NOT_FOUND"}
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Input failed validation before any state was touched.

    Examples:
        raise ValidationError("Message content cannot be empty")
        raise ValidationError("You cannot block yourself")
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """Referenced conversation, message or user does not exist."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Caller lacks the role the operation requires.

    Raised for non-admin group administration, non-sender edits and
    hard deletes, admins kicking themselves, and reads of conversations
    the caller does not belong to.
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class BlockedRelationshipError(PermissionDeniedError):
    """
    Send rejected because one side of a direct conversation blocked the other.

    Subclasses PermissionDeniedError so generic permission handling still
    applies, while keeping a distinct error code.
    """

    default_error_code: str = "BLOCKED"
    status_code: int = 403


class InvalidStateError(BaseApplicationError):
    """
    Record is in a state that forbids the operation.

    Examples:
        raise InvalidStateError("Cannot edit a deleted message")
        raise InvalidStateError("Direct conversations have no members to manage")
    """

    default_error_code: str = "INVALID_STATE"
    status_code: int = 409


# Lookup used by views to turn a failed ServiceResult into an HTTP status
STATUS_BY_ERROR_CODE: dict[str, int] = {
    cls.default_error_code: cls.status_code
    for cls in (
        ValidationError,
        NotFoundError,
        PermissionDeniedError,
        BlockedRelationshipError,
        InvalidStateError,
    )
}
