"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with logging and transaction helpers

Service Layer Philosophy:
    Views handle HTTP concerns, models handle data, services handle the
    chat rules (membership, visibility, unread counts). Every public
    service method takes the acting user explicitly; nothing reads the
    caller from ambient request state.

Pattern Comparison:
    - ServiceResult: Returned for expected failures (not found, not allowed)
    - core.exceptions: Raised by internal helpers, converted at the boundary
    - Anything else: Unexpected, allowed to propagate

Usage:
    from core.services import BaseService, ServiceResult

    class MessageService(BaseService):
        @classmethod
        def edit(cls, user, message_id, content) -> ServiceResult[Message]:
            try:
                with cls.atomic():
                    message = cls._get_editable_message(user, message_id)
                    ...
            except BaseApplicationError as e:
                return cls.handle_exception(e, "edit")

            cls.get_logger().info(f"Message {message.id} edited")
            return ServiceResult.success(message)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(conversation)

        # Failure case
        return ServiceResult.failure("Only the group admin can do that", "PERMISSION_DENIED")

        # Check result
        result = ConversationService.create_group(creator, "Team", [])
        if not result:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data (may be None for fire-and-forget writes)
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; anything else falls
        back to the exception class name.

        Args:
            exc: The caught exception
            error_code: Optional override for the error code
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        details = getattr(exc, "details", None) or None
        return cls(
            success=False,
            error=message,
            error_code=code,
            errors=details,
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception-to-result conversion

    Design Notes:
        - Use @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs, e.g. ``chat.services.MessageService``.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Every chat mutation is a single logical step: either all of its
        writes commit or none do.

        Example:
            with cls.atomic():
                message = Message.objects.create(...)
                participant.save(update_fields=["last_read_at"])
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.WARNING,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Operation name for the log line
            log_level: Logging level (default WARNING, these are expected failures)

        Returns:
            Failed ServiceResult carrying the exception's error code
        """
        message = f"{context} rejected: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message)
        return ServiceResult.from_exception(exc)
