"""Error taxonomy for service operations.

Every error a caller can see carries a stable HTTP-style status, a
machine-readable code and the operation id used to correlate logs.
Internal details (storage messages, stack traces) are logged, never
placed in the message.
"""

import uuid
from typing import Any

from memberforge.validation.types import ValidationIssue, ValidationResult


def new_operation_id(prefix: str) -> str:
    """Generate a correlation id such as 'create-3f9c2a1b'."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class AppError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, operation_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.operation_id = operation_id

    def error_messages(self) -> list[str]:
        return [self.message]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "errors": self.error_messages(),
            "operationId": self.operation_id,
        }


class ValidationError(AppError):
    """One or more business rules rejected the input (400)."""

    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        issues: list[ValidationIssue] | None = None,
        warnings: list[ValidationIssue] | None = None,
        operation_id: str | None = None,
    ):
        super().__init__(message, operation_id=operation_id)
        self.issues = issues or []
        self.warnings = warnings or []

    @classmethod
    def from_result(
        cls, result: ValidationResult, operation_id: str | None = None
    ) -> "ValidationError":
        count = len(result.errors)
        noun = "error" if count == 1 else "errors"
        return cls(
            f"Validation failed with {count} {noun}",
            issues=list(result.errors),
            warnings=list(result.warnings),
            operation_id=operation_id,
        )

    def error_messages(self) -> list[str]:
        if not self.issues:
            return [self.message]
        return [issue.message for issue in self.issues]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["issues"] = [i.to_dict() for i in self.issues]
        if self.warnings:
            result["warnings"] = [w.to_dict() for w in self.warnings]
        return result


class PermissionDeniedError(AppError):
    """The actor's role does not allow the operation (403)."""

    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(AppError):
    """No record for the reference, or it belongs to another tenant (404)."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Record not found", *, operation_id: str | None = None):
        super().__init__(message, operation_id=operation_id)


class StorageError(AppError):
    """The storage collaborator failed (500).

    `conflict` marks uniqueness violations so the service can turn them
    into validation errors. `detail` holds the underlying message for logs.
    """

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str = "Storage operation failed",
        *,
        conflict: bool = False,
        detail: str | None = None,
        operation_id: str | None = None,
    ):
        super().__init__(message, operation_id=operation_id)
        self.conflict = conflict
        self.detail = detail
