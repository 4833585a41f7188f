"""Exceptions raised by the audit interceptor.

Only AuditRegistrationError ever leaves the package: it is raised
while wiring hooks at startup. The others are raised between the
interceptor's internal steps and caught by the interceptor itself.
"""

from typing import Any


class AuditError(Exception):
    """Base exception for all audit errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    message: str = "An unexpected audit error occurred"
    error_code: str = "audit_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class AuditRegistrationError(AuditError):
    """Raised when the audit hooks cannot be attached.

    Example:
        raise AuditRegistrationError(
            "Hook already registered",
            details={"hook": "audit:create"},
        )
    """

    message = "Audit callback registration failed"
    error_code = "registration_failed"

    def __init__(
        self,
        message: str | None = None,
        hook: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if hook:
            details["hook"] = hook
        super().__init__(message=message, details=details, **kwargs)


class SnapshotError(AuditError):
    """Raised when an entity cannot be encoded to a snapshot."""

    message = "Entity state could not be serialized"
    error_code = "snapshot_failed"


class PriorStateLookupError(AuditError):
    """Raised when the pre-mutation row cannot be fetched."""

    message = "Prior state lookup failed"
    error_code = "prior_lookup_failed"


class AuditPersistenceError(AuditError):
    """Raised when the audit record cannot be inserted."""

    message = "Audit record could not be persisted"
    error_code = "persistence_failed"
