"""
Custom exceptions for the account provisioner.

This module defines all custom exceptions used throughout the tool
for consistent error handling and reporting.
"""
from typing import Optional, Dict, Any, List

EXIT_FAILURE = 1
EXIT_USAGE = 2


class ProvisionerError(Exception):
    """
    Base exception for all provisioner errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(
        self,
        message: str,
        exit_code: int = EXIT_FAILURE,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.exit_code = exit_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ProvisionerError):
    """
    Raised when operator input is rejected.

    Always raised before any statement reaches the server.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, exit_code=EXIT_FAILURE, details=details)


class InvalidIdentifierError(ValidationError):
    """Raised when a name does not match the identifier grammar."""


class InvalidRawInputError(ValidationError):
    """Raised when raw input cannot be normalized into an identifier."""


class InvalidHostError(ValidationError):
    """Raised when the account host is empty, too long or not allowed."""


class ConfigurationError(ProvisionerError):
    """
    Raised when the credentials file or settings are unusable.

    Used for a missing file, missing section, missing keys, bad port, etc.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, exit_code=EXIT_USAGE, details=details)


class ConnectionFailureError(ProvisionerError):
    """Raised when the server connection cannot be opened or pinged."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Connection failed: {message}",
            exit_code=EXIT_FAILURE,
            details=details,
        )


class ServerCommandError(ProvisionerError):
    """
    Raised when the server rejects a query or statement.

    Wraps driver errors so callers never depend on the driver's types.
    """

    def __init__(
        self,
        message: str,
        errno: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.errno = errno
        super().__init__(
            message=message,
            exit_code=EXIT_FAILURE,
            details=details or ({"errno": errno} if errno is not None else {}),
        )


class TimeoutExceededError(ServerCommandError):
    """Raised when a server call exceeds the per-attempt time budget."""

    def __init__(self, timeout_seconds: float, details: Optional[Dict[str, Any]] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message=f"Timeout exceeded ({timeout_seconds:g}s)",
            details=details or {"timeout_seconds": timeout_seconds},
        )


class DDLFailureError(ProvisionerError):
    """
    Raised when a creation step fails.

    Compensation for already completed steps has been attempted by the
    time this is raised; failed undo steps are listed in
    ``details["rollback_failures"]``.
    """

    def __init__(
        self,
        step: str,
        name: str,
        reason: str,
        rollback_failures: Optional[List[str]] = None,
    ):
        self.step = step
        self.name = name
        self.reason = reason
        self.rollback_failures = rollback_failures or []
        message = f"{step} failed for '{name}': {reason}"
        if self.rollback_failures:
            message += f" (rollback incomplete: {', '.join(self.rollback_failures)})"
        super().__init__(
            message=message,
            exit_code=EXIT_FAILURE,
            details={
                "step": step,
                "name": name,
                "reason": reason,
                "rollback_failures": self.rollback_failures,
            },
        )


class RollbackFailureError(ProvisionerError):
    """
    Raised by a single compensation step.

    Never surfaced on its own: it is logged and recorded on the
    originating DDLFailureError.
    """

    def __init__(self, step: str, name: str, reason: str):
        self.step = step
        super().__init__(
            message=f"Rollback {step} failed for '{name}': {reason}",
            exit_code=EXIT_FAILURE,
            details={"step": step, "name": name, "reason": reason},
        )


class AuditWriteError(ProvisionerError):
    """Raised when the audit record cannot be appended."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Failed to write audit record to {path}: {reason}",
            exit_code=EXIT_FAILURE,
            details={"path": path, "reason": reason},
        )


# Export all exceptions
__all__ = [
    "EXIT_FAILURE",
    "EXIT_USAGE",
    "ProvisionerError",
    "ValidationError",
    "InvalidIdentifierError",
    "InvalidRawInputError",
    "InvalidHostError",
    "ConfigurationError",
    "ConnectionFailureError",
    "ServerCommandError",
    "TimeoutExceededError",
    "DDLFailureError",
    "RollbackFailureError",
    "AuditWriteError",
]
