"""Error taxonomy and sanitization utilities."""

from __future__ import annotations

import re


class OperatorError(Exception):
    """Base class for errors raised by the operator."""


class RetryableError(OperatorError):
    """Transient condition, the pass is retried after a short delay."""

    def __init__(self, message: str, delay: float = 1.0):
        super().__init__(message)
        self.delay = delay


class CancelledError(RetryableError):
    """The reconcile pass ran past its deadline or was cancelled."""


class DependencyNotReadyError(RetryableError):
    """A referenced object or sibling resource is not available yet."""

    def __init__(self, message: str, delay: float = 5.0):
        super().__init__(message, delay)


class TerminalError(OperatorError):
    """User-correctable error that will not go away without a spec change."""


class ConfigurationError(TerminalError):
    """Invalid or incomplete resource configuration."""


class MissingOrganizationError(ConfigurationError):
    """Certificate generation refused because organization metadata is absent."""


class StoreError(OperatorError):
    """Base class for object store failures."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    """Object does not exist."""


class ConflictError(StoreError):
    """Object was changed concurrently (resource version mismatch)."""


class AlreadyExistsError(ConflictError):
    """Object with that name already exists."""


class InvalidError(StoreError):
    """Object was rejected by the store."""


def is_retryable(error: BaseException) -> bool:
    """Whether an error should lead to a requeue instead of a failure."""
    return isinstance(error, (RetryableError, ConflictError))


def is_terminal(error: BaseException) -> bool:
    """Whether an error needs a spec change to be resolved."""
    return isinstance(error, (TerminalError, InvalidError))


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    r"DEK-Info:\s*\S+",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "root-password",
    "private",
    "token",
    "secret_value",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.DOTALL)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{re.escape(field)}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))
