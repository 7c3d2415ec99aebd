"""Operator errors, error classification and sanitization."""

from __future__ import annotations

import re
from typing import Any

from ..constants import ACCOUNT_NOT_FOUND_MESSAGE, COMPUTE_API_NOT_READY_PREFIXES

# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----[^-]*-----END [A-Z ]*PRIVATE KEY-----",
    r'"private_key"\s*:\s*"[^"]*"',
    r'"privateKeyData"\s*:\s*"[^"]*"',
    r'"private_key_id"\s*:\s*"[^"]*"',
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "private_key",
    "private_key_id",
    "privatekeydata",
    "credentials",
    "token",
    "password",
}


class OperatorError(Exception):
    """Base error raised by the operator."""


class InactiveProjectError(OperatorError):
    """The cloud project is pending deletion and cannot be used."""


class UnexpectedLifecycleStateError(OperatorError):
    """The cloud project reports a lifecycle state the operator cannot handle."""


class RegionNotSupportedError(OperatorError):
    """The claim targets a region that is disabled for this operator."""


class ConfigError(OperatorError):
    """The operator configuration is missing or invalid."""


def wrap(error: Exception, message: str) -> OperatorError:
    """Wrap an error with a short context message, chaining the cause."""
    wrapped = OperatorError(f"{message}: {error}")
    wrapped.__cause__ = error
    return wrapped


def error_status(error: BaseException) -> int | None:
    """Return the HTTP status carried by a Kubernetes or Google API error."""
    resp = getattr(error, "resp", None)
    if resp is not None and getattr(resp, "status", None) is not None:
        return int(resp.status)
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    return None


def error_reason(error: BaseException) -> str:
    """Return the provider-supplied message of an error, or its text."""
    reason = getattr(error, "reason", None)
    if isinstance(reason, str) and reason:
        return reason
    return str(error)


def matches_not_found_error(error: BaseException) -> bool:
    """Whether the error means the remote object does not exist (yet)."""
    if error_status(error) == 404:
        return True
    return ACCOUNT_NOT_FOUND_MESSAGE in str(error)


def matches_already_exists_error(error: BaseException) -> bool:
    return error_status(error) == 409


def matches_compute_api_not_ready_error(error: BaseException) -> bool:
    """Whether the error says the Compute Engine API is still being enabled."""
    if error_status(error) != 403:
        return False
    reason = error_reason(error)
    return any(reason.startswith(prefix) for prefix in COMPUTE_API_NOT_READY_PREFIXES)


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove key material.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.DOTALL)

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        if key.lower() in all_sensitive:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
