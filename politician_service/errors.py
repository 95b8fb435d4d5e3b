"""
Structured error taxonomy shared by every caller in the service.

Errors are classified once, at the failure site, into a small set of kinds
that decide how the rest of the system reacts:

- VALIDATION_ERROR: the caller supplied bad input. Never retried, rendered as 400.
- NOT_FOUND: a referenced entity does not exist. Never retried.
- TRANSIENT_BACKEND_ERROR: a data source hiccup. Retried by the RetryExecutor.
- INTERNAL_ERROR: a programmer/defensive fault. Never retried, always 500.

This module never logs and never performs I/O; rendering and logging belong to
the HTTP boundary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class ErrorKind(str, Enum):
    """Machine-readable error kinds surfaced as the ``code`` of failure responses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    TRANSIENT_BACKEND_ERROR = "TRANSIENT_BACKEND_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_DEFAULT_SEVERITY = {
    ErrorKind.VALIDATION_ERROR: ErrorSeverity.LOW,
    ErrorKind.NOT_FOUND: ErrorSeverity.LOW,
    ErrorKind.TRANSIENT_BACKEND_ERROR: ErrorSeverity.MEDIUM,
    ErrorKind.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
}

_DEFAULT_USER_MESSAGES = {
    ErrorKind.VALIDATION_ERROR: "Please check your input and try again.",
    ErrorKind.NOT_FOUND: "The requested item could not be found.",
    ErrorKind.TRANSIENT_BACKEND_ERROR: "Data access issue. Please try again in a moment.",
    ErrorKind.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
}

_NON_RETRYABLE_KINDS = frozenset({ErrorKind.VALIDATION_ERROR, ErrorKind.NOT_FOUND})

_TRANSIENT_EXCEPTION_TYPES = (OSError, ConnectionError, TimeoutError)


class ClassifiedError(Exception):
    """An error carrying its kind, severity and context.

    Instances are immutable once constructed: context is supplied up front and
    exposed as a read-only mapping.
    """

    _FIELDS = frozenset(
        {"message", "kind", "severity", "context", "is_operational", "user_message", "timestamp"}
    )

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        severity: ErrorSeverity,
        context: Optional[Mapping[str, Any]] = None,
        is_operational: bool = True,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "kind", ErrorKind(kind))
        object.__setattr__(self, "severity", ErrorSeverity(severity))
        object.__setattr__(self, "context", MappingProxyType(dict(context or {})))
        object.__setattr__(self, "is_operational", bool(is_operational))
        object.__setattr__(
            self, "user_message", user_message or _DEFAULT_USER_MESSAGES[self.kind]
        )
        object.__setattr__(self, "timestamp", datetime.now(timezone.utc))

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._FIELDS:
            raise AttributeError(f"ClassifiedError.{name} is read-only")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name in self._FIELDS:
            raise AttributeError(f"ClassifiedError.{name} is read-only")
        super().__delattr__(name)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r})"

    @property
    def is_retryable(self) -> bool:
        return self.is_operational and self.kind not in _NON_RETRYABLE_KINDS

    @property
    def http_status(self) -> int:
        return 400 if self.kind is ErrorKind.VALIDATION_ERROR else 500

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for logs."""
        return {
            "message": self.message,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "context": dict(self.context),
            "is_operational": self.is_operational,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat(),
        }


def classify_error(
    message: str,
    kind: ErrorKind,
    severity: Optional[ErrorSeverity] = None,
    context: Optional[Mapping[str, Any]] = None,
    is_operational: Optional[bool] = None,
    user_message: Optional[str] = None,
) -> ClassifiedError:
    """Build a ClassifiedError, filling per-kind defaults.

    Args:
        message: Internal, human-readable description of the failure
        kind: Error kind from the taxonomy
        severity: Defaults per kind (validation/not-found low, transient medium,
            internal critical)
        context: Structured payload attached to the error
        is_operational: Defaults to False for INTERNAL_ERROR, True otherwise
        user_message: Safe message for end users; defaults per kind

    Returns:
        The constructed (not raised) error
    """
    kind = ErrorKind(kind)
    if severity is None:
        severity = _DEFAULT_SEVERITY[kind]
    if is_operational is None:
        is_operational = kind is not ErrorKind.INTERNAL_ERROR
    return ClassifiedError(
        message=message,
        kind=kind,
        severity=severity,
        context=context,
        is_operational=is_operational,
        user_message=user_message,
    )


def validation_error(
    message: str, field: Optional[str] = None, user_message: Optional[str] = None, **context: Any
) -> ClassifiedError:
    if field is not None:
        context["field"] = field
    return classify_error(
        message,
        ErrorKind.VALIDATION_ERROR,
        context=context,
        user_message=user_message or message,
    )


def not_found_error(message: str, user_message: Optional[str] = None, **context: Any) -> ClassifiedError:
    return classify_error(message, ErrorKind.NOT_FOUND, context=context, user_message=user_message)


def transient_error(message: str, user_message: Optional[str] = None, **context: Any) -> ClassifiedError:
    return classify_error(
        message, ErrorKind.TRANSIENT_BACKEND_ERROR, context=context, user_message=user_message
    )


def internal_error(message: str, user_message: Optional[str] = None, **context: Any) -> ClassifiedError:
    return classify_error(message, ErrorKind.INTERNAL_ERROR, context=context, user_message=user_message)


def from_exception(exc: BaseException, **context: Any) -> ClassifiedError:
    """Classify an arbitrary exception.

    ClassifiedError instances are returned unchanged. I/O-flavoured exceptions
    become transient backend errors; everything else is treated as a
    non-operational internal fault.
    """
    if isinstance(exc, ClassifiedError):
        return exc

    context.setdefault("exception_type", type(exc).__name__)
    if isinstance(exc, _TRANSIENT_EXCEPTION_TYPES):
        return transient_error(str(exc) or type(exc).__name__, **context)
    return internal_error(str(exc) or type(exc).__name__, **context)
