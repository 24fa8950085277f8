"""
Service Result Contract

Every public service operation returns a ServiceResult instead of raising.
The UI only ever checks `success` and shows `error`; it never has to
catch exceptions from the core.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of a failed operation."""
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    REQUEST_BLOCKED = "request_blocked"
    NOT_FOUND = "not_found"
    SCAN_FAILED = "scan_failed"
    INCOMPLETE_EXTRACTION = "incomplete_extraction"
    NO_DEFAULT_ACCOUNT = "no_default_account"
    AMBIGUOUS_DEFAULT_ACCOUNT = "ambiguous_default_account"
    ORACLE_PARSE_ERROR = "oracle_parse_error"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    INVALID_INTERVAL = "invalid_interval"
    VALIDATION = "validation"
    STORAGE_ERROR = "storage_error"
    INTERNAL = "internal"


class ServiceResult(BaseModel, Generic[T]):
    """
    Outcome of a service operation.

    On success `data` holds the payload. On failure `error` holds a
    message that is safe to show to the user and `error_kind` tells the
    caller what went wrong. `details` carries machine-readable extras
    (e.g. rate-limit quota) for callers that need them.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    details: dict = Field(default_factory=dict)

    # View keys that became stale because of this operation
    stale_views: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: T, stale_views: Optional[list[str]] = None) -> "ServiceResult[T]":
        return cls(success=True, data=data, stale_views=stale_views or [])

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        details: Optional[dict] = None,
    ) -> "ServiceResult[T]":
        return cls(success=False, error=message, error_kind=kind, details=details or {})
