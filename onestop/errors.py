"""
Domain Exceptions

Raised inside the core and converted to a ServiceResult at each service
boundary. Each exception carries the ErrorKind the result will report
and a message that is safe to show to the user.
"""

from typing import Optional

from onestop.models.result import ErrorKind


class FinanceError(Exception):
    """Base exception for all expected failures in the core."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class UnauthorizedError(FinanceError):
    """No authenticated caller."""
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized"


class RateLimitedError(FinanceError):
    """Admission control denied the request because the quota is used up."""
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests. Please try again later."

    def __init__(self, remaining: int, reset_seconds: float):
        self.remaining = remaining
        self.reset_seconds = reset_seconds
        super().__init__(details={"remaining": remaining, "reset_seconds": reset_seconds})


class RequestBlockedError(FinanceError):
    """Admission control denied the request for a policy reason."""
    kind = ErrorKind.REQUEST_BLOCKED
    default_message = "Request blocked"


class NotFoundError(FinanceError):
    """User or account does not exist, or is not owned by the caller."""
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class AccountNotFoundError(NotFoundError):
    default_message = "Account not found"


class NoDefaultAccountError(FinanceError):
    kind = ErrorKind.NO_DEFAULT_ACCOUNT
    default_message = "No default account found"


class AmbiguousDefaultAccountError(FinanceError):
    kind = ErrorKind.AMBIGUOUS_DEFAULT_ACCOUNT
    default_message = "More than one default account found. Please choose a single default account."


class ScanFailedError(FinanceError):
    kind = ErrorKind.SCAN_FAILED
    default_message = "Failed to scan receipt"


class OracleParseError(FinanceError):
    """The model replied with something that is not a JSON object."""
    kind = ErrorKind.ORACLE_PARSE_ERROR
    default_message = "Could not parse transaction details from prompt"


class OracleUnavailableError(FinanceError):
    """The model call itself failed."""
    kind = ErrorKind.ORACLE_UNAVAILABLE
    default_message = "The AI service is unavailable. Please try again later."


class IncompleteExtractionError(FinanceError):
    kind = ErrorKind.INCOMPLETE_EXTRACTION
    default_message = "Incomplete transaction details extracted"


class InvalidIntervalError(FinanceError):
    kind = ErrorKind.INVALID_INTERVAL
    default_message = "Unknown recurring interval"


class ValidationError(FinanceError):
    """Invalid input from the caller."""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input"


class BalanceLimitError(ValidationError):
    default_message = "This transaction would take the account balance out of the supported range"


class StorageError(FinanceError):
    """The store failed for a reason other than a missing row."""
    kind = ErrorKind.STORAGE_ERROR
    default_message = "Could not save your changes. Please try again."
