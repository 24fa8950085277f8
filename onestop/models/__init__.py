"""
Data Models Package

This package contains all Pydantic models used in One Stop Finance.
All data flowing between the UI, services and storage conforms to these schemas.
"""

from onestop.models.transaction import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    MAX_AMOUNT,
    MAX_BALANCE,
    AccountDetailView,
    AccountRecord,
    AccountType,
    DashboardView,
    NewTransaction,
    ReceiptScan,
    RecurringInterval,
    TransactionRecord,
    TransactionType,
    UserRecord,
    ValidationIssue,
    ValidationResult,
    from_cents,
    quantize_amount,
    to_cents,
    utcnow,
)
from onestop.models.result import ErrorKind, ServiceResult
from onestop.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "MAX_AMOUNT",
    "MAX_BALANCE",
    "AccountDetailView",
    "AccountRecord",
    "AccountType",
    "DashboardView",
    "NewTransaction",
    "ReceiptScan",
    "RecurringInterval",
    "TransactionRecord",
    "TransactionType",
    "UserRecord",
    "ValidationIssue",
    "ValidationResult",
    "from_cents",
    "quantize_amount",
    "to_cents",
    "utcnow",
    # Results
    "ErrorKind",
    "ServiceResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
