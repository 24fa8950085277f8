"""
Audit Models for One Stop Finance

Every significant action in the system is logged for audit purposes:
transactions created, admission denials, extraction failures.

Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from onestop.models.transaction import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_FAILED = "transaction_failed"

    # Admission control
    ADMISSION_DENIED = "admission_denied"

    # AI extraction
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"
    PROMPT_EXTRACTED = "prompt_extracted"
    PROMPT_EXTRACTION_FAILED = "prompt_extraction_failed"

    # Accounts
    USER_PROVISIONED = "user_provisioned"
    ACCOUNT_CREATED = "account_created"
    DEFAULT_ACCOUNT_CHANGED = "default_account_changed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about? Ids are stringified (ints for rows, subjects for users)
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    # For tracking related events (e.g. a prompt and the transaction it created)
    correlation_id: Optional[UUID] = None

    subject: Optional[str] = Field(
        default=None,
        description="Identity-provider subject that triggered the event"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "subject": self.subject,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def details_json(self) -> str:
        return json.dumps(self.details, default=str) if self.details else ""


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(record, subject, correlation_id)
        event = AuditEventBuilder.admission_denied(subject, "rate_limit", 0, 3600)
    """

    @staticmethod
    def transaction_created(
        transaction_id: int,
        account_id: int,
        transaction_type: str,
        amount: str,
        new_balance: str,
        subject: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            subject=subject,
            description=f"{transaction_type.title()} of {amount} recorded on account {account_id}",
            details={
                "account_id": account_id,
                "type": transaction_type,
                "amount": amount,
                "new_balance": new_balance,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_failed(
        error_kind: str,
        error_message: str,
        subject: Optional[str],
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=str(account_id) if account_id is not None else None,
            correlation_id=correlation_id,
            subject=subject,
            description=f"Transaction rejected: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
        )

    @staticmethod
    def admission_denied(
        subject: str,
        reason: str,
        remaining: Optional[int],
        reset_seconds: Optional[float],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        rate_limited = reason == "rate_limit"
        return AuditEvent(
            event_type=AuditEventType.ADMISSION_DENIED,
            severity=AuditSeverity.ERROR if rate_limited else AuditSeverity.WARNING,
            entity_type="user",
            entity_id=subject,
            correlation_id=correlation_id,
            subject=subject,
            description=f"Request denied by admission control ({reason})",
            details={
                "reason": reason,
                "remaining": remaining,
                "reset_in_seconds": reset_seconds,
            },
            error_code="RATE_LIMIT_EXCEEDED" if rate_limited else "REQUEST_BLOCKED",
        )

    @staticmethod
    def receipt_scanned(
        mime_type: str,
        size_bytes: int,
        is_receipt: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=(
                "Receipt scanned" if is_receipt else "Image scanned but not recognised as a receipt"
            ),
            details={
                "mime_type": mime_type,
                "size_bytes": size_bytes,
                "is_receipt": is_receipt,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_scan_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt scan failed",
            error_message=error_message,
        )

    @staticmethod
    def prompt_extracted(
        subject: str,
        fields: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROMPT_EXTRACTED,
            entity_type="prompt",
            correlation_id=correlation_id,
            subject=subject,
            description="Transaction details extracted from prompt",
            details=fields,
            is_user_action=True,
        )

    @staticmethod
    def prompt_extraction_failed(
        subject: Optional[str],
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROMPT_EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="prompt",
            correlation_id=correlation_id,
            subject=subject,
            description=f"Prompt extraction failed: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
        )

    @staticmethod
    def user_provisioned(user_id: int, subject: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_PROVISIONED,
            entity_type="user",
            entity_id=str(user_id),
            subject=subject,
            description="User created on first sign-in",
        )

    @staticmethod
    def account_created(
        account_id: int,
        name: str,
        is_default: bool,
        subject: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=str(account_id),
            subject=subject,
            description=f"Account created: {name}",
            details={"is_default": is_default},
            is_user_action=True,
        )

    @staticmethod
    def default_account_changed(account_id: int, subject: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_ACCOUNT_CHANGED,
            entity_type="account",
            entity_id=str(account_id),
            subject=subject,
            description=f"Account {account_id} is now the default account",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
