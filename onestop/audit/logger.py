"""
Audit Logger

Every significant action in the system is logged:
transactions created or rejected, admission denials, AI extraction
results, account changes.

The audit logger:
- Always logs locally as structured JSON
- Persists to audit storage when one is configured
- Never lets a storage failure break the operation being audited
- Supports correlation IDs to trace related events (a prompt and the
  transaction it created share one)
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from onestop.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from onestop.services.storage import AuditStorageInterface


def configure_logging(level: int = logging.INFO) -> None:
    """Configure stdlib logging and structlog for JSON output."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("onestop.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: int,
        account_id: int,
        transaction_type: str,
        amount: Decimal,
        new_balance: Decimal,
        subject: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transaction and the balance it produced."""
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            account_id=account_id,
            transaction_type=transaction_type,
            amount=str(amount),
            new_balance=str(new_balance),
            subject=subject,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_failed(
        self,
        error_kind: str,
        error_message: str,
        subject: Optional[str],
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_failed(
            error_kind=error_kind,
            error_message=error_message,
            subject=subject,
            account_id=account_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_admission_denied(
        self,
        subject: str,
        reason: str,
        remaining: Optional[int],
        reset_seconds: Optional[float],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an admission denial with the quota detail the user never sees."""
        event = AuditEventBuilder.admission_denied(
            subject=subject,
            reason=reason,
            remaining=remaining,
            reset_seconds=reset_seconds,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_scanned(
        self,
        mime_type: str,
        size_bytes: int,
        is_receipt: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.receipt_scanned(
            mime_type=mime_type,
            size_bytes=size_bytes,
            is_receipt=is_receipt,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_scan_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.receipt_scan_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_prompt_extracted(
        self,
        subject: str,
        fields: dict,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.prompt_extracted(
            subject=subject,
            fields=fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_prompt_extraction_failed(
        self,
        subject: Optional[str],
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.prompt_extraction_failed(
            subject=subject,
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_user_provisioned(self, user_id: int, subject: str) -> None:
        await self.log(AuditEventBuilder.user_provisioned(user_id=user_id, subject=subject))

    async def log_account_created(
        self,
        account_id: int,
        name: str,
        is_default: bool,
        subject: str,
    ) -> None:
        event = AuditEventBuilder.account_created(
            account_id=account_id,
            name=name,
            is_default=is_default,
            subject=subject,
        )
        await self.log(event)

    async def log_default_account_changed(self, account_id: int, subject: str) -> None:
        await self.log(
            AuditEventBuilder.default_account_changed(account_id=account_id, subject=subject)
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g. a prompt submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
