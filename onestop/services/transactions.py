"""
Transaction Creation Service

Creates a transaction and applies it to the account balance.

Order of checks (nothing is read or written until the caller is known
and admitted):
1. Caller identity
2. Admission control (one unit per request)
3. Draft validation
4. User and account ownership
5. Insert + balance update in one unit of work

Every failure is returned as a ServiceResult; no exception escapes.
"""

from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from onestop.audit import AuditLogger
from onestop.errors import (
    FinanceError,
    InvalidIntervalError,
    RateLimitedError,
    RequestBlockedError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from onestop.models.result import ErrorKind, ServiceResult
from onestop.models.transaction import NewTransaction, TransactionRecord
from onestop.recurrence import calculate_next_recurring_date
from onestop.services.admission import AdmissionController
from onestop.services.identity import IdentityProvider
from onestop.services.invalidation import ViewInvalidator
from onestop.services.storage import FinanceStorageInterface


logger = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again."


def build_draft(data: Union[NewTransaction, dict]) -> NewTransaction:
    """
    Validate raw transaction input.

    Raises:
        InvalidIntervalError: If recurring_interval is not a known period
        ValidationError: For any other invalid field
    """
    if isinstance(data, NewTransaction):
        return data
    try:
        return NewTransaction.model_validate(data)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False)
        if any(err["loc"] and err["loc"][0] == "recurring_interval" for err in errors):
            raise InvalidIntervalError(
                f"Unknown recurring interval: {data.get('recurring_interval')!r}"
            )
        first = errors[0]
        field = ".".join(str(part) for part in first["loc"]) or "transaction"
        raise ValidationError(
            f"Invalid {field}: {first['msg']}",
            details={"errors": [{"field": ".".join(map(str, err["loc"])), "message": err["msg"]} for err in errors]},
        )


class TransactionCreationService:
    """
    Records income and expense transactions for the authenticated caller.
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        identity: IdentityProvider,
        admission: AdmissionController,
        audit_logger: Optional[AuditLogger] = None,
        invalidator: Optional[ViewInvalidator] = None,
    ):
        self._storage = storage
        self._identity = identity
        self._admission = admission
        self._audit_logger = audit_logger
        self._invalidator = invalidator or ViewInvalidator()

    @property
    def invalidator(self) -> ViewInvalidator:
        return self._invalidator

    async def _admit(self, subject: str, correlation_id: Optional[UUID]) -> None:
        decision = self._admission.protect(subject, requested=1)
        if not decision.is_denied:
            return

        logger.error(
            "admission_denied",
            code="RATE_LIMIT_EXCEEDED" if decision.is_rate_limit else "REQUEST_BLOCKED",
            details={
                "remaining": decision.remaining,
                "reset_in_seconds": decision.reset_seconds,
            },
        )
        if self._audit_logger:
            await self._audit_logger.log_admission_denied(
                subject=subject,
                reason=decision.reason or "unknown",
                remaining=decision.remaining,
                reset_seconds=decision.reset_seconds,
                correlation_id=correlation_id,
            )

        if decision.is_rate_limit:
            raise RateLimitedError(
                remaining=decision.remaining or 0,
                reset_seconds=decision.reset_seconds or 0.0,
            )
        raise RequestBlockedError()

    async def create_transaction(
        self,
        data: Union[NewTransaction, dict],
        correlation_id: Optional[UUID] = None,
    ) -> ServiceResult[TransactionRecord]:
        """
        Create a transaction and update the account balance atomically.

        Args:
            data: A NewTransaction or a dict with the same fields
            correlation_id: Ties the audit events of one user action together

        Returns:
            ServiceResult with the persisted transaction. On success
            stale_views lists the dashboard and the account page.
        """
        subject = None
        account_id = None
        try:
            subject = self._identity.current_subject()
            if not subject:
                raise UnauthorizedError()

            await self._admit(subject, correlation_id)

            draft = build_draft(data)
            account_id = draft.account_id

            user = await self._storage.get_user_by_external_id(subject)
            if user is None:
                raise UserNotFoundError()

            next_date = None
            if draft.is_recurring and draft.recurring_interval:
                next_date = calculate_next_recurring_date(draft.date, draft.recurring_interval)

            record, new_balance = await self._storage.record_transaction(user.id, draft, next_date)

        except FinanceError as e:
            if self._audit_logger and not isinstance(e, (RateLimitedError, RequestBlockedError)):
                await self._audit_logger.log_transaction_failed(
                    error_kind=e.kind.value,
                    error_message=e.message,
                    subject=subject,
                    account_id=account_id,
                    correlation_id=correlation_id,
                )
            return ServiceResult.fail(e.kind, e.message, e.details)

        except Exception as e:
            logger.exception("create_transaction_failed", subject=subject, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="create_transaction",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return ServiceResult.fail(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE)

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                transaction_id=record.id,
                account_id=record.account_id,
                transaction_type=record.type.value,
                amount=record.amount,
                new_balance=new_balance,
                subject=subject,
                correlation_id=correlation_id,
            )

        stale_views = self._invalidator.revalidate_transaction(record.account_id)
        return ServiceResult.ok(record, stale_views=stale_views)
