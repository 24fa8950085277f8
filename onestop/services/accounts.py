"""
Account Management

User provisioning on first sign-in and account maintenance.

Keeps the single-default-account rule: a user's first account is always
the default, and making an account default clears the flag on the
others in the same unit of work.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

import structlog

from onestop.audit import AuditLogger
from onestop.errors import FinanceError, UnauthorizedError, UserNotFoundError, ValidationError
from onestop.models.result import ErrorKind, ServiceResult
from onestop.models.transaction import (
    MAX_BALANCE,
    AccountRecord,
    AccountType,
    UserRecord,
    quantize_amount,
)
from onestop.services.invalidation import DASHBOARD_VIEW, ViewInvalidator, account_view
from onestop.services.storage import FinanceStorageInterface


logger = structlog.get_logger(__name__)


def _coerce_balance(value: Union[Decimal, str, int, float]) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid opening balance: {value!r}")
    if not amount.is_finite() or abs(amount) > MAX_BALANCE:
        raise ValidationError(f"Invalid opening balance: {value!r}")
    return quantize_amount(amount)


class AccountService:
    """Users and accounts of the authenticated caller."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        invalidator: Optional[ViewInvalidator] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._invalidator = invalidator or ViewInvalidator()

    async def _resolve_user(self, subject: Optional[str]) -> UserRecord:
        if not subject:
            raise UnauthorizedError()
        user = await self._storage.get_user_by_external_id(subject)
        if user is None:
            raise UserNotFoundError()
        return user

    @staticmethod
    def _failure(e: Exception, operation: str) -> ServiceResult:
        if isinstance(e, FinanceError):
            return ServiceResult.fail(e.kind, e.message, e.details)
        logger.exception(f"{operation}_failed", error=str(e))
        return ServiceResult.fail(ErrorKind.INTERNAL, "Something went wrong. Please try again.")

    async def ensure_user(
        self,
        external_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> ServiceResult[UserRecord]:
        """Return the user for a subject, creating it on first sign-in."""
        try:
            if not external_id or not external_id.strip():
                raise UnauthorizedError()
            user, created = await self._storage.get_or_create_user(
                external_id.strip(), email=email, name=name
            )
        except Exception as e:
            return self._failure(e, "ensure_user")

        if created and self._audit_logger:
            await self._audit_logger.log_user_provisioned(user_id=user.id, subject=user.external_id)
        return ServiceResult.ok(user)

    async def create_account(
        self,
        subject: Optional[str],
        name: str,
        account_type: Union[AccountType, str] = AccountType.CURRENT,
        opening_balance: Union[Decimal, str, int, float] = Decimal("0.00"),
        is_default: bool = False,
    ) -> ServiceResult[AccountRecord]:
        """
        Create an account for the caller.

        The first account is made the default regardless of is_default.
        """
        try:
            user = await self._resolve_user(subject)

            name = (name or "").strip()
            if not name:
                raise ValidationError("Account name is required")
            raw_type = account_type.value if isinstance(account_type, AccountType) else str(account_type)
            try:
                account_type = AccountType(raw_type.strip().upper())
            except ValueError:
                raise ValidationError(f"Unknown account type: {account_type!r}")

            account = await self._storage.create_account(
                user_id=user.id,
                name=name,
                account_type=account_type,
                opening_balance=_coerce_balance(opening_balance),
                is_default=is_default,
            )
        except Exception as e:
            return self._failure(e, "create_account")

        if self._audit_logger:
            await self._audit_logger.log_account_created(
                account_id=account.id,
                name=account.name,
                is_default=account.is_default,
                subject=subject,
            )
        self._invalidator.revalidate(DASHBOARD_VIEW)
        return ServiceResult.ok(account, stale_views=[DASHBOARD_VIEW])

    async def set_default_account(
        self,
        subject: Optional[str],
        account_id: int,
    ) -> ServiceResult[AccountRecord]:
        """Make one of the caller's accounts the only default."""
        try:
            user = await self._resolve_user(subject)
            account = await self._storage.set_default_account(user.id, account_id)
        except Exception as e:
            return self._failure(e, "set_default_account")

        if self._audit_logger:
            await self._audit_logger.log_default_account_changed(account_id=account.id, subject=subject)

        stale_views = [DASHBOARD_VIEW, account_view(account.id)]
        for path in stale_views:
            self._invalidator.revalidate(path)
        return ServiceResult.ok(account, stale_views=stale_views)

    async def list_accounts(self, subject: Optional[str]) -> ServiceResult[list[AccountRecord]]:
        try:
            user = await self._resolve_user(subject)
            accounts = await self._storage.list_accounts(user.id)
        except Exception as e:
            return self._failure(e, "list_accounts")
        return ServiceResult.ok(accounts)
