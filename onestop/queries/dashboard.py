"""
Dashboard Queries

Read side for the dashboard and account pages. Everything returned is
read from storage for the authenticated caller only.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from dateutil.relativedelta import relativedelta

from onestop.errors import AccountNotFoundError, FinanceError, UnauthorizedError, UserNotFoundError
from onestop.models.result import ErrorKind, ServiceResult
from onestop.models.transaction import AccountDetailView, DashboardView, UserRecord, utcnow
from onestop.services.storage import FinanceStorageInterface


logger = structlog.get_logger(__name__)


def month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """First instant of the month containing moment, and of the next month."""
    start = datetime(moment.year, moment.month, 1)
    return start, start + relativedelta(months=1)


class DashboardQueries:
    """Builds the dashboard and account detail views."""

    def __init__(self, storage: FinanceStorageInterface, recent_limit: int = 10):
        self._storage = storage
        self._recent_limit = recent_limit

    async def _resolve_user(self, subject: Optional[str]) -> UserRecord:
        if not subject:
            raise UnauthorizedError()
        user = await self._storage.get_user_by_external_id(subject)
        if user is None:
            raise UserNotFoundError()
        return user

    async def dashboard(
        self,
        subject: Optional[str],
        now: Optional[datetime] = None,
    ) -> ServiceResult[DashboardView]:
        """Accounts, total balance, this month's totals and recent activity."""
        try:
            user = await self._resolve_user(subject)
            accounts = await self._storage.list_accounts(user.id)
            month_start, month_end = month_bounds(now or utcnow())
            income, expense = await self._storage.get_totals(
                user.id, date_from=month_start, date_to=month_end
            )
            recent = await self._storage.list_transactions(user.id, limit=self._recent_limit)
        except FinanceError as e:
            return ServiceResult.fail(e.kind, e.message, e.details)
        except Exception as e:
            logger.exception("dashboard_failed", error=str(e))
            return ServiceResult.fail(ErrorKind.INTERNAL, "Something went wrong. Please try again.")

        return ServiceResult.ok(DashboardView(
            accounts=accounts,
            total_balance=sum((acc.balance for acc in accounts), Decimal("0.00")),
            month_income=income,
            month_expense=expense,
            recent_transactions=recent,
        ))

    async def account_detail(
        self,
        subject: Optional[str],
        account_id: int,
    ) -> ServiceResult[AccountDetailView]:
        """One of the caller's accounts with its transactions, newest first."""
        try:
            user = await self._resolve_user(subject)
            account = await self._storage.get_account(account_id, user.id)
            if account is None:
                raise AccountNotFoundError()
            transactions = await self._storage.list_transactions(user.id, account_id=account.id)
        except FinanceError as e:
            return ServiceResult.fail(e.kind, e.message, e.details)
        except Exception as e:
            logger.exception("account_detail_failed", error=str(e))
            return ServiceResult.fail(ErrorKind.INTERNAL, "Something went wrong. Please try again.")

        return ServiceResult.ok(AccountDetailView(account=account, transactions=transactions))
