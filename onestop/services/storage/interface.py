"""
Abstract Storage Interface

We define an abstract interface for storage operations. This allows us to:
1. Run against SQLite locally and PostgreSQL in production
2. Use throwaway databases in tests
3. Keep business logic decoupled from the query layer

The interface is intentionally small - just the operations the services need.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from onestop.models.audit import AuditEvent
from onestop.models.transaction import (
    AccountRecord,
    AccountType,
    NewTransaction,
    TransactionRecord,
    UserRecord,
)


class FinanceStorageInterface(ABC):
    """
    Abstract interface for users, accounts and transactions.

    Any storage implementation must implement these methods.
    """

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_user_by_external_id(self, external_id: str) -> Optional[UserRecord]:
        """
        Look up a user by identity-provider subject id.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_or_create_user(
        self,
        external_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> tuple[UserRecord, bool]:
        """
        Return the user for a subject id, creating it on first sign-in.

        Returns:
            (user, created)
        """
        pass

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_account(self, account_id: int, user_id: int) -> Optional[AccountRecord]:
        """
        Get an account owned by a user.

        Returns None when the account does not exist OR belongs to
        someone else - callers must not be able to tell the difference.
        """
        pass

    @abstractmethod
    async def list_accounts(self, user_id: int) -> list[AccountRecord]:
        """List a user's accounts, default account first."""
        pass

    @abstractmethod
    async def list_default_accounts(self, user_id: int) -> list[AccountRecord]:
        """List the accounts flagged as default (normally exactly one)."""
        pass

    @abstractmethod
    async def create_account(
        self,
        user_id: int,
        name: str,
        account_type: AccountType,
        opening_balance: Decimal,
        is_default: bool,
    ) -> AccountRecord:
        """
        Create an account.

        The first account of a user is always the default. A new default
        account clears the flag on the user's other accounts in the same
        unit of work.
        """
        pass

    @abstractmethod
    async def set_default_account(self, user_id: int, account_id: int) -> AccountRecord:
        """
        Make one account the user's only default account.

        Raises:
            AccountNotFoundError: If the account is missing or not owned by the user
        """
        pass

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    async def record_transaction(
        self,
        user_id: int,
        draft: NewTransaction,
        next_recurring_date: Optional[datetime],
    ) -> tuple[TransactionRecord, Decimal]:
        """
        Insert a transaction and apply it to the account balance atomically.

        Both writes commit together or not at all. The balance update is
        serialized with respect to other writers of the same account.

        Returns:
            (transaction, new_balance)

        Raises:
            AccountNotFoundError: If the account is missing or not owned by the user
            StorageError: If the unit of work fails
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: int,
        account_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        """
        List a user's transactions, newest first.

        Args:
            user_id: Owner of the transactions
            account_id: Only this account
            date_from: Transactions on or after this moment
            date_to: Transactions before this moment
            limit: Maximum number of results
        """
        pass

    @abstractmethod
    async def get_totals(
        self,
        user_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> tuple[Decimal, Decimal]:
        """
        Sum income and expense amounts in a date range.

        Returns:
            (income_total, expense_total)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass
