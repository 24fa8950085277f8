"""
SQLAlchemy Storage Implementation

Works with any SQLAlchemy URL (SQLite by default, PostgreSQL in production).

Balance consistency:
- The transaction insert and the balance update share one unit of work
  (Session.begin), so they commit or roll back together.
- The balance is updated in SQL relative to the current row value
  (balance_cents = balance_cents + delta), guarded by account id AND
  owner id. Concurrent writers of the same row are serialized by the
  database, so no writer can overwrite another with a stale balance.
- The account row is also selected FOR UPDATE (a no-op on SQLite).
- If the database reports lock contention the whole unit of work is
  retried; a failed attempt leaves nothing behind.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from onestop.config import get_settings
from onestop.errors import AccountNotFoundError, BalanceLimitError, StorageError
from onestop.models.audit import AuditEvent
from onestop.models.transaction import (
    MAX_BALANCE,
    AccountRecord,
    AccountType,
    NewTransaction,
    TransactionRecord,
    TransactionType,
    UserRecord,
    from_cents,
    to_cents,
)
from onestop.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
)
from onestop.services.storage.mappers import (
    account_to_record,
    audit_event_to_row,
    row_to_audit_event,
    transaction_to_record,
    user_to_record,
)
from onestop.services.storage.tables import (
    Account,
    AuditEventRow,
    Transaction,
    User,
    create_db_engine,
    create_session_factory,
)


_MAX_BALANCE_CENTS = to_cents(MAX_BALANCE)


# Retry policy for lock contention only. Every attempt is a fresh unit of work.
_retry_on_contention = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    reraise=True,
)


class Database:
    """
    Engine and session factory wrapper shared by the storage classes.
    """

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings().database
        self.database_url = database_url or settings.url
        self.engine = create_db_engine(
            self.database_url,
            echo=settings.echo,
            sqlite_timeout=settings.sqlite_timeout,
        )
        self.session_factory: sessionmaker[Session] = create_session_factory(self.engine)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


class SQLAlchemyFinanceStorage(FinanceStorageInterface):
    """
    SQLAlchemy implementation of user, account and transaction storage.
    """

    def __init__(self, database: Optional[Database] = None):
        self._db = database or Database()

    @property
    def _sessions(self) -> sessionmaker[Session]:
        return self._db.session_factory

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_by_external_id(self, external_id: str) -> Optional[UserRecord]:
        try:
            with self._sessions() as session:
                user = session.execute(
                    select(User).where(User.external_id == external_id)
                ).scalar_one_or_none()
                return user_to_record(user) if user else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load user: {e}")

    async def get_or_create_user(
        self,
        external_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> tuple[UserRecord, bool]:
        existing = await self.get_user_by_external_id(external_id)
        if existing is not None:
            return existing, False

        try:
            with self._sessions.begin() as session:
                user = User(external_id=external_id, email=email, name=name)
                session.add(user)
                session.flush()
                return user_to_record(user), True
        except IntegrityError:
            # Another request signed the same user in first
            existing = await self.get_user_by_external_id(external_id)
            if existing is None:
                raise StorageError("Failed to create user")
            return existing, False
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user: {e}")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account(self, account_id: int, user_id: int) -> Optional[AccountRecord]:
        try:
            with self._sessions() as session:
                account = session.execute(
                    select(Account).where(Account.id == account_id, Account.user_id == user_id)
                ).scalar_one_or_none()
                return account_to_record(account) if account else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load account: {e}")

    async def list_accounts(self, user_id: int) -> list[AccountRecord]:
        try:
            with self._sessions() as session:
                accounts = session.execute(
                    select(Account)
                    .where(Account.user_id == user_id)
                    .order_by(Account.is_default.desc(), Account.name, Account.id)
                ).scalars().all()
                return [account_to_record(acc) for acc in accounts]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def list_default_accounts(self, user_id: int) -> list[AccountRecord]:
        try:
            with self._sessions() as session:
                accounts = session.execute(
                    select(Account)
                    .where(Account.user_id == user_id, Account.is_default.is_(True))
                    .order_by(Account.id)
                ).scalars().all()
                return [account_to_record(acc) for acc in accounts]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load default account: {e}")

    @_retry_on_contention
    def _create_account(
        self,
        user_id: int,
        name: str,
        account_type: AccountType,
        opening_balance: Decimal,
        is_default: bool,
    ) -> AccountRecord:
        with self._sessions.begin() as session:
            account_count = session.execute(
                select(func.count()).select_from(Account).where(Account.user_id == user_id)
            ).scalar_one()
            make_default = is_default or account_count == 0

            if make_default:
                session.execute(
                    update(Account)
                    .where(Account.user_id == user_id, Account.is_default.is_(True))
                    .values(is_default=False)
                    .execution_options(synchronize_session=False)
                )

            account = Account(
                user_id=user_id,
                name=name,
                type=account_type.value,
                balance_cents=to_cents(opening_balance),
                is_default=make_default,
            )
            session.add(account)
            session.flush()
            return account_to_record(account)

    async def create_account(
        self,
        user_id: int,
        name: str,
        account_type: AccountType,
        opening_balance: Decimal,
        is_default: bool,
    ) -> AccountRecord:
        try:
            return self._create_account(user_id, name, account_type, opening_balance, is_default)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create account: {e}")

    @_retry_on_contention
    def _set_default_account(self, user_id: int, account_id: int) -> AccountRecord:
        with self._sessions.begin() as session:
            account = session.execute(
                select(Account)
                .where(Account.id == account_id, Account.user_id == user_id)
                .with_for_update()
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError()

            session.execute(
                update(Account)
                .where(Account.user_id == user_id, Account.id != account_id)
                .values(is_default=False)
                .execution_options(synchronize_session=False)
            )
            account.is_default = True
            session.flush()
            return account_to_record(account)

    async def set_default_account(self, user_id: int, account_id: int) -> AccountRecord:
        try:
            return self._set_default_account(user_id, account_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update default account: {e}")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @_retry_on_contention
    def _record_transaction(
        self,
        user_id: int,
        draft: NewTransaction,
        next_recurring_date: Optional[datetime],
    ) -> tuple[TransactionRecord, Decimal]:
        with self._sessions.begin() as session:
            # Ownership check; raising here rolls back before any write
            account = session.execute(
                select(Account)
                .where(Account.id == draft.account_id, Account.user_id == user_id)
                .with_for_update()
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError()

            transaction = Transaction(
                account_id=account.id,
                user_id=user_id,
                type=draft.type.value,
                amount_cents=to_cents(draft.amount),
                category=draft.category,
                date=draft.date,
                description=draft.description,
                is_recurring=draft.is_recurring,
                recurring_interval=(
                    draft.recurring_interval.value if draft.recurring_interval else None
                ),
                next_recurring_date=next_recurring_date,
            )
            session.add(transaction)

            # The range guard sits in the UPDATE itself so it sees the row value
            # the write is applied to
            new_balance = Account.balance_cents + to_cents(draft.balance_delta)
            result = session.execute(
                update(Account)
                .where(
                    Account.id == account.id,
                    Account.user_id == user_id,
                    new_balance.between(-_MAX_BALANCE_CENTS, _MAX_BALANCE_CENTS),
                )
                .values(balance_cents=new_balance)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                still_owned = session.execute(
                    select(Account.id).where(Account.id == account.id, Account.user_id == user_id)
                ).scalar_one_or_none()
                if still_owned is None:
                    raise AccountNotFoundError()
                raise BalanceLimitError()

            new_balance_cents = session.execute(
                select(Account.balance_cents).where(Account.id == account.id)
            ).scalar_one()

            return transaction_to_record(transaction), from_cents(new_balance_cents)

    async def record_transaction(
        self,
        user_id: int,
        draft: NewTransaction,
        next_recurring_date: Optional[datetime],
    ) -> tuple[TransactionRecord, Decimal]:
        try:
            return self._record_transaction(user_id, draft, next_recurring_date)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to record transaction: {e}")

    async def list_transactions(
        self,
        user_id: int,
        account_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        query = select(Transaction).where(Transaction.user_id == user_id)
        if account_id is not None:
            query = query.where(Transaction.account_id == account_id)
        if date_from is not None:
            query = query.where(Transaction.date >= date_from)
        if date_to is not None:
            query = query.where(Transaction.date < date_to)
        query = query.order_by(Transaction.date.desc(), Transaction.id.desc())
        if limit is not None:
            query = query.limit(limit)

        try:
            with self._sessions() as session:
                rows = session.execute(query).scalars().all()
                return [transaction_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def get_totals(
        self,
        user_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> tuple[Decimal, Decimal]:
        income = func.coalesce(
            func.sum(
                case((Transaction.type == TransactionType.INCOME.value, Transaction.amount_cents), else_=0)
            ),
            0,
        )
        expense = func.coalesce(
            func.sum(
                case((Transaction.type == TransactionType.EXPENSE.value, Transaction.amount_cents), else_=0)
            ),
            0,
        )
        query = select(income, expense).where(Transaction.user_id == user_id)
        if date_from is not None:
            query = query.where(Transaction.date >= date_from)
        if date_to is not None:
            query = query.where(Transaction.date < date_to)

        try:
            with self._sessions() as session:
                income_cents, expense_cents = session.execute(query).one()
                return from_cents(int(income_cents or 0)), from_cents(int(expense_cents or 0))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to compute totals: {e}")


class SQLAlchemyAuditStorage(AuditStorageInterface):
    """
    Audit events stored in the same database as the finance data.
    """

    def __init__(self, database: Optional[Database] = None):
        self._db = database or Database()

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._db.session_factory.begin() as session:
                session.add(audit_event_to_row(event))
            return True
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to append audit event: {e}")

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        try:
            with self._db.session_factory() as session:
                rows = session.execute(
                    select(AuditEventRow)
                    .where(AuditEventRow.correlation_id == str(correlation_id))
                    .order_by(AuditEventRow.timestamp)
                ).scalars().all()
                return [row_to_audit_event(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            with self._db.session_factory() as session:
                rows = session.execute(
                    select(AuditEventRow)
                    .order_by(AuditEventRow.timestamp.desc())
                    .limit(limit)
                ).scalars().all()
                return [row_to_audit_event(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load audit events: {e}")
