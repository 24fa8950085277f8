"""Mapper functions to convert between SQLAlchemy rows and pydantic records.

This layer isolates the cents <-> Decimal conversion and the
string <-> enum conversion, so the rest of the code never sees a row.
"""

import json
from uuid import UUID

from onestop.models.audit import AuditEvent, AuditEventType, AuditSeverity
from onestop.models.transaction import (
    AccountRecord,
    AccountType,
    RecurringInterval,
    TransactionRecord,
    TransactionType,
    UserRecord,
    from_cents,
)
from onestop.services.storage.tables import (
    Account as ORMAccount,
    AuditEventRow as ORMAuditEvent,
    Transaction as ORMTransaction,
    User as ORMUser,
)


def user_to_record(orm_user: ORMUser) -> UserRecord:
    """Convert SQLAlchemy User model to UserRecord."""
    return UserRecord(
        id=orm_user.id,
        external_id=orm_user.external_id,
        email=orm_user.email,
        name=orm_user.name,
        created_at=orm_user.created_at,
    )


def account_to_record(orm_account: ORMAccount) -> AccountRecord:
    """Convert SQLAlchemy Account model to AccountRecord."""
    return AccountRecord(
        id=orm_account.id,
        user_id=orm_account.user_id,
        name=orm_account.name,
        type=AccountType(orm_account.type),
        balance=from_cents(orm_account.balance_cents),
        is_default=orm_account.is_default,
        created_at=orm_account.created_at,
    )


def transaction_to_record(orm_transaction: ORMTransaction) -> TransactionRecord:
    """Convert SQLAlchemy Transaction model to TransactionRecord."""
    return TransactionRecord(
        id=orm_transaction.id,
        account_id=orm_transaction.account_id,
        user_id=orm_transaction.user_id,
        type=TransactionType(orm_transaction.type),
        amount=from_cents(orm_transaction.amount_cents),
        category=orm_transaction.category,
        date=orm_transaction.date,
        description=orm_transaction.description,
        is_recurring=orm_transaction.is_recurring,
        recurring_interval=(
            RecurringInterval(orm_transaction.recurring_interval)
            if orm_transaction.recurring_interval
            else None
        ),
        next_recurring_date=orm_transaction.next_recurring_date,
        created_at=orm_transaction.created_at,
    )


def audit_event_to_row(event: AuditEvent) -> ORMAuditEvent:
    """Convert an AuditEvent to a row for insertion."""
    return ORMAuditEvent(
        event_id=str(event.event_id),
        timestamp=event.timestamp,
        event_type=event.event_type.value,
        severity=event.severity.value,
        entity_type=event.entity_type,
        entity_id=event.entity_id,
        correlation_id=str(event.correlation_id) if event.correlation_id else None,
        subject=event.subject,
        description=event.description,
        details_json=event.details_json() or None,
        error_code=event.error_code,
        error_message=event.error_message,
        is_user_action=event.is_user_action,
    )


def row_to_audit_event(row: ORMAuditEvent) -> AuditEvent:
    """Convert a stored audit row back to an AuditEvent."""
    return AuditEvent(
        event_id=UUID(row.event_id),
        timestamp=row.timestamp,
        event_type=AuditEventType(row.event_type),
        severity=AuditSeverity(row.severity),
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        correlation_id=UUID(row.correlation_id) if row.correlation_id else None,
        subject=row.subject,
        description=row.description,
        details=json.loads(row.details_json) if row.details_json else {},
        error_code=row.error_code,
        error_message=row.error_message,
        is_user_action=row.is_user_action,
    )
