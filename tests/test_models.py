"""
Tests for One Stop Finance models

Test strategy:
1. Unit tests for individual components (models, validators, parsers)
2. Integration tests for services against a temporary SQLite database
3. No real API calls in tests (the AI oracle is faked)
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from onestop.errors import RateLimitedError, UserNotFoundError
from onestop.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    MAX_AMOUNT,
    ErrorKind,
    NewTransaction,
    ReceiptScan,
    RecurringInterval,
    ServiceResult,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    from_cents,
    quantize_amount,
    to_cents,
)
from onestop.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestMoney:
    """Amounts are exact and rounded half-up to cents."""

    def test_quantize_half_up(self):
        assert quantize_amount(Decimal("2.345")) == Decimal("2.35")
        assert quantize_amount(Decimal("2.344")) == Decimal("2.34")

    def test_cents_conversion(self):
        assert to_cents(Decimal("1234.56")) == 123456
        assert from_cents(-1050) == Decimal("-10.50")


class TestNewTransaction:
    """Tests for the transaction draft model."""

    def test_creation(self):
        draft = NewTransaction(
            account_id=1,
            type="expense",
            amount=Decimal("12.5"),
            category="  Food ",
        )
        assert draft.type == TransactionType.EXPENSE
        assert draft.amount == Decimal("12.50")
        assert draft.category == "food"
        assert draft.balance_delta == Decimal("-12.50")

    def test_income_delta_is_positive(self):
        draft = NewTransaction(account_id=1, type="INCOME", amount="3", category="salary")
        assert draft.balance_delta == Decimal("3.00")

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            NewTransaction(account_id=1, type="EXPENSE", amount="-1", category="food")

    def test_rejects_nan_amount(self):
        with pytest.raises(ValueError):
            NewTransaction(account_id=1, type="EXPENSE", amount=Decimal("NaN"), category="food")

    @pytest.mark.parametrize("amount", ["1e30", "1000000000000.00", "999999999999.995"])
    def test_rejects_amount_over_limit(self, amount):
        with pytest.raises(ValueError):
            NewTransaction(account_id=1, type="INCOME", amount=amount, category="salary")

    def test_accepts_largest_amount(self):
        draft = NewTransaction(account_id=1, type="INCOME", amount=MAX_AMOUNT, category="salary")
        assert to_cents(draft.amount) == 99999999999999

    def test_date_only_becomes_midnight(self):
        draft = NewTransaction(account_id=1, type="EXPENSE", amount="1", category="food", date=date(2024, 5, 1))
        assert draft.date == datetime(2024, 5, 1)

    def test_aware_date_normalized_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        draft = NewTransaction(
            account_id=1, type="EXPENSE", amount="1", category="food",
            date=datetime(2024, 5, 1, 5, 30, tzinfo=ist),
        )
        assert draft.date == datetime(2024, 5, 1, 0, 0)
        assert draft.date.tzinfo is None

    def test_recurring_requires_interval(self):
        with pytest.raises(ValueError):
            NewTransaction(account_id=1, type="EXPENSE", amount="1", category="food", is_recurring=True)

    def test_interval_dropped_when_not_recurring(self):
        draft = NewTransaction(
            account_id=1, type="EXPENSE", amount="1", category="food",
            recurring_interval=RecurringInterval.DAILY,
        )
        assert draft.recurring_interval is None


class TestReceiptScan:

    def test_empty_scan_is_not_a_receipt(self):
        assert not ReceiptScan().is_receipt

    def test_nan_amount_allowed_but_invalid(self):
        scan = ReceiptScan(amount=Decimal("NaN"), category="food")
        assert scan.is_receipt
        assert not scan.amount_is_valid


class TestServiceResult:

    def test_ok(self):
        result = ServiceResult.ok({"id": 1}, stale_views=["/dashboard"])
        assert result.success
        assert result.error is None
        assert result.stale_views == ["/dashboard"]

    def test_fail(self):
        result = ServiceResult.fail(ErrorKind.NOT_FOUND, "Account not found")
        assert not result.success
        assert result.data is None
        assert result.error_kind == ErrorKind.NOT_FOUND


class TestErrors:

    def test_default_messages(self):
        assert UserNotFoundError().message == "User not found"
        assert UserNotFoundError().kind == ErrorKind.NOT_FOUND

    def test_rate_limit_detail_not_in_message(self):
        error = RateLimitedError(remaining=0, reset_seconds=3599.5)
        assert str(error) == "Too many requests. Please try again later."
        assert error.details == {"remaining": 0, "reset_seconds": 3599.5}


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Expense recorded",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is None

    def test_audit_event_to_log_dict(self):
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            description="Test",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "system_error"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_builder_admission_denied_rate_limit(self):
        event = AuditEventBuilder.admission_denied("user_alice", "rate_limit", 0, 120.0)
        assert event.error_code == "RATE_LIMIT_EXCEEDED"
        assert event.severity == AuditSeverity.ERROR
        assert event.details["reset_in_seconds"] == 120.0

    def test_builder_admission_denied_blocked(self):
        event = AuditEventBuilder.admission_denied("user_alice", "blocked", None, None)
        assert event.error_code == "REQUEST_BLOCKED"

    def test_builder_transaction_created(self):
        event = AuditEventBuilder.transaction_created(
            transaction_id=5,
            account_id=2,
            transaction_type="EXPENSE",
            amount="12.00",
            new_balance="88.00",
            subject="user_alice",
        )
        assert event.entity_id == "5"
        assert event.is_user_action
        assert event.details["new_balance"] == "88.00"


class TestValidationResult:

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing", message="Missing", severity="error"),
                ValidationIssue(field="date", issue_type="missing", message="No date", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.warnings == ["No date"]

    def test_rejects_unknown_severity(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestCategories:

    def test_category_lists(self):
        assert "food" in EXPENSE_CATEGORIES
        assert "other-expense" in EXPENSE_CATEGORIES
        assert "salary" in INCOME_CATEGORIES
        assert not set(EXPENSE_CATEGORIES) & set(INCOME_CATEGORIES)
