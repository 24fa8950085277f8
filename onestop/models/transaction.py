"""
Core Data Models for One Stop Finance

These models define the schemas for all data flowing between the UI,
the services and the store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Keep money exact (Decimal, never float)

Amounts are quantized to cents with ROUND_HALF_UP. The store keeps
integer cents; use to_cents / from_cents at that boundary only.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

# Largest single transaction amount, and the range an account balance may
# take. Both stay well inside a signed 64-bit count of cents.
MAX_AMOUNT = Decimal("999999999999.99")
MAX_BALANCE = Decimal("99999999999999.99")


def quantize_amount(value: Decimal) -> Decimal:
    """Round an amount to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    """Convert a Decimal amount to integer minor units."""
    return int(quantize_amount(value) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer minor units back to a Decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)


def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction relative to the account balance."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class RecurringInterval(str, Enum):
    """Supported recurrence periods."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class AccountType(str, Enum):
    CURRENT = "CURRENT"
    SAVINGS = "SAVINGS"


EXPENSE_CATEGORIES = (
    "housing",
    "transportation",
    "groceries",
    "utilities",
    "entertainment",
    "food",
    "shopping",
    "healthcare",
    "education",
    "personal",
    "travel",
    "insurance",
    "gifts",
    "bills",
    "other-expense",
)

INCOME_CATEGORIES = (
    "salary",
    "freelance",
    "investments",
    "business",
    "rental",
    "other-income",
)


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class UserRecord(BaseModel):
    """A signed-in user, keyed by the identity provider's subject id."""

    id: int
    external_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime


class AccountRecord(BaseModel):
    """An account and its current balance."""

    id: int
    user_id: int
    name: str
    type: AccountType = AccountType.CURRENT
    balance: Decimal
    is_default: bool = False
    created_at: datetime


class TransactionRecord(BaseModel):
    """
    A persisted transaction.

    Transactions are never updated or deleted once recorded;
    the account balance is derived from them.
    """

    id: int
    account_id: int
    user_id: int
    type: TransactionType
    amount: Decimal
    category: str
    date: datetime
    description: Optional[str] = None
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None
    next_recurring_date: Optional[datetime] = None
    created_at: datetime

    @property
    def signed_amount(self) -> Decimal:
        """Amount as applied to the balance."""
        return -self.amount if self.type == TransactionType.EXPENSE else self.amount


# =============================================================================
# INPUT MODELS
# =============================================================================

class NewTransaction(BaseModel):
    """
    A transaction as requested by the caller, before it is persisted.

    The owning user is never part of the draft - it is always the
    authenticated caller.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: int
    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        le=MAX_AMOUNT,
        description="Non-negative amount; the type decides the sign"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
    )
    date: datetime = Field(default_factory=utcnow)
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("amount")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        try:
            return quantize_amount(v)
        except InvalidOperation:
            raise ValueError("Amount is out of range")

    @field_validator("category")
    @classmethod
    def lower_category(cls, v: str) -> str:
        return v.lower()

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime(v.year, v.month, v.day)
        return v

    @field_validator("date")
    @classmethod
    def naive_utc(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @model_validator(mode="after")
    def validate_recurrence(self) -> "NewTransaction":
        if self.is_recurring and self.recurring_interval is None:
            raise ValueError("Recurring transactions need a recurring interval")
        if not self.is_recurring:
            self.recurring_interval = None
        return self

    @property
    def balance_delta(self) -> Decimal:
        """Signed change this transaction applies to the account balance."""
        return -self.amount if self.type == TransactionType.EXPENSE else self.amount


class ReceiptScan(BaseModel):
    """
    Fields guessed from a receipt image.

    CRITICAL: This is PROPOSED data, NOT verified. The user reviews it
    before a transaction is created. An all-empty scan means the image
    was not recognised as a receipt.

    amount is NaN when the model returned text that is not a number.
    """

    amount: Optional[Decimal] = Field(default=None, allow_inf_nan=True)
    date: Optional[datetime] = None
    description: Optional[str] = None
    category: Optional[str] = None
    merchant_name: Optional[str] = None

    @field_validator("date")
    @classmethod
    def naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v) if v is not None else None

    @property
    def is_receipt(self) -> bool:
        return any(
            value is not None
            for value in (self.amount, self.date, self.description, self.category, self.merchant_name)
        )

    @property
    def amount_is_valid(self) -> bool:
        return self.amount is not None and self.amount.is_finite()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_a_number', 'unknown_category')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggestion for how to fix"
    )


class ValidationResult(BaseModel):
    """Result of validating a receipt scan before it is offered for confirmation."""

    validated_at: datetime = Field(default_factory=utcnow)
    schema_valid: bool = True
    semantic_valid: bool = True
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# READ MODELS
# =============================================================================

class DashboardView(BaseModel):
    """Everything the dashboard page shows."""

    accounts: list[AccountRecord] = Field(default_factory=list)
    total_balance: Decimal = Decimal("0.00")
    month_income: Decimal = Decimal("0.00")
    month_expense: Decimal = Decimal("0.00")
    recent_transactions: list[TransactionRecord] = Field(default_factory=list)

    @property
    def default_account(self) -> Optional[AccountRecord]:
        return next((acc for acc in self.accounts if acc.is_default), None)


class AccountDetailView(BaseModel):
    """One account with its transaction history (newest first)."""

    account: AccountRecord
    transactions: list[TransactionRecord] = Field(default_factory=list)

    @property
    def total_income(self) -> Decimal:
        return sum(
            (t.amount for t in self.transactions if t.type == TransactionType.INCOME),
            Decimal("0.00"),
        )

    @property
    def total_expense(self) -> Decimal:
        return sum(
            (t.amount for t in self.transactions if t.type == TransactionType.EXPENSE),
            Decimal("0.00"),
        )
