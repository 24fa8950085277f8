"""Tests for the dashboard read side."""

from datetime import datetime
from decimal import Decimal

from onestop.models import AccountType, ErrorKind
from onestop.queries import DashboardQueries, month_bounds


def draft(account_id, type_, amount, category, when):
    return {
        "account_id": account_id,
        "type": type_,
        "amount": amount,
        "category": category,
        "date": when,
    }


class TestMonthBounds:

    def test_december_rolls_into_next_year(self):
        assert month_bounds(datetime(2024, 12, 15, 9, 30)) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


class TestDashboard:

    async def test_totals_for_current_month(self, storage, transaction_service, alice, alice_account):
        await storage.create_account(alice.id, "Savings", AccountType.SAVINGS, Decimal("200.00"), False)
        await transaction_service.create_transaction(
            draft(alice_account.id, "INCOME", "3000", "salary", datetime(2024, 3, 1))
        )
        await transaction_service.create_transaction(
            draft(alice_account.id, "EXPENSE", "45.20", "food", datetime(2024, 3, 10))
        )
        await transaction_service.create_transaction(
            draft(alice_account.id, "EXPENSE", "99.99", "travel", datetime(2024, 2, 28))
        )

        result = await DashboardQueries(storage).dashboard("user_alice", now=datetime(2024, 3, 20))

        assert result.success
        view = result.data
        assert view.month_income == Decimal("3000.00")
        assert view.month_expense == Decimal("45.20")
        assert view.total_balance == Decimal("1000.00") + Decimal("3000") - Decimal("45.20") - Decimal("99.99") + Decimal("200.00")
        assert view.default_account.id == alice_account.id
        assert [t.category for t in view.recent_transactions] == ["food", "salary", "travel"]

    async def test_new_user_has_empty_dashboard(self, storage, alice):
        result = await DashboardQueries(storage).dashboard("user_alice")

        assert result.success
        assert result.data.accounts == []
        assert result.data.total_balance == Decimal("0.00")

    async def test_unauthenticated(self, storage):
        result = await DashboardQueries(storage).dashboard(None)

        assert result.error_kind == ErrorKind.UNAUTHORIZED


class TestAccountDetail:

    async def test_history_newest_first(self, storage, transaction_service, alice, alice_account):
        await transaction_service.create_transaction(
            draft(alice_account.id, "EXPENSE", "10", "food", datetime(2024, 1, 1))
        )
        await transaction_service.create_transaction(
            draft(alice_account.id, "INCOME", "20", "salary", datetime(2024, 1, 2))
        )

        result = await DashboardQueries(storage).account_detail("user_alice", alice_account.id)

        view = result.data
        assert view.account.balance == Decimal("1010.00")
        assert [t.amount for t in view.transactions] == [Decimal("20.00"), Decimal("10.00")]
        assert view.total_income == Decimal("20.00")
        assert view.total_expense == Decimal("10.00")

    async def test_foreign_account_not_found(self, storage, alice, bob_account):
        result = await DashboardQueries(storage).account_detail("user_alice", bob_account.id)

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.data is None
