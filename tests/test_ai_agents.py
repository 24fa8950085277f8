"""
Tests for the AI agents

The oracle is always a FakeOracle: tests script its reply and check
what the agents do with it.
"""

import json
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import FakeOracle
from onestop.agents import (
    RECEIPT_PROMPT,
    ReceiptScanAgent,
    TransactionPromptAgent,
    parse_amount,
    parse_date,
)
from onestop.errors import OracleUnavailableError
from onestop.models import AccountType, ErrorKind, TransactionType
from onestop.models.audit import AuditEventType
from onestop.services import StaticIdentityProvider


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def make_prompt_agent(oracle, storage, transaction_service, subject="user_alice", audit_logger=None):
    return TransactionPromptAgent(
        oracle=oracle,
        storage=storage,
        identity=StaticIdentityProvider(subject),
        transactions=transaction_service,
        audit_logger=audit_logger,
    )


class TestParseAmount:

    @pytest.mark.parametrize("value, expected", [
        (500, Decimal("500")),
        (12.5, Decimal("12.5")),
        ("42.10", Decimal("42.10")),
        ("1,234.56", Decimal("1234.56")),
        ("19.99 USD", Decimal("19.99")),
        ("  7 ", Decimal("7")),
    ])
    def test_numeric_prefix(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "$12", True, [], {}])
    def test_not_a_number(self, value):
        assert parse_amount(value).is_nan()


class TestParseDate:

    def test_iso_date(self):
        assert parse_date("2024-03-15") == datetime(2024, 3, 15)

    def test_aware_datetime_becomes_naive_utc(self):
        assert parse_date("2024-03-15T10:00:00+02:00") == datetime(2024, 3, 15, 8, 0)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 20240315])
    def test_unparseable(self, value):
        assert parse_date(value) is None


class TestReceiptScanAgent:
    """Receipt scanning never returns partial fields."""

    async def test_scan_parses_fenced_json(self):
        reply = "```json\n" + json.dumps({
            "amount": 42.5,
            "date": "2024-03-15T00:00:00Z",
            "description": "Weekly shop",
            "merchantName": "Corner Store",
            "category": "groceries",
        }) + "\n```"
        oracle = FakeOracle(reply)
        agent = ReceiptScanAgent(oracle)

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.success
        scan = result.data
        assert scan.amount == Decimal("42.5")
        assert scan.date == datetime(2024, 3, 15)
        assert scan.merchant_name == "Corner Store"
        assert scan.category == "groceries"
        assert scan.is_receipt

    async def test_request_has_inline_image_and_instruction(self):
        oracle = FakeOracle("{}")
        agent = ReceiptScanAgent(oracle)

        await agent.scan_receipt(PNG_BYTES, "image/png")

        image_part, text_part = oracle.calls[0]
        assert image_part.data == PNG_BYTES
        assert image_part.mime_type == "image/png"
        assert text_part.text == RECEIPT_PROMPT
        assert "If it's not a receipt, return an empty object." in RECEIPT_PROMPT

    async def test_empty_object_is_not_a_receipt(self):
        agent = ReceiptScanAgent(FakeOracle("{}"))

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.success
        assert not result.data.is_receipt

    async def test_invalid_amount_becomes_nan(self):
        agent = ReceiptScanAgent(FakeOracle('{"amount": "about ten", "category": "food"}'))

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.success
        assert result.data.amount.is_nan()
        assert not result.data.amount_is_valid

    @pytest.mark.parametrize("reply", [
        "I could not read this image",
        "[1, 2, 3]",
        '{"amount": NaN}',
        "",
    ])
    async def test_unparseable_reply_fails_scan(self, reply):
        agent = ReceiptScanAgent(FakeOracle(reply))

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert not result.success
        assert result.error_kind == ErrorKind.SCAN_FAILED
        assert result.error == "Failed to scan receipt"
        assert result.data is None

    async def test_oracle_failure_fails_scan(self):
        agent = ReceiptScanAgent(FakeOracle(OracleUnavailableError()))

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.error_kind == ErrorKind.SCAN_FAILED

    @pytest.mark.parametrize("image, mime_type", [
        (b"", "image/png"),
        (PNG_BYTES, "application/pdf"),
        (b"x" * (6 * 1024 * 1024), "image/jpeg"),
    ])
    async def test_bad_upload_rejected_before_oracle(self, image, mime_type):
        oracle = FakeOracle("{}")
        agent = ReceiptScanAgent(oracle)

        result = await agent.scan_receipt(image, mime_type)

        assert result.error_kind == ErrorKind.VALIDATION
        assert oracle.calls == []


class TestTransactionPromptAgent:
    """Prompt entry goes through Transaction Creation on the default account."""

    async def test_spent_500_on_lunch(self, storage, transaction_service, alice, alice_account):
        oracle = FakeOracle('{"type": "EXPENSE", "amount": 500, "category": "food"}')
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Spent 500 on lunch")

        assert result.success
        txn = result.data
        assert txn.type == TransactionType.EXPENSE
        assert txn.amount == Decimal("500.00")
        assert txn.account_id == alice_account.id
        assert txn.description == "food"
        assert not txn.is_recurring
        account = await storage.get_account(alice_account.id, alice.id)
        assert account.balance == Decimal("500.00")
        assert 'User input: "Spent 500 on lunch"' in oracle.calls[0][0].text

    async def test_type_is_uppercased_and_fields_kept(self, storage, transaction_service, alice, alice_account):
        oracle = FakeOracle(
            '```\n{"type": "income", "amount": "1,200.50", "category": "salary", '
            '"description": "March pay", "date": "2024-03-01"}\n```'
        )
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Got paid 1200.50")

        assert result.success
        assert result.data.type == TransactionType.INCOME
        assert result.data.amount == Decimal("1200.50")
        assert result.data.description == "March pay"
        assert result.data.date == datetime(2024, 3, 1)

    async def test_non_json_reply_persists_nothing(self, storage, transaction_service, alice, alice_account):
        agent = make_prompt_agent(FakeOracle("Sure! You spent 500."), storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Spent 500 on lunch")

        assert not result.success
        assert result.error_kind == ErrorKind.ORACLE_PARSE_ERROR
        assert result.error == "Could not parse transaction details from prompt"
        assert await storage.list_transactions(alice.id) == []

    @pytest.mark.parametrize("reply", [
        '{"type": "EXPENSE", "category": "food"}',
        '{"type": "EXPENSE", "amount": 0, "category": "food"}',
        '{"amount": 10, "category": "food"}',
        '{"type": "EXPENSE", "amount": 10, "category": ""}',
    ])
    async def test_incomplete_extraction(self, storage, transaction_service, alice, alice_account, reply):
        agent = make_prompt_agent(FakeOracle(reply), storage, transaction_service)

        result = await agent.create_transaction_from_prompt("something")

        assert result.error_kind == ErrorKind.INCOMPLETE_EXTRACTION
        assert result.error == "Incomplete transaction details extracted"
        assert await storage.list_transactions(alice.id) == []

    async def test_oracle_unavailable(self, storage, transaction_service, alice, alice_account):
        agent = make_prompt_agent(FakeOracle(OracleUnavailableError()), storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.ORACLE_UNAVAILABLE

    async def test_no_default_account(self, storage, transaction_service, alice):
        oracle = FakeOracle('{"type": "EXPENSE", "amount": 5, "category": "food"}')
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.NO_DEFAULT_ACCOUNT
        assert result.error == "No default account found"
        assert oracle.calls == []

    async def test_unauthenticated(self, storage, transaction_service):
        oracle = FakeOracle("{}")
        agent = make_prompt_agent(oracle, storage, transaction_service, subject=None)

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.UNAUTHORIZED
        assert oracle.calls == []

    async def test_blank_prompt(self, storage, transaction_service, alice, alice_account):
        oracle = FakeOracle("{}")
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("   ")

        assert result.error_kind == ErrorKind.VALIDATION
        assert oracle.calls == []

    async def test_creation_failure_propagates(self, storage, identity, alice, alice_account):
        """A denial from Transaction Creation comes back unchanged."""
        from conftest import RecordingAdmission
        from onestop.services import AdmissionDecision
        from onestop.services.transactions import TransactionCreationService

        denied = TransactionCreationService(
            storage, identity, RecordingAdmission(AdmissionDecision(allowed=False, reason="blocked"))
        )
        oracle = FakeOracle('{"type": "EXPENSE", "amount": 5, "category": "food"}')
        agent = make_prompt_agent(oracle, storage, denied)

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.REQUEST_BLOCKED
        assert result.error == "Request blocked"

    async def test_ambiguous_default_account(self, storage, transaction_service, temp_db, alice, alice_account):
        """Two accounts flagged default (legacy data) is reported, not guessed."""
        from sqlalchemy import update

        from onestop.services.storage.tables import Account

        second = await storage.create_account(alice.id, "Savings", AccountType.SAVINGS, Decimal("0"), False)
        with temp_db.session_factory.begin() as session:
            session.execute(update(Account).where(Account.id == second.id).values(is_default=True))

        oracle = FakeOracle('{"type": "EXPENSE", "amount": 5, "category": "food"}')
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.AMBIGUOUS_DEFAULT_ACCOUNT
        assert await storage.list_transactions(alice.id) == []

    @pytest.mark.parametrize("amount", ["1e30", '"100000000000000000"'])
    async def test_oversize_amount_is_rejected(self, storage, transaction_service, alice, alice_account, amount):
        oracle = FakeOracle(f'{{"type": "INCOME", "amount": {amount}, "category": "salary"}}')
        agent = make_prompt_agent(oracle, storage, transaction_service)

        result = await agent.create_transaction_from_prompt("Won the lottery")

        assert result.error_kind == ErrorKind.VALIDATION
        assert await storage.list_transactions(alice.id) == []
        account = await storage.get_account(alice_account.id, alice.id)
        assert account.balance == Decimal("1000.00")


class TestOracleFailureAudit:
    """Failed model calls are recorded as external service errors."""

    @staticmethod
    async def external_errors(audit_storage):
        events = await audit_storage.get_recent_events()
        return [e for e in events if e.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR]

    async def test_receipt_scan_oracle_down(self, audit_logger, audit_storage):
        agent = ReceiptScanAgent(FakeOracle(OracleUnavailableError()), audit_logger=audit_logger)

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.error_kind == ErrorKind.SCAN_FAILED
        errors = await self.external_errors(audit_storage)
        assert len(errors) == 1
        assert errors[0].details["service"] == "generative_oracle"

    async def test_receipt_scan_unexpected_oracle_exception(self, audit_logger, audit_storage):
        agent = ReceiptScanAgent(FakeOracle(ConnectionError("reset by peer")), audit_logger=audit_logger)

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.error_kind == ErrorKind.SCAN_FAILED
        errors = await self.external_errors(audit_storage)
        assert errors[0].error_message == "reset by peer"

    async def test_unparseable_receipt_reply_is_not_a_service_error(self, audit_logger, audit_storage):
        agent = ReceiptScanAgent(FakeOracle("not json"), audit_logger=audit_logger)

        result = await agent.scan_receipt(PNG_BYTES, "image/png")

        assert result.error_kind == ErrorKind.SCAN_FAILED
        assert await self.external_errors(audit_storage) == []

    async def test_prompt_oracle_down(
        self, storage, transaction_service, audit_logger, audit_storage, alice, alice_account
    ):
        agent = make_prompt_agent(
            FakeOracle(OracleUnavailableError()), storage, transaction_service, audit_logger=audit_logger
        )

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.ORACLE_UNAVAILABLE
        errors = await self.external_errors(audit_storage)
        assert len(errors) == 1
        assert errors[0].details["service"] == "generative_oracle"

    async def test_prompt_parse_error_is_not_a_service_error(
        self, storage, transaction_service, audit_logger, audit_storage, alice, alice_account
    ):
        agent = make_prompt_agent(
            FakeOracle("Sure! You spent 5."), storage, transaction_service, audit_logger=audit_logger
        )

        result = await agent.create_transaction_from_prompt("Spent 5 on coffee")

        assert result.error_kind == ErrorKind.ORACLE_PARSE_ERROR
        assert await self.external_errors(audit_storage) == []
