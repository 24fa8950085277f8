"""Shared pytest fixtures for One Stop Finance tests.

No test talks to a real AI model: the oracle is a FakeOracle with
scripted replies. Every test gets its own SQLite database file.
"""

import os
import tempfile
from decimal import Decimal
from typing import Optional, Union

import pytest

from onestop.audit import AuditLogger
from onestop.errors import OracleUnavailableError
from onestop.models import AccountType
from onestop.services import (
    AdmissionController,
    AdmissionDecision,
    ContentPart,
    Database,
    GenerativeOracle,
    SQLAlchemyAuditStorage,
    SQLAlchemyFinanceStorage,
    StaticIdentityProvider,
    ViewInvalidator,
)
from onestop.services.accounts import AccountService
from onestop.services.transactions import TransactionCreationService


class FakeOracle(GenerativeOracle):
    """Returns scripted replies and records every request."""

    def __init__(self, replies: Union[str, Exception, list, None] = None):
        if not isinstance(replies, list):
            replies = [replies]
        self.replies = replies
        self.calls: list[list[ContentPart]] = []

    async def generate(self, parts: list[ContentPart]) -> str:
        self.calls.append(parts)
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise OracleUnavailableError()
        return reply


class RecordingAdmission(AdmissionController):
    """Admission controller that returns a fixed decision and counts calls."""

    def __init__(self, decision: Optional[AdmissionDecision] = None):
        self.decision = decision or AdmissionDecision(allowed=True)
        self.calls: list[tuple[str, int]] = []

    def protect(self, subject: str, requested: int = 1) -> AdmissionDecision:
        self.calls.append((subject, requested))
        return self.decision


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = Database(f"sqlite:///{db_path}")
    db.database_path = db_path

    yield db

    db.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def storage(temp_db):
    return SQLAlchemyFinanceStorage(temp_db)


@pytest.fixture
def audit_storage(temp_db):
    return SQLAlchemyAuditStorage(temp_db)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def identity():
    return StaticIdentityProvider("user_alice")


@pytest.fixture
def invalidator():
    return ViewInvalidator()


@pytest.fixture
def admission():
    return RecordingAdmission()


@pytest.fixture
def transaction_service(storage, identity, admission, audit_logger, invalidator):
    """TransactionCreationService signed in as user_alice."""
    return TransactionCreationService(
        storage=storage,
        identity=identity,
        admission=admission,
        audit_logger=audit_logger,
        invalidator=invalidator,
    )


@pytest.fixture
def account_service(storage, audit_logger, invalidator):
    return AccountService(storage, audit_logger=audit_logger, invalidator=invalidator)


@pytest.fixture
async def alice(storage):
    """The signed-in user."""
    user, _ = await storage.get_or_create_user("user_alice", email="alice@example.com")
    return user


@pytest.fixture
async def bob(storage):
    """Another user, who owns accounts alice must not touch."""
    user, _ = await storage.get_or_create_user("user_bob", email="bob@example.com")
    return user


@pytest.fixture
async def alice_account(storage, alice):
    """Alice's default current account with 1000.00 in it."""
    return await storage.create_account(
        user_id=alice.id,
        name="Main",
        account_type=AccountType.CURRENT,
        opening_balance=Decimal("1000.00"),
        is_default=True,
    )


@pytest.fixture
async def bob_account(storage, bob):
    return await storage.create_account(
        user_id=bob.id,
        name="Bob's",
        account_type=AccountType.CURRENT,
        opening_balance=Decimal("50.00"),
        is_default=True,
    )

