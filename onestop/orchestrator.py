"""
Main Orchestrator for One Stop Finance

Wires the components together:
- storage (SQLAlchemy) and audit logging
- identity, admission control and view invalidation adapters
- Transaction Creation, account management and dashboard queries
- the AI agents, when a Gemini key is configured

The AI agents are optional. Without a key the app still supports manual
entry; receipt scanning and prompt entry are simply unavailable.
"""

from typing import Optional

import structlog

from onestop.agents import ReceiptScanAgent, TransactionPromptAgent
from onestop.audit import AuditLogger
from onestop.queries import DashboardQueries
from onestop.services import (
    AdmissionController,
    Database,
    GeminiOracle,
    GenerativeOracle,
    IdentityProvider,
    SQLAlchemyAuditStorage,
    SQLAlchemyFinanceStorage,
    StaticIdentityProvider,
    TokenBucketAdmission,
    ViewInvalidator,
)
from onestop.services.accounts import AccountService
from onestop.services.transactions import TransactionCreationService
from onestop.validation import ReceiptDraftValidator


logger = structlog.get_logger(__name__)


class AppComponents:
    """Everything the presentation layer needs, built once per process."""

    def __init__(
        self,
        database: Database,
        storage: SQLAlchemyFinanceStorage,
        audit_logger: AuditLogger,
        identity: IdentityProvider,
        invalidator: ViewInvalidator,
        transactions: TransactionCreationService,
        accounts: AccountService,
        queries: DashboardQueries,
        validator: ReceiptDraftValidator,
        receipt_agent: Optional[ReceiptScanAgent] = None,
        prompt_agent: Optional[TransactionPromptAgent] = None,
    ):
        self.database = database
        self.storage = storage
        self.audit_logger = audit_logger
        self.identity = identity
        self.invalidator = invalidator
        self.transactions = transactions
        self.accounts = accounts
        self.queries = queries
        self.validator = validator
        self.receipt_agent = receipt_agent
        self.prompt_agent = prompt_agent

    @property
    def ai_enabled(self) -> bool:
        return self.receipt_agent is not None and self.prompt_agent is not None


def _create_oracle() -> Optional[GenerativeOracle]:
    try:
        return GeminiOracle()
    except Exception as e:
        # Gemini not configured - continue without AI features
        logger.warning("ai_oracle_not_configured", error=str(e))
        return None


def create_app_components(
    database_url: Optional[str] = None,
    identity: Optional[IdentityProvider] = None,
    admission: Optional[AdmissionController] = None,
    oracle: Optional[GenerativeOracle] = None,
    use_ai: bool = True,
    persist_audit: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        database_url: Overrides DATABASE_URL
        identity: Identity provider; defaults to an unauthenticated static one
        admission: Admission controller; defaults to the configured token bucket
        oracle: AI oracle; defaults to Gemini when use_ai is True
        use_ai: Set to False to run without the AI agents
        persist_audit: Store audit events in the database as well as the log

    Returns:
        AppComponents
    """
    database = Database(database_url)
    storage = SQLAlchemyFinanceStorage(database)
    audit_logger = AuditLogger(SQLAlchemyAuditStorage(database) if persist_audit else None)

    identity = identity or StaticIdentityProvider()
    invalidator = ViewInvalidator()

    transactions = TransactionCreationService(
        storage=storage,
        identity=identity,
        admission=admission or TokenBucketAdmission(),
        audit_logger=audit_logger,
        invalidator=invalidator,
    )

    if oracle is None and use_ai:
        oracle = _create_oracle()

    receipt_agent = None
    prompt_agent = None
    if oracle is not None:
        receipt_agent = ReceiptScanAgent(oracle, audit_logger=audit_logger)
        prompt_agent = TransactionPromptAgent(
            oracle=oracle,
            storage=storage,
            identity=identity,
            transactions=transactions,
            audit_logger=audit_logger,
        )

    return AppComponents(
        database=database,
        storage=storage,
        audit_logger=audit_logger,
        identity=identity,
        invalidator=invalidator,
        transactions=transactions,
        accounts=AccountService(storage, audit_logger=audit_logger, invalidator=invalidator),
        queries=DashboardQueries(storage),
        validator=ReceiptDraftValidator(),
        receipt_agent=receipt_agent,
        prompt_agent=prompt_agent,
    )
