"""
Services package.

Adapters for the external collaborators: identity, admission control,
AI oracle, storage and view invalidation. The core services live in
onestop.services.accounts and onestop.services.transactions.
"""

from onestop.services.admission import (
    AdmissionController,
    AdmissionDecision,
    AllowAllAdmission,
    DenialReason,
    TokenBucketAdmission,
)
from onestop.services.identity import IdentityProvider, StaticIdentityProvider
from onestop.services.invalidation import DASHBOARD_VIEW, ViewInvalidator, account_view
from onestop.services.oracle import (
    ContentPart,
    GeminiOracle,
    GenerativeOracle,
    parse_oracle_json,
    strip_code_fences,
)
from onestop.services.storage import (
    AuditStorageInterface,
    Database,
    FinanceStorageInterface,
    SQLAlchemyAuditStorage,
    SQLAlchemyFinanceStorage,
)

__all__ = [
    # Admission control
    "AdmissionController",
    "AdmissionDecision",
    "AllowAllAdmission",
    "DenialReason",
    "TokenBucketAdmission",
    # Identity
    "IdentityProvider",
    "StaticIdentityProvider",
    # View invalidation
    "DASHBOARD_VIEW",
    "ViewInvalidator",
    "account_view",
    # AI oracle
    "ContentPart",
    "GeminiOracle",
    "GenerativeOracle",
    "parse_oracle_json",
    "strip_code_fences",
    # Storage
    "AuditStorageInterface",
    "Database",
    "FinanceStorageInterface",
    "SQLAlchemyAuditStorage",
    "SQLAlchemyFinanceStorage",
]
