"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements SQLAlchemy as the backend, but designed to be swappable.
"""

from onestop.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
)
from onestop.services.storage.sqlalchemy_store import (
    Database,
    SQLAlchemyAuditStorage,
    SQLAlchemyFinanceStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinanceStorageInterface",
    # SQLAlchemy implementation
    "Database",
    "SQLAlchemyAuditStorage",
    "SQLAlchemyFinanceStorage",
]
