"""SQLAlchemy models for the One Stop Finance database.

Money columns hold integer cents so that `balance = balance + delta`
is exact on every backend, including SQLite.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from onestop.models.transaction import utcnow

Base = declarative_base()


class User(Base):
    """User model, keyed by identity-provider subject id."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    external_id = Column(String, unique=True, nullable=False)
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    accounts = relationship("Account", back_populates="user")


class Account(Base):
    """Account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String(16), nullable=False, default="CURRENT")
    balance_cents = Column(BigInteger, nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="accounts")
    transactions = relationship("Transaction", back_populates="account")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String(16), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    category = Column(String(50), nullable=False)
    date = Column(DateTime, nullable=False)
    description = Column(String, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_interval = Column(String(16), nullable=True)
    next_recurring_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_account_date", "account_id", "date"),
    )

    account = relationship("Account", back_populates="transactions")


class AuditEventRow(Base):
    """Append-only audit log row."""

    __tablename__ = "audit_events"

    event_id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    severity = Column(String(16), nullable=False)
    entity_type = Column(String(32), nullable=True)
    entity_id = Column(String, nullable=True)
    correlation_id = Column(String(36), nullable=True, index=True)
    subject = Column(String, nullable=True)
    description = Column(String(500), nullable=False)
    details_json = Column(Text, nullable=True)
    error_code = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    is_user_action = Column(Boolean, nullable=False, default=False)


def create_db_engine(database_url: str, echo: bool = False, sqlite_timeout: float = 15.0) -> Engine:
    """Create an engine; SQLite connections are shared across request threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": sqlite_timeout}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create tables if needed and return a session factory."""
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
