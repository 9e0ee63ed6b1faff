"""SQLAlchemy models for the brokerage back office."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brokerdesk.core.commission import TRANSACTION_TYPES
from brokerdesk.core.currency import CURRENCY_ENUM
from brokerdesk.database import Base

TRANSACTION_TYPE_ENUM = TRANSACTION_TYPES
TRANSACTION_STATUS_ENUM = ("OPEN", "PENDING", "CLOSED", "CANCELLED")
AGENT_ROLE_ENUM = ("AGENT", "MANAGER", "OFFICE_ADMIN")


class Office(Base):
    __tablename__ = "offices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    agents: Mapped[list["Agent"]] = relationship(back_populates="office")
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="office")


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    office_id: Mapped[int] = mapped_column(ForeignKey("offices.id", ondelete="RESTRICT"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="AGENT")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    office: Mapped[Office] = relationship(back_populates="agents")

    __table_args__ = (
        CheckConstraint("role IN ('AGENT', 'MANAGER', 'OFFICE_ADMIN')", name="ck_agents_role_valid"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    office_id: Mapped[int] = mapped_column(ForeignKey("offices.id", ondelete="RESTRICT"), nullable=False, index=True)
    primary_agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    collaborating_agent_id: Mapped[int | None] = mapped_column(
        ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True
    )
    property_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    client_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    split_ratio: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    office_share: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    primary_agent_share: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    collaborating_agent_share: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    close_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    contract_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    office: Mapped[Office] = relationship(back_populates="transactions")
    primary_agent: Mapped[Agent] = relationship(foreign_keys=[primary_agent_id])
    collaborating_agent: Mapped[Agent | None] = relationship(foreign_keys=[collaborating_agent_id])

    __table_args__ = (
        CheckConstraint("type IN ('SALE', 'RENT')", name="ck_transactions_type_valid"),
        CheckConstraint(
            "status IN ('OPEN', 'PENDING', 'CLOSED', 'CANCELLED')",
            name="ck_transactions_status_valid",
        ),
        CheckConstraint("currency IN ('EUR', 'ALL')", name="ck_transactions_currency_valid"),
        CheckConstraint("gross_amount > 0", name="ck_transactions_gross_positive"),
        CheckConstraint("commission_amount >= 0", name="ck_transactions_commission_nonnegative"),
        CheckConstraint("office_share >= 0", name="ck_transactions_office_share_nonnegative"),
        CheckConstraint("primary_agent_share >= 0", name="ck_transactions_primary_share_nonnegative"),
        CheckConstraint(
            "collaborating_agent_share >= 0",
            name="ck_transactions_collaborator_share_nonnegative",
        ),
        CheckConstraint(
            "split_ratio IS NULL OR (split_ratio >= 0 AND split_ratio <= 1)",
            name="ck_transactions_split_ratio_range",
        ),
        Index("idx_transactions_status_created", "status", "created_at"),
    )

    @property
    def has_collaborating_agent(self) -> bool:
        return self.collaborating_agent_id is not None


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)


__all__ = [
    "AGENT_ROLE_ENUM",
    "CURRENCY_ENUM",
    "TRANSACTION_STATUS_ENUM",
    "TRANSACTION_TYPE_ENUM",
    "Agent",
    "AuditLog",
    "Office",
    "SystemSetting",
    "Transaction",
]
