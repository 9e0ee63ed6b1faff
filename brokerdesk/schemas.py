"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from brokerdesk.models import (
    AGENT_ROLE_ENUM,
    CURRENCY_ENUM,
    TRANSACTION_STATUS_ENUM,
    TRANSACTION_TYPE_ENUM,
)

T = TypeVar("T")


def _quantize_money(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _upper_choice(value: str | None, choices: tuple[str, ...], label: str) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValueError(f"{label} must be one of: {', '.join(choices)}.")
    return normalized


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


# --- Offices ----------------------------------------------------------------


class OfficeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=200)

    @field_validator("name", "city", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} is required.")
        value_str = str(value).strip()
        if not value_str:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} cannot be empty.")
        return value_str

    model_config = ConfigDict(from_attributes=True)


class OfficeCreate(OfficeBase):
    pass


class OfficeUpdate(OfficeBase):
    pass


class OfficeRead(OfficeBase):
    id: int
    created_at: datetime
    updated_at: datetime


class OfficeStats(BaseModel):
    office_id: int
    agents: int
    active_agents: int
    transactions: int
    closed_transactions: int
    closed_commission: Decimal
    closed_office_share: Decimal


# --- Agents -----------------------------------------------------------------


class AgentBase(BaseModel):
    office_id: int
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    role: str = "AGENT"

    @field_validator("first_name", "last_name", mode="before")
    def strip_names(cls, value: Any, info: ValidationInfo) -> str:
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} is required.")
        value_str = str(value).strip()
        if not value_str:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} cannot be empty.")
        return value_str

    @field_validator("role")
    def validate_role(cls, value: str) -> str:
        return _upper_choice(value, AGENT_ROLE_ENUM, "Role")

    model_config = ConfigDict(from_attributes=True)


class AgentCreate(AgentBase):
    pass


class AgentUpdate(AgentBase):
    pass


class AgentRead(AgentBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- Commission -------------------------------------------------------------


class CommissionPreviewRequest(BaseModel):
    """Same inputs the transaction workflow uses to compute a split."""

    type: Optional[str] = None
    gross_amount: Optional[Decimal] = Field(None, gt=0)
    commission_amount: Optional[Decimal] = Field(None, ge=0)
    has_collaborating_agent: bool = False
    split_ratio: Optional[Decimal] = Field(None, ge=0, le=1)

    @field_validator("type")
    def validate_type(cls, value: str | None) -> str | None:
        return _upper_choice(value, TRANSACTION_TYPE_ENUM, "Transaction type")

    @field_validator("gross_amount", "commission_amount")
    def quantize_amount(cls, value: Decimal | None) -> Decimal | None:
        return _quantize_money(value)


class CommissionSplitRead(BaseModel):
    commission_rate: Optional[Decimal] = None
    commission_amount: Decimal
    office_share: Decimal
    primary_agent_share: Decimal
    collaborating_agent_share: Decimal


class CommissionRatesRead(BaseModel):
    sale: Decimal
    rent: Decimal
    eur_to_all: Decimal
    all_to_eur: Decimal


# --- Transactions -----------------------------------------------------------


class TransactionBase(BaseModel):
    type: str
    office_id: int
    primary_agent_id: int
    collaborating_agent_id: Optional[int] = None
    property_ref: str = Field(..., min_length=1, max_length=100)
    client_ref: str = Field(..., min_length=1, max_length=100)
    currency: str = "EUR"
    gross_amount: Decimal = Field(..., gt=0)
    commission_amount: Optional[Decimal] = Field(None, ge=0)
    split_ratio: Optional[Decimal] = Field(None, ge=0, le=1)
    close_date: Optional[date] = None
    contract_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("type")
    def validate_type(cls, value: str) -> str:
        return _upper_choice(value, TRANSACTION_TYPE_ENUM, "Transaction type")

    @field_validator("currency")
    def validate_currency(cls, value: str) -> str:
        return _upper_choice(value, CURRENCY_ENUM, "Currency")

    @field_validator("gross_amount", "commission_amount")
    def quantize_amount(cls, value: Decimal | None) -> Decimal | None:
        return _quantize_money(value)

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    """Partial update; only the fields sent are applied."""

    type: Optional[str] = None
    primary_agent_id: Optional[int] = None
    collaborating_agent_id: Optional[int] = None
    property_ref: Optional[str] = Field(None, min_length=1, max_length=100)
    client_ref: Optional[str] = Field(None, min_length=1, max_length=100)
    currency: Optional[str] = None
    gross_amount: Optional[Decimal] = Field(None, gt=0)
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    commission_amount: Optional[Decimal] = Field(None, ge=0)
    split_ratio: Optional[Decimal] = Field(None, ge=0, le=1)
    close_date: Optional[date] = None
    contract_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("type")
    def validate_type(cls, value: str | None) -> str | None:
        return _upper_choice(value, TRANSACTION_TYPE_ENUM, "Transaction type")

    @field_validator("currency")
    def validate_currency(cls, value: str | None) -> str | None:
        return _upper_choice(value, CURRENCY_ENUM, "Currency")

    @field_validator("gross_amount", "commission_amount")
    def quantize_amount(cls, value: Decimal | None) -> Decimal | None:
        return _quantize_money(value)


class TransactionStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        return _upper_choice(value, TRANSACTION_STATUS_ENUM, "Status")


class TransactionRead(BaseModel):
    id: int
    type: str
    status: str
    office_id: int
    primary_agent_id: int
    collaborating_agent_id: Optional[int]
    has_collaborating_agent: bool
    property_ref: str
    client_ref: str
    currency: str
    gross_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    split_ratio: Optional[Decimal]
    office_share: Decimal
    primary_agent_share: Decimal
    collaborating_agent_share: Decimal
    close_date: Optional[date]
    contract_number: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionStats(BaseModel):
    total_transactions: int
    status_breakdown: dict[str, int]
    type_breakdown: dict[str, int]
    total_revenue: Decimal
    total_commission: Decimal
    total_office_share: Decimal
    average_transaction_value: Decimal
    conversion_rate: int


# --- Settings & reports -----------------------------------------------------


class SystemSettingRead(BaseModel):
    key: str
    value: Decimal
    description: Optional[str]
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SystemSettingUpdate(BaseModel):
    value: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=255)


class EarningsBucket(BaseModel):
    eur: Decimal
    all: Decimal


class AgentEarningsRead(BaseModel):
    agent_id: int
    total_eur: Decimal
    total_all: Decimal
    by_type: dict[str, EarningsBucket]
    transactions_counted: int
