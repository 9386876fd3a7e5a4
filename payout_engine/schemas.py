# payout_engine/schemas.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _to_float(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, Decimal):
        return float(v)
    return v


# money leaves the API as float; Decimal stays inside the engine
Money = Annotated[float, BeforeValidator(_to_float)]


def payload_fields(payload: Any) -> dict[str, Any]:
    """Fields the caller actually sent. Accepts pydantic models or plain mappings."""
    if payload is None:
        return {}
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=True)
    if isinstance(payload, Mapping):
        return dict(payload)
    raise TypeError(f"unsupported payload type {type(payload).__name__}")


# -------------------- Statements --------------------

class CostItemIn(BaseModel):
    description: str
    amount: Decimal
    category: Optional[str] = None


class StatementCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    property_id: int
    period_start: date
    period_end: date

    gross_revenue: Decimal
    operating_costs: Optional[Decimal] = None
    operating_cost_items: Optional[list[CostItemIn]] = None
    management_fee: Decimal = Decimal("0")
    management_fee_pct: Optional[Decimal] = None
    income_adjustment: Decimal = Decimal("0")

    occupancy_rate_pct: Optional[Decimal] = None
    adr: Optional[Decimal] = None
    notes: Optional[str] = None

    # accepted so old clients don't 422; always recomputed server side
    net_distributable: Optional[Decimal] = None


class StatementUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    period_start: Optional[date] = None
    period_end: Optional[date] = None
    gross_revenue: Optional[Decimal] = None
    operating_costs: Optional[Decimal] = None
    operating_cost_items: Optional[list[CostItemIn]] = None
    management_fee: Optional[Decimal] = None
    management_fee_pct: Optional[Decimal] = None
    income_adjustment: Optional[Decimal] = None
    occupancy_rate_pct: Optional[Decimal] = None
    adr: Optional[Decimal] = None
    notes: Optional[str] = None


class StatementOut(BaseModel):
    id: int
    property_id: int
    period_start: date
    period_end: date

    gross_revenue: Money
    operating_costs: Money
    operating_cost_items: Optional[list[dict[str, Any]]] = None
    management_fee: Money
    management_fee_pct: Optional[Money] = None
    income_adjustment: Money
    net_distributable: Money

    occupancy_rate_pct: Optional[Money] = None
    adr: Optional[Money] = None
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Distributions / payouts --------------------

class PayoutOut(BaseModel):
    id: int
    distribution_id: int
    property_id: int
    rental_statement_id: int
    holder_kind: str
    user_id: Optional[int] = None
    shares_at_record: int
    amount: Money
    status: str
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DistributionOut(BaseModel):
    id: int
    property_id: int
    rental_statement_id: int
    status: str
    display_status: Optional[str] = None
    total_distributed: Money
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    declared_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    payouts: list[PayoutOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class DistributionCreate(BaseModel):
    statement_id: int


class ActionNotes(BaseModel):
    notes: Optional[str] = None


class DeleteRequest(BaseModel):
    reason: Optional[str] = None


class ValidationReportOut(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class UnsoldFixOut(BaseModel):
    payout_id: int
    distribution_id: int
    distribution_status: str
    old_shares: int
    new_shares: int
    old_amount: float
    new_amount: float


class PayoutUpdateRow(BaseModel):
    """One validated row of a payout status import."""

    payout_id: int
    status: Optional[str] = None
    amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None


class PayoutUpdateBatch(BaseModel):
    distribution_id: Optional[int] = None
    rows: list[PayoutUpdateRow]


class PayoutBatchResultOut(BaseModel):
    updated: int
    paid: list[int]


class MarkPaidRequest(BaseModel):
    payment_method: str
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


# -------------------- Investments / ledger --------------------

class InvestmentCreate(BaseModel):
    property_id: int
    shares: int = Field(gt=0)
    user_id: Optional[int] = None


class InvestmentOut(BaseModel):
    id: int
    user_id: int
    property_id: int
    shares: int
    price_per_share_at_purchase: Money
    total_amount: Money
    status: str
    confirmed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(BaseModel):
    id: int
    txn_type: str
    amount: Money
    currency: str
    user_id: Optional[int] = None
    property_id: int
    payout_id: Optional[int] = None
    investment_id: Optional[int] = None
    reference: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OutstandingSharesOut(BaseModel):
    property_id: int
    total_shares: int
    total_outstanding: int
    unsold_shares: int
    per_holder: dict[str, int]
