# payout_engine/models.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

MONEY = Numeric(18, 2)


# -----------------------------
# Users / audit
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="investor")  # admin|investor
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Properties / investments
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)

    total_shares: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_share: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    # cache only; allocation always recomputes from investments
    available_shares: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    investments: Mapped[List["Investment"]] = relationship(back_populates="property")
    statements: Mapped[List["RentalStatement"]] = relationship(
        back_populates="property", cascade="all, delete-orphan"
    )


class Investment(Base):
    __tablename__ = "investments"
    __table_args__ = (Index("ix_investments_property_status", "property_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    shares: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_share_at_purchase: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")  # PENDING|CONFIRMED|CANCELLED
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="investments")
    user: Mapped["AppUser"] = relationship()


# -----------------------------
# Statements / distributions / payouts
# -----------------------------
class RentalStatement(Base):
    __tablename__ = "rental_statements"
    __table_args__ = (
        UniqueConstraint("property_id", "period_start", "period_end", name="uq_rental_statements_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    gross_revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    operating_costs: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    operating_cost_items: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    management_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    management_fee_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 4), nullable=True)
    income_adjustment: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    net_distributable: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    occupancy_rate_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 4), nullable=True)
    adr: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="statements")
    distribution: Mapped[Optional["Distribution"]] = relationship(back_populates="statement", uselist=False)


class Distribution(Base):
    __tablename__ = "distributions"
    __table_args__ = (UniqueConstraint("rental_statement_id", name="uq_distributions_statement"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    rental_statement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rental_statements.id"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT", index=True)
    total_distributed: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    approved_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    declared_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    statement: Mapped["RentalStatement"] = relationship(back_populates="distribution")
    property: Mapped["Property"] = relationship()
    payouts: Mapped[List["Payout"]] = relationship(
        back_populates="distribution",
        cascade="all, delete-orphan",
        order_by="Payout.id",
    )


class Payout(Base):
    __tablename__ = "payouts"
    __table_args__ = (
        Index("ix_payouts_distribution_holder", "distribution_id", "holder_kind", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    distribution_id: Mapped[int] = mapped_column(Integer, ForeignKey("distributions.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    rental_statement_id: Mapped[int] = mapped_column(Integer, ForeignKey("rental_statements.id"), nullable=False)

    holder_kind: Mapped[str] = mapped_column(String(30), nullable=False, default="investor")  # investor|unsold_inventory
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True, index=True)

    shares_at_record: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")  # PENDING|PAID
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    distribution: Mapped["Distribution"] = relationship(back_populates="payouts")
    statement: Mapped["RentalStatement"] = relationship()
    property: Mapped["Property"] = relationship()
    user: Mapped[Optional["AppUser"]] = relationship()


class Transaction(Base):
    """Append-only ledger row. amount and txn_type never change once written."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    txn_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # INVESTMENT|PAYOUT
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")

    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    payout_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("payouts.id"), nullable=True, unique=True)
    investment_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("investments.id"), nullable=True)

    reference: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
