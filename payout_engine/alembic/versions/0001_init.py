"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-01
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 2)


def upgrade():
    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="investor"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("total_shares", sa.Integer(), nullable=False),
        sa.Column("price_per_share", MONEY, nullable=False, server_default="0"),
        sa.Column("available_shares", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_slug", "properties", ["slug"], unique=True)

    op.create_table(
        "investments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("shares", sa.Integer(), nullable=False),
        sa.Column("price_per_share_at_purchase", MONEY, nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_investments_user_id", "investments", ["user_id"])
    op.create_index("ix_investments_property_id", "investments", ["property_id"])
    op.create_index("ix_investments_property_status", "investments", ["property_id", "status"])

    op.create_table(
        "rental_statements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("gross_revenue", MONEY, nullable=False),
        sa.Column("operating_costs", MONEY, nullable=False, server_default="0"),
        sa.Column("operating_cost_items", sa.JSON(), nullable=True),
        sa.Column("management_fee", MONEY, nullable=False, server_default="0"),
        sa.Column("management_fee_pct", sa.Numeric(7, 4), nullable=True),
        sa.Column("income_adjustment", MONEY, nullable=False, server_default="0"),
        sa.Column("net_distributable", MONEY, nullable=False),
        sa.Column("occupancy_rate_pct", sa.Numeric(7, 4), nullable=True),
        sa.Column("adr", MONEY, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("property_id", "period_start", "period_end", name="uq_rental_statements_period"),
    )
    op.create_index("ix_rental_statements_property_id", "rental_statements", ["property_id"])

    op.create_table(
        "distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("rental_statement_id", sa.Integer(), sa.ForeignKey("rental_statements.id"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("total_distributed", MONEY, nullable=False),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("declared_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("rental_statement_id", name="uq_distributions_statement"),
    )
    op.create_index("ix_distributions_property_id", "distributions", ["property_id"])
    op.create_index("ix_distributions_rental_statement_id", "distributions", ["rental_statement_id"])
    op.create_index("ix_distributions_status", "distributions", ["status"])

    op.create_table(
        "payouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("distribution_id", sa.Integer(), sa.ForeignKey("distributions.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("rental_statement_id", sa.Integer(), sa.ForeignKey("rental_statements.id"), nullable=False),
        sa.Column("holder_kind", sa.String(length=30), nullable=False, server_default="investor"),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("shares_at_record", sa.Integer(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payment_method", sa.String(length=30), nullable=True),
        sa.Column("payment_reference", sa.String(length=120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payouts_distribution_id", "payouts", ["distribution_id"])
    op.create_index("ix_payouts_property_id", "payouts", ["property_id"])
    op.create_index("ix_payouts_user_id", "payouts", ["user_id"])
    op.create_index("ix_payouts_distribution_holder", "payouts", ["distribution_id", "holder_kind", "user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("txn_type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("payout_id", sa.Integer(), sa.ForeignKey("payouts.id"), nullable=True),
        sa.Column("investment_id", sa.Integer(), sa.ForeignKey("investments.id"), nullable=True),
        sa.Column("reference", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("payout_id", name="uq_transactions_payout"),
    )
    op.create_index("ix_transactions_txn_type", "transactions", ["txn_type"])
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_property_id", "transactions", ["property_id"])
    op.create_index("ix_transactions_reference", "transactions", ["reference"])


def downgrade():
    op.drop_table("transactions")
    op.drop_table("payouts")
    op.drop_table("distributions")
    op.drop_table("rental_statements")
    op.drop_table("investments")
    op.drop_table("properties")
    op.drop_table("audit_events")
    op.drop_table("app_users")
