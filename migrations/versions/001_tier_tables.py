"""
001 — Tier tables: tier_usc_v1, tier_sgd_v1, tier_myr_v1

One row per customer per month per line. Month is stored as its English
name ("November"), as the dashboard pages query it.

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TIER_TABLES = ("tier_usc_v1", "tier_sgd_v1", "tier_myr_v1")


def _create_tier_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("userkey", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("month", sa.String(12), nullable=False),
        sa.Column("line", sa.String(50), nullable=False),

        sa.Column("unique_code", sa.String(100), nullable=True),
        sa.Column("user_name", sa.String(200), nullable=True),

        sa.Column("total_deposit_amount", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_deposit_cases", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_withdraw_amount", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_withdraw_cases", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_ggr", sa.Float, nullable=False, server_default="0"),
        sa.Column("active_days", sa.Float, nullable=False, server_default="0"),

        sa.Column("avg_transaction_value", sa.Float, nullable=True),
        sa.Column("purchase_frequency", sa.Float, nullable=True),
        sa.Column("win_rate", sa.Float, nullable=True),

        sa.Column("tier", sa.Integer, nullable=True),
        sa.Column("tier_name", sa.String(50), nullable=True),
        sa.Column("tier_group", sa.String(50), nullable=True),
        sa.Column("score", sa.Float, nullable=True),
        sa.Column("potential_score", sa.Float, nullable=True),
        sa.Column("potential_tier", sa.String(10), nullable=True),

        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        sa.PrimaryKeyConstraint("userkey", "year", "month", "line", name=f"pk_{name}"),
        sa.CheckConstraint("tier IS NULL OR tier BETWEEN 1 AND 7", name=f"ck_{name}_tier"),
    )
    op.create_index(f"ix_{name}_period", name, ["year", "month"])
    op.create_index(f"ix_{name}_unique_code", name, ["unique_code"])


def upgrade() -> None:
    for name in TIER_TABLES:
        _create_tier_table(name)


def downgrade() -> None:
    for name in TIER_TABLES:
        op.drop_index(f"ix_{name}_unique_code", table_name=name)
        op.drop_index(f"ix_{name}_period", table_name=name)
        op.drop_table(name)
