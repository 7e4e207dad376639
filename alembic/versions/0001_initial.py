"""fraud rules, match receipts

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

RULE_TABLES = ("email_blacklist_rules", "geo_rules", "blocked_ips", "domain_filters", "first_order_rules")

def _rule_columns():
    # shared by every rule table
    return [
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("shop_id", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("matches", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]

def upgrade():
    op.create_table(
        "email_blacklist_rules",
        *_rule_columns(),
        sa.Column("email", sa.String(320), nullable=False),
    )
    op.create_table(
        "geo_rules",
        *_rule_columns(),
        sa.Column("country_code", sa.String(4), nullable=False),
        sa.Column("action", sa.String(8), nullable=False),
    )
    op.create_table(
        "blocked_ips",
        *_rule_columns(),
        sa.Column("value", sa.String(64), nullable=False),
    )
    op.create_table(
        "domain_filters",
        *_rule_columns(),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("filter_type", sa.String(16), nullable=False),
    )
    op.create_table(
        "first_order_rules",
        *_rule_columns(),
        sa.Column("max_order_value", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(8)),
        sa.Column("required_fields", sa.JSON, nullable=False),
    )
    for table in RULE_TABLES:
        op.create_index(f"ix_{table}_shop_id", table, ["shop_id"])

    op.create_table(
        "match_receipts",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("checkout_attempt_id", sa.String(128), nullable=False),
        sa.Column("shop_id", sa.String(128), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("rule_id", sa.Integer, nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("checkout_attempt_id", "category", "rule_id", name="uq_receipt_attempt_rule"),
    )
    op.create_index("ix_match_receipts_shop_id", "match_receipts", ["shop_id"])

def downgrade():
    op.drop_index("ix_match_receipts_shop_id", table_name="match_receipts")
    op.drop_table("match_receipts")
    for table in reversed(RULE_TABLES):
        op.drop_index(f"ix_{table}_shop_id", table_name=table)
        op.drop_table(table)
