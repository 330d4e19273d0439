"""discount core tables

Revision ID: 3a7c91e0d4b2
Revises:
Create Date: 2026-10-19 09:12:41.207315

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a7c91e0d4b2'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "discount_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.Column("target_scope", sa.String(), nullable=False),
        sa.Column("target_id", sa.String(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("tags_add", sa.JSON(), nullable=True),
        sa.Column("tags_remove", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_discount_rules_id", "discount_rules", ["id"])
    op.create_index("ix_discount_rules_rule_id", "discount_rules", ["rule_id"], unique=True)
    op.create_index("ix_discount_rules_target_id", "discount_rules", ["target_id"])
    op.create_index("ix_discount_rules_status", "discount_rules", ["status"])

    op.create_table(
        "item_price_states",
        sa.Column("item_id", sa.String(), primary_key=True),
        sa.Column("original_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("active_rule_ids", sa.JSON(), nullable=False),
        sa.Column("push_pending", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_item_price_states_item_id", "item_price_states", ["item_id"])
    op.create_index("ix_item_price_states_push_pending", "item_price_states", ["push_pending"])

    op.create_table(
        "price_ledger",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.String(), nullable=False),
        sa.Column("item_id", sa.String(), nullable=False),
        sa.Column("old_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("new_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("cause_rule_id", sa.String(), nullable=True),
        sa.Column("restored_from_entry_id", sa.String(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_price_ledger_id", "price_ledger", ["id"])
    op.create_index("ix_price_ledger_entry_id", "price_ledger", ["entry_id"], unique=True)
    op.create_index("ix_price_ledger_item_id", "price_ledger", ["item_id"])
    op.create_index("ix_price_ledger_cause_rule_id", "price_ledger", ["cause_rule_id"])
    op.create_index("ix_price_ledger_timestamp", "price_ledger", ["timestamp"])

    op.create_table(
        "scheduled_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("fire_at", sa.DateTime(), nullable=False),
        sa.Column("applied_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_scheduled_events_id", "scheduled_events", ["id"])
    op.create_index("ix_scheduled_events_event_id", "scheduled_events", ["event_id"], unique=True)
    op.create_index("ix_scheduled_events_rule_id", "scheduled_events", ["rule_id"])
    op.create_index("ix_scheduled_events_fire_at", "scheduled_events", ["fire_at"])
    op.create_index("ix_scheduled_events_applied_at", "scheduled_events", ["applied_at"])
    # one pending activate and one pending deactivate per rule
    op.create_index(
        "uq_scheduled_events_pending",
        "scheduled_events",
        ["rule_id", "kind"],
        unique=True,
        sqlite_where=sa.text("applied_at IS NULL"),
        postgresql_where=sa.text("applied_at IS NULL"),
    )

    op.create_table(
        "catalog_items",
        sa.Column("item_id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("vendor", sa.String(), nullable=True),
        sa.Column("product_type", sa.String(), nullable=True),
        sa.Column("collections", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_catalog_items_item_id", "catalog_items", ["item_id"])
    op.create_index("ix_catalog_items_vendor", "catalog_items", ["vendor"])
    op.create_index("ix_catalog_items_product_type", "catalog_items", ["product_type"])


def downgrade():
    op.drop_table("catalog_items")
    op.drop_index("uq_scheduled_events_pending", table_name="scheduled_events")
    op.drop_table("scheduled_events")
    op.drop_table("price_ledger")
    op.drop_table("item_price_states")
    op.drop_table("discount_rules")
