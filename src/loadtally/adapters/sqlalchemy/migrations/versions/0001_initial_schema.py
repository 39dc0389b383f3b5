"""Initial inventory schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-01-16 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from loadtally.adapters.sqlalchemy.mappings import UTCDateTime, UUIDSetType, UUIDTupleType

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_ENUM = sa.String(32)


def upgrade() -> None:
    op.create_table(
        "inventory_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("bucket", sa.String(), nullable=True),
        sa.Column("serial", sa.String(), nullable=True),
        sa.Column("cso", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("product_type", sa.String(), nullable=True),
        sa.Column("scanned", sa.Boolean(), nullable=False),
        sa.Column("scanned_at", UTCDateTime(), nullable=True),
        sa.Column("scanned_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("product_id", sa.Uuid(), nullable=True),
        sa.Column("erp_status", sa.String(), nullable=True),
        sa.Column("erp_quantity", sa.Integer(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_inventory_item"),
    )
    op.create_index(
        "ix_inventory_item_scope", "inventory_item", ["tenant_scope", "category", "bucket"]
    )
    op.create_index("ix_inventory_item_serial", "inventory_item", ["tenant_scope", "serial"])
    op.create_index("ix_inventory_item_cso", "inventory_item", ["tenant_scope", "cso"])
    op.create_index("ix_inventory_item_model", "inventory_item", ["tenant_scope", "model"])

    op.create_table(
        "load_metadata",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("status", _ENUM, nullable=False),
        sa.Column("friendly_name", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_load_metadata"),
        sa.UniqueConstraint(
            "tenant_scope", "category", "name", name="uq_load_metadata_identity"
        ),
    )

    op.create_table(
        "scanning_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("bucket", sa.String(), nullable=True),
        sa.Column("status", _ENUM, nullable=False),
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("scanned_item_ids", UUIDSetType(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("closed_by", sa.String(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.Column("closed_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_scanning_session"),
    )
    op.create_index(
        "ix_scanning_session_scope", "scanning_session", ["tenant_scope", "category", "bucket"]
    )

    op.create_table(
        "inventory_conversion",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("from_category", _ENUM, nullable=False),
        sa.Column("to_category", _ENUM, nullable=False),
        sa.Column("from_bucket", sa.String(), nullable=True),
        sa.Column("to_bucket", sa.String(), nullable=True),
        sa.Column("converted_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_inventory_conversion"),
    )
    op.create_index(
        "ix_inventory_conversion_item", "inventory_conversion", ["tenant_scope", "item_id"]
    )

    op.create_table(
        "inventory_conflict",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("match_field", _ENUM, nullable=False),
        sa.Column("match_value", sa.String(), nullable=False),
        sa.Column("candidate_ids", UUIDTupleType(), nullable=False),
        sa.Column("incoming", sa.JSON(), nullable=False),
        sa.Column("status", _ENUM, nullable=False),
        sa.Column("resolved_at", UTCDateTime(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_inventory_conflict"),
    )
    op.create_index(
        "ix_inventory_conflict_key",
        "inventory_conflict",
        ["tenant_scope", "category", "match_field", "match_value", "status"],
    )

    op.create_table(
        "inventory_change",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("run_id", sa.Uuid(), nullable=False),
        sa.Column("change_type", _ENUM, nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=True),
        sa.Column("serial", sa.String(), nullable=True),
        sa.Column("cso", sa.String(), nullable=True),
        sa.Column("delta", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_inventory_change"),
    )
    op.create_index("ix_inventory_change_run", "inventory_change", ["tenant_scope", "run_id"])

    op.create_table(
        "sync_lock",
        sa.Column("tenant_scope", sa.String(64), nullable=False),
        sa.Column("category", _ENUM, nullable=False),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("acquired_at", UTCDateTime(), nullable=False),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("tenant_scope", "category", name="pk_sync_lock"),
    )


def downgrade() -> None:
    op.drop_table("sync_lock")
    op.drop_index("ix_inventory_change_run", table_name="inventory_change")
    op.drop_table("inventory_change")
    op.drop_index("ix_inventory_conflict_key", table_name="inventory_conflict")
    op.drop_table("inventory_conflict")
    op.drop_index("ix_inventory_conversion_item", table_name="inventory_conversion")
    op.drop_table("inventory_conversion")
    op.drop_index("ix_scanning_session_scope", table_name="scanning_session")
    op.drop_table("scanning_session")
    op.drop_table("load_metadata")
    op.drop_index("ix_inventory_item_model", table_name="inventory_item")
    op.drop_index("ix_inventory_item_cso", table_name="inventory_item")
    op.drop_index("ix_inventory_item_serial", table_name="inventory_item")
    op.drop_index("ix_inventory_item_scope", table_name="inventory_item")
    op.drop_table("inventory_item")
