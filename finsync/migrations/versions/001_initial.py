"""Initial finance mirror schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _mirror_columns() -> list[sa.Column]:
    return [
        sa.Column("owner_id", sa.String(length=100), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("external_database_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("properties_json", sa.JSON(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _mirror_indexes(table: str) -> None:
    for column in ("owner_id", "external_id", "external_database_id"):
        op.create_index(f"ix_{table}_{column}", table, [column], unique=False)


def upgrade() -> None:
    op.create_table(
        "notion_database_link",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(length=100), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("database_id", sa.String(length=64), nullable=False),
        sa.Column("database_name", sa.String(length=300), nullable=True),
        sa.Column("properties_json", sa.JSON(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "kind", name="uq_notion_database_link_owner_kind"),
    )
    op.create_index("ix_notion_database_link_owner_id", "notion_database_link", ["owner_id"], unique=False)
    op.create_index("ix_notion_database_link_kind", "notion_database_link", ["kind"], unique=False)
    op.create_index("ix_notion_database_link_database_id", "notion_database_link", ["database_id"], unique=False)

    op.create_table(
        "finance_asset",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_mirror_columns(),
        sa.Column("symbol", sa.String(length=50), nullable=True),
        sa.Column("current_price", sa.Float(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("icon_json", sa.JSON(), nullable=True),
        sa.Column("icon_url", sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "external_id", name="uq_finance_asset_owner_external"),
    )
    _mirror_indexes("finance_asset")

    op.create_table(
        "finance_place",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_mirror_columns(),
        sa.Column("place_type", sa.String(length=100), nullable=True),
        sa.Column("balance", sa.Float(), nullable=True),
        sa.Column("total_value", sa.Float(), nullable=True),
        sa.Column("icon_json", sa.JSON(), nullable=True),
        sa.Column("icon_url", sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "external_id", name="uq_finance_place_owner_external"),
    )
    _mirror_indexes("finance_place")

    op.create_table(
        "finance_investment",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_mirror_columns(),
        sa.Column("asset_id", sa.Uuid(), nullable=True),
        sa.Column("place_id", sa.Uuid(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=True),
        sa.Column("purchase_price", sa.Float(), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_price", sa.Float(), nullable=True),
        sa.Column("current_value", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=10), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["asset_id"], ["finance_asset.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["place_id"], ["finance_place.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "external_id", name="uq_finance_investment_owner_external"),
    )
    _mirror_indexes("finance_investment")
    op.create_index("ix_finance_investment_asset_id", "finance_investment", ["asset_id"], unique=False)
    op.create_index("ix_finance_investment_place_id", "finance_investment", ["place_id"], unique=False)


def downgrade() -> None:
    op.drop_table("finance_investment")
    op.drop_table("finance_place")
    op.drop_table("finance_asset")
    op.drop_table("notion_database_link")
