# ruff: noqa: I001
"""Finance import core tables and seed global categories.

Revision ID: 0001_fi_core
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_fi_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "fi_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(7), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_fi_categories_user_id", "fi_categories", ["user_id"])

    op.create_table(
        "fi_tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(7), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_fi_tags_user_name"),
    )
    op.create_index("ix_fi_tags_user_id", "fi_tags", ["user_id"])

    op.create_table(
        "fi_expenses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("fi_categories.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_fi_expenses_user_id", "fi_expenses", ["user_id"])

    op.create_table(
        "fi_expense_tags",
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("fi_expenses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("fi_tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "fi_assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_liability", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_fi_assets_user_id", "fi_assets", ["user_id"])

    op.create_table(
        "fi_asset_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "asset_id",
            sa.Integer(),
            sa.ForeignKey("fi_assets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_fi_asset_snapshots_asset_id", "fi_asset_snapshots", ["asset_id"])

    op.create_table(
        "fi_import_audits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("inserted", sa.Integer(), nullable=False),
        sa.Column("updated", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False),
        sa.Column("duplicate_strategy", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("external_batch_id", sa.String(), nullable=True),
        sa.Column("errors_json", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_fi_import_audits_user_id", "fi_import_audits", ["user_id"])

    # Global categories; the external-source mappers resolve into these names.
    global_categories = (
        "Food & Dining",
        "Transportation",
        "Bills & Utilities",
        "Healthcare",
        "Entertainment",
        "Shopping",
        "Vacation",
        "Alcohol",
        "Other",
    )
    categories = sa.table("fi_categories", sa.column("name", sa.String()))
    op.bulk_insert(categories, [{"name": name} for name in global_categories])


def downgrade() -> None:
    op.drop_table("fi_import_audits")
    op.drop_table("fi_asset_snapshots")
    op.drop_table("fi_assets")
    op.drop_table("fi_expense_tags")
    op.drop_table("fi_expenses")
    op.drop_table("fi_tags")
    op.drop_table("fi_categories")
