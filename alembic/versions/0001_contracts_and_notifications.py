"""contracts and notifications

Revision ID: 0001_contracts_and_notifications
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_contracts_and_notifications"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "contracts",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),

        sa.Column("vendor_id", sa.String(length=128), nullable=True),
        sa.Column("vendor_email", sa.String(length=320), nullable=True),
        sa.Column("assigned_to_email", sa.String(length=320), nullable=False),

        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),

        sa.Column("payload_json", sa.JSON(), nullable=False),
    )
    op.create_index("ix_contracts_vendor_email", "contracts", ["vendor_email"])
    op.create_index("ix_contracts_vendor_id", "contracts", ["vendor_id"])
    op.create_index("ix_contracts_assigned_to", "contracts", ["assigned_to_email"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("contract_id", sa.String(length=64), nullable=False),

        sa.Column("sender", sa.String(length=320), nullable=False),
        sa.Column("recipient", sa.String(length=320), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_notifications_recipient", "notifications", ["recipient", "created_at"])


def downgrade():
    op.drop_index("ix_notifications_recipient", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_contracts_assigned_to", table_name="contracts")
    op.drop_index("ix_contracts_vendor_id", table_name="contracts")
    op.drop_index("ix_contracts_vendor_email", table_name="contracts")
    op.drop_table("contracts")
