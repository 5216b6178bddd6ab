"""Credential store and coin ledger

Revision ID: 0001
Revises:
Create Date: 2026-10-19

- user_api_keys: one encrypted BYOK credential per user
- coin_accounts: per-user coin balance (never negative)
- coin_transactions: append-only journal of balance changes
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # user_api_keys table
    # ==========================================================================
    op.create_table(
        "user_api_keys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("encrypted_key", sa.LargeBinary(), nullable=True),
        sa.Column("key_nonce", sa.LargeBinary(), nullable=True),
        sa.Column("master_key_version", sa.Integer(), nullable=True),
        sa.Column("key_fingerprint", sa.Text(), nullable=False),
        sa.Column("model_id", sa.Text(), nullable=False),
        sa.Column("base_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_user_api_keys_user_id"),
        sa.CheckConstraint(
            "provider IN ('anthropic', 'openai', 'openrouter')",
            name="ck_user_api_keys_provider",
        ),
        sa.CheckConstraint(
            "master_key_version IS NULL OR master_key_version > 0",
            name="ck_user_api_keys_master_key_version",
        ),
    )
    op.create_index("ix_user_api_keys_user_id", "user_api_keys", ["user_id"])

    # ==========================================================================
    # coin_accounts table
    # ==========================================================================
    op.create_table(
        "coin_accounts",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("balance", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint("balance >= 0", name="ck_coin_accounts_balance"),
    )

    # ==========================================================================
    # coin_transactions table
    # ==========================================================================
    op.create_table(
        "coin_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["coin_accounts.user_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_coin_transactions_user_id", "coin_transactions", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_coin_transactions_user_id", table_name="coin_transactions")
    op.drop_table("coin_transactions")
    op.drop_table("coin_accounts")
    op.drop_index("ix_user_api_keys_user_id", table_name="user_api_keys")
    op.drop_table("user_api_keys")
