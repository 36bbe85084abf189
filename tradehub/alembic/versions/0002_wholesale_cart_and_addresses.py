"""wholesale carts, order addresses, cancelled invitations

Revision ID: 0002_wholesale_cart
Revises: 0001_initial
Create Date: 2026-10-17 15:40:12.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_wholesale_cart"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ADD VALUE ne peut pas tourner dans la transaction de migration
    with op.get_context().autocommit_block():
        op.execute("ALTER TYPE invitation_status ADD VALUE IF NOT EXISTS 'cancelled'")

    op.add_column("wholesale_invitations", sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("wholesale_orders", sa.Column("shipping_address", sa.JSON(), nullable=True))
    op.add_column("wholesale_orders", sa.Column("billing_address", sa.JSON(), nullable=True))

    op.create_table(
        "wholesale_carts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("buyer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("buyer_id", "seller_id", name="uq_wholesale_cart_buyer_seller"),
    )


def downgrade() -> None:
    op.drop_table("wholesale_carts")
    op.drop_column("wholesale_orders", "billing_address")
    op.drop_column("wholesale_orders", "shipping_address")
    op.drop_column("wholesale_invitations", "cancelled_at")
    # Postgres ne sait pas retirer une valeur d'enum : les invitations annulées
    # repassent en expired, le type garde la valeur
    op.execute("UPDATE wholesale_invitations SET status = 'expired' WHERE status = 'cancelled'")
