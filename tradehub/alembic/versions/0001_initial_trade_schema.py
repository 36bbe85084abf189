"""initial trade schema: accounts, catalog, wholesale, quotations

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:12:05.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Les colonnes Enum stockent le NOM du membre python (ex: incoterm "exw")
role = sa.Enum("admin", "seller", "buyer", name="role")
product_status = sa.Enum("draft", "active", "archived", name="product_status")
invitation_status = sa.Enum("pending", "accepted", "rejected", "expired", name="invitation_status")
grant_status = sa.Enum("active", "revoked", name="grant_status")
wholesale_order_status = sa.Enum(
    "pending",
    "deposit_paid",
    "awaiting_balance",
    "balance_overdue",
    "paid",
    "processing",
    "fulfilled",
    "cancelled",
    name="wholesale_order_status",
)
quotation_status = sa.Enum(
    "draft",
    "sent",
    "viewed",
    "accepted",
    "deposit_paid",
    "balance_due",
    "fully_paid",
    "completed",
    "cancelled",
    "expired",
    name="quotation_status",
)
incoterm = sa.Enum(
    "exw", "fca", "fas", "fob", "cfr", "cif", "cpt", "cip", "dap", "dpu", "ddp", "other",
    name="incoterm",
)
payment_type = sa.Enum("deposit", "balance", name="payment_type")
payment_schedule_status = sa.Enum("pending", "processing", "paid", "cancelled", name="payment_schedule_status")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", role, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", product_status, nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("seller_id", "sku", name="uq_product_seller_sku"),
        sa.CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
        sa.CheckConstraint("stock >= 0", name="ck_product_stock_nonneg"),
    )
    op.create_index("ix_products_seller_id", "products", ["seller_id"])

    op.create_table(
        "wholesale_products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("rrp", sa.Numeric(14, 2), nullable=False),
        sa.Column("wholesale_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("moq", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        sa.UniqueConstraint("seller_id", "product_id", name="uq_wholesale_product_seller_product"),
        sa.CheckConstraint("moq >= 1", name="ck_wholesale_product_moq_pos"),
        sa.CheckConstraint("rrp >= 0", name="ck_wholesale_product_rrp_nonneg"),
        sa.CheckConstraint("wholesale_price >= 0", name="ck_wholesale_product_price_nonneg"),
    )

    op.create_table(
        "wholesale_invitations",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(200)),
        sa.Column("buyer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("status", invitation_status, nullable=False),
        sa.Column("wholesale_terms", sa.JSON()),
        _ts("expires_at", nullable=True),
        _ts("accepted_at", nullable=True),
        _ts("rejected_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_wholesale_invitations_seller_id", "wholesale_invitations", ["seller_id"])

    op.create_table(
        "wholesale_access_grants",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("buyer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", grant_status, nullable=False),
        sa.Column("wholesale_terms", sa.JSON()),
        _ts("created_at"),
        _ts("revoked_at", nullable=True),
        sa.UniqueConstraint("buyer_id", "seller_id", name="uq_access_grant_buyer_seller"),
    )

    op.create_table(
        "wholesale_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_number", sa.String(64), nullable=False, unique=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("buyer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "invitation_id",
            sa.BigInteger(),
            sa.ForeignKey("wholesale_invitations.id", ondelete="SET NULL"),
        ),
        sa.Column("status", wholesale_order_status, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("subtotal_cents", sa.BigInteger(), nullable=False),
        sa.Column("tax_amount_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.BigInteger(), nullable=False),
        sa.Column("deposit_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("balance_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("deposit_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("payment_terms", sa.String(32), nullable=False),
        sa.Column("balance_due_date", sa.Date()),
        sa.Column("po_number", sa.String(64)),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(200)),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("subtotal_cents >= 0", name="ck_wholesale_order_subtotal_nonneg"),
        sa.CheckConstraint(
            "deposit_amount_cents + balance_amount_cents = total_cents",
            name="ck_wholesale_order_split",
        ),
    )
    op.create_index("ix_wholesale_orders_seller_id", "wholesale_orders", ["seller_id"])
    op.create_index("ix_wholesale_orders_buyer_id", "wholesale_orders", ["buyer_id"])

    op.create_table(
        "wholesale_order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("wholesale_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("product_sku", sa.String(64)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("moq", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price_cents", sa.BigInteger(), nullable=False),
        sa.Column("subtotal_cents", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_wholesale_order_item_qty_pos"),
    )
    op.create_index("ix_wholesale_order_items_order_id", "wholesale_order_items", ["order_id"])

    op.create_table(
        "wholesale_order_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("wholesale_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("performed_by", sa.String(255)),
        sa.Column("payload", sa.JSON()),
        _ts("occurred_at"),
    )
    op.create_index("ix_wholesale_order_events_order_time", "wholesale_order_events", ["order_id", "occurred_at"])

    op.create_table(
        "trade_quotations",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("quotation_number", sa.String(64), nullable=False, unique=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("view_token", sa.String(64), nullable=False, unique=True),
        sa.Column("status", quotation_status, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False),
        sa.Column("tax_rate", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("shipping_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("deposit_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("valid_until", sa.Date()),
        sa.Column("delivery_terms", incoterm),
        sa.Column("payment_terms", sa.String(32)),
        sa.Column("data_sheet_url", sa.String(512)),
        sa.Column("terms_and_conditions_url", sa.String(512)),
        sa.Column("metadata", sa.JSON()),
        _ts("sent_at", nullable=True),
        _ts("viewed_at", nullable=True),
        _ts("accepted_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "deposit_percentage >= 0 AND deposit_percentage <= 100",
            name="ck_quotation_deposit_pct_0_100",
        ),
        sa.CheckConstraint("total >= 0", name="ck_quotation_total_nonneg"),
    )
    op.create_index("ix_trade_quotations_seller_id", "trade_quotations", ["seller_id"])

    op.create_table(
        "trade_quotation_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "quotation_id",
            sa.BigInteger(),
            sa.ForeignKey("trade_quotations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="SET NULL")),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("discount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("line_total", sa.Numeric(14, 2), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("quotation_id", "line_number", name="uq_quotation_item_line"),
        sa.CheckConstraint("quantity > 0", name="ck_quotation_item_qty_pos"),
        sa.CheckConstraint("unit_price >= 0", name="ck_quotation_item_unit_price_nonneg"),
    )
    op.create_index("ix_trade_quotation_items_quotation_id", "trade_quotation_items", ["quotation_id"])

    op.create_table(
        "trade_quotation_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "quotation_id",
            sa.BigInteger(),
            sa.ForeignKey("trade_quotations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("performed_by", sa.String(255)),
        sa.Column("payload", sa.JSON()),
        _ts("created_at"),
    )
    op.create_index("ix_quotation_events_quotation_time", "trade_quotation_events", ["quotation_id", "created_at"])

    op.create_table(
        "trade_payment_schedules",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "quotation_id",
            sa.BigInteger(),
            sa.ForeignKey("trade_quotations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("payment_type", payment_type, nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date()),
        sa.Column("status", payment_schedule_status, nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(255), unique=True),
        _ts("paid_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("quotation_id", "payment_type", name="uq_payment_schedule_quotation_type"),
        sa.CheckConstraint("amount >= 0", name="ck_payment_schedule_amount_nonneg"),
    )


def downgrade() -> None:
    op.drop_table("trade_payment_schedules")
    op.drop_index("ix_quotation_events_quotation_time", table_name="trade_quotation_events")
    op.drop_table("trade_quotation_events")
    op.drop_index("ix_trade_quotation_items_quotation_id", table_name="trade_quotation_items")
    op.drop_table("trade_quotation_items")
    op.drop_index("ix_trade_quotations_seller_id", table_name="trade_quotations")
    op.drop_table("trade_quotations")
    op.drop_index("ix_wholesale_order_events_order_time", table_name="wholesale_order_events")
    op.drop_table("wholesale_order_events")
    op.drop_index("ix_wholesale_order_items_order_id", table_name="wholesale_order_items")
    op.drop_table("wholesale_order_items")
    op.drop_index("ix_wholesale_orders_buyer_id", table_name="wholesale_orders")
    op.drop_index("ix_wholesale_orders_seller_id", table_name="wholesale_orders")
    op.drop_table("wholesale_orders")
    op.drop_table("wholesale_access_grants")
    op.drop_index("ix_wholesale_invitations_seller_id", table_name="wholesale_invitations")
    op.drop_table("wholesale_invitations")
    op.drop_table("wholesale_products")
    op.drop_index("ix_products_seller_id", table_name="products")
    op.drop_table("products")
    op.drop_table("users")

    # Postgres : les types ENUM survivent au DROP TABLE
    bind = op.get_bind()
    for enum_type in (
        payment_schedule_status,
        payment_type,
        incoterm,
        quotation_status,
        wholesale_order_status,
        grant_status,
        invitation_status,
        product_status,
        role,
    ):
        enum_type.drop(bind, checkfirst=True)
