from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    JSON,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradehub.app.db.base import Base, BigIntPK, utcnow
from tradehub.app.db.models.core_types import (
    Role,
    ProductStatus,
    InvitationStatus,
    GrantStatus,
    WholesaleOrderStatus,
    QuotationStatus,
    Incoterm,
    PaymentType,
    PaymentScheduleStatus,
)

# ---------- ACCOUNTS ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# ---------- CATALOG ----------
class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[ProductStatus] = mapped_column(
        Enum(ProductStatus, name="product_status"),
        default=ProductStatus.active,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("seller_id", "sku", name="uq_product_seller_sku"),
        CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
        CheckConstraint("stock >= 0", name="ck_product_stock_nonneg"),
    )


class WholesaleProduct(Base):
    __tablename__ = "wholesale_products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rrp: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    wholesale_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    moq: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    product: Mapped[Product] = relationship()

    __table_args__ = (
        UniqueConstraint("seller_id", "product_id", name="uq_wholesale_product_seller_product"),
        CheckConstraint("moq >= 1", name="ck_wholesale_product_moq_pos"),
        CheckConstraint("rrp >= 0", name="ck_wholesale_product_rrp_nonneg"),
        CheckConstraint("wholesale_price >= 0", name="ck_wholesale_product_price_nonneg"),
    )


# ---------- WHOLESALE RELATIONSHIPS ----------
class WholesaleInvitation(Base):
    __tablename__ = "wholesale_invitations"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    buyer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_name: Mapped[str | None] = mapped_column(String(200))
    buyer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus, name="invitation_status"),
        default=InvitationStatus.pending,
        nullable=False,
    )
    # allowed_payment_terms / minimum_order_value / deposit_percentage
    wholesale_terms: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class WholesaleAccessGrant(Base):
    __tablename__ = "wholesale_access_grants"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[GrantStatus] = mapped_column(
        Enum(GrantStatus, name="grant_status"),
        default=GrantStatus.active,
        nullable=False,
    )
    wholesale_terms: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (UniqueConstraint("buyer_id", "seller_id", name="uq_access_grant_buyer_seller"),)


class WholesaleCart(Base):
    __tablename__ = "wholesale_carts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    # [{product_id, product_name, product_sku, quantity, unit_price_cents, moq}]
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (UniqueConstraint("buyer_id", "seller_id", name="uq_wholesale_cart_buyer_seller"),)


# ---------- WHOLESALE ORDERS ----------
class WholesaleOrder(Base):
    __tablename__ = "wholesale_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    invitation_id: Mapped[int | None] = mapped_column(ForeignKey("wholesale_invitations.id", ondelete="SET NULL"))
    status: Mapped[WholesaleOrderStatus] = mapped_column(
        Enum(WholesaleOrderStatus, name="wholesale_order_status"),
        default=WholesaleOrderStatus.pending,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # integer cents
    subtotal_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tax_amount_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deposit_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deposit_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    payment_terms: Mapped[str] = mapped_column(String(32), nullable=False)
    balance_due_date: Mapped[date | None] = mapped_column(Date)
    po_number: Mapped[str | None] = mapped_column(String(64))
    buyer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_name: Mapped[str | None] = mapped_column(String(200))
    # name / line1 / line2 / city / state / postal_code / country
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    billing_address: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    items: Mapped[list["WholesaleOrderItem"]] = relationship(back_populates="order", cascade="all, delete-orphan")
    events: Mapped[list["WholesaleOrderEvent"]] = relationship(back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("subtotal_cents >= 0", name="ck_wholesale_order_subtotal_nonneg"),
        CheckConstraint("deposit_amount_cents + balance_amount_cents = total_cents", name="ck_wholesale_order_split"),
    )


class WholesaleOrderItem(Base):
    __tablename__ = "wholesale_order_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("wholesale_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_sku: Mapped[str | None] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    moq: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subtotal_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    order: Mapped[WholesaleOrder] = relationship(back_populates="items")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_wholesale_order_item_qty_pos"),)


class WholesaleOrderEvent(Base):
    __tablename__ = "wholesale_order_events"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("wholesale_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    performed_by: Mapped[str | None] = mapped_column(String(255))
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order: Mapped[WholesaleOrder] = relationship(back_populates="events")

    __table_args__ = (Index("ix_wholesale_order_events_order_time", "order_id", "occurred_at"),)


# ---------- TRADE QUOTATIONS ----------
class TradeQuotation(Base):
    __tablename__ = "trade_quotations"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    quotation_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    buyer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    view_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[QuotationStatus] = mapped_column(
        Enum(QuotationStatus, name="quotation_status"),
        default=QuotationStatus.draft,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), default=0, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    shipping_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    deposit_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    valid_until: Mapped[date | None] = mapped_column(Date)
    delivery_terms: Mapped[Incoterm | None] = mapped_column(Enum(Incoterm, name="incoterm"))
    payment_terms: Mapped[str | None] = mapped_column(String(32))
    data_sheet_url: Mapped[str | None] = mapped_column(String(512))
    terms_and_conditions_url: Mapped[str | None] = mapped_column(String(512))
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    items: Mapped[list["TradeQuotationItem"]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="TradeQuotationItem.line_number",
    )
    events: Mapped[list["TradeQuotationEvent"]] = relationship(back_populates="quotation", cascade="all, delete-orphan")
    payments: Mapped[list["TradePaymentSchedule"]] = relationship(back_populates="quotation", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("deposit_percentage >= 0 AND deposit_percentage <= 100", name="ck_quotation_deposit_pct_0_100"),
        CheckConstraint("total >= 0", name="ck_quotation_total_nonneg"),
    )


class TradeQuotationItem(Base):
    __tablename__ = "trade_quotation_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(
        ForeignKey("trade_quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    quotation: Mapped[TradeQuotation] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("quotation_id", "line_number", name="uq_quotation_item_line"),
        CheckConstraint("quantity > 0", name="ck_quotation_item_qty_pos"),
        CheckConstraint("unit_price >= 0", name="ck_quotation_item_unit_price_nonneg"),
    )


class TradeQuotationEvent(Base):
    __tablename__ = "trade_quotation_events"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(
        ForeignKey("trade_quotations.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(255))
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    quotation: Mapped[TradeQuotation] = relationship(back_populates="events")

    __table_args__ = (Index("ix_quotation_events_quotation_time", "quotation_id", "created_at"),)


class TradePaymentSchedule(Base):
    __tablename__ = "trade_payment_schedules"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(
        ForeignKey("trade_quotations.id", ondelete="CASCADE"),
        nullable=False,
    )
    payment_type: Mapped[PaymentType] = mapped_column(Enum(PaymentType, name="payment_type"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[PaymentScheduleStatus] = mapped_column(
        Enum(PaymentScheduleStatus, name="payment_schedule_status"),
        default=PaymentScheduleStatus.pending,
        nullable=False,
    )
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    quotation: Mapped[TradeQuotation] = relationship(back_populates="payments")

    __table_args__ = (
        UniqueConstraint("quotation_id", "payment_type", name="uq_payment_schedule_quotation_type"),
        CheckConstraint("amount >= 0", name="ck_payment_schedule_amount_nonneg"),
    )
