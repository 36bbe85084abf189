from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from tradehub.app.db.models.core_types import GrantStatus, InvitationStatus, WholesaleOrderStatus


class WholesaleProductRead(BaseModel):
    id: int
    seller_id: int
    product_id: int
    name: str
    rrp: Decimal
    wholesale_price: Decimal
    moq: int
    active: bool

    class Config:
        from_attributes = True


class InvitationRead(BaseModel):
    id: int
    seller_id: int
    buyer_email: str
    buyer_name: str | None
    buyer_id: int | None
    status: InvitationStatus
    wholesale_terms: dict[str, Any] | None
    expires_at: datetime | None
    accepted_at: datetime | None
    rejected_at: datetime | None
    cancelled_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationSellerRead(InvitationRead):
    token: str


class AccessGrantRead(BaseModel):
    id: int
    buyer_id: int
    seller_id: int
    status: GrantStatus
    wholesale_terms: dict[str, Any] | None
    created_at: datetime
    revoked_at: datetime | None

    class Config:
        from_attributes = True


class WholesaleOrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_sku: str | None
    quantity: int
    moq: int
    unit_price_cents: int
    subtotal_cents: int

    class Config:
        from_attributes = True


class WholesaleOrderEventRead(BaseModel):
    id: int
    event_type: str
    description: str | None
    performed_by: str | None
    payload: dict[str, Any] | None
    occurred_at: datetime

    class Config:
        from_attributes = True


class WholesaleOrderRead(BaseModel):
    id: int
    order_number: str
    seller_id: int
    buyer_id: int
    invitation_id: int | None
    status: WholesaleOrderStatus
    currency: str
    subtotal_cents: int
    tax_amount_cents: int
    total_cents: int
    deposit_amount_cents: int
    balance_amount_cents: int
    deposit_percentage: Decimal
    payment_terms: str
    balance_due_date: date | None
    po_number: str | None
    buyer_email: str
    buyer_name: str | None
    shipping_address: dict[str, Any] | None = None
    billing_address: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WholesaleBuyerRead(AccessGrantRead):
    buyer_email: str
    buyer_name: str


class WholesaleCartItemRead(BaseModel):
    product_id: int
    product_name: str
    product_sku: str | None = None
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    moq: int | None = None
    moq_compliant: bool


class WholesaleCartRead(BaseModel):
    id: int
    buyer_id: int
    seller_id: int
    currency: str
    items: list[WholesaleCartItemRead]
    subtotal_cents: int
    deposit_percentage: Decimal
    deposit_cents: int
    balance_due_cents: int
    total_cents: int
    moq_valid: bool
    updated_at: datetime
