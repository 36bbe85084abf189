from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from tradehub.app.db.models.core_types import (
    Incoterm,
    PaymentScheduleStatus,
    PaymentType,
    QuotationStatus,
)


class QuotationItemRead(BaseModel):
    id: int
    line_number: int
    description: str
    product_id: int | None
    unit_price: Decimal
    quantity: int
    discount: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class QuotationRead(BaseModel):
    id: int
    quotation_number: str
    seller_id: int
    buyer_email: str
    buyer_id: int | None
    status: QuotationStatus
    currency: str

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total: Decimal
    deposit_percentage: Decimal
    deposit_amount: Decimal
    balance_amount: Decimal

    valid_until: date | None
    delivery_terms: Incoterm | None
    payment_terms: str | None
    data_sheet_url: str | None
    terms_and_conditions_url: str | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")

    sent_at: datetime | None
    viewed_at: datetime | None
    accepted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    items: list[QuotationItemRead] = []

    class Config:
        from_attributes = True


class QuotationSellerRead(QuotationRead):
    # lien acheteur : visible uniquement par le vendeur
    view_token: str


class QuotationEventRead(BaseModel):
    id: int
    event_type: str
    performed_by: str | None
    payload: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentScheduleRead(BaseModel):
    id: int
    payment_type: PaymentType
    amount: Decimal
    due_date: date | None
    status: PaymentScheduleStatus
    stripe_payment_intent_id: str | None
    paid_at: datetime | None

    class Config:
        from_attributes = True


class PricedLineRead(BaseModel):
    description: str
    unit_price: Decimal
    quantity: int
    discount: Decimal
    line_total: Decimal
    product_id: int | None = None

    class Config:
        from_attributes = True


class QuotationTotalsRead(BaseModel):
    currency: str
    line_items: list[PricedLineRead]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total: Decimal
    deposit_percentage: Decimal
    deposit_amount: Decimal
    balance_amount: Decimal

    class Config:
        from_attributes = True
