from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_db, require_seller
from tradehub.app.core.config import get_settings
from tradehub.app.db.models.core_types import Incoterm, QuotationStatus
from tradehub.app.db.models.models_v1 import User
from tradehub.app.schemas.quotation import (
    PaymentScheduleRead,
    QuotationEventRead,
    QuotationItemRead,
    QuotationSellerRead,
    QuotationTotalsRead,
)
from tradehub.services import quotations
from tradehub.services.documents import render_quotation_pdf
from tradehub.services.pricing import (
    DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
    LineItemInput,
    calculate_quotation_totals,
)

router = APIRouter(prefix="/trade/quotations")


class LineItemIn(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    product_id: int | None = None

    def to_input(self) -> LineItemInput:
        return LineItemInput(
            description=self.description,
            unit_price=self.unit_price,
            quantity=self.quantity,
            discount=self.discount,
            product_id=self.product_id,
        )


class QuotationCreate(BaseModel):
    buyer_email: str = Field(min_length=3, max_length=255)
    buyer_id: int | None = None
    items: list[LineItemIn] = Field(default_factory=list)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    deposit_percentage: Decimal = Field(default=DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE, ge=0, le=100)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_amount: Decimal = Field(default=Decimal("0"), ge=0)
    valid_until: date | None = None
    delivery_terms: Incoterm | None = None
    payment_terms: str | None = None
    data_sheet_url: str | None = Field(default=None, max_length=512)
    terms_and_conditions_url: str | None = Field(default=None, max_length=512)
    metadata: dict[str, Any] | None = None


class QuotationUpdate(BaseModel):
    buyer_email: str | None = Field(default=None, min_length=3, max_length=255)
    items: list[LineItemIn] | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    deposit_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    tax_rate: Decimal | None = Field(default=None, ge=0)
    shipping_amount: Decimal | None = Field(default=None, ge=0)
    valid_until: date | None = None
    delivery_terms: Incoterm | None = None
    payment_terms: str | None = None
    data_sheet_url: str | None = Field(default=None, max_length=512)
    terms_and_conditions_url: str | None = Field(default=None, max_length=512)
    metadata: dict[str, Any] | None = None


class PreviewIn(BaseModel):
    items: list[LineItemIn] = Field(min_length=1)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    deposit_percentage: Decimal = Field(default=DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE, ge=0, le=100)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_amount: Decimal = Field(default=Decimal("0"), ge=0)


class CancelIn(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


def _read(q) -> QuotationSellerRead:
    return QuotationSellerRead.model_validate(q)


@router.post("/preview", response_model=QuotationTotalsRead)
def preview_totals(payload: PreviewIn, user: User = Depends(require_seller)):
    totals = calculate_quotation_totals(
        [it.to_input() for it in payload.items],
        deposit_percentage=payload.deposit_percentage,
        tax_rate=payload.tax_rate,
        shipping_amount=payload.shipping_amount,
        currency=payload.currency or get_settings().default_currency,
    )
    return QuotationTotalsRead.model_validate(totals)


@router.post("", response_model=QuotationSellerRead, status_code=201)
def create_quotation(payload: QuotationCreate, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    q = quotations.create_quotation(
        db,
        seller_id=user.id,
        buyer_email=payload.buyer_email,
        buyer_id=payload.buyer_id,
        items=[it.to_input() for it in payload.items],
        currency=payload.currency or get_settings().default_currency,
        deposit_percentage=payload.deposit_percentage,
        tax_rate=payload.tax_rate,
        shipping_amount=payload.shipping_amount,
        valid_until=payload.valid_until,
        delivery_terms=payload.delivery_terms,
        payment_terms=payload.payment_terms,
        data_sheet_url=payload.data_sheet_url,
        terms_and_conditions_url=payload.terms_and_conditions_url,
        metadata=payload.metadata,
    )
    return _read(q)


@router.get("", response_model=list[QuotationSellerRead])
def list_quotations(
    status: QuotationStatus | None = None,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    return [_read(q) for q in quotations.list_quotations(db, seller_id=user.id, status=status)]


@router.get("/{quotation_id}", response_model=QuotationSellerRead)
def get_quotation(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return _read(quotations.get_quotation(db, quotation_id=quotation_id, seller_id=user.id))


@router.patch("/{quotation_id}", response_model=QuotationSellerRead)
def update_quotation(
    quotation_id: int,
    payload: QuotationUpdate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    if payload.items is not None:
        changes["items"] = [it.to_input() for it in payload.items]
    q = quotations.update_quotation(db, quotation_id=quotation_id, seller_id=user.id, changes=changes)
    return _read(q)


@router.post("/{quotation_id}/send", response_model=QuotationSellerRead)
def send_quotation(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return _read(quotations.send_quotation(db, quotation_id=quotation_id, seller_id=user.id))


@router.post("/{quotation_id}/cancel", response_model=QuotationSellerRead)
def cancel_quotation(
    quotation_id: int,
    payload: CancelIn | None = None,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    return _read(quotations.cancel_quotation(db, quotation_id=quotation_id, seller_id=user.id, reason=reason))


@router.post("/{quotation_id}/complete", response_model=QuotationSellerRead)
def complete_quotation(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return _read(quotations.complete_quotation(db, quotation_id=quotation_id, seller_id=user.id))


@router.get("/{quotation_id}/items", response_model=list[QuotationItemRead])
def list_items(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    quotations.get_quotation(db, quotation_id=quotation_id, seller_id=user.id)
    return [QuotationItemRead.model_validate(it) for it in quotations.list_line_items(db, quotation_id=quotation_id)]


@router.get("/{quotation_id}/activities", response_model=list[QuotationEventRead])
def list_activities(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    quotations.get_quotation(db, quotation_id=quotation_id, seller_id=user.id)
    return [QuotationEventRead.model_validate(e) for e in quotations.list_activities(db, quotation_id=quotation_id)]


@router.get("/{quotation_id}/payments", response_model=list[PaymentScheduleRead])
def list_payments(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    quotations.get_quotation(db, quotation_id=quotation_id, seller_id=user.id)
    return [PaymentScheduleRead.model_validate(p) for p in quotations.list_payments(db, quotation_id=quotation_id)]


@router.get("/{quotation_id}/document")
def quotation_document(quotation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    q = quotations.get_quotation(db, quotation_id=quotation_id, seller_id=user.id)
    pdf = render_quotation_pdf(q, quotations.list_line_items(db, quotation_id=q.id))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{q.quotation_number}.pdf"'},
    )
