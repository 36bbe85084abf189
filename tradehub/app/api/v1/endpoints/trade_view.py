from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_db, get_optional_user
from tradehub.app.db.models.core_types import PaymentType
from tradehub.app.db.models.models_v1 import User
from tradehub.app.schemas.quotation import PaymentScheduleRead, QuotationRead
from tradehub.services import quotations
from tradehub.services.documents import render_quotation_pdf
from tradehub.services.payments import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/trade/view/{token}")


class AcceptIn(BaseModel):
    buyer_name: str | None = Field(default=None, max_length=200)
    company: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=2000)


class PaymentIntentIn(BaseModel):
    payment_type: PaymentType


def _buyer_view(db: Session, q) -> dict:
    data = QuotationRead.model_validate(q).model_dump(mode="json")
    data["payments"] = [
        PaymentScheduleRead.model_validate(p).model_dump(mode="json")
        for p in quotations.list_payments(db, quotation_id=q.id)
    ]
    return data


@router.get("")
def view_quotation(token: str, db: Session = Depends(get_db)):
    q = quotations.mark_viewed(db, token=token)
    return _buyer_view(db, q)


@router.post("/accept")
def accept_quotation(
    token: str,
    payload: AcceptIn | None = None,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    info = payload.model_dump(exclude_none=True) if payload else None
    q = quotations.accept_quotation(
        db,
        token=token,
        buyer_id=user.id if user else None,
        buyer_info=info or None,
    )
    return _buyer_view(db, q)


@router.post("/payment-intents", status_code=201)
def create_payment_intent(
    token: str,
    payload: PaymentIntentIn,
    idempotency_key: str | None = Header(default=None),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db),
):
    intent = quotations.create_payment_intent(
        db,
        gateway,
        token=token,
        payment_type=payload.payment_type,
        idempotency_key=idempotency_key,
    )
    return {
        "id": intent.id,
        "client_secret": intent.client_secret,
        "status": intent.status,
        "amount": intent.amount,
        "currency": intent.currency,
        "payment_type": payload.payment_type,
    }


@router.get("/document")
def quotation_document(token: str, db: Session = Depends(get_db)):
    q = quotations.get_quotation_by_token(db, token=token)
    pdf = render_quotation_pdf(q, quotations.list_line_items(db, quotation_id=q.id))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{q.quotation_number}.pdf"'},
    )
