from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_current_user, get_db
from tradehub.app.db.models.models_v1 import User
from tradehub.app.schemas.rules import (
    BalanceCalculationRead,
    CartCheckRead,
    CartTotalsRead,
    DepositCalculationRead,
    MinimumValueValidationRead,
    MOQCheckRead,
    MOQValidationRead,
    PaymentTermsValidationRead,
    WholesaleOrderValidationRead,
    WholesalePricingRead,
)
from tradehub.services import wholesale
from tradehub.services import wholesale_rules as rules
from tradehub.services.pricing import (
    DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
    CartItemInput,
    calculate_wholesale_cart_totals,
    validate_moq,
)

router = APIRouter(prefix="/wholesale/rules")


class DepositIn(BaseModel):
    order_value: Decimal
    deposit_percentage: Decimal


class BalanceIn(BaseModel):
    order_value: Decimal
    deposit_paid: Decimal


class DueDateIn(BaseModel):
    order_date: date
    payment_terms: str


class PaymentTermIn(BaseModel):
    invitation_id: int
    payment_term: str


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int


class MOQIn(BaseModel):
    invitation_id: int
    items: list[OrderItemIn]


class MinimumValueIn(BaseModel):
    invitation_id: int
    order_value: Decimal


class ValidateOrderIn(BaseModel):
    invitation_id: int
    items: list[OrderItemIn]
    payment_terms: str
    currency: str = "USD"


class CartItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    unit_price_cents: int = Field(ge=0)
    moq: int | None = Field(default=None, ge=1)


class CartIn(BaseModel):
    items: list[CartItemIn]
    deposit_percentage: Decimal = DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE


def _order_items(items: list[OrderItemIn]) -> list[rules.OrderItem]:
    return [rules.OrderItem(product_id=it.product_id, quantity=it.quantity) for it in items]


# ---------- CALCULATORS ----------
@router.post("/deposit", response_model=DepositCalculationRead)
def deposit(payload: DepositIn):
    return DepositCalculationRead.model_validate(rules.calculate_deposit(payload.order_value, payload.deposit_percentage))


@router.post("/balance", response_model=BalanceCalculationRead)
def balance(payload: BalanceIn):
    return BalanceCalculationRead.model_validate(rules.calculate_balance(payload.order_value, payload.deposit_paid))


@router.post("/due-date")
def due_date(payload: DueDateIn):
    return {
        "order_date": payload.order_date,
        "payment_terms": payload.payment_terms,
        "due_date": rules.calculate_payment_due_date(payload.order_date, payload.payment_terms),
    }


@router.post("/cart-totals", response_model=CartCheckRead)
def cart_totals(payload: CartIn):
    items = [
        CartItemInput(
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price_cents=it.unit_price_cents,
            moq=it.moq,
        )
        for it in payload.items
    ]
    return CartCheckRead(
        totals=CartTotalsRead.model_validate(
            calculate_wholesale_cart_totals(items, deposit_percentage=payload.deposit_percentage)
        ),
        moq=MOQCheckRead.model_validate(validate_moq(items)),
    )


# ---------- INVITATION BASED ----------
# réservé au vendeur de l'invitation et à l'acheteur invité (accès actif)
@router.post("/payment-terms", response_model=PaymentTermsValidationRead)
def payment_terms(payload: PaymentTermIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    wholesale.check_invitation_access(db, invitation_id=payload.invitation_id, user=user)
    result = rules.validate_payment_terms(db, invitation_id=payload.invitation_id, payment_term=payload.payment_term)
    return PaymentTermsValidationRead.model_validate(result)


@router.post("/moq", response_model=MOQValidationRead)
def moq(payload: MOQIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    wholesale.check_invitation_access(db, invitation_id=payload.invitation_id, user=user)
    result = rules.validate_wholesale_moq(db, invitation_id=payload.invitation_id, items=_order_items(payload.items))
    return MOQValidationRead.model_validate(result)


@router.post("/minimum-value", response_model=MinimumValueValidationRead)
def minimum_value(payload: MinimumValueIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    wholesale.check_invitation_access(db, invitation_id=payload.invitation_id, user=user)
    result = rules.validate_minimum_order_value(
        db, invitation_id=payload.invitation_id, order_value=payload.order_value
    )
    return MinimumValueValidationRead.model_validate(result)


@router.get("/pricing", response_model=WholesalePricingRead)
def pricing(
    invitation_id: int,
    product_id: int,
    quantity: int = 1,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    wholesale.check_invitation_access(db, invitation_id=invitation_id, user=user)
    result = rules.get_wholesale_pricing(db, invitation_id=invitation_id, product_id=product_id, quantity=quantity)
    return WholesalePricingRead.model_validate(result)


@router.post("/validate-order", response_model=WholesaleOrderValidationRead)
def validate_order(payload: ValidateOrderIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    wholesale.check_invitation_access(db, invitation_id=payload.invitation_id, user=user)
    result = rules.validate_wholesale_order(
        db,
        invitation_id=payload.invitation_id,
        items=_order_items(payload.items),
        payment_terms=payload.payment_terms,
        currency=payload.currency,
    )
    return WholesaleOrderValidationRead.model_validate(result)
