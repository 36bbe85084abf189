from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class DepositCalculationRead(BaseModel):
    order_value: Decimal
    deposit_percentage: Decimal
    deposit_amount: Decimal
    balance_amount: Decimal

    class Config:
        from_attributes = True


class BalanceCalculationRead(BaseModel):
    order_value: Decimal
    deposit_paid: Decimal
    balance_remaining: Decimal
    balance_percentage: Decimal

    class Config:
        from_attributes = True


class PaymentTermsValidationRead(BaseModel):
    valid: bool
    allowed_terms: list[str]
    requested_term: str
    error: str | None = None

    class Config:
        from_attributes = True


class MOQFailureRead(BaseModel):
    product_id: int
    product_name: str
    required_quantity: int
    provided_quantity: int

    class Config:
        from_attributes = True


class MOQValidationRead(BaseModel):
    valid: bool
    errors: list[str]
    items_failing_moq: list[MOQFailureRead]

    class Config:
        from_attributes = True


class MinimumValueValidationRead(BaseModel):
    met: bool
    minimum_value: Decimal
    current_value: Decimal
    shortfall: Decimal

    class Config:
        from_attributes = True


class WholesalePricingRead(BaseModel):
    product_id: int
    base_price: Decimal
    wholesale_price: Decimal
    discount: Decimal
    quantity: int
    total: Decimal

    class Config:
        from_attributes = True


class WholesaleOrderValidationRead(BaseModel):
    valid: bool
    errors: list[str]
    warnings: list[str]
    moq_validation: MOQValidationRead
    payment_terms_validation: PaymentTermsValidationRead
    minimum_value_validation: MinimumValueValidationRead
    deposit_calculation: DepositCalculationRead
    total_value: Decimal

    class Config:
        from_attributes = True


# ---------- PANIER (montants en cents) ----------
class CartLineRead(BaseModel):
    product_id: int
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    moq: int | None
    moq_compliant: bool

    class Config:
        from_attributes = True


class CartTotalsRead(BaseModel):
    items: list[CartLineRead]
    subtotal_cents: int
    deposit_percentage: Decimal
    deposit_cents: int
    balance_due_cents: int
    total_cents: int

    class Config:
        from_attributes = True


class MOQViolationRead(BaseModel):
    index: int
    quantity: int
    moq: int

    class Config:
        from_attributes = True


class MOQCheckRead(BaseModel):
    is_valid: bool
    violations: list[MOQViolationRead]

    class Config:
        from_attributes = True


class CartCheckRead(BaseModel):
    totals: CartTotalsRead
    moq: MOQCheckRead
