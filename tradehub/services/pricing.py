"""
Pricing service.

Calculs sans état (aperçus, devis, panier wholesale). Aucun accès DB ici :
les services quotations / wholesale appellent ces fonctions puis persistent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from tradehub.services.money import (
    from_minor_units,
    round_half_up,
    to_decimal,
    to_minor_units,
)

DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE = Decimal("50")


@dataclass(frozen=True)
class LineItemInput:
    description: str
    unit_price: Decimal
    quantity: int
    discount: Decimal = Decimal("0")
    product_id: int | None = None


@dataclass(frozen=True)
class PricedLine:
    description: str
    unit_price: Decimal
    quantity: int
    discount: Decimal
    line_total: Decimal
    product_id: int | None = None


@dataclass(frozen=True)
class QuotationTotals:
    currency: str
    line_items: list[PricedLine]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total: Decimal
    deposit_percentage: Decimal
    deposit_amount: Decimal
    balance_amount: Decimal


@dataclass(frozen=True)
class CartItemInput:
    product_id: int
    quantity: int
    unit_price_cents: int
    moq: int | None = None


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    moq: int | None
    moq_compliant: bool


@dataclass(frozen=True)
class CartTotals:
    items: list[CartLine]
    subtotal_cents: int
    deposit_percentage: Decimal
    deposit_cents: int
    balance_due_cents: int
    total_cents: int


@dataclass(frozen=True)
class MOQViolation:
    index: int
    quantity: int
    moq: int


@dataclass(frozen=True)
class MOQCheck:
    is_valid: bool
    violations: list[MOQViolation] = field(default_factory=list)


def _check_percentage(value) -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > 100:
        raise ValueError("Deposit percentage must be between 0 and 100")
    return pct


def calculate_quotation_totals(
    line_items: Sequence[LineItemInput],
    *,
    deposit_percentage=DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
    tax_rate=0,
    shipping_amount=0,
    currency: str = "USD",
) -> QuotationTotals:
    """
    Totaux d'un devis, calculés en unités mineures de la devise du devis.

        line_total = unit_price * quantity - discount
        tax        = round(subtotal * tax_rate)
        total      = subtotal + tax + shipping
        deposit    = round(total * pct / 100)
        balance    = total - deposit

    Invariant : deposit + balance == total, au centime près.
    """
    pct = _check_percentage(deposit_percentage)
    rate = to_decimal(tax_rate)
    if rate < 0:
        raise ValueError("Tax rate cannot be negative")
    shipping = to_decimal(shipping_amount)
    if shipping < 0:
        raise ValueError("Shipping amount cannot be negative")

    priced: list[PricedLine] = []
    subtotal_units = 0
    for idx, item in enumerate(line_items, start=1):
        if item.quantity <= 0:
            raise ValueError(f"Line {idx}: quantity must be greater than 0")
        unit_price = to_decimal(item.unit_price)
        if unit_price < 0:
            raise ValueError(f"Line {idx}: unit price cannot be negative")

        gross_units = to_minor_units(unit_price, currency) * item.quantity
        discount_units = to_minor_units(item.discount or 0, currency)
        if discount_units < 0 or discount_units > gross_units:
            raise ValueError(f"Line {idx}: discount must be between 0 and the line amount")

        line_units = gross_units - discount_units
        subtotal_units += line_units
        priced.append(
            PricedLine(
                description=item.description,
                unit_price=unit_price,
                quantity=item.quantity,
                discount=from_minor_units(discount_units, currency),
                line_total=from_minor_units(line_units, currency),
                product_id=item.product_id,
            )
        )

    tax_units = round_half_up(subtotal_units * rate)
    shipping_units = to_minor_units(shipping, currency)
    total_units = subtotal_units + tax_units + shipping_units

    deposit_units = round_half_up(total_units * pct / 100)
    balance_units = total_units - deposit_units

    return QuotationTotals(
        currency=currency,
        line_items=priced,
        subtotal=from_minor_units(subtotal_units, currency),
        tax_rate=rate,
        tax_amount=from_minor_units(tax_units, currency),
        shipping_amount=from_minor_units(shipping_units, currency),
        total=from_minor_units(total_units, currency),
        deposit_percentage=pct,
        deposit_amount=from_minor_units(deposit_units, currency),
        balance_amount=from_minor_units(balance_units, currency),
    )


def calculate_wholesale_cart_totals(
    items: Sequence[CartItemInput],
    *,
    deposit_percentage=DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
) -> CartTotals:
    pct = _check_percentage(deposit_percentage)

    lines = [
        CartLine(
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price_cents=it.unit_price_cents,
            line_total_cents=it.unit_price_cents * it.quantity,
            moq=it.moq,
            moq_compliant=not it.moq or it.quantity >= it.moq,
        )
        for it in items
    ]
    subtotal_cents = sum(l.line_total_cents for l in lines)
    deposit_cents = round_half_up(Decimal(subtotal_cents) * pct / 100)

    return CartTotals(
        items=lines,
        subtotal_cents=subtotal_cents,
        deposit_percentage=pct,
        deposit_cents=deposit_cents,
        balance_due_cents=subtotal_cents - deposit_cents,
        total_cents=subtotal_cents,
    )


def validate_moq(items: Sequence[CartItemInput]) -> MOQCheck:
    violations = [
        MOQViolation(index=idx, quantity=it.quantity, moq=it.moq)
        for idx, it in enumerate(items)
        if it.moq and it.quantity < it.moq
    ]
    return MOQCheck(is_valid=not violations, violations=violations)
