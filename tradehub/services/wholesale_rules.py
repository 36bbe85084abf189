from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from tradehub.app.db.models.models_v1 import Product, WholesaleInvitation, WholesaleProduct
from tradehub.services.errors import NotFoundError
from tradehub.services.money import format_currency, round2, to_decimal

logger = logging.getLogger(__name__)


# Conditions par défaut quand l'invitation ne les surcharge pas
DEFAULT_ALLOWED_PAYMENT_TERMS = ["Net 30", "Net 60", "Net 90", "Immediate"]
DEFAULT_MINIMUM_ORDER_VALUE = Decimal("1000")
DEFAULT_DEPOSIT_PERCENTAGE = Decimal("30")

IMMEDIATE = "Immediate"
_NET_TERM = re.compile(r"^Net (\d+)$")


# ---------- RESULTS ----------
@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class WholesaleTerms:
    allowed_payment_terms: list[str]
    minimum_order_value: Decimal
    deposit_percentage: Decimal


@dataclass(frozen=True)
class DepositCalculation:
    order_value: Decimal
    deposit_percentage: Decimal
    deposit_amount: Decimal
    balance_amount: Decimal


@dataclass(frozen=True)
class BalanceCalculation:
    order_value: Decimal
    deposit_paid: Decimal
    balance_remaining: Decimal
    balance_percentage: Decimal


@dataclass(frozen=True)
class PaymentTermsValidation:
    valid: bool
    allowed_terms: list[str]
    requested_term: str
    error: str | None = None


@dataclass(frozen=True)
class MOQFailure:
    product_id: int
    product_name: str
    required_quantity: int
    provided_quantity: int


@dataclass(frozen=True)
class MOQValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    items_failing_moq: list[MOQFailure] = field(default_factory=list)


@dataclass(frozen=True)
class MinimumValueValidation:
    met: bool
    minimum_value: Decimal
    current_value: Decimal
    shortfall: Decimal


@dataclass(frozen=True)
class WholesalePricing:
    product_id: int
    base_price: Decimal
    wholesale_price: Decimal
    discount: Decimal
    quantity: int
    total: Decimal


@dataclass(frozen=True)
class WholesaleOrderValidation:
    valid: bool
    errors: list[str]
    warnings: list[str]
    moq_validation: MOQValidationResult
    payment_terms_validation: PaymentTermsValidation
    minimum_value_validation: MinimumValueValidation
    deposit_calculation: DepositCalculation
    total_value: Decimal


# ---------- PURE CALCULATORS ----------
def calculate_deposit(order_value, deposit_percentage) -> DepositCalculation:
    value = to_decimal(order_value)
    pct = to_decimal(deposit_percentage)

    if value < 0:
        raise ValueError("Order value cannot be negative")
    if pct < 0 or pct > 100:
        raise ValueError("Deposit percentage must be between 0 and 100")

    deposit = round2(value * pct / 100)
    # le solde est pris sur la valeur arrondie : deposit + balance == order_value
    balance = round2(value) - deposit

    return DepositCalculation(
        order_value=value,
        deposit_percentage=pct,
        deposit_amount=deposit,
        balance_amount=balance,
    )


def calculate_balance(order_value, deposit_paid) -> BalanceCalculation:
    value = to_decimal(order_value)
    paid = to_decimal(deposit_paid)

    if value < 0 or paid < 0:
        raise ValueError("Values cannot be negative")
    if paid > value:
        raise ValueError("Deposit paid cannot exceed order value")

    remaining = value - paid
    pct = remaining / value * 100 if value > 0 else Decimal("0")

    return BalanceCalculation(
        order_value=value,
        deposit_paid=paid,
        balance_remaining=round2(remaining),
        balance_percentage=round2(pct),
    )


def payment_term_days(payment_terms: str) -> int:
    if payment_terms == IMMEDIATE:
        return 0
    m = _NET_TERM.match(payment_terms or "")
    if not m or int(m.group(1)) <= 0:
        raise ValueError(f"Unknown payment terms: {payment_terms}")
    return int(m.group(1))


def calculate_payment_due_date(order_date: date | datetime, payment_terms: str) -> date | datetime:
    """
    Échéance de paiement.

    "Net N" ajoute N jours, "Immediate" renvoie la date de commande.
    Accepte date ou datetime, renvoie le même type.
    """
    return order_date + timedelta(days=payment_term_days(payment_terms))


def resolve_wholesale_terms(raw: dict[str, Any] | None) -> WholesaleTerms:
    """
    Fusionne les conditions vendeur (JSON de l'invitation) avec les défauts.
    Chaque clé est reprise seulement si son type est exploitable.
    """
    raw = raw if isinstance(raw, dict) else {}

    allowed = raw.get("allowed_payment_terms")
    if not (isinstance(allowed, list) and all(isinstance(t, str) for t in allowed)):
        allowed = list(DEFAULT_ALLOWED_PAYMENT_TERMS)

    minimum = _numeric_term(raw.get("minimum_order_value"), DEFAULT_MINIMUM_ORDER_VALUE)
    deposit = _numeric_term(raw.get("deposit_percentage"), DEFAULT_DEPOSIT_PERCENTAGE)

    return WholesaleTerms(
        allowed_payment_terms=list(allowed),
        minimum_order_value=minimum,
        deposit_percentage=deposit,
    )


def _numeric_term(value, default: Decimal) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    try:
        return to_decimal(value)
    except ValueError:
        logger.warning("Ignoring non numeric wholesale term %r", value)
        return default


# ---------- DB BACKED RULES ----------
def get_invitation(db: Session, invitation_id: int) -> WholesaleInvitation:
    invitation = db.get(WholesaleInvitation, invitation_id)
    if not invitation:
        raise NotFoundError("Wholesale invitation not found")
    return invitation


def _wholesale_products_by_id(
    db: Session,
    *,
    seller_id: int,
    product_ids: Iterable[int],
) -> dict[int, WholesaleProduct]:
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}
    rows = (
        db.execute(
            select(WholesaleProduct)
            .where(WholesaleProduct.seller_id == seller_id)
            .where(WholesaleProduct.product_id.in_(ids))
            .where(WholesaleProduct.active.is_(True))
        )
        .scalars()
        .all()
    )
    return {int(wp.product_id): wp for wp in rows}


def _check_payment_terms(terms: WholesaleTerms, payment_term: str) -> PaymentTermsValidation:
    valid = payment_term in terms.allowed_payment_terms
    return PaymentTermsValidation(
        valid=valid,
        allowed_terms=list(terms.allowed_payment_terms),
        requested_term=payment_term,
        error=None if valid else f"Payment term '{payment_term}' is not allowed",
    )


def _check_moq(
    items: Sequence[OrderItem],
    catalog: dict[int, WholesaleProduct],
    *,
    missing_message: str,
) -> MOQValidationResult:
    errors: list[str] = []
    failing: list[MOQFailure] = []

    for item in items:
        wp = catalog.get(int(item.product_id))
        if not wp:
            errors.append(missing_message.format(product_id=item.product_id))
            continue

        required = wp.moq or 1
        if item.quantity < required:
            errors.append(
                f"{wp.name} requires minimum quantity of {required}, but only {item.quantity} provided"
            )
            failing.append(
                MOQFailure(
                    product_id=int(item.product_id),
                    product_name=wp.name,
                    required_quantity=required,
                    provided_quantity=item.quantity,
                )
            )

    return MOQValidationResult(valid=not errors, errors=errors, items_failing_moq=failing)


def _check_minimum_value(terms: WholesaleTerms, order_value: Decimal) -> MinimumValueValidation:
    met = order_value >= terms.minimum_order_value
    shortfall = Decimal("0") if met else terms.minimum_order_value - order_value
    return MinimumValueValidation(
        met=met,
        minimum_value=terms.minimum_order_value,
        current_value=order_value,
        shortfall=round2(shortfall),
    )


def validate_payment_terms(db: Session, *, invitation_id: int, payment_term: str) -> PaymentTermsValidation:
    invitation = get_invitation(db, invitation_id)
    return _check_payment_terms(resolve_wholesale_terms(invitation.wholesale_terms), payment_term)


def validate_wholesale_moq(db: Session, *, invitation_id: int, items: Sequence[OrderItem]) -> MOQValidationResult:
    invitation = get_invitation(db, invitation_id)
    catalog = _wholesale_products_by_id(
        db,
        seller_id=invitation.seller_id,
        product_ids=[it.product_id for it in items],
    )
    return _check_moq(
        items,
        catalog,
        missing_message="Wholesale product {product_id} not found for this seller",
    )


def validate_minimum_order_value(db: Session, *, invitation_id: int, order_value) -> MinimumValueValidation:
    invitation = get_invitation(db, invitation_id)
    return _check_minimum_value(resolve_wholesale_terms(invitation.wholesale_terms), to_decimal(order_value))


def get_wholesale_pricing(db: Session, *, invitation_id: int, product_id: int, quantity: int) -> WholesalePricing:
    invitation = get_invitation(db, invitation_id)

    wp = (
        db.execute(
            select(WholesaleProduct)
            .where(WholesaleProduct.seller_id == invitation.seller_id)
            .where(WholesaleProduct.product_id == product_id)
        )
        .scalars()
        .first()
    )
    if not wp:
        raise NotFoundError("Wholesale product not found for this seller")

    base = to_decimal(wp.rrp)
    price = to_decimal(wp.wholesale_price)
    discount = (base - price) / base * 100 if base > 0 else Decimal("0")

    return WholesalePricing(
        product_id=int(product_id),
        base_price=base,
        wholesale_price=price,
        discount=round2(discount),
        quantity=quantity,
        total=round2(price * quantity),
    )


def _empty_validation(errors: list[str], payment_terms: str) -> WholesaleOrderValidation:
    zero = Decimal("0")
    return WholesaleOrderValidation(
        valid=False,
        errors=errors,
        warnings=[],
        moq_validation=MOQValidationResult(valid=False, errors=list(errors)),
        payment_terms_validation=PaymentTermsValidation(valid=False, allowed_terms=[], requested_term=payment_terms),
        minimum_value_validation=MinimumValueValidation(met=False, minimum_value=zero, current_value=zero, shortfall=zero),
        deposit_calculation=DepositCalculation(
            order_value=zero,
            deposit_percentage=zero,
            deposit_amount=zero,
            balance_amount=zero,
        ),
        total_value=zero,
    )


def validate_wholesale_order(
    db: Session,
    *,
    invitation_id: int,
    items: Sequence[OrderItem],
    payment_terms: str,
    currency: str = "USD",
) -> WholesaleOrderValidation:
    """
    Validation complète d'une commande wholesale.

    Ordre des règles :
        1. produits connus du catalogue wholesale du vendeur (sinon arrêt)
        2. MOQ par ligne
        3. condition de paiement dans la liste autorisée
        4. valeur minimum de commande
        5. calcul acompte / solde
    Les quantités au-delà du stock disponible ne bloquent pas : warning.
    """
    invitation = get_invitation(db, invitation_id)
    terms = resolve_wholesale_terms(invitation.wholesale_terms)

    if not items:
        return _empty_validation(["Order must contain at least one item"], payment_terms)

    bad_qty = [f"Quantity for product {it.product_id} must be greater than 0" for it in items if it.quantity <= 0]
    if bad_qty:
        return _empty_validation(bad_qty, payment_terms)

    catalog = _wholesale_products_by_id(
        db,
        seller_id=invitation.seller_id,
        product_ids=[it.product_id for it in items],
    )

    pricing_errors = [
        f"Product {it.product_id} is not available for wholesale"
        for it in items
        if int(it.product_id) not in catalog
    ]
    if pricing_errors:
        return _empty_validation(pricing_errors, payment_terms)

    total_value = sum(
        (to_decimal(catalog[int(it.product_id)].wholesale_price) * it.quantity for it in items),
        Decimal("0"),
    )

    errors: list[str] = []
    warnings: list[str] = []

    moq_validation = _check_moq(
        items,
        catalog,
        missing_message="Product {product_id} not found in wholesale catalog",
    )
    errors.extend(moq_validation.errors)

    terms_validation = _check_payment_terms(terms, payment_terms)
    if not terms_validation.valid:
        errors.append(terms_validation.error)

    minimum_validation = _check_minimum_value(terms, total_value)
    if not minimum_validation.met:
        errors.append(
            "Minimum order value not met. "
            f"Required: {format_currency(minimum_validation.minimum_value, currency)}, "
            f"Current: {format_currency(total_value, currency)}, "
            f"Shortfall: {format_currency(minimum_validation.shortfall, currency)}"
        )

    stock = {
        int(p.id): p
        for p in db.execute(select(Product).where(Product.id.in_(list(catalog)))).scalars().all()
    }
    for it in items:
        product = stock.get(int(it.product_id))
        if product is not None and it.quantity > product.stock:
            warnings.append(
                f"{catalog[int(it.product_id)].name}: requested {it.quantity} exceeds available stock {product.stock}"
            )

    deposit = calculate_deposit(total_value, terms.deposit_percentage)

    if errors:
        logger.info("Wholesale order rejected for invitation %s: %s", invitation_id, "; ".join(errors))

    return WholesaleOrderValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        moq_validation=moq_validation,
        payment_terms_validation=terms_validation,
        minimum_value_validation=minimum_validation,
        deposit_calculation=deposit,
        total_value=round2(total_value),
    )
