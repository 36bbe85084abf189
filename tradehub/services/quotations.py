"""
Trade quotations service.

Cycle de vie d'un devis international :

    draft -> sent -> viewed -> accepted -> deposit_paid -> balance_due
          -> fully_paid -> completed
    (+ cancelled / expired)

Chaque transition passe par ``_transition`` (table ALLOWED_TRANSITIONS) et
laisse un événement dans trade_quotation_events. Les montants sont toujours
recalculés côté serveur via ``tradehub.services.pricing``.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tradehub.app.db.base import utcnow
from tradehub.app.db.models.core_types import (
    Incoterm,
    PaymentScheduleStatus,
    PaymentType,
    QuotationStatus,
)
from tradehub.app.db.models.models_v1 import (
    TradePaymentSchedule,
    TradeQuotation,
    TradeQuotationEvent,
    TradeQuotationItem,
)
from tradehub.services.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from tradehub.services.money import is_supported_currency, to_decimal, to_minor_units
from tradehub.services.payments import DEAD_INTENT_STATUSES, PaymentGateway, PaymentIntent
from tradehub.services.pricing import (
    DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
    LineItemInput,
    QuotationTotals,
    calculate_quotation_totals,
)
from tradehub.services.wholesale_rules import calculate_payment_due_date, payment_term_days

logger = logging.getLogger(__name__)

S = QuotationStatus

ALLOWED_TRANSITIONS: dict[QuotationStatus, set[QuotationStatus]] = {
    S.draft: {S.sent, S.cancelled, S.expired},
    S.sent: {S.viewed, S.accepted, S.cancelled, S.expired},
    S.viewed: {S.accepted, S.cancelled, S.expired},
    S.accepted: {S.deposit_paid, S.cancelled},
    S.deposit_paid: {S.balance_due, S.fully_paid, S.cancelled},
    S.balance_due: {S.fully_paid, S.cancelled},
    S.fully_paid: {S.completed},
    S.completed: set(),
    S.cancelled: set(),
    S.expired: set(),
}

EDITABLE_STATUSES = {S.draft}
EXPIRABLE_STATUSES = (S.draft, S.sent, S.viewed)
ACCEPTABLE_STATUSES = {S.sent, S.viewed}

# champs modifiables sans recalcul des montants
_PLAIN_FIELDS = (
    "buyer_email",
    "valid_until",
    "delivery_terms",
    "payment_terms",
    "data_sheet_url",
    "terms_and_conditions_url",
)
_PRICING_FIELDS = ("items", "deposit_percentage", "tax_rate", "shipping_amount")


def _generate_quotation_number() -> str:
    return f"QT-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()[:7]}"


def _check_currency(currency: str) -> str:
    code = (currency or "").upper()
    if not is_supported_currency(code):
        raise ValueError(f"Unsupported currency: {currency}")
    return code


def _check_payment_terms(payment_terms: str | None) -> None:
    if payment_terms:
        payment_term_days(payment_terms)


def _record_event(
    db: Session,
    q: TradeQuotation,
    event_type: str,
    *,
    performed_by: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    db.add(
        TradeQuotationEvent(
            quotation_id=q.id,
            event_type=event_type,
            performed_by=performed_by,
            payload=payload,
        )
    )


def _transition(
    db: Session,
    q: TradeQuotation,
    new_status: QuotationStatus,
    *,
    performed_by: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    allowed = ALLOWED_TRANSITIONS.get(q.status, set())
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"Cannot move quotation from {q.status.value} to {new_status.value}",
            details={"status": q.status.value, "allowed": sorted(s.value for s in allowed)},
        )
    previous = q.status
    q.status = new_status
    _record_event(db, q, new_status.value, performed_by=performed_by, payload=payload)
    logger.info("Quotation %s: %s -> %s", q.quotation_number, previous.value, new_status.value)


def _replace_items(db: Session, q: TradeQuotation, totals: QuotationTotals) -> None:
    q.items.clear()
    db.flush()
    for idx, line in enumerate(totals.line_items, start=1):
        q.items.append(
            TradeQuotationItem(
                line_number=idx,
                description=line.description,
                product_id=line.product_id,
                unit_price=line.unit_price,
                quantity=line.quantity,
                discount=line.discount,
                line_total=line.line_total,
            )
        )


def _apply_totals(q: TradeQuotation, totals: QuotationTotals) -> None:
    q.subtotal = totals.subtotal
    q.tax_rate = totals.tax_rate
    q.tax_amount = totals.tax_amount
    q.shipping_amount = totals.shipping_amount
    q.total = totals.total
    q.deposit_percentage = totals.deposit_percentage
    q.deposit_amount = totals.deposit_amount
    q.balance_amount = totals.balance_amount


def _items_as_input(q: TradeQuotation) -> list[LineItemInput]:
    return [
        LineItemInput(
            description=it.description,
            unit_price=to_decimal(it.unit_price),
            quantity=it.quantity,
            discount=to_decimal(it.discount or 0),
            product_id=it.product_id,
        )
        for it in sorted(q.items, key=lambda i: i.line_number)
    ]


# ---------- SELLER SIDE ----------
def create_quotation(
    db: Session,
    *,
    seller_id: int,
    buyer_email: str,
    items: Sequence[LineItemInput],
    currency: str = "USD",
    buyer_id: int | None = None,
    deposit_percentage=DEFAULT_QUOTATION_DEPOSIT_PERCENTAGE,
    tax_rate=0,
    shipping_amount=0,
    valid_until: date | None = None,
    delivery_terms: Incoterm | None = None,
    payment_terms: str | None = None,
    data_sheet_url: str | None = None,
    terms_and_conditions_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> TradeQuotation:
    currency = _check_currency(currency)
    _check_payment_terms(payment_terms)

    totals = calculate_quotation_totals(
        items,
        deposit_percentage=deposit_percentage,
        tax_rate=tax_rate,
        shipping_amount=shipping_amount,
        currency=currency,
    )

    q = TradeQuotation(
        quotation_number=_generate_quotation_number(),
        seller_id=seller_id,
        buyer_email=buyer_email,
        buyer_id=buyer_id,
        view_token=secrets.token_urlsafe(32),
        status=S.draft,
        currency=currency,
        valid_until=valid_until,
        delivery_terms=delivery_terms,
        payment_terms=payment_terms,
        data_sheet_url=data_sheet_url,
        terms_and_conditions_url=terms_and_conditions_url,
        meta=metadata,
    )
    _apply_totals(q, totals)
    db.add(q)
    db.flush()  # q.id

    _replace_items(db, q, totals)
    _record_event(
        db,
        q,
        "created",
        performed_by=str(seller_id),
        payload={"quotation_number": q.quotation_number},
    )
    db.commit()
    db.refresh(q)

    logger.info("Quotation %s created by seller %s (total %s %s)", q.quotation_number, seller_id, q.total, currency)
    return q


def list_quotations(
    db: Session,
    *,
    seller_id: int,
    status: QuotationStatus | None = None,
) -> list[TradeQuotation]:
    stmt = select(TradeQuotation).where(TradeQuotation.seller_id == seller_id)
    if status is not None:
        stmt = stmt.where(TradeQuotation.status == status)
    stmt = stmt.order_by(TradeQuotation.created_at.desc(), TradeQuotation.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_quotation(db: Session, *, quotation_id: int, seller_id: int) -> TradeQuotation:
    q = db.get(TradeQuotation, quotation_id)
    # même réponse pour "inexistant" et "autre vendeur" : pas d'énumération
    if not q or q.seller_id != seller_id:
        raise NotFoundError("Quotation not found")
    return q


def _owned_quotation(db: Session, quotation_id: int, seller_id: int) -> TradeQuotation:
    q = db.get(TradeQuotation, quotation_id)
    if not q:
        raise NotFoundError("Quotation not found")
    if q.seller_id != seller_id:
        raise ForbiddenError("Unauthorized")
    return q


def update_quotation(
    db: Session,
    *,
    quotation_id: int,
    seller_id: int,
    changes: dict[str, Any],
) -> TradeQuotation:
    """
    Mise à jour partielle d'un devis brouillon.

    ``changes`` ne contient que les champs fournis par l'appelant. Les montants
    sont recalculés dès qu'un champ de prix change ; sinon on garde les
    lignes et totaux existants.
    """
    q = _owned_quotation(db, quotation_id, seller_id)
    if q.status not in EDITABLE_STATUSES:
        raise ConflictError(f"Quotation can no longer be edited (status {q.status.value})")

    if "currency" in changes and changes["currency"] is not None:
        new_currency = _check_currency(changes["currency"])
        if new_currency != q.currency:
            q.currency = new_currency
            changes.setdefault("items", None)
    if "payment_terms" in changes:
        _check_payment_terms(changes["payment_terms"])

    for name in _PLAIN_FIELDS:
        if name in changes:
            if name == "buyer_email" and not changes[name]:
                raise ValueError("Buyer email is required")
            setattr(q, name, changes[name])
    if "metadata" in changes:
        q.meta = changes["metadata"]

    if any(name in changes for name in _PRICING_FIELDS):
        items = changes.get("items")
        items_changed = items is not None
        if not items_changed:
            items = _items_as_input(q)

        pct = changes.get("deposit_percentage")
        rate = changes.get("tax_rate")
        shipping = changes.get("shipping_amount")
        totals = calculate_quotation_totals(
            items,
            deposit_percentage=q.deposit_percentage if pct is None else pct,
            tax_rate=q.tax_rate if rate is None else rate,
            shipping_amount=q.shipping_amount if shipping is None else shipping,
            currency=q.currency,
        )
        _apply_totals(q, totals)
        # toujours réécrire les lignes : arrondis dépendants de la devise
        _replace_items(db, q, totals)

    _record_event(
        db,
        q,
        "updated",
        performed_by=str(seller_id),
        payload={"fields": sorted(k for k in changes if k != "items" or changes[k] is not None)},
    )
    db.commit()
    db.refresh(q)
    return q


def send_quotation(db: Session, *, quotation_id: int, seller_id: int) -> TradeQuotation:
    q = _owned_quotation(db, quotation_id, seller_id)
    if not q.items:
        raise ConflictError("Cannot send a quotation without line items")
    if q.valid_until and q.valid_until < utcnow().date():
        raise ConflictError("Quotation validity date is in the past")

    _transition(db, q, S.sent, performed_by=str(seller_id), payload={"buyer_email": q.buyer_email})
    q.sent_at = utcnow()
    db.commit()
    db.refresh(q)
    return q


def cancel_quotation(
    db: Session,
    *,
    quotation_id: int,
    seller_id: int,
    reason: str | None = None,
) -> TradeQuotation:
    q = _owned_quotation(db, quotation_id, seller_id)
    _transition(db, q, S.cancelled, performed_by=str(seller_id), payload={"reason": reason} if reason else None)

    db.execute(
        update(TradePaymentSchedule)
        .where(TradePaymentSchedule.quotation_id == q.id)
        .where(TradePaymentSchedule.status.in_([PaymentScheduleStatus.pending, PaymentScheduleStatus.processing]))
        .values(status=PaymentScheduleStatus.cancelled, updated_at=utcnow())
    )
    db.commit()
    db.refresh(q)
    return q


def complete_quotation(db: Session, *, quotation_id: int, seller_id: int) -> TradeQuotation:
    q = _owned_quotation(db, quotation_id, seller_id)
    _transition(db, q, S.completed, performed_by=str(seller_id))
    db.commit()
    db.refresh(q)
    return q


def expire_stale_quotations(db: Session, *, today: date | None = None) -> int:
    """Passe en ``expired`` les devis non acceptés dont la validité est dépassée."""
    today = today or utcnow().date()
    rows = (
        db.execute(
            select(TradeQuotation)
            .where(TradeQuotation.status.in_(EXPIRABLE_STATUSES))
            .where(TradeQuotation.valid_until.is_not(None))
            .where(TradeQuotation.valid_until < today)
        )
        .scalars()
        .all()
    )
    for q in rows:
        _transition(db, q, S.expired, performed_by="system", payload={"valid_until": q.valid_until.isoformat()})
    db.commit()
    if rows:
        logger.info("Expired %d stale quotation(s)", len(rows))
    return len(rows)


# ---------- BUYER SIDE (token link) ----------
def get_quotation_by_token(db: Session, *, token: str) -> TradeQuotation:
    q = db.execute(select(TradeQuotation).where(TradeQuotation.view_token == token)).scalar_one_or_none()
    if not q or q.status == S.draft:
        raise NotFoundError("Quotation not found")
    return q


def mark_viewed(db: Session, *, token: str) -> TradeQuotation:
    q = get_quotation_by_token(db, token=token)
    if q.status == S.sent:
        _transition(db, q, S.viewed, performed_by=q.buyer_email)
        q.viewed_at = utcnow()
        db.commit()
        db.refresh(q)
    return q


def _is_past_validity(q: TradeQuotation, today: date) -> bool:
    return q.valid_until is not None and q.valid_until < today


def accept_quotation(
    db: Session,
    *,
    token: str,
    buyer_id: int | None = None,
    buyer_info: dict[str, Any] | None = None,
) -> TradeQuotation:
    """
    Acceptation par l'acheteur.

    Crée les deux échéanciers (acompte, solde) une seule fois. Une phase à
    montant nul est soldée immédiatement, ce qui peut enchaîner
    accepted -> deposit_paid -> fully_paid.
    """
    q = get_quotation_by_token(db, token=token)
    today = utcnow().date()

    if q.status in EXPIRABLE_STATUSES and _is_past_validity(q, today):
        _transition(db, q, S.expired, performed_by="system", payload={"valid_until": q.valid_until.isoformat()})
        db.commit()
        raise ExpiredError("Quotation has expired")
    if q.status not in ACCEPTABLE_STATUSES:
        raise InvalidTransitionError(f"Quotation cannot be accepted (status {q.status.value})")

    performed_by = str(buyer_id) if buyer_id else q.buyer_email
    _transition(db, q, S.accepted, performed_by=performed_by, payload=buyer_info or None)
    q.accepted_at = utcnow()
    if buyer_id:
        q.buyer_id = buyer_id

    schedules = {p.payment_type: p for p in q.payments}
    if PaymentType.deposit not in schedules:
        balance_due = calculate_payment_due_date(today, q.payment_terms) if q.payment_terms else None
        q.payments.append(
            TradePaymentSchedule(
                payment_type=PaymentType.deposit,
                amount=q.deposit_amount,
                due_date=today,
                status=PaymentScheduleStatus.pending,
            )
        )
        q.payments.append(
            TradePaymentSchedule(
                payment_type=PaymentType.balance,
                amount=q.balance_amount,
                due_date=balance_due,
                status=PaymentScheduleStatus.pending,
            )
        )
        db.flush()

    _settle_zero_amount_phases(db, q)
    db.commit()
    db.refresh(q)
    return q


def _schedule(q: TradeQuotation, payment_type: PaymentType) -> TradePaymentSchedule:
    for p in q.payments:
        if p.payment_type == payment_type:
            return p
    raise NotFoundError(f"No {payment_type.value} payment scheduled for this quotation")


def _settle_zero_amount_phases(db: Session, q: TradeQuotation) -> None:
    deposit = _schedule(q, PaymentType.deposit)
    balance = _schedule(q, PaymentType.balance)

    if q.status == S.accepted and to_decimal(deposit.amount) == 0:
        _mark_paid(deposit, None)
        _transition(db, q, S.deposit_paid, performed_by="system", payload={"amount": "0"})

    if q.status in (S.deposit_paid, S.balance_due) and to_decimal(balance.amount) == 0:
        _mark_paid(balance, None)
        _transition(db, q, S.fully_paid, performed_by="system", payload={"amount": "0"})


def _mark_paid(schedule: TradePaymentSchedule, intent_id: str | None) -> None:
    schedule.status = PaymentScheduleStatus.paid
    schedule.paid_at = utcnow()
    if intent_id:
        schedule.stripe_payment_intent_id = intent_id


def create_payment_intent(
    db: Session,
    gateway: PaymentGateway,
    *,
    token: str,
    payment_type: PaymentType,
    idempotency_key: str | None = None,
) -> PaymentIntent:
    """
    Un PaymentIntent par phase : acompte depuis ``accepted``, solde depuis
    ``deposit_paid`` (le devis passe alors en ``balance_due``) ou
    ``balance_due``.
    """
    q = get_quotation_by_token(db, token=token)

    if payment_type == PaymentType.deposit:
        allowed = {S.accepted}
    else:
        allowed = {S.deposit_paid, S.balance_due}
    if q.status not in allowed:
        raise InvalidTransitionError(
            f"Cannot collect {payment_type.value} payment while quotation is {q.status.value}"
        )

    schedule = _schedule(q, payment_type)
    if schedule.status == PaymentScheduleStatus.paid:
        raise ConflictError(f"{payment_type.value.capitalize()} already paid")

    # un seul intent vivant par phase : le webhook ne reconnaît que celui-là
    if schedule.status == PaymentScheduleStatus.processing and schedule.stripe_payment_intent_id:
        existing = gateway.retrieve_payment_intent(schedule.stripe_payment_intent_id)
        if existing.status not in DEAD_INTENT_STATUSES:
            logger.info(
                "Reusing payment intent %s for quotation %s (%s)",
                existing.id,
                q.quotation_number,
                payment_type.value,
            )
            return existing
        logger.warning("Payment intent %s was %s, creating a new one", existing.id, existing.status)

    amount_minor = to_minor_units(schedule.amount, q.currency)
    intent = gateway.create_payment_intent(
        amount=amount_minor,
        currency=q.currency,
        metadata={
            "quotation_id": str(q.id),
            "quotation_number": q.quotation_number,
            "payment_type": payment_type.value,
        },
        idempotency_key=idempotency_key or f"quotation-{q.id}-{payment_type.value}",
    )

    schedule.stripe_payment_intent_id = intent.id
    schedule.status = PaymentScheduleStatus.processing

    if payment_type == PaymentType.balance and q.status == S.deposit_paid:
        _transition(db, q, S.balance_due, performed_by=q.buyer_email, payload={"payment_intent_id": intent.id})
    else:
        _record_event(
            db,
            q,
            "payment_intent_created",
            performed_by=q.buyer_email,
            payload={"payment_type": payment_type.value, "payment_intent_id": intent.id},
        )
    db.commit()
    return intent


def record_payment_succeeded(
    db: Session,
    *,
    quotation_id: int,
    payment_type: PaymentType,
    payment_intent_id: str,
) -> TradeQuotation:
    """Confirmation processeur (webhook). Idempotent : un rejeu ne change rien."""
    q = db.get(TradeQuotation, quotation_id)
    if not q:
        raise NotFoundError("Quotation not found")

    schedule = _schedule(q, payment_type)
    if schedule.status == PaymentScheduleStatus.paid:
        return q
    if schedule.stripe_payment_intent_id and schedule.stripe_payment_intent_id != payment_intent_id:
        raise ConflictError("Payment intent does not match the scheduled payment")

    if payment_type == PaymentType.deposit:
        _transition(db, q, S.deposit_paid, performed_by="stripe", payload={"payment_intent_id": payment_intent_id})
        _mark_paid(schedule, payment_intent_id)
        _settle_zero_amount_phases(db, q)
    else:
        _transition(db, q, S.fully_paid, performed_by="stripe", payload={"payment_intent_id": payment_intent_id})
        _mark_paid(schedule, payment_intent_id)

    db.commit()
    db.refresh(q)
    return q


# ---------- READ MODELS ----------
def list_line_items(db: Session, *, quotation_id: int) -> list[TradeQuotationItem]:
    return list(
        db.execute(
            select(TradeQuotationItem)
            .where(TradeQuotationItem.quotation_id == quotation_id)
            .order_by(TradeQuotationItem.line_number.asc())
        )
        .scalars()
        .all()
    )


def list_activities(db: Session, *, quotation_id: int) -> list[TradeQuotationEvent]:
    return list(
        db.execute(
            select(TradeQuotationEvent)
            .where(TradeQuotationEvent.quotation_id == quotation_id)
            .order_by(TradeQuotationEvent.created_at.desc(), TradeQuotationEvent.id.desc())
        )
        .scalars()
        .all()
    )


def list_payments(db: Session, *, quotation_id: int) -> list[TradePaymentSchedule]:
    return list(
        db.execute(
            select(TradePaymentSchedule)
            .where(TradePaymentSchedule.quotation_id == quotation_id)
            .order_by(TradePaymentSchedule.created_at.asc(), TradePaymentSchedule.id.asc())
        )
        .scalars()
        .all()
    )


def amount_outstanding(q: TradeQuotation) -> Decimal:
    return sum(
        (to_decimal(p.amount) for p in q.payments if p.status != PaymentScheduleStatus.paid),
        Decimal("0"),
    )
