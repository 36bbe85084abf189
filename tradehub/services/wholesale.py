"""
Wholesale service.

Invitations vendeur -> acheteur, accès wholesale, commandes B2B.
Les règles (MOQ, conditions de paiement, minimum, acompte) vivent dans
``tradehub.services.wholesale_rules`` ; ce module orchestre et persiste.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import timedelta
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tradehub.app.core.config import get_settings
from tradehub.app.db.base import as_utc, utcnow
from tradehub.app.db.models.core_types import (
    GrantStatus,
    InvitationStatus,
    Role,
    WholesaleOrderStatus,
)
from tradehub.app.db.models.models_v1 import (
    Product,
    User,
    WholesaleAccessGrant,
    WholesaleCart,
    WholesaleInvitation,
    WholesaleOrder,
    WholesaleOrderEvent,
    WholesaleOrderItem,
    WholesaleProduct,
)
from tradehub.services.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    RuleViolationError,
)
from tradehub.services.money import round_half_up, to_minor_units
from tradehub.services.pricing import (
    CartItemInput,
    CartTotals,
    MOQCheck,
    calculate_wholesale_cart_totals,
    validate_moq,
)
from tradehub.services.wholesale_rules import (
    OrderItem,
    calculate_payment_due_date,
    get_invitation,
    resolve_wholesale_terms,
    validate_wholesale_order,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS = "Net 30"

ORDER_PROGRESSION: dict[WholesaleOrderStatus, set[WholesaleOrderStatus]] = {
    WholesaleOrderStatus.pending: {
        WholesaleOrderStatus.deposit_paid,
        WholesaleOrderStatus.paid,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.deposit_paid: {
        WholesaleOrderStatus.awaiting_balance,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.awaiting_balance: {
        WholesaleOrderStatus.paid,
        WholesaleOrderStatus.balance_overdue,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.balance_overdue: {
        WholesaleOrderStatus.paid,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.paid: {
        WholesaleOrderStatus.processing,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.processing: {
        WholesaleOrderStatus.fulfilled,
        WholesaleOrderStatus.cancelled,
    },
    WholesaleOrderStatus.fulfilled: set(),
    WholesaleOrderStatus.cancelled: set(),
}


def _generate_token() -> str:
    return f"whs_{secrets.token_urlsafe(24)}"


def _generate_order_number() -> str:
    return f"WHS-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()[:7]}"


# ---------- INVITATIONS ----------
def create_invitation(
    db: Session,
    *,
    seller_id: int,
    buyer_email: str,
    buyer_name: str | None = None,
    wholesale_terms: dict[str, Any] | None = None,
) -> WholesaleInvitation:
    ttl = get_settings().invitation_ttl_days
    inv = WholesaleInvitation(
        seller_id=seller_id,
        buyer_email=buyer_email,
        buyer_name=buyer_name,
        token=_generate_token(),
        status=InvitationStatus.pending,
        expires_at=utcnow() + timedelta(days=ttl),
        wholesale_terms=wholesale_terms,
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)
    logger.info("Wholesale invitation %s sent by seller %s to %s", inv.id, seller_id, buyer_email)
    return inv


def list_invitations(db: Session, *, seller_id: int) -> list[WholesaleInvitation]:
    return list(
        db.execute(
            select(WholesaleInvitation)
            .where(WholesaleInvitation.seller_id == seller_id)
            .order_by(WholesaleInvitation.created_at.desc(), WholesaleInvitation.id.desc())
        )
        .scalars()
        .all()
    )


def _pending_invitation(db: Session, token: str, *, check_expiry: bool = True) -> WholesaleInvitation:
    inv = db.execute(select(WholesaleInvitation).where(WholesaleInvitation.token == token)).scalar_one_or_none()
    if not inv:
        raise NotFoundError("Invitation not found")
    if inv.status != InvitationStatus.pending:
        raise ConflictError("Invitation has already been processed")
    if check_expiry and inv.expires_at and utcnow() > as_utc(inv.expires_at):
        raise ExpiredError("Invitation has expired")
    return inv


def get_invitation_by_token(db: Session, *, token: str) -> WholesaleInvitation:
    return _pending_invitation(db, token)


def accept_invitation(db: Session, *, token: str, buyer_id: int) -> WholesaleAccessGrant:
    inv = _pending_invitation(db, token)

    existing = db.execute(
        select(WholesaleAccessGrant)
        .where(WholesaleAccessGrant.buyer_id == buyer_id)
        .where(WholesaleAccessGrant.seller_id == inv.seller_id)
    ).scalar_one_or_none()
    if existing and existing.status == GrantStatus.active:
        raise ConflictError("Access already granted")

    inv.status = InvitationStatus.accepted
    inv.accepted_at = utcnow()
    inv.buyer_id = buyer_id

    if existing:
        # accès révoqué puis ré-invité : on réactive avec les nouvelles conditions
        grant = existing
        grant.status = GrantStatus.active
        grant.revoked_at = None
        grant.wholesale_terms = inv.wholesale_terms
    else:
        grant = WholesaleAccessGrant(
            buyer_id=buyer_id,
            seller_id=inv.seller_id,
            status=GrantStatus.active,
            wholesale_terms=inv.wholesale_terms,
        )
        db.add(grant)

    db.commit()
    db.refresh(grant)
    logger.info("Invitation %s accepted by buyer %s", inv.id, buyer_id)
    return grant


def reject_invitation(db: Session, *, token: str) -> bool:
    inv = _pending_invitation(db, token, check_expiry=False)
    inv.status = InvitationStatus.rejected
    inv.rejected_at = utcnow()
    db.commit()
    logger.info("Invitation %s rejected", inv.id)
    return True


def cancel_invitation(db: Session, *, invitation_id: int, seller_id: int) -> WholesaleInvitation:
    inv = db.get(WholesaleInvitation, invitation_id)
    if not inv:
        raise NotFoundError("Invitation not found")
    if inv.seller_id != seller_id:
        raise ForbiddenError("Access denied")
    if inv.status != InvitationStatus.pending:
        raise ConflictError("Only pending invitations can be cancelled")

    inv.status = InvitationStatus.cancelled
    inv.cancelled_at = utcnow()
    db.commit()
    db.refresh(inv)
    logger.info("Invitation %s cancelled by seller %s", inv.id, seller_id)
    return inv


# ---------- ACCESS GRANTS ----------
def _active_grant(db: Session, *, buyer_id: int, seller_id: int) -> WholesaleAccessGrant | None:
    return db.execute(
        select(WholesaleAccessGrant)
        .where(WholesaleAccessGrant.buyer_id == buyer_id)
        .where(WholesaleAccessGrant.seller_id == seller_id)
        .where(WholesaleAccessGrant.status == GrantStatus.active)
    ).scalar_one_or_none()


def check_catalog_access(db: Session, *, seller_id: int, user: User) -> None:
    """Catalogue wholesale d'un vendeur : le vendeur lui-même, un admin ou un acheteur avec accès actif."""
    if user.role == Role.admin or user.id == seller_id:
        return
    if user.role == Role.buyer and _active_grant(db, buyer_id=user.id, seller_id=seller_id):
        return
    raise ForbiddenError("No wholesale access to this seller")


def check_invitation_access(db: Session, *, invitation_id: int, user: User) -> WholesaleInvitation:
    """
    Conditions d'une invitation : lisibles par son vendeur, un admin, ou
    l'acheteur invité une fois son accès actif.
    """
    invitation = get_invitation(db, invitation_id)
    if user.role == Role.admin or user.id == invitation.seller_id:
        return invitation

    invited = invitation.buyer_id == user.id or invitation.buyer_email.lower() == user.email.lower()
    if user.role == Role.buyer and invited and _active_grant(db, buyer_id=user.id, seller_id=invitation.seller_id):
        return invitation
    raise ForbiddenError("No wholesale access to this invitation")


def list_wholesale_buyers(db: Session, *, seller_id: int) -> list[tuple[WholesaleAccessGrant, User]]:
    rows = db.execute(
        select(WholesaleAccessGrant, User)
        .join(User, User.id == WholesaleAccessGrant.buyer_id)
        .where(WholesaleAccessGrant.seller_id == seller_id)
        .where(WholesaleAccessGrant.status == GrantStatus.active)
        .order_by(WholesaleAccessGrant.created_at.desc(), WholesaleAccessGrant.id.desc())
    ).all()
    return [(grant, buyer) for grant, buyer in rows]


# ---------- CART ----------
def _require_grant(db: Session, *, buyer_id: int, seller_id: int) -> WholesaleAccessGrant:
    grant = _active_grant(db, buyer_id=buyer_id, seller_id=seller_id)
    if not grant:
        raise ForbiddenError("No wholesale access to this seller")
    return grant


def _find_cart(db: Session, *, buyer_id: int, seller_id: int) -> WholesaleCart | None:
    return db.execute(
        select(WholesaleCart)
        .where(WholesaleCart.buyer_id == buyer_id)
        .where(WholesaleCart.seller_id == seller_id)
    ).scalar_one_or_none()


def _existing_cart(db: Session, *, buyer_id: int, seller_id: int) -> WholesaleCart:
    _require_grant(db, buyer_id=buyer_id, seller_id=seller_id)
    cart = _find_cart(db, buyer_id=buyer_id, seller_id=seller_id)
    if not cart:
        raise NotFoundError("Cart not found")
    return cart


def get_wholesale_cart(db: Session, *, buyer_id: int, seller_id: int) -> WholesaleCart:
    """Un panier par couple acheteur / vendeur, créé vide au premier accès."""
    _require_grant(db, buyer_id=buyer_id, seller_id=seller_id)
    cart = _find_cart(db, buyer_id=buyer_id, seller_id=seller_id)
    if cart:
        return cart
    cart = WholesaleCart(
        buyer_id=buyer_id,
        seller_id=seller_id,
        currency=get_settings().default_currency,
        items=[],
    )
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def add_to_wholesale_cart(
    db: Session,
    *,
    buyer_id: int,
    seller_id: int,
    product_id: int,
    quantity: int,
) -> WholesaleCart:
    if quantity <= 0:
        raise ValueError("Quantity must be greater than 0")

    cart = get_wholesale_cart(db, buyer_id=buyer_id, seller_id=seller_id)
    wp = db.execute(
        select(WholesaleProduct)
        .where(WholesaleProduct.seller_id == seller_id)
        .where(WholesaleProduct.product_id == product_id)
        .where(WholesaleProduct.active.is_(True))
    ).scalar_one_or_none()
    if not wp:
        raise NotFoundError("Wholesale product not found for this seller")

    # colonne JSON non suivie en place : toujours réassigner la liste
    items = [dict(it) for it in cart.items or []]
    for it in items:
        if it["product_id"] == product_id:
            it["quantity"] += quantity
            break
    else:
        product = db.get(Product, product_id)
        items.append(
            {
                "product_id": product_id,
                "product_name": wp.name,
                "product_sku": product.sku if product else None,
                "quantity": quantity,
                "unit_price_cents": to_minor_units(wp.wholesale_price, cart.currency),
                "moq": wp.moq,
            }
        )
    cart.items = items
    db.commit()
    db.refresh(cart)
    logger.info("Cart %s: +%s x product %s", cart.id, quantity, product_id)
    return cart


def update_wholesale_cart_item(
    db: Session,
    *,
    buyer_id: int,
    seller_id: int,
    product_id: int,
    quantity: int,
) -> WholesaleCart:
    if quantity <= 0:
        raise ValueError("Quantity must be greater than 0")

    cart = _existing_cart(db, buyer_id=buyer_id, seller_id=seller_id)
    items = [dict(it) for it in cart.items or []]
    for it in items:
        if it["product_id"] == product_id:
            it["quantity"] = quantity
            break
    else:
        raise NotFoundError("Item not found in cart")

    cart.items = items
    db.commit()
    db.refresh(cart)
    return cart


def remove_from_wholesale_cart(db: Session, *, buyer_id: int, seller_id: int, product_id: int) -> WholesaleCart:
    cart = _existing_cart(db, buyer_id=buyer_id, seller_id=seller_id)
    cart.items = [dict(it) for it in cart.items or [] if it["product_id"] != product_id]
    db.commit()
    db.refresh(cart)
    return cart


def wholesale_cart_totals(db: Session, cart: WholesaleCart) -> tuple[CartTotals, MOQCheck]:
    """Totaux recalculés à chaque lecture, acompte selon les conditions de l'accès."""
    grant = _active_grant(db, buyer_id=cart.buyer_id, seller_id=cart.seller_id)
    terms = resolve_wholesale_terms(grant.wholesale_terms if grant else None)
    items = [
        CartItemInput(
            product_id=it["product_id"],
            quantity=it["quantity"],
            unit_price_cents=it["unit_price_cents"],
            moq=it.get("moq"),
        )
        for it in cart.items or []
    ]
    return calculate_wholesale_cart_totals(items, deposit_percentage=terms.deposit_percentage), validate_moq(items)


def list_access_grants(db: Session, *, user_id: int, user_type: str | None = None) -> list[WholesaleAccessGrant]:
    stmt = select(WholesaleAccessGrant)
    if user_type == "buyer":
        stmt = stmt.where(WholesaleAccessGrant.buyer_id == user_id)
    elif user_type == "seller":
        stmt = stmt.where(WholesaleAccessGrant.seller_id == user_id)
    else:
        stmt = stmt.where(or_(WholesaleAccessGrant.buyer_id == user_id, WholesaleAccessGrant.seller_id == user_id))
    stmt = stmt.order_by(WholesaleAccessGrant.created_at.desc(), WholesaleAccessGrant.id.desc())
    return list(db.execute(stmt).scalars().all())


def revoke_access_grant(db: Session, *, seller_id: int, grant_id: int) -> WholesaleAccessGrant:
    grant = db.get(WholesaleAccessGrant, grant_id)
    if not grant or grant.seller_id != seller_id:
        raise NotFoundError("Access grant not found")
    if grant.status == GrantStatus.revoked:
        return grant
    grant.status = GrantStatus.revoked
    grant.revoked_at = utcnow()
    db.commit()
    db.refresh(grant)
    logger.info("Access grant %s revoked by seller %s", grant.id, seller_id)
    return grant


# ---------- ORDERS ----------
def _record_event(
    db: Session,
    order: WholesaleOrder,
    event_type: str,
    *,
    description: str | None = None,
    performed_by: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    db.add(
        WholesaleOrderEvent(
            order_id=order.id,
            event_type=event_type,
            description=description,
            performed_by=performed_by,
            payload=payload,
        )
    )


def place_wholesale_order(
    db: Session,
    *,
    buyer_id: int,
    seller_id: int,
    items: Sequence[OrderItem],
    payment_terms: str | None = None,
    po_number: str | None = None,
    shipping_address: dict[str, Any] | None = None,
    billing_address: dict[str, Any] | None = None,
) -> WholesaleOrder:
    """
    Passe une commande wholesale.

    Préconditions : accès actif acheteur/vendeur + invitation acceptée.
    Les prix viennent du catalogue wholesale du vendeur (jamais du client).
    Montants stockés en cents ; deposit + balance == total.
    """
    terms_name = payment_terms or DEFAULT_PAYMENT_TERMS
    currency = get_settings().default_currency

    if not _active_grant(db, buyer_id=buyer_id, seller_id=seller_id):
        raise ForbiddenError("No wholesale access to this seller")

    invitation = (
        db.execute(
            select(WholesaleInvitation)
            .where(WholesaleInvitation.buyer_id == buyer_id)
            .where(WholesaleInvitation.seller_id == seller_id)
            .where(WholesaleInvitation.status == InvitationStatus.accepted)
            .order_by(WholesaleInvitation.accepted_at.desc(), WholesaleInvitation.id.desc())
        )
        .scalars()
        .first()
    )
    if not invitation:
        raise NotFoundError("Wholesale invitation not found")

    validation = validate_wholesale_order(
        db,
        invitation_id=invitation.id,
        items=items,
        payment_terms=terms_name,
        currency=currency,
    )
    if not validation.valid:
        raise RuleViolationError(
            f"Wholesale order validation failed: {'; '.join(validation.errors)}",
            details=validation,
        )

    order_lines, subtotal_cents = _price_lines(db, seller_id=seller_id, items=items, currency=currency)

    pct = validation.deposit_calculation.deposit_percentage
    deposit_cents = round_half_up(Decimal(subtotal_cents) * pct / 100)
    balance_cents = subtotal_cents - deposit_cents

    buyer = db.get(User, buyer_id)
    today = utcnow().date()

    order = WholesaleOrder(
        order_number=_generate_order_number(),
        seller_id=seller_id,
        buyer_id=buyer_id,
        invitation_id=invitation.id,
        status=WholesaleOrderStatus.pending,
        currency=currency,
        subtotal_cents=subtotal_cents,
        tax_amount_cents=0,
        total_cents=subtotal_cents,
        deposit_amount_cents=deposit_cents,
        balance_amount_cents=balance_cents,
        deposit_percentage=pct,
        payment_terms=terms_name,
        balance_due_date=calculate_payment_due_date(today, terms_name),
        po_number=po_number,
        buyer_email=buyer.email if buyer else "",
        buyer_name=buyer.name if buyer else None,
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
    )
    db.add(order)
    db.flush()  # order.id

    for line in order_lines:
        line.order_id = order.id
        db.add(line)

    _record_event(
        db,
        order,
        "order_created",
        description="Wholesale order placed",
        performed_by=str(buyer_id),
        payload={"warnings": validation.warnings} if validation.warnings else None,
    )
    db.commit()
    db.refresh(order)

    logger.info(
        "Wholesale order %s placed: buyer=%s seller=%s total_cents=%s deposit_cents=%s",
        order.order_number,
        buyer_id,
        seller_id,
        order.total_cents,
        order.deposit_amount_cents,
    )
    return order


def _price_lines(
    db: Session,
    *,
    seller_id: int,
    items: Sequence[OrderItem],
    currency: str,
) -> tuple[list[WholesaleOrderItem], int]:
    lines: list[WholesaleOrderItem] = []
    subtotal = 0
    for it in items:
        wp = db.execute(
            select(WholesaleProduct)
            .where(WholesaleProduct.seller_id == seller_id)
            .where(WholesaleProduct.product_id == it.product_id)
        ).scalar_one()
        product = db.get(Product, it.product_id)

        unit_cents = to_minor_units(wp.wholesale_price, currency)
        line_cents = unit_cents * it.quantity
        subtotal += line_cents
        lines.append(
            WholesaleOrderItem(
                product_id=it.product_id,
                product_name=wp.name,
                product_sku=product.sku if product else None,
                quantity=it.quantity,
                moq=wp.moq,
                unit_price_cents=unit_cents,
                subtotal_cents=line_cents,
            )
        )
    return lines, subtotal


def list_wholesale_orders(
    db: Session,
    *,
    seller_id: int | None = None,
    buyer_id: int | None = None,
    status: WholesaleOrderStatus | None = None,
) -> list[WholesaleOrder]:
    stmt = select(WholesaleOrder)
    if seller_id is not None:
        stmt = stmt.where(WholesaleOrder.seller_id == seller_id)
    if buyer_id is not None:
        stmt = stmt.where(WholesaleOrder.buyer_id == buyer_id)
    if status is not None:
        stmt = stmt.where(WholesaleOrder.status == status)
    stmt = stmt.order_by(WholesaleOrder.created_at.desc(), WholesaleOrder.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_wholesale_order(db: Session, *, order_id: int, user_id: int | None = None) -> WholesaleOrder:
    order = db.get(WholesaleOrder, order_id)
    if not order:
        raise NotFoundError("Wholesale order not found")
    if user_id is not None and user_id not in (order.seller_id, order.buyer_id):
        raise NotFoundError("Wholesale order not found")
    return order


def list_order_items(db: Session, *, order_id: int) -> list[WholesaleOrderItem]:
    return list(
        db.execute(
            select(WholesaleOrderItem)
            .where(WholesaleOrderItem.order_id == order_id)
            .order_by(WholesaleOrderItem.id.asc())
        )
        .scalars()
        .all()
    )


def list_order_events(db: Session, *, order_id: int) -> list[WholesaleOrderEvent]:
    return list(
        db.execute(
            select(WholesaleOrderEvent)
            .where(WholesaleOrderEvent.order_id == order_id)
            .order_by(WholesaleOrderEvent.occurred_at.desc(), WholesaleOrderEvent.id.desc())
        )
        .scalars()
        .all()
    )


def update_wholesale_order_status(
    db: Session,
    *,
    order_id: int,
    seller_id: int,
    new_status: WholesaleOrderStatus,
    note: str | None = None,
) -> WholesaleOrder:
    order = get_wholesale_order(db, order_id=order_id)
    if order.seller_id != seller_id:
        raise ForbiddenError("Unauthorized")

    allowed = ORDER_PROGRESSION.get(order.status, set())
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"Cannot move wholesale order from {order.status.value} to {new_status.value}",
            details={"allowed": sorted(s.value for s in allowed)},
        )

    previous = order.status
    order.status = new_status
    _record_event(
        db,
        order,
        f"status_{new_status.value}",
        description=note,
        performed_by=str(seller_id),
        payload={"from": previous.value, "to": new_status.value},
    )
    db.commit()
    db.refresh(order)
    logger.info("Wholesale order %s: %s -> %s", order.order_number, previous.value, new_status.value)
    return order


def next_order_statuses(status: WholesaleOrderStatus) -> list[WholesaleOrderStatus]:
    return sorted(ORDER_PROGRESSION.get(status, set()), key=lambda s: s.value)
