from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_current_user, get_db, require_buyer, require_seller
from tradehub.app.db.models.core_types import Role, WholesaleOrderStatus
from tradehub.app.db.models.models_v1 import User
from tradehub.app.schemas.wholesale import (
    WholesaleOrderEventRead,
    WholesaleOrderItemRead,
    WholesaleOrderRead,
)
from tradehub.services import wholesale
from tradehub.services.wholesale_rules import OrderItem

router = APIRouter(prefix="/wholesale/orders")


class OrderLineIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class AddressIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=2)


class OrderCreate(BaseModel):
    seller_id: int
    items: list[OrderLineIn] = Field(min_length=1)
    payment_terms: str | None = None
    po_number: str | None = Field(default=None, max_length=64)
    shipping_address: AddressIn | None = None
    # absente : reprend l'adresse de livraison
    billing_address: AddressIn | None = None


class StatusUpdate(BaseModel):
    status: WholesaleOrderStatus
    note: str | None = None


def _order_payload(db: Session, order) -> dict:
    data = WholesaleOrderRead.model_validate(order).model_dump(mode="json")
    data["items"] = [
        WholesaleOrderItemRead.model_validate(it).model_dump(mode="json")
        for it in wholesale.list_order_items(db, order_id=order.id)
    ]
    data["next_statuses"] = wholesale.next_order_statuses(order.status)
    return data


@router.post("", status_code=201)
def place_order(payload: OrderCreate, user: User = Depends(require_buyer), db: Session = Depends(get_db)):
    order = wholesale.place_wholesale_order(
        db,
        buyer_id=user.id,
        seller_id=payload.seller_id,
        items=[OrderItem(product_id=ln.product_id, quantity=ln.quantity) for ln in payload.items],
        payment_terms=payload.payment_terms,
        po_number=payload.po_number,
        shipping_address=payload.shipping_address.model_dump() if payload.shipping_address else None,
        billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
    )
    return _order_payload(db, order)


@router.get("", response_model=list[WholesaleOrderRead])
def list_orders(
    status: WholesaleOrderStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user.role == Role.seller:
        rows = wholesale.list_wholesale_orders(db, seller_id=user.id, status=status)
    elif user.role == Role.buyer:
        rows = wholesale.list_wholesale_orders(db, buyer_id=user.id, status=status)
    else:
        rows = wholesale.list_wholesale_orders(db, status=status)
    return [WholesaleOrderRead.model_validate(o) for o in rows]


@router.get("/{order_id}")
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user_id = None if user.role == Role.admin else user.id
    order = wholesale.get_wholesale_order(db, order_id=order_id, user_id=user_id)
    return _order_payload(db, order)


@router.get("/{order_id}/events", response_model=list[WholesaleOrderEventRead])
def list_order_events(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user_id = None if user.role == Role.admin else user.id
    wholesale.get_wholesale_order(db, order_id=order_id, user_id=user_id)
    return [WholesaleOrderEventRead.model_validate(e) for e in wholesale.list_order_events(db, order_id=order_id)]


@router.patch("/{order_id}/status")
def update_status(
    order_id: int,
    payload: StatusUpdate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    order = wholesale.update_wholesale_order_status(
        db,
        order_id=order_id,
        seller_id=user.id,
        new_status=payload.status,
        note=payload.note,
    )
    return _order_payload(db, order)
