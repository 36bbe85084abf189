from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_db, require_buyer
from tradehub.app.db.models.models_v1 import User, WholesaleCart
from tradehub.app.schemas.wholesale import WholesaleCartItemRead, WholesaleCartRead
from tradehub.services import wholesale

router = APIRouter(prefix="/wholesale/cart")


class CartItemAdd(BaseModel):
    seller_id: int
    product_id: int
    quantity: int = Field(gt=0)


class CartItemUpdate(BaseModel):
    seller_id: int
    quantity: int = Field(gt=0)


def _cart_read(db: Session, cart: WholesaleCart) -> WholesaleCartRead:
    totals, moq = wholesale.wholesale_cart_totals(db, cart)
    return WholesaleCartRead(
        id=cart.id,
        buyer_id=cart.buyer_id,
        seller_id=cart.seller_id,
        currency=cart.currency,
        items=[
            WholesaleCartItemRead(
                product_id=raw["product_id"],
                product_name=raw["product_name"],
                product_sku=raw.get("product_sku"),
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
                moq=line.moq,
                moq_compliant=line.moq_compliant,
            )
            for raw, line in zip(cart.items or [], totals.items)
        ],
        subtotal_cents=totals.subtotal_cents,
        deposit_percentage=totals.deposit_percentage,
        deposit_cents=totals.deposit_cents,
        balance_due_cents=totals.balance_due_cents,
        total_cents=totals.total_cents,
        moq_valid=moq.is_valid,
        updated_at=cart.updated_at,
    )


@router.get("", response_model=WholesaleCartRead)
def get_cart(seller_id: int, user: User = Depends(require_buyer), db: Session = Depends(get_db)):
    return _cart_read(db, wholesale.get_wholesale_cart(db, buyer_id=user.id, seller_id=seller_id))


@router.post("/items", response_model=WholesaleCartRead)
def add_item(payload: CartItemAdd, user: User = Depends(require_buyer), db: Session = Depends(get_db)):
    cart = wholesale.add_to_wholesale_cart(
        db,
        buyer_id=user.id,
        seller_id=payload.seller_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
    )
    return _cart_read(db, cart)


@router.patch("/items/{product_id}", response_model=WholesaleCartRead)
def update_item(
    product_id: int,
    payload: CartItemUpdate,
    user: User = Depends(require_buyer),
    db: Session = Depends(get_db),
):
    cart = wholesale.update_wholesale_cart_item(
        db,
        buyer_id=user.id,
        seller_id=payload.seller_id,
        product_id=product_id,
        quantity=payload.quantity,
    )
    return _cart_read(db, cart)


@router.delete("/items/{product_id}", response_model=WholesaleCartRead)
def remove_item(product_id: int, seller_id: int, user: User = Depends(require_buyer), db: Session = Depends(get_db)):
    cart = wholesale.remove_from_wholesale_cart(db, buyer_id=user.id, seller_id=seller_id, product_id=product_id)
    return _cart_read(db, cart)
