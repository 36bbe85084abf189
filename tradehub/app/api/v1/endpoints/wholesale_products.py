from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_current_user, get_db, require_seller
from tradehub.app.db.models.core_types import Role
from tradehub.app.db.models.models_v1 import Product, User, WholesaleProduct
from tradehub.app.schemas.wholesale import WholesaleProductRead
from tradehub.services import wholesale

router = APIRouter(prefix="/wholesale/products")


class WholesaleProductCreate(BaseModel):
    product_id: int
    name: str | None = Field(default=None, max_length=255)
    rrp: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    wholesale_price: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    moq: int = Field(default=1, ge=1)
    active: bool = True


class WholesaleProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    rrp: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    wholesale_price: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    moq: int | None = Field(default=None, ge=1)
    active: bool | None = None


@router.get("", response_model=list[WholesaleProductRead])
def list_wholesale_products(
    seller_id: int,
    active_only: bool = True,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    wholesale.check_catalog_access(db, seller_id=seller_id, user=user)
    stmt = (
        select(WholesaleProduct)
        .where(WholesaleProduct.seller_id == seller_id)
        .order_by(WholesaleProduct.name)
    )
    # les acheteurs ne voient jamais les fiches désactivées
    if active_only or user.role == Role.buyer:
        stmt = stmt.where(WholesaleProduct.active.is_(True))
    return db.execute(stmt).scalars().all()


@router.post("", response_model=WholesaleProductRead, status_code=201)
def create_wholesale_product(
    payload: WholesaleProductCreate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    product = db.get(Product, payload.product_id)
    if not product or product.seller_id != user.id:
        raise HTTPException(status_code=400, detail=f"Invalid product_id {payload.product_id}")

    exists = db.execute(
        select(WholesaleProduct)
        .where(WholesaleProduct.seller_id == user.id)
        .where(WholesaleProduct.product_id == payload.product_id)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Product already listed for wholesale")

    wp = WholesaleProduct(
        seller_id=user.id,
        product_id=product.id,
        name=payload.name or product.name,
        rrp=payload.rrp,
        wholesale_price=payload.wholesale_price,
        moq=payload.moq,
        active=payload.active,
    )
    db.add(wp)
    db.commit()
    db.refresh(wp)
    return wp


@router.patch("/{wholesale_product_id}", response_model=WholesaleProductRead)
def update_wholesale_product(
    wholesale_product_id: int,
    payload: WholesaleProductUpdate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    wp = db.get(WholesaleProduct, wholesale_product_id)
    if not wp or wp.seller_id != user.id:
        raise HTTPException(status_code=404, detail="Wholesale product not found")

    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "rrp", "wholesale_price", "moq", "active"):
        # null explicite refusé : colonnes NOT NULL
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=400, detail=f"{field} cannot be null")
    for field, value in changes.items():
        setattr(wp, field, value)

    db.commit()
    db.refresh(wp)
    return wp
