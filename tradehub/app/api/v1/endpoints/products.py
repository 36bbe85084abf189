from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_db, require_seller
from tradehub.app.db.models.core_types import ProductStatus
from tradehub.app.db.models.models_v1 import Product, User

router = APIRouter(prefix="/products")


class ProductCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    status: ProductStatus = ProductStatus.active


def _product_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "seller_id": p.seller_id,
        "sku": p.sku,
        "name": p.name,
        "price": p.price,
        "stock": p.stock,
        "status": p.status,
    }


@router.get("")
def list_products(seller_id: int | None = None, db: Session = Depends(get_db)):
    stmt = select(Product).order_by(Product.sku)
    if seller_id is not None:
        stmt = stmt.where(Product.seller_id == seller_id)
    rows = db.execute(stmt).scalars().all()
    return [_product_dict(p) for p in rows]


@router.post("", status_code=201)
def create_product(
    payload: ProductCreate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    exists = db.execute(
        select(Product).where(Product.seller_id == user.id).where(Product.sku == payload.sku)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="SKU already exists")

    p = Product(
        seller_id=user.id,
        sku=payload.sku,
        name=payload.name,
        price=payload.price,
        stock=payload.stock,
        status=payload.status,
    )
    db.add(p)
    db.commit()
    db.refresh(p)

    return _product_dict(p)
