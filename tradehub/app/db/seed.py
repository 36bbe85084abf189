from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from tradehub.app.db.session import SessionLocal
from tradehub.app.db.models.models_v1 import Product, User, WholesaleProduct
from tradehub.app.db.models.core_types import Role


def _user(db, email: str, name: str, role: Role) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, name=name, role=role, active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def run_seed():
    db = SessionLocal()
    try:
        # 1) Comptes de démo : un vendeur, un acheteur
        seller = _user(db, "seller@tradehub.local", "Demo Seller", Role.seller)
        buyer = _user(db, "buyer@tradehub.local", "Demo Buyer", Role.buyer)

        # 2) Un produit listé en wholesale (MOQ 10)
        product = db.scalar(select(Product).where(Product.seller_id == seller.id, Product.sku == "DEMO-001"))
        if not product:
            product = Product(
                seller_id=seller.id,
                sku="DEMO-001",
                name="Demo pareo",
                price=Decimal("45.00"),
                stock=500,
            )
            db.add(product)
            db.flush()
            db.add(
                WholesaleProduct(
                    seller_id=seller.id,
                    product_id=product.id,
                    name=product.name,
                    rrp=Decimal("45.00"),
                    wholesale_price=Decimal("22.50"),
                    moq=10,
                )
            )
            db.commit()

        print(f"SEED OK: seller={seller.id} buyer={buyer.id} product={product.sku}")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
