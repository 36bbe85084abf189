from dataclasses import replace
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tradehub.app.db.base import Base
from tradehub.app.db.models import models_v1  # noqa: F401  (enregistre les tables)
from tradehub.app.db.models.core_types import Role
from tradehub.app.db.models.models_v1 import Product, User, WholesaleProduct
from tradehub.services.payments import PaymentIntent

# SQLite en mémoire partagé entre la session de test et les requêtes du client
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    """Passerelle en mémoire : enregistre les appels, renvoie des intents déterministes."""

    def __init__(self):
        self.calls: list[dict] = []
        self.intents: dict[str, PaymentIntent] = {}

    def create_payment_intent(self, *, amount, currency, metadata, idempotency_key=None):
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
            }
        )
        n = len(self.calls)
        intent = PaymentIntent(
            id=f"pi_test_{n}",
            client_secret=f"pi_test_{n}_secret",
            status="requires_payment_method",
            amount=amount,
            currency=currency.upper(),
        )
        self.intents[intent.id] = intent
        return intent

    def retrieve_payment_intent(self, intent_id):
        return self.intents[intent_id]

    def set_status(self, intent_id, status):
        self.intents[intent_id] = replace(self.intents[intent_id], status=status)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Session DB isolée par test.

    Schéma recréé pour chaque test : rien ne fuit d'un test à l'autre,
    même après commit().
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db_session):
    def _make(email: str, role: Role, name: str | None = None) -> User:
        user = User(email=email, name=name or email.split("@")[0], role=role, active=True)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def seller(make_user) -> User:
    return make_user("seller@example.com", Role.seller, "Moana Crafts")


@pytest.fixture
def buyer(make_user) -> User:
    return make_user("buyer@example.com", Role.buyer, "Island Retail")


@pytest.fixture
def make_wholesale_product(db_session):
    def _make(
        seller: User,
        sku: str,
        *,
        wholesale_price: str,
        rrp: str | None = None,
        moq: int = 1,
        stock: int = 1000,
        active: bool = True,
    ) -> WholesaleProduct:
        product = Product(
            seller_id=seller.id,
            sku=sku,
            name=f"Product {sku}",
            price=Decimal(rrp or wholesale_price),
            stock=stock,
        )
        db_session.add(product)
        db_session.flush()
        wp = WholesaleProduct(
            seller_id=seller.id,
            product_id=product.id,
            name=f"Product {sku}",
            rrp=Decimal(rrp or wholesale_price),
            wholesale_price=Decimal(wholesale_price),
            moq=moq,
            active=active,
        )
        db_session.add(wp)
        db_session.commit()
        db_session.refresh(wp)
        return wp

    return _make


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(db_session, gateway):
    from tradehub.app.api.deps import get_db
    from tradehub.app.api.v1.endpoints.webhooks import get_webhook_secret
    from tradehub.app.main import app
    from tradehub.services.payments import get_payment_gateway

    def _get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_webhook_secret] = lambda: WEBHOOK_SECRET
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
