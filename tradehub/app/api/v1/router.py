from fastapi import APIRouter

from tradehub.app.api.v1.endpoints.health import router as health_router
from tradehub.app.api.v1.endpoints.products import router as products_router
from tradehub.app.api.v1.endpoints.wholesale_products import router as wholesale_products_router
from tradehub.app.api.v1.endpoints.wholesale_invitations import router as wholesale_invitations_router
from tradehub.app.api.v1.endpoints.wholesale_rules import router as wholesale_rules_router
from tradehub.app.api.v1.endpoints.wholesale_orders import router as wholesale_orders_router
from tradehub.app.api.v1.endpoints.wholesale_cart import router as wholesale_cart_router
from tradehub.app.api.v1.endpoints.quotations import router as quotations_router
from tradehub.app.api.v1.endpoints.trade_view import router as trade_view_router
from tradehub.app.api.v1.endpoints.webhooks import router as webhooks_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(products_router, tags=["products"])
router.include_router(wholesale_products_router, tags=["wholesale"])
router.include_router(wholesale_invitations_router, tags=["wholesale"])
router.include_router(wholesale_rules_router, tags=["wholesale_rules"])
router.include_router(wholesale_orders_router, tags=["wholesale_orders"])
router.include_router(wholesale_cart_router, tags=["wholesale_cart"])
router.include_router(quotations_router, tags=["quotations"])
router.include_router(trade_view_router, tags=["trade_view"])
router.include_router(webhooks_router, tags=["webhooks"])
